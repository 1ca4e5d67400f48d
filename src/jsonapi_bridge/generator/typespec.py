"""Render a TypeSpec ``Definition`` as ``.tsp`` source text."""

import json

from jsonapi_bridge.converter.models import Decorator, Definition, Model, Namespace, Operation, Property

INDENT = "  "


class TypeSpecRenderer:
    """Serializes a ``Definition`` into TypeSpec syntax."""

    def render(self, definition: Definition) -> str:
        lines: list[str] = []

        for imp in definition.imports:
            lines.append(f'import "{imp}";')
        if definition.imports:
            lines.append("")

        if definition.title:
            lines.append("@service({")
            if definition.version:
                lines.append(f"  title: {json.dumps(definition.title)},")
                lines.append(f"  version: {json.dumps(definition.version)}")
            else:
                lines.append(f"  title: {json.dumps(definition.title)}")
            lines.append("})")

        for namespace in definition.namespaces:
            lines.extend(self._namespace(namespace, set(definition.imports)))
            lines.append("")

        return "\n".join(lines).strip() + "\n"

    def _namespace(self, namespace: Namespace, rendered_imports: set[str]) -> list[str]:
        lines = []
        extra = [imp for imp in namespace.imports if imp not in rendered_imports]
        for imp in extra:
            lines.append(f'import "{imp}";')
        if extra:
            lines.append("")

        if namespace.description:
            lines.append(_doc(namespace.description, ""))
        lines.append(f"namespace {namespace.name} {{")
        for model in namespace.models:
            lines.extend(self._model(model))
            lines.append("")
        for operation in namespace.operations:
            lines.extend(self._operation(operation))
            lines.append("")
        if lines[-1] == "":
            lines.pop()
        lines.append("}")
        return lines

    def _model(self, model: Model) -> list[str]:
        lines = []
        if model.description:
            lines.append(_doc(model.description, INDENT))
        for decorator in model.decorators:
            lines.append(f"{INDENT}{render_decorator(decorator)}")
        lines.append(f"{INDENT}model {model.name} {{")
        for prop in model.properties:
            lines.extend(self._property(prop))
        lines.append(f"{INDENT}}}")
        return lines

    def _property(self, prop: Property) -> list[str]:
        indent = INDENT * 2
        lines = []
        if prop.description:
            lines.append(_doc(prop.description, indent))
        optional = "?" if prop.optional else ""
        lines.append(f"{indent}{prop.name}{optional}: {prop.type};")
        return lines

    def _operation(self, operation: Operation) -> list[str]:
        lines = []
        if operation.description:
            lines.append(_doc(operation.description, INDENT))
        for decorator in operation.decorators:
            lines.append(f"{INDENT}{render_decorator(decorator)}")
        lines.append(f'{INDENT}@route("{operation.path}")')
        lines.append(f"{INDENT}@{operation.method}")

        params = [f"@path {p.name}: {p.type}" if p.location == "path" else f"@{p.location} {p.name}: {p.type}"
                  for p in operation.parameters]
        if operation.request_body is not None:
            params.append(f"@body body: {operation.request_body.type}")
        response_type = next((r.type for r in operation.responses if 200 <= r.status_code < 300 and r.type), "void")
        lines.append(f"{INDENT}op {operation.name}({', '.join(params)}): {response_type};")
        return lines


def render_decorator(decorator: Decorator) -> str:
    if not decorator.arguments:
        return f"@{decorator.name}"
    args = ", ".join(json.dumps(arg) for arg in decorator.arguments)
    return f"@{decorator.name}({args})"


def _doc(text: str, indent: str) -> str:
    return f"{indent}/** {text.replace('*/', '* /')} */"


def render_typespec(definition: Definition) -> str:
    return TypeSpecRenderer().render(definition)
