"""Parse TypeSpec source text into a ``Definition``.

Line based: understands the subset written by ``render_typespec`` (imports,
``@service``, namespaces, decorated models with ``name?: type;`` properties,
``@route`` operations and ``/** */`` doc comments).
"""

import json
import logging
import re
from pathlib import Path

from jsonapi_bridge.converter.models import (
    Decorator,
    Definition,
    Model,
    Namespace,
    Operation,
    Parameter,
    Property,
    RequestBody,
    Response,
)
from jsonapi_bridge.errors import NotFound
from jsonapi_bridge.mapping import split_top_level

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head")
TYPE_BRACKETS = "()[]{}<>"

_IMPORT_RE = re.compile(r'^import\s+"([^"]+)"\s*;')
_NAMESPACE_RE = re.compile(r"^namespace\s+([\w.]+)\s*\{")
_MODEL_RE = re.compile(r"^model\s+(\w+)(?:\s+extends\s+[\w.]+)?\s*\{(\s*\})?")
_PROPERTY_RE = re.compile(r"^(\w+)(\?)?\s*:\s*(.+?)\s*;?$")
_DECORATOR_RE = re.compile(r"^@(\w+)(?:\((.*)\))?$")
_OPERATION_RE = re.compile(r"^op\s+(\w+)\s*\((.*)\)\s*:\s*(.+?)\s*;?$")
_PARAM_RE = re.compile(r"^(?:@(\w+)\s+)?(\w+)(\?)?\s*:\s*(.+)$")
_TITLE_RE = re.compile(r'title:\s*"((?:[^"\\]|\\.)*)"')
_VERSION_RE = re.compile(r'version:\s*"((?:[^"\\]|\\.)*)"')


def _parse_arguments(text: str | None) -> list:
    if not text:
        return []
    try:
        return json.loads(f"[{text}]")
    except json.JSONDecodeError:
        logger.debug(f"Keeping non-JSON decorator arguments as text: {text}")
        return [text]


def _parse_parameters(text: str) -> tuple[list[Parameter], RequestBody | None]:
    parameters, body = [], None
    for raw in split_top_level(text, brackets=TYPE_BRACKETS):
        if not raw:
            continue
        match = _PARAM_RE.match(raw)
        if not match:
            logger.debug(f"Skipping unrecognised operation parameter '{raw}'")
            continue
        location, name, optional, type_ = match.groups()
        if location == "body":
            body = RequestBody(type=type_.strip())
            continue
        parameters.append(Parameter(
            name=name,
            location=location or "path",
            type=type_.strip(),
            required=not optional,
        ))
    return parameters, body


class TypeSpecParser:
    """Stateful line parser; create one per document."""

    def __init__(self):
        self.definition = Definition()
        self.namespace: Namespace | None = None
        self.model: Model | None = None
        self.description: str | None = None
        self.decorators: list[Decorator] = []
        self.route: str | None = None
        self.method: str | None = None

    def parse(self, text: str) -> Definition:
        lines = [line.strip() for line in text.splitlines()]
        i = 0
        while i < len(lines):
            line = lines[i]
            if line.startswith("/**"):
                i = self._doc_comment(lines, i)
            elif line.startswith("@service("):
                i = self._service(lines, i)
            elif line and not line.startswith("//"):
                self._line(line)
            i += 1

        if self.model is not None:
            self._close_model()
        if self.namespace is not None:
            self._close_namespace()
        return self.definition

    def _doc_comment(self, lines: list[str], start: int) -> int:
        parts, i = [], start
        while True:
            line = lines[i]
            parts.append(line)
            if "*/" in line or i == len(lines) - 1:
                break
            i += 1
        text = " ".join(parts)
        text = re.sub(r"^/\*\*|\*/$", "", text.strip())
        text = " ".join(w for w in text.split() if w != "*")
        self.description = text or None
        return i

    def _service(self, lines: list[str], start: int) -> int:
        content, depth, i = "", 0, start
        while i < len(lines):
            line = lines[i]
            content += line
            depth += line.count("(") - line.count(")")
            if depth <= 0 and ")" in line:
                break
            i += 1
        title = _TITLE_RE.search(content)
        version = _VERSION_RE.search(content)
        self.definition.title = json.loads(f'"{title.group(1)}"') if title else None
        self.definition.version = json.loads(f'"{version.group(1)}"') if version else None
        return i

    def _line(self, line: str) -> None:
        match = _IMPORT_RE.match(line)
        if match:
            target = self.namespace.imports if self.namespace is not None else self.definition.imports
            target.append(match.group(1))
            return

        match = _NAMESPACE_RE.match(line)
        if match:
            if self.namespace is not None:
                self._close_namespace()
            self.namespace = Namespace(name=match.group(1), description=self._take_description())
            return

        match = _MODEL_RE.match(line)
        if match and self.namespace is not None:
            if self.model is not None:
                self._close_model()
            self.model = Model(
                name=match.group(1),
                description=self._take_description(),
                decorators=self._take_decorators(),
            )
            if match.group(2):
                self._close_model()
            return

        match = _DECORATOR_RE.match(line)
        if match and self.model is None:
            name, args = match.groups()
            if name == "route":
                route = _parse_arguments(args)
                if route:
                    self.route = str(route[0])
                else:
                    logger.debug(f"Skipping @route without a path: {line}")
            elif name in HTTP_METHODS and not args:
                self.method = name
            else:
                self.decorators.append(Decorator(name=name, arguments=_parse_arguments(args)))
            return

        match = _OPERATION_RE.match(line)
        if match and self.namespace is not None and self.model is None:
            self._operation(*match.groups())
            return

        if line.startswith("}"):
            if self.model is not None:
                self._close_model()
            elif self.namespace is not None:
                self._close_namespace()
            return

        match = _PROPERTY_RE.match(line)
        if match and self.model is not None:
            name, optional, type_ = match.groups()
            self.model.properties.append(Property(
                name=name,
                type=type_,
                optional=bool(optional),
                description=self._take_description(),
            ))
            return

        logger.debug(f"Ignoring TypeSpec line: {line}")

    def _operation(self, name: str, params: str, return_type: str) -> None:
        parameters, body = _parse_parameters(params)
        responses = []
        if return_type != "void":
            responses.append(Response(status_code=200, type=return_type))
        self.namespace.operations.append(Operation(
            name=name,
            method=self.method or "get",
            path=self.route or "/",
            parameters=parameters,
            request_body=body,
            responses=responses,
            description=self._take_description(),
            decorators=self._take_decorators(),
        ))
        self.route = None
        self.method = None

    def _take_description(self) -> str | None:
        description, self.description = self.description, None
        return description

    def _take_decorators(self) -> list[Decorator]:
        decorators, self.decorators = self.decorators, []
        return decorators

    def _close_model(self) -> None:
        self.namespace.models.append(self.model)
        self.model = None

    def _close_namespace(self) -> None:
        self.definition.namespaces.append(self.namespace)
        self.namespace = None


def parse_typespec(text: str) -> Definition:
    """Parse TypeSpec source text."""
    return TypeSpecParser().parse(text)


def load_typespec(file_path: Path) -> Definition:
    """Read and parse a ``.tsp`` file."""
    file_path = Path(file_path)
    if not file_path.is_file():
        raise NotFound(file_path)
    return parse_typespec(file_path.read_text(encoding="utf-8"))
