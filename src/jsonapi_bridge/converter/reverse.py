"""TypeSpec definition -> resource schema converter."""

import json
import logging
import re
from dataclasses import dataclass, field

from jsonapi_bridge.converter.forward import ConversionOptions
from jsonapi_bridge.converter.models import Definition, Model, Property, PropertyKind
from jsonapi_bridge.errors import ConversionFailure, ConversionWarning
from jsonapi_bridge.mapping import PRIMITIVE_TYPESPEC_NAMES, TYPESPEC_TO_SEMANTIC, resource_type_from_model
from jsonapi_bridge.parser.base import (
    Attribute,
    Cardinality,
    Relationship,
    ResourceDefinition,
    ResourceSchema,
    SemanticType,
)

logger = logging.getLogger(__name__)

_LITERAL_RE = re.compile(r'^"((?:[^"\\]|\\.)*)"$')
_RECORD_RE = re.compile(r"^Record<.*>$")


@dataclass
class ReverseResult:
    schema: ResourceSchema
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class TypeShape:
    """A property type with its ``| null`` and ``[]`` wrappers peeled off."""

    base: str
    nullable: bool = False
    is_array: bool = False
    literals: list[str] | None = None


def split_union(type_: str) -> list[str]:
    """Split on ``|`` outside quoted string literals."""
    parts, current = [], []
    quoted = escaped = False
    for char in type_:
        if escaped:
            escaped = False
        elif quoted and char == "\\":
            escaped = True
        elif char == '"':
            quoted = not quoted
        elif char == "|" and not quoted:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return parts


def _decode_literal(literal: str) -> str:
    try:
        return json.loads(literal)
    except json.JSONDecodeError as e:
        raise ConversionWarning(f"invalid string literal {literal}: {e}") from e


def parse_type(type_: str) -> TypeShape:
    """``Tags[] | null`` -> ``TypeShape("Tags", nullable=True, is_array=True)``."""
    parts = split_union(type_)
    nullable = "null" in parts
    parts = [p for p in parts if p and p != "null"]
    if not parts:
        raise ConversionWarning(f"empty type {type_!r}")

    if all(_LITERAL_RE.match(p) for p in parts):
        return TypeShape(base="string", nullable=nullable, literals=[_decode_literal(p) for p in parts])
    if len(parts) > 1:
        raise ConversionWarning(f"unsupported union type {type_!r}")

    base = parts[0]
    is_array = False
    if base.endswith("[]"):
        base = base[:-2].strip()
        is_array = True
    return TypeShape(base=base, nullable=nullable, is_array=is_array)


def is_relationship_type(shape: TypeShape) -> bool:
    """A non-primitive, uppercase-first name is a reference to another model."""
    if shape.literals is not None or _RECORD_RE.match(shape.base):
        return False
    return shape.base not in PRIMITIVE_TYPESPEC_NAMES and shape.base[:1].isupper()


def from_typespec(definition, options: ConversionOptions | None = None) -> ReverseResult:
    """Convert a TypeSpec ``Definition`` (or its dict form) into a ``ResourceSchema``.

    Never raises: dropped properties and models are returned as warnings, a
    malformed definition as an error with an empty schema.
    """
    options = options or ConversionOptions()
    warnings: list[str] = []
    try:
        if not isinstance(definition, Definition):
            definition = Definition.model_validate(definition)
        schema = _convert_definition(definition, options, warnings)
    except Exception as e:
        logger.error(f"Reverse conversion failed: {e}")
        return ReverseResult(schema=ResourceSchema(), warnings=warnings, errors=[f"Conversion failed: {e}"])
    return ReverseResult(schema=schema, warnings=warnings)


def _convert_definition(definition: Definition, options: ConversionOptions, warnings: list[str]) -> ResourceSchema:
    if not definition.namespaces:
        raise ConversionFailure("definition has no namespaces")

    resources = []
    seen_types = set()
    for namespace in definition.namespaces:
        if namespace.operations:
            logger.debug(f"Ignoring {len(namespace.operations)} operation(s) in namespace '{namespace.name}'")
        for model in namespace.models:
            try:
                resource = convert_model(model, options.namespace or namespace.name, warnings)
            except Exception as e:
                _warn(warnings, f"Failed to convert model '{model.name}': {e}")
                continue
            if resource.resource_type in seen_types:
                _warn(warnings, f"Duplicate resource type '{resource.resource_type}' from model '{model.name}' skipped")
                continue
            seen_types.add(resource.resource_type)
            resources.append(resource)

    return ResourceSchema(
        resources=resources,
        title=options.title or definition.title,
        version=options.version or definition.version,
        description=options.description or definition.description,
    )


def convert_model(model: Model, namespace: str | None, warnings: list[str]) -> ResourceDefinition:
    resource_type = resource_type_from_model(model.name)
    if not resource_type:
        raise ConversionWarning("model name is empty")

    attributes: list[Attribute] = []
    relationships: list[Relationship] = []
    for prop in model.properties:
        try:
            item = convert_property(prop)
        except Exception as e:
            _warn(warnings, f"Failed to convert property '{prop.name}' in '{model.name}': {e}")
            continue
        if isinstance(item, Relationship):
            relationships.append(item)
        elif any(a.name == item.name for a in attributes):
            _warn(warnings, f"Duplicate property '{item.name}' in '{model.name}' skipped")
        else:
            attributes.append(item)

    return ResourceDefinition(
        name=resource_type,
        resource_type=resource_type,
        attributes=attributes,
        relationships=relationships,
        namespace=namespace,
        description=model.description,
    )


def convert_property(prop: Property) -> Attribute | Relationship:
    """Classify a property by its ``kind``, or by its type syntax when ``kind`` is unset."""
    shape = parse_type(prop.type)
    nullable = shape.nullable or prop.optional

    if prop.kind is None:
        is_relationship = is_relationship_type(shape)
    else:
        is_relationship = prop.kind == PropertyKind.RELATIONSHIP

    if is_relationship:
        if not is_relationship_type(shape):
            raise ConversionWarning(f"relationship type {prop.type!r} does not name a model")
        return Relationship(
            name=prop.name,
            cardinality=Cardinality.PLURAL if shape.is_array else Cardinality.SINGULAR,
            target_resource=resource_type_from_model(shape.base),
            nullable=nullable,
            description=prop.description,
        )

    return Attribute(
        name=prop.name,
        semantic_type=_semantic_type(shape, prop.type),
        nullable=nullable,
        enum_values=shape.literals,
        description=prop.description,
    )


def _semantic_type(shape: TypeShape, type_: str) -> SemanticType:
    if shape.literals is not None:
        return SemanticType.STRING
    if _RECORD_RE.match(shape.base):
        if shape.is_array:
            raise ConversionWarning(f"array of primitive type {type_!r} has no attribute representation")
        return SemanticType.OBJECT
    if shape.is_array:
        if shape.base == "unknown":
            return SemanticType.ARRAY
        if shape.base in PRIMITIVE_TYPESPEC_NAMES:
            raise ConversionWarning(f"array of primitive type {type_!r} has no attribute representation")
        raise ConversionWarning(f"unsupported array type {type_!r}")
    if shape.base in TYPESPEC_TO_SEMANTIC:
        return TYPESPEC_TO_SEMANTIC[shape.base]
    raise ConversionWarning(f"unsupported type {type_!r}")


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)
