"""Resource schema -> TypeSpec definition converter."""

import json
import logging
from dataclasses import dataclass, field

from pydantic import BaseModel

from jsonapi_bridge.converter.models import (
    Decorator,
    Definition,
    Model,
    Namespace,
    Operation,
    Parameter,
    Property,
    PropertyKind,
    RequestBody,
    Response,
)
from jsonapi_bridge.errors import ConversionWarning
from jsonapi_bridge.mapping import TYPESPEC_TYPES, model_name, resource_type_of
from jsonapi_bridge.parser.base import Attribute, Cardinality, Relationship, ResourceDefinition
from jsonapi_bridge.parser.schema import parse_schema

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "JsonApi"
DEFAULT_TITLE = "JSON API Schema"
DEFAULT_VERSION = "1.0.0"
TYPESPEC_IMPORTS = ["@typespec/rest", "@typespec/openapi3"]
DISCRIMINATOR = Decorator(name="discriminator", arguments=["type"])


class ConversionOptions(BaseModel):
    """Options shared by the forward and reverse converters."""

    namespace: str | None = None
    include_relationships: bool = True
    generate_operations: bool = False
    title: str | None = None
    version: str | None = None
    description: str | None = None


@dataclass
class ForwardResult:
    model: Definition
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def to_typespec(schema, options: ConversionOptions | None = None) -> ForwardResult:
    """Convert a resource schema into a TypeSpec ``Definition``.

    ``schema`` may be a ``ResourceSchema``, a single ``ResourceDefinition`` or
    a parsed schema document. Never raises: element failures are returned as
    warnings, a malformed schema as an error with an empty definition.
    """
    options = options or ConversionOptions()
    warnings: list[str] = []
    try:
        resource_schema, load_warnings = parse_schema(schema)
        warnings.extend(load_warnings)
        definition = _convert_schema(resource_schema, options, warnings)
    except Exception as e:
        logger.error(f"TypeSpec conversion failed: {e}")
        return ForwardResult(model=Definition(), warnings=warnings, errors=[f"Conversion failed: {e}"])
    return ForwardResult(model=definition, warnings=warnings)


def _convert_schema(schema, options: ConversionOptions, warnings: list[str]) -> Definition:
    namespace = Namespace(
        name=options.namespace or DEFAULT_NAMESPACE,
        imports=list(TYPESPEC_IMPORTS),
    )

    for resource in schema.resources:
        try:
            namespace.models.append(convert_resource(resource, options, warnings))
            if options.generate_operations:
                namespace.operations.extend(generate_operations(resource))
        except Exception as e:
            _warn(warnings, f"Failed to convert resource '{resource.name}': {e}")

    return Definition(
        namespaces=[namespace],
        imports=list(TYPESPEC_IMPORTS),
        title=options.title or schema.title or DEFAULT_TITLE,
        version=options.version or schema.version or DEFAULT_VERSION,
        description=options.description or schema.description,
    )


def convert_resource(resource: ResourceDefinition, options: ConversionOptions, warnings: list[str]) -> Model:
    properties = []

    for attr in resource.attributes:
        try:
            properties.append(convert_attribute(attr))
        except Exception as e:
            _warn(warnings, f"Failed to convert attribute '{attr.name}' in '{resource.name}': {e}")

    if options.include_relationships:
        for rel in resource.relationships:
            try:
                properties.append(convert_relationship(rel))
            except Exception as e:
                _warn(warnings, f"Failed to convert relationship '{rel.name}' in '{resource.name}': {e}")

    return Model(
        name=model_name(resource_type_of(resource)),
        properties=properties,
        description=resource.description,
        decorators=[DISCRIMINATOR],
    )


def convert_attribute(attr: Attribute) -> Property:
    if attr.is_enum:
        type_ = " | ".join(json.dumps(value, ensure_ascii=False) for value in attr.enum_values)
    elif attr.semantic_type in TYPESPEC_TYPES:
        type_ = TYPESPEC_TYPES[attr.semantic_type]
    else:
        raise ConversionWarning(f"no TypeSpec type for {attr.semantic_type!r}")

    if attr.nullable:
        type_ = f"{type_} | null"

    return Property(
        name=attr.name,
        type=type_,
        optional=attr.nullable,
        description=attr.description,
        kind=PropertyKind.ATTRIBUTE,
    )


def convert_relationship(rel: Relationship) -> Property:
    type_ = model_name(rel.target_resource)
    if rel.cardinality == Cardinality.PLURAL:
        type_ = f"{type_}[]"
    if rel.nullable:
        type_ = f"{type_} | null"

    return Property(
        name=rel.name,
        type=type_,
        optional=rel.nullable,
        description=rel.description,
        kind=PropertyKind.RELATIONSHIP,
    )


def generate_operations(resource: ResourceDefinition) -> list[Operation]:
    """The five CRUD operations for one resource."""
    resource_type = resource_type_of(resource)
    name = model_name(resource_type)
    collection_path = f"/{resource_type}"
    item_path = f"{collection_path}/{{id}}"
    id_param = Parameter(name="id", description=f"The {resource_type} ID")
    not_found = Response(status_code=404, description="Resource not found")

    return [
        Operation(
            name=f"list{name}",
            method="get",
            path=collection_path,
            responses=[Response(status_code=200, type=f"{name}[]", description=f"List of {resource_type} resources")],
            description=f"List all {resource_type} resources",
        ),
        Operation(
            name=f"get{name}",
            method="get",
            path=item_path,
            parameters=[id_param],
            responses=[
                Response(status_code=200, type=name, description=f"The {resource_type} resource"),
                not_found,
            ],
            description=f"Get a specific {resource_type} resource",
        ),
        Operation(
            name=f"create{name}",
            method="post",
            path=collection_path,
            request_body=RequestBody(type=name, description=f"The {resource_type} resource to create"),
            responses=[
                Response(status_code=201, type=name, description=f"The created {resource_type} resource"),
                Response(status_code=400, description="Bad request"),
            ],
            description=f"Create a new {resource_type} resource",
        ),
        Operation(
            name=f"update{name}",
            method="patch",
            path=item_path,
            parameters=[id_param],
            request_body=RequestBody(type=name, description=f"The {resource_type} resource updates"),
            responses=[
                Response(status_code=200, type=name, description=f"The updated {resource_type} resource"),
                not_found,
            ],
            description=f"Update a {resource_type} resource",
        ),
        Operation(
            name=f"delete{name}",
            method="delete",
            path=item_path,
            parameters=[id_param],
            responses=[
                Response(status_code=204, description="Resource deleted successfully"),
                not_found,
            ],
            description=f"Delete a {resource_type} resource",
        ),
    ]


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)
