"""OpenAPI 3.0 document generator for resource schemas."""

import copy
import logging
from dataclasses import dataclass, field

from pydantic import BaseModel

from jsonapi_bridge.mapping import OPENAPI_TYPES, model_name, resource_type_of
from jsonapi_bridge.parser.base import Attribute, Cardinality, Relationship, ResourceDefinition, ResourceSchema
from jsonapi_bridge.parser.schema import parse_schema

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.3"
CONTENT_TYPE = "application/vnd.api+json"
DEFAULT_TITLE = "JSON API Schema"
DEFAULT_VERSION = "1.0.0"


class Server(BaseModel):
    url: str
    description: str | None = None


DEFAULT_SERVERS = [Server(url="https://api.example.com/v1", description="Production server")]


class GeneratorOptions(BaseModel):
    servers: list[Server] = DEFAULT_SERVERS
    structured_format: bool = False  # nest attributes/relationships the JSON:API way
    title: str | None = None
    version: str | None = None
    description: str | None = None


def _ref(name: str) -> dict:
    return {"$ref": f"#/components/schemas/{name}"}


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class OpenApiResult:
    document: dict
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class OpenApiGenerator:
    """Builds an OpenAPI document (a plain dict) from a ``ResourceSchema``."""

    def __init__(self, options: GeneratorOptions | None = None):
        self.options = options or GeneratorOptions()

    def generate(self, schema) -> OpenApiResult:
        """Document ``schema``.

        Never raises: a resource that cannot be documented is skipped with a
        warning, a malformed schema yields an empty document and an error.
        """
        warnings: list[str] = []
        try:
            resource_schema, load_warnings = parse_schema(schema)
            warnings.extend(load_warnings)
            document = self.build(resource_schema, warnings)
        except Exception as e:
            logger.error(f"OpenAPI generation failed: {e}")
            return OpenApiResult(document=self.envelope(), warnings=warnings, errors=[f"Generation failed: {e}"])
        return OpenApiResult(document=document, warnings=warnings)

    def envelope(self, schema: ResourceSchema | None = None) -> dict:
        if schema is None:
            schema = ResourceSchema()
        info = _compact({
            "title": self.options.title or schema.title or DEFAULT_TITLE,
            "version": self.options.version or schema.version or DEFAULT_VERSION,
            "description": self.options.description or schema.description,
        })
        return {
            "openapi": OPENAPI_VERSION,
            "info": info,
            "servers": [s.model_dump(exclude_none=True) for s in self.options.servers],
            "paths": {},
            "components": {"schemas": {}},
        }

    def build(self, schema: ResourceSchema, warnings: list[str]) -> dict:
        document = self.envelope(schema)
        for resource in schema.resources:
            try:
                self._add_resource(document, resource)
            except Exception as e:
                _warn(warnings, f"Failed to document resource '{resource.name}': {e}")
        logger.debug(f"Generated OpenAPI document with {len(document['paths'])} paths")
        return document

    def _add_resource(self, document: dict, resource: ResourceDefinition) -> None:
        resource_type = resource_type_of(resource)
        name = model_name(resource_type)
        schemas = {
            name: self.resource_schema(resource),
            f"{name}Collection": self.collection_schema(resource),
        }
        paths = {
            f"/{resource_type}": {
                "get": self._list_operation(resource_type, name),
                "post": self._create_operation(resource_type, name),
            },
            f"/{resource_type}/{{id}}": {
                "get": self._get_operation(resource_type, name),
                "patch": self._update_operation(resource_type, name),
                "delete": self._delete_operation(resource_type, name),
            },
        }
        document["components"]["schemas"].update(schemas)
        document["paths"].update(paths)

    # ---- component schemas ----

    def resource_schema(self, resource: ResourceDefinition) -> dict:
        if self.options.structured_format:
            return self._structured_resource_schema(resource)

        properties = self._identity_properties(resource)
        required = ["id", "type"]
        for attr in resource.attributes:
            properties[attr.name] = attribute_schema(attr)
            if not attr.nullable:
                required.append(attr.name)
        for rel in resource.relationships:
            properties[rel.name] = relationship_schema(rel)
            if not rel.nullable:
                required.append(rel.name)

        return _compact({
            "type": "object",
            "properties": properties,
            "required": required,
            "description": resource.description,
        })

    def _structured_resource_schema(self, resource: ResourceDefinition) -> dict:
        attributes = {attr.name: attribute_schema(attr) for attr in resource.attributes}
        relationships = {rel.name: linkage_schema(rel) for rel in resource.relationships}

        properties = self._identity_properties(resource)
        properties["attributes"] = _compact({
            "type": "object",
            "properties": attributes,
            "required": [a.name for a in resource.attributes if not a.nullable] or None,
        })
        properties["relationships"] = _compact({
            "type": "object",
            "properties": relationships,
            "required": [r.name for r in resource.relationships if not r.nullable] or None,
        })
        return _compact({
            "type": "object",
            "properties": properties,
            "required": ["id", "type"],
            "description": resource.description,
        })

    def collection_schema(self, resource: ResourceDefinition) -> dict:
        items = self.resource_schema(resource)
        if not self.options.structured_format:
            return {"type": "array", "items": items}
        return {
            "type": "object",
            "properties": {
                "data": {"type": "array", "items": items},
                "meta": {"type": "object", "description": "Collection metadata"},
            },
            "required": ["data"],
        }

    @staticmethod
    def _identity_properties(resource: ResourceDefinition) -> dict:
        return {
            "id": {"type": "string", "description": "Unique identifier for the resource"},
            "type": {"type": "string", "enum": [resource_type_of(resource)], "description": "Resource type"},
        }

    # ---- operations ----

    @staticmethod
    def _content(name: str) -> dict:
        return {CONTENT_TYPE: {"schema": _ref(name)}}

    @staticmethod
    def _id_parameter(resource_type: str) -> dict:
        return {
            "name": "id",
            "in": "path",
            "required": True,
            "description": f"The {resource_type} ID",
            "schema": {"type": "string"},
        }

    def _list_operation(self, resource_type: str, name: str) -> dict:
        return {
            "summary": f"List {resource_type} resources",
            "description": f"List all {resource_type} resources",
            "operationId": f"list{name}",
            "responses": {
                "200": {
                    "description": f"List of {resource_type} resources",
                    "content": self._content(f"{name}Collection"),
                },
            },
            "tags": [name],
        }

    def _create_operation(self, resource_type: str, name: str) -> dict:
        return {
            "summary": f"Create {resource_type} resource",
            "description": f"Create a new {resource_type} resource",
            "operationId": f"create{name}",
            "requestBody": {"required": True, "content": self._content(name)},
            "responses": {
                "201": {"description": f"The created {resource_type} resource", "content": self._content(name)},
                "400": {"description": "Bad request"},
            },
            "tags": [name],
        }

    def _get_operation(self, resource_type: str, name: str) -> dict:
        return {
            "summary": f"Get {resource_type} resource",
            "description": f"Get a specific {resource_type} resource",
            "operationId": f"get{name}",
            "parameters": [self._id_parameter(resource_type)],
            "responses": {
                "200": {"description": f"The {resource_type} resource", "content": self._content(name)},
                "404": {"description": "Resource not found"},
            },
            "tags": [name],
        }

    def _update_operation(self, resource_type: str, name: str) -> dict:
        return {
            "summary": f"Update {resource_type} resource",
            "description": f"Update a {resource_type} resource",
            "operationId": f"update{name}",
            "parameters": [self._id_parameter(resource_type)],
            "requestBody": {"required": True, "content": self._content(name)},
            "responses": {
                "200": {"description": f"The updated {resource_type} resource", "content": self._content(name)},
                "404": {"description": "Resource not found"},
            },
            "tags": [name],
        }

    def _delete_operation(self, resource_type: str, name: str) -> dict:
        return {
            "summary": f"Delete {resource_type} resource",
            "description": f"Delete a {resource_type} resource",
            "operationId": f"delete{name}",
            "parameters": [self._id_parameter(resource_type)],
            "responses": {
                "204": {"description": "Resource deleted successfully"},
                "404": {"description": "Resource not found"},
            },
            "tags": [name],
        }


def attribute_schema(attr: Attribute) -> dict:
    schema = copy.deepcopy(OPENAPI_TYPES[attr.semantic_type])
    if attr.is_enum:
        schema = {"type": "string", "enum": list(attr.enum_values)}
    if attr.description:
        schema["description"] = attr.description
    if attr.nullable:
        schema["nullable"] = True
    return schema


def relationship_schema(rel: Relationship) -> dict:
    """Flat-mode relationship: a ``$ref`` to the target schema, or an array of them.

    A single reference that carries a description or ``nullable`` is wrapped in
    ``allOf``; OpenAPI 3.0 ignores keywords next to ``$ref``.
    """
    target = model_name(rel.target_resource)
    if rel.cardinality == Cardinality.PLURAL:
        schema = {"type": "array", "items": _ref(target)}
    elif rel.description or rel.nullable:
        schema = {"allOf": [_ref(target)]}
    else:
        schema = _ref(target)
    if rel.description:
        schema["description"] = rel.description
    if rel.nullable:
        schema["nullable"] = True
    return schema


def linkage_schema(rel: Relationship) -> dict:
    """Structured-mode relationship: ``{data: {id, type}}`` or ``{data: [{id, type}]}``."""
    identifier = {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "type": {"type": "string", "enum": [rel.target_resource]},
        },
        "required": ["id", "type"],
    }
    if rel.cardinality == Cardinality.PLURAL:
        data = {"type": "array", "items": identifier}
    else:
        data = identifier
    if rel.nullable:
        data["nullable"] = True
    return _compact({
        "type": "object",
        "properties": {"data": data},
        "required": ["data"],
        "description": rel.description,
    })


def generate_openapi(schema, options: GeneratorOptions | None = None) -> OpenApiResult:
    """Generate an OpenAPI document for ``schema`` (``ResourceSchema``, resource, or parsed mapping)."""
    return OpenApiGenerator(options).generate(schema)


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)
