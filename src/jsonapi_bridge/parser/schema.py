"""Resource schema documents (YAML / JSON).

Accepts the serializer document layout::

    title: Blog API
    serializers:
      - name: ArticleSerializer
        resource:
          type: articles
          attributes:
            - {name: title, type: string}
          relationships:
            - {name: author, type: belongs_to, resource: authors}

as well as a flat ``resources:`` list in the shape of ``ResourceSchema``.
Malformed attributes, relationships and resources are dropped with a
warning; only a document without a resource list is rejected outright.
"""

import logging
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from jsonapi_bridge.errors import ConversionFailure, ConversionWarning, NotFound
from jsonapi_bridge.mapping import cardinality_for, resource_type_of, semantic_type_for
from jsonapi_bridge.parser.base import (
    Attribute,
    Cardinality,
    Relationship,
    ResourceDefinition,
    ResourceSchema,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Ruby Serializers API"
DEFAULT_VERSION = "1.0.0"
DEFAULT_DESCRIPTION = "Generated from Ruby jsonapi-serializer classes"


def load_schema(file_path: Path) -> tuple[ResourceSchema, list[str]]:
    """Read a YAML or JSON schema document from disk."""
    file_path = Path(file_path)
    if not file_path.is_file():
        raise NotFound(file_path)
    text = file_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConversionFailure(f"Failed to parse {file_path}: {e}") from e
    return parse_schema(data)


def parse_schema(data) -> tuple[ResourceSchema, list[str]]:
    """Coerce a parsed document into a ``ResourceSchema``.

    Returns the schema and the warnings for every element that was dropped.
    Raises ``ConversionFailure`` when ``data`` has no resource list at all.
    """
    if isinstance(data, ResourceSchema):
        return data, []
    if isinstance(data, ResourceDefinition):
        return ResourceSchema(resources=[data]), []
    if not isinstance(data, Mapping):
        raise ConversionFailure("Invalid schema: must be a mapping")

    entries = data.get("serializers", data.get("resources"))
    if not isinstance(entries, list):
        raise ConversionFailure("Invalid schema: 'serializers' must be a list")

    warnings: list[str] = []
    resources = []
    seen_types = set()
    for index, entry in enumerate(entries):
        try:
            resource = parse_resource(entry, warnings)
        except (ConversionWarning, ValidationError) as e:
            _warn(warnings, f"Failed to load resource #{index}: {e}")
            continue
        if resource.resource_type is not None and resource.resource_type in seen_types:
            _warn(warnings, f"Duplicate resource type '{resource.resource_type}' in '{resource.name}' skipped")
            continue
        seen_types.add(resource.resource_type)
        resources.append(resource)

    schema = ResourceSchema(
        resources=resources,
        title=_optional_str(data.get("title")),
        version=_optional_str(data.get("version")),
        description=_optional_str(data.get("description")),
    )
    return schema, warnings


def parse_resource(entry, warnings: list[str]) -> ResourceDefinition:
    """Coerce one serializer entry. Bad attributes and relationships are skipped."""
    if isinstance(entry, ResourceDefinition):
        return entry
    if not isinstance(entry, Mapping):
        raise ConversionWarning("resource entry must be a mapping")

    resource = entry.get("resource", entry)
    if not isinstance(resource, Mapping):
        raise ConversionWarning("'resource' must be a mapping")
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise ConversionWarning("'name' must be a non-empty string")

    attributes = []
    for raw in resource.get("attributes") or []:
        try:
            attribute = parse_attribute(raw)
        except (ConversionWarning, ValidationError) as e:
            _warn(warnings, f"Failed to convert attribute '{_name_of(raw)}' in '{name}': {e}")
            continue
        if any(a.name == attribute.name for a in attributes):
            _warn(warnings, f"Duplicate attribute '{attribute.name}' in '{name}' skipped")
            continue
        attributes.append(attribute)

    relationships = []
    for raw in resource.get("relationships") or []:
        try:
            relationships.append(parse_relationship(raw))
        except (ConversionWarning, ValidationError) as e:
            _warn(warnings, f"Failed to convert relationship '{_name_of(raw)}' in '{name}': {e}")

    cache_options = resource.get("cache_options", entry.get("cache_options"))
    return ResourceDefinition(
        name=name,
        resource_type=_optional_str(resource.get("type", resource.get("resource_type"))),
        id_field=_optional_str(resource.get("id_field", entry.get("id_field"))),
        attributes=attributes,
        relationships=relationships,
        namespace=_optional_str(entry.get("namespace")),
        description=_optional_str(resource.get("description") or entry.get("description")),
        cache_options=cache_options if isinstance(cache_options, Mapping) else None,
    )


def parse_attribute(raw) -> Attribute:
    if isinstance(raw, Attribute):
        return raw
    if not isinstance(raw, Mapping):
        raise ConversionWarning("attribute must be a mapping")
    enum_values = raw.get("enum", raw.get("enum_values"))
    if enum_values is not None and not isinstance(enum_values, list):
        raise ConversionWarning("'enum' must be a list")
    return Attribute(
        name=raw.get("name"),
        semantic_type=semantic_type_for(raw.get("type", raw.get("semantic_type", "string"))),
        nullable=bool(raw.get("nullable", False)),
        enum_values=[str(v) for v in enum_values] if enum_values else None,
        description=_optional_str(raw.get("description")),
        custom_accessor=_optional_str(raw.get("custom_accessor")),
    )


def parse_relationship(raw) -> Relationship:
    if isinstance(raw, Relationship):
        return raw
    if not isinstance(raw, Mapping):
        raise ConversionWarning("relationship must be a mapping")
    name = raw.get("name")
    return Relationship(
        name=name,
        cardinality=cardinality_for(raw.get("type", raw.get("cardinality"))),
        target_resource=raw.get("resource", raw.get("target_resource")) or name,
        nullable=bool(raw.get("nullable", False)),
        description=_optional_str(raw.get("description")),
    )


def schema_from_resources(
    resources: list[ResourceDefinition],
    title: str = DEFAULT_TITLE,
    version: str = DEFAULT_VERSION,
    description: str = DEFAULT_DESCRIPTION,
) -> ResourceSchema:
    """Bundle extracted resources into a schema, keeping the first of any duplicate type."""
    kept, seen = [], set()
    for resource in resources:
        if resource.resource_type is not None and resource.resource_type in seen:
            logger.warning(f"Duplicate resource type '{resource.resource_type}' from {resource.name} skipped")
            continue
        seen.add(resource.resource_type)
        kept.append(resource)
    return ResourceSchema(resources=kept, title=title, version=version, description=description)


def dump_schema(schema: ResourceSchema) -> dict:
    """Serialize a schema into the serializer document layout read by ``parse_schema``."""
    serializers = []
    for resource in schema.resources:
        attributes = [
            _compact({
                "name": attr.name,
                "type": attr.semantic_type.value,
                "nullable": attr.nullable or None,
                "enum": list(attr.enum_values) if attr.enum_values else None,
                "description": attr.description,
                "custom_accessor": attr.custom_accessor,
            })
            for attr in resource.attributes
        ]
        relationships = [
            _compact({
                "name": rel.name,
                "type": "has_many" if rel.cardinality == Cardinality.PLURAL else "has_one",
                "resource": rel.target_resource,
                "nullable": rel.nullable or None,
                "description": rel.description,
            })
            for rel in resource.relationships
        ]
        serializers.append(_compact({
            "name": resource.name,
            "namespace": resource.namespace,
            "resource": _compact({
                "type": resource_type_of(resource),
                "id_field": resource.id_field,
                "description": resource.description,
                "cache_options": resource.cache_options,
                "attributes": attributes,
                "relationships": relationships,
            }),
        }))

    return _compact({
        "title": schema.title,
        "version": schema.version,
        "description": schema.description,
        "serializers": serializers,
    })


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def _optional_str(value) -> str | None:
    return None if value is None else str(value)


def _name_of(raw) -> str:
    if isinstance(raw, Mapping):
        return str(raw.get("name", "?"))
    return getattr(raw, "name", "?")


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)
