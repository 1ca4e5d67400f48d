"""Unified resource models.

Every extractor, converter and generator reads from or writes to these
models: a ``ResourceSchema`` holding ``ResourceDefinition`` entries with
their attributes and relationships. Collections are tuples so frozen
models stay immutable all the way down; list input is accepted.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class SemanticType(str, Enum):
    """Abstract value category shared by all three type systems."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"


class Cardinality(str, Enum):
    """Relationship cardinality. ``belongs_to`` and ``has_one`` are both singular."""

    SINGULAR = "singular"
    PLURAL = "plural"


class Attribute(BaseModel):
    """A single resource attribute."""

    model_config = ConfigDict(frozen=True)

    name: str
    semantic_type: SemanticType = SemanticType.STRING
    nullable: bool = False
    enum_values: tuple[str, ...] | None = None
    description: str | None = None
    custom_accessor: str | None = None  # method named by `attribute :x, &:method`

    @property
    def is_enum(self) -> bool:
        return bool(self.enum_values)


class Relationship(BaseModel):
    """A link from one resource to another resource type."""

    model_config = ConfigDict(frozen=True)

    name: str
    cardinality: Cardinality
    target_resource: str
    nullable: bool = False
    description: str | None = None


class ResourceDefinition(BaseModel):
    """A resource with its attributes and relationships."""

    model_config = ConfigDict(frozen=True)

    name: str
    resource_type: str | None = None  # plural slug, e.g. "articles"
    id_field: str | None = None
    attributes: tuple[Attribute, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    namespace: str | None = None  # dotted path, e.g. "Api.V1"
    description: str | None = None
    cache_options: dict | None = None

    @model_validator(mode="after")
    def _unique_attribute_names(self):
        seen = set()
        for attr in self.attributes:
            if attr.name in seen:
                raise ValueError(f"duplicate attribute '{attr.name}' in resource '{self.name}'")
            seen.add(attr.name)
        return self


class ResourceSchema(BaseModel):
    """A set of resources plus document-level metadata."""

    model_config = ConfigDict(frozen=True)

    resources: tuple[ResourceDefinition, ...] = ()
    title: str | None = None
    version: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _unique_resource_types(self):
        seen = set()
        for resource in self.resources:
            if resource.resource_type is None:
                continue
            if resource.resource_type in seen:
                raise ValueError(f"duplicate resource type '{resource.resource_type}'")
            seen.add(resource.resource_type)
        return self
