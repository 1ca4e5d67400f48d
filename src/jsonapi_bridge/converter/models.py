"""TypeSpec definition models.

The forward converter produces a ``Definition``; the reverse converter and
the TypeSpec renderer consume one.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class PropertyKind(str, Enum):
    """What a model property was generated from."""

    ATTRIBUTE = "attribute"
    RELATIONSHIP = "relationship"


class Decorator(BaseModel):
    name: str
    arguments: list[Any] = []


class Property(BaseModel):
    """A model property.

    ``type`` holds TypeSpec type syntax: ``string``, ``"a" | "b"``,
    ``Authors | null``, ``Tags[]``. ``kind`` is set by the forward converter
    and is ``None`` for properties read back from TypeSpec text.
    """

    name: str
    type: str
    optional: bool = False
    description: str | None = None
    kind: PropertyKind | None = None


class Model(BaseModel):
    name: str
    properties: list[Property] = []
    description: str | None = None
    decorators: list[Decorator] = []


class Parameter(BaseModel):
    name: str
    location: str = "path"  # path / query / header
    type: str = "string"
    required: bool = True
    description: str | None = None


class RequestBody(BaseModel):
    type: str
    content_type: str = "application/json"
    description: str | None = None


class Response(BaseModel):
    status_code: int
    type: str | None = None
    description: str | None = None


class Operation(BaseModel):
    name: str
    method: str  # get / post / put / patch / delete
    path: str
    parameters: list[Parameter] = []
    request_body: RequestBody | None = None
    responses: list[Response]
    description: str | None = None
    decorators: list[Decorator] = []

    @property
    def status_codes(self) -> set[int]:
        return {r.status_code for r in self.responses}


class Namespace(BaseModel):
    name: str
    models: list[Model] = []
    operations: list[Operation] = []
    imports: list[str] = []
    description: str | None = None


class Definition(BaseModel):
    namespaces: list[Namespace] = []
    imports: list[str] = []
    title: str | None = None
    version: str | None = None
    description: str | None = None

    @property
    def models(self) -> list[Model]:
        return [m for ns in self.namespaces for m in ns.models]

    @property
    def operations(self) -> list[Operation]:
        return [op for ns in self.namespaces for op in ns.operations]
