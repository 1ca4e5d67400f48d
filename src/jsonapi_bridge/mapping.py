"""Type, cardinality and naming tables shared by every converter.

The tables are read-only lookups keyed on ``SemanticType`` / ``Cardinality``
so the Ruby, TypeSpec and OpenAPI sides stay in step.
"""

import re

from jsonapi_bridge.errors import ConversionWarning
from jsonapi_bridge.parser.base import Cardinality, ResourceDefinition, SemanticType

# IR -> TypeSpec
TYPESPEC_TYPES = {
    SemanticType.STRING: "string",
    SemanticType.INTEGER: "float64",
    SemanticType.BOOLEAN: "boolean",
    SemanticType.DATE: "utcDateTime",
    SemanticType.ARRAY: "unknown[]",
    SemanticType.OBJECT: "Record<unknown>",
}

# TypeSpec -> IR. Anything not listed here is either a model reference or unknown.
TYPESPEC_TO_SEMANTIC = {
    "string": SemanticType.STRING,
    "url": SemanticType.STRING,
    "bytes": SemanticType.STRING,
    "plainTime": SemanticType.STRING,
    "duration": SemanticType.STRING,
    "int8": SemanticType.INTEGER,
    "int16": SemanticType.INTEGER,
    "int32": SemanticType.INTEGER,
    "int64": SemanticType.INTEGER,
    "integer": SemanticType.INTEGER,
    "safeint": SemanticType.INTEGER,
    "float": SemanticType.INTEGER,
    "float32": SemanticType.INTEGER,
    "float64": SemanticType.INTEGER,
    "decimal": SemanticType.INTEGER,
    "numeric": SemanticType.INTEGER,
    "number": SemanticType.INTEGER,
    "boolean": SemanticType.BOOLEAN,
    "utcDateTime": SemanticType.DATE,
    "offsetDateTime": SemanticType.DATE,
    "plainDate": SemanticType.DATE,
    "unknown[]": SemanticType.ARRAY,
    "unknown": SemanticType.OBJECT,
    "object": SemanticType.OBJECT,
    "Record<unknown>": SemanticType.OBJECT,
}

PRIMITIVE_TYPESPEC_NAMES = frozenset(TYPESPEC_TO_SEMANTIC)

# IR -> OpenAPI schema fragment
OPENAPI_TYPES = {
    SemanticType.STRING: {"type": "string"},
    SemanticType.INTEGER: {"type": "integer"},
    SemanticType.BOOLEAN: {"type": "boolean"},
    SemanticType.DATE: {"type": "string", "format": "date-time"},
    SemanticType.ARRAY: {"type": "array", "items": {"type": "string"}},
    SemanticType.OBJECT: {"type": "object"},
}

# Spellings accepted in schema documents and Ruby type hints
SEMANTIC_ALIASES = {
    "string": SemanticType.STRING,
    "text": SemanticType.STRING,
    "integer": SemanticType.INTEGER,
    "int": SemanticType.INTEGER,
    "number": SemanticType.INTEGER,
    "float": SemanticType.INTEGER,
    "decimal": SemanticType.INTEGER,
    "boolean": SemanticType.BOOLEAN,
    "bool": SemanticType.BOOLEAN,
    "date": SemanticType.DATE,
    "datetime": SemanticType.DATE,
    "time": SemanticType.DATE,
    "array": SemanticType.ARRAY,
    "list": SemanticType.ARRAY,
    "object": SemanticType.OBJECT,
    "hash": SemanticType.OBJECT,
}

CARDINALITY_ALIASES = {
    "has_many": Cardinality.PLURAL,
    "belongs_to": Cardinality.SINGULAR,
    "has_one": Cardinality.SINGULAR,
    "plural": Cardinality.PLURAL,
    "singular": Cardinality.SINGULAR,
}

# Ruby relationship directive -> cardinality
RELATIONSHIP_DIRECTIVES = {
    "has_many": Cardinality.PLURAL,
    "belongs_to": Cardinality.SINGULAR,
    "has_one": Cardinality.SINGULAR,
}

_SIBILANT_SUFFIXES = ("s", "sh", "ch", "x", "z")
_SIBILANT_PLURALS = ("sses", "shes", "ches", "xes", "zes")


def semantic_type_for(value) -> SemanticType:
    """Resolve a semantic type from an enum member or any accepted spelling."""
    if isinstance(value, SemanticType):
        return value
    if isinstance(value, str) and value.lower() in SEMANTIC_ALIASES:
        return SEMANTIC_ALIASES[value.lower()]
    raise ConversionWarning(f"unsupported semantic type {value!r}")


def cardinality_for(value) -> Cardinality:
    if isinstance(value, Cardinality):
        return value
    if isinstance(value, str) and value.lower() in CARDINALITY_ALIASES:
        return CARDINALITY_ALIASES[value.lower()]
    raise ConversionWarning(f"unsupported relationship type {value!r}")


def split_top_level(text: str, brackets: str = "()[]{}") -> list[str]:
    """Split on commas outside ``brackets`` (open/close pairs) and quoted strings."""
    openers, closers = brackets[0::2], brackets[1::2]
    parts, current = [], []
    depth, quote, escaped = 0, None, False
    for char in text:
        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char in openers:
            depth += 1
        elif char in closers:
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def pascal_case(text: str) -> str:
    """``user_profiles`` -> ``UserProfiles``; inner capitals are kept."""
    words = [w for w in re.split(r"[-_\s.:]+", text) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def camel_case(text: str) -> str:
    pascal = pascal_case(text)
    return pascal[:1].lower() + pascal[1:]


def snake_case(text: str) -> str:
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", text)
    return re.sub(r"[-\s]+", "_", text).lower()


def pluralize(word: str) -> str:
    if word.endswith("y"):
        return word[:-1] + "ies"
    if word.endswith(_SIBILANT_SUFFIXES):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """Best-effort inverse of :func:`pluralize`.

    Not a true inverse: ``statuses`` becomes ``statuse`` and irregular
    plurals are left alone.
    """
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith(_SIBILANT_PLURALS):
        return word[:-2]
    if word.endswith("ss"):
        return word
    if word.endswith("s") and len(word) > 1:
        return word[:-1]
    return word


def is_plural(word: str) -> bool:
    singular = singularize(word)
    return singular != word and pluralize(singular) == word


def model_name(resource_type: str) -> str:
    """Model name for a resource type: PascalCase, pluralized unless already plural.

    ``category`` -> ``Categories``, ``box`` -> ``Boxes``, ``articles`` -> ``Articles``.
    """
    plural = resource_type if is_plural(resource_type) else pluralize(resource_type)
    return pascal_case(plural)


def resource_type_from_model(name: str) -> str:
    """``ProductCategories`` -> ``productCategory``."""
    return camel_case(singularize(name))


def default_resource_type(class_name: str) -> str:
    """``Api::V1::UserProfileSerializer`` -> ``user_profiles``."""
    base = class_name.split("::")[-1]
    base = re.sub(r"Serializer$", "", base) or base
    return pluralize(snake_case(base))


def resource_type_of(resource: ResourceDefinition) -> str:
    return resource.resource_type or default_resource_type(resource.name)
