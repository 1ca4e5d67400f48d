"""Ruby jsonapi-serializer source extraction.

Recovers a ``ResourceDefinition`` from the text of a serializer class such as::

    class ArticleSerializer
      include JSONAPI::Serializer
      set_type :articles
      attributes :title, :body
      attribute :word_count do |article|
        article.body.split.size
      end
      belongs_to :author, record_type: :users
    end

Two interchangeable extractors implement ``SourceExtractor``:
``SyntaxTreeExtractor`` (see ``ruby_tree``) and the ``LineScanExtractor``
defined here. Pick one with ``get_extractor``.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from jsonapi_bridge.errors import MissingDeclaration, NotFound
from jsonapi_bridge.mapping import RELATIONSHIP_DIRECTIVES, pascal_case, split_top_level
from jsonapi_bridge.parser.base import Attribute, Relationship, ResourceDefinition, SemanticType

logger = logging.getLogger(__name__)

EXTRACTION_STRATEGIES = ("tree", "scan")
DEFAULT_STRATEGY = "tree"

ID_SUFFIXES = ("_id",)
TIMESTAMP_SUFFIXES = ("_at", "_date", "_on", "_time")
BOOLEAN_PREFIXES = ("is_", "has_", "can_", "should_")
FLAG_SUFFIXES = ("_flag", "?")
COUNT_SUFFIXES = ("_count", "_size", "_total")

BLOCK_INTEGER_HINTS = ("count", "size", "length")
BLOCK_BOOLEAN_HINTS = ("present?", "blank?", "empty?", "nil?")
BLOCK_DATE_HINTS = ("strftime", "to_date", "iso8601")


class SourceExtractor(Protocol):
    """Anything that turns serializer source text into a resource."""

    def extract(self, text: str, fallback_name: str = "unknown") -> ResourceDefinition:
        ...


def infer_semantic_type(name: str, block: str | None = None) -> SemanticType:
    """Guess an attribute's type from its name, then from its accessor body.

    The first matching rule wins; the default is ``string``.
    """
    if name == "id" or name.endswith(ID_SUFFIXES):
        return SemanticType.INTEGER
    if name.endswith(TIMESTAMP_SUFFIXES) or any(f"{s}_" in name for s in TIMESTAMP_SUFFIXES):
        return SemanticType.DATE
    if name.startswith(BOOLEAN_PREFIXES) or name.endswith(FLAG_SUFFIXES):
        return SemanticType.BOOLEAN
    if name.endswith(COUNT_SUFFIXES):
        return SemanticType.INTEGER

    if block:
        if any(hint in block for hint in BLOCK_INTEGER_HINTS):
            return SemanticType.INTEGER
        if any(hint in block for hint in BLOCK_BOOLEAN_HINTS):
            return SemanticType.BOOLEAN
        if any(hint in block for hint in BLOCK_DATE_HINTS):
            return SemanticType.DATE

    return SemanticType.STRING


def parse_cache_options(text: str) -> dict:
    """``store: Rails.cache, expires_in: 1.hour`` -> ``{"enabled": True, "store": ..., ...}``."""
    options = {"enabled": True}
    for part in split_top_level(text):
        key, sep, value = part.partition(":")
        if not sep or not re.fullmatch(r"\w+", key.strip()):
            continue
        options[key.strip()] = value.strip().strip("'\"")
    return options


def fallback_class_name(fallback_name: str) -> str:
    name = pascal_case(fallback_name) or "Unknown"
    return name if name.endswith("Serializer") else f"{name}Serializer"


@dataclass
class PendingAttribute:
    name: str
    has_block: bool = False
    block: str = ""
    accessor: str | None = None
    infer: bool = True


@dataclass
class ResourceBuilder:
    """Collects directives while a class body is walked."""

    class_name: str
    modules: list[str] = field(default_factory=list)
    resource_type: str | None = None
    id_field: str | None = None
    attributes: list[PendingAttribute] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    cache_options: dict | None = None

    @classmethod
    def for_class(cls, qualified_name: str, modules: list[str]) -> "ResourceBuilder":
        *prefix, name = qualified_name.split("::")
        return cls(class_name=name, modules=[*modules, *prefix])

    def add_attribute(self, attr: PendingAttribute) -> PendingAttribute:
        for i, existing in enumerate(self.attributes):
            if existing.name == attr.name:
                logger.debug(f"Attribute '{attr.name}' redeclared in {self.class_name}; keeping the later one")
                self.attributes[i] = attr
                return attr
        self.attributes.append(attr)
        return attr

    def add_relationship(self, directive: str, name: str, record_type: str | None) -> None:
        self.relationships.append(
            Relationship(
                name=name,
                cardinality=RELATIONSHIP_DIRECTIVES[directive],
                target_resource=record_type or name,
            )
        )

    def build(self) -> ResourceDefinition:
        attributes = []
        for pending in self.attributes:
            block = pending.block.strip() or None
            semantic_type = infer_semantic_type(pending.name, block) if pending.infer else SemanticType.STRING
            attributes.append(
                Attribute(
                    name=pending.name,
                    semantic_type=semantic_type,
                    nullable=pending.has_block,
                    custom_accessor=pending.accessor,
                )
            )
        return ResourceDefinition(
            name=self.class_name,
            resource_type=self.resource_type,
            id_field=self.id_field,
            attributes=attributes,
            relationships=self.relationships,
            namespace=".".join(self.modules) or None,
            cache_options=self.cache_options,
        )


_MODULE_RE = re.compile(r"^module\s+((?:\w+::)*\w+)")
_CLASS_RE = re.compile(r"^class\s+((?:\w+::)*\w+)")
_OPEN_RE = re.compile(r"\bdo\b|\{")
_CLOSE_RE = re.compile(r"\bend\b|\}")

_SET_TYPE_RE = re.compile(r"^set_type\s+:(\w+)")
_SET_ID_RE = re.compile(r"^set_id\s+:(\w+)")
_ATTRIBUTES_RE = re.compile(r"^attributes\s+(.+)")
_ATTRIBUTE_RE = re.compile(r"^attribute(?:\s+|\s*\(\s*):(\w+)(.*)")
_ACCESSOR_RE = re.compile(r"&:(\w+)")
_RELATIONSHIP_RE = re.compile(r"^(has_many|belongs_to|has_one)\s+:(\w+)(?:\s*,\s*(.+))?")
_RECORD_TYPE_RE = re.compile(r"record_type:\s*:(\w+)")
_CACHE_RE = re.compile(r"^cache_options\b\s*(.*)")
_BLOCK_PARAMS_RE = re.compile(r"^\|[^|]*\|\s*")


class LineScanExtractor:
    """Heuristic line-by-line scanner.

    Tracks whether the cursor is inside the class body and a signed block
    depth: a line containing ``do`` or ``{`` opens one level, a line
    containing ``end`` or ``}`` closes one. Directives are only read from
    lines that start at depth zero, and a depth below zero ends the class.

    Known blind spot: keyword blocks inside an accessor body (``if``,
    ``unless``, ``case``...) are not counted as openers, so their ``end``
    closes the class early and every directive after that accessor is
    dropped. ``SyntaxTreeExtractor`` does not have this problem.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def extract(self, text: str, fallback_name: str = "unknown") -> ResourceDefinition:
        modules: list[str] = []
        builder = None
        pending = None
        depth = 0

        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            if builder is None:
                module_match = _MODULE_RE.match(line)
                if module_match:
                    modules.extend(module_match.group(1).split("::"))
                    continue
                class_match = _CLASS_RE.match(line)
                if class_match:
                    builder = ResourceBuilder.for_class(class_match.group(1), modules)
                    depth = 0
                continue

            start_depth = depth
            if _OPEN_RE.search(line):
                depth += 1
            if _CLOSE_RE.search(line):
                depth -= 1

            if start_depth == 0:
                pending = self._parse_directive(line, builder)
                if depth <= 0:
                    pending = None
            elif pending is not None:
                if not (depth == 0 and line in ("end", "}")):
                    pending.block += line + " "
                if depth <= 0:
                    pending = None

            if depth < 0:
                break

        if builder is None:
            return self._missing_class(fallback_name)
        return builder.build()

    def _missing_class(self, fallback_name: str) -> ResourceDefinition:
        if self.strict:
            raise MissingDeclaration(f"No class declaration found in '{fallback_name}'")
        logger.warning(f"No class declaration found in '{fallback_name}'; returning an empty resource")
        return ResourceDefinition(name=fallback_class_name(fallback_name))

    def _parse_directive(self, line: str, builder: ResourceBuilder) -> PendingAttribute | None:
        """Apply one top-level line. Returns the attribute whose block is still open, if any."""
        match = _SET_TYPE_RE.match(line)
        if match:
            builder.resource_type = match.group(1)
            return None

        match = _SET_ID_RE.match(line)
        if match:
            builder.id_field = match.group(1)
            return None

        match = _ATTRIBUTES_RE.match(line)
        if match:
            for name in match.group(1).split(","):
                name = name.strip().lstrip(":").strip("'\"")
                if re.fullmatch(r"\w+", name):
                    builder.add_attribute(PendingAttribute(name=name, infer=False))
            return None

        match = _ATTRIBUTE_RE.match(line)
        if match:
            return self._parse_attribute(match.group(1), match.group(2), builder)

        match = _RELATIONSHIP_RE.match(line)
        if match:
            directive, name, options = match.groups()
            record_type = None
            if options:
                record_match = _RECORD_TYPE_RE.search(options)
                record_type = record_match.group(1) if record_match else None
                if re.match(r":\w+", options.strip()):
                    logger.debug(f"Only the first relationship on '{line}' is captured")
            builder.add_relationship(directive, name, record_type)
            return None

        match = _CACHE_RE.match(line)
        if match:
            builder.cache_options = parse_cache_options(match.group(1))
        return None

    def _parse_attribute(self, name: str, rest: str, builder: ResourceBuilder) -> PendingAttribute:
        accessor_match = _ACCESSOR_RE.search(rest)
        opener = _OPEN_RE.search(rest)
        attr = PendingAttribute(
            name=name,
            has_block=opener is not None,
            accessor=accessor_match.group(1) if accessor_match else None,
        )
        if opener:
            body = rest[opener.end():]
            body = re.sub(r"(\}|\bend)\s*$", "", body)
            attr.block = _BLOCK_PARAMS_RE.sub("", body.strip())
        return builder.add_attribute(attr)


def get_extractor(strategy: str = DEFAULT_STRATEGY, strict: bool = True) -> SourceExtractor:
    """Build the extractor for ``strategy`` (``tree`` or ``scan``)."""
    if strategy == "scan":
        return LineScanExtractor(strict=strict)
    if strategy == "tree":
        from jsonapi_bridge.parser.ruby_tree import SyntaxTreeExtractor
        return SyntaxTreeExtractor(strict=strict)
    raise ValueError(f"Unknown extraction strategy '{strategy}', expected one of {EXTRACTION_STRATEGIES}")


def extract(
    text: str,
    fallback_name: str = "unknown",
    strategy: str = DEFAULT_STRATEGY,
    strict: bool = True,
) -> ResourceDefinition:
    """Extract a resource from serializer source text."""
    return get_extractor(strategy, strict=strict).extract(text, fallback_name)


def extract_file(path: Path, strategy: str = DEFAULT_STRATEGY, strict: bool = True) -> ResourceDefinition:
    """Extract a resource from a ``*_serializer.rb`` file."""
    path = Path(path)
    if not path.is_file():
        raise NotFound(path)
    text = path.read_text(encoding="utf-8")
    return extract(text, fallback_name=path.stem, strategy=strategy, strict=strict)
