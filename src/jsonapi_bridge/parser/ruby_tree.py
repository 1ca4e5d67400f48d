"""Syntax-tree extraction for Ruby serializer classes.

The source is parsed with tree-sitter-ruby. ``ResourceVisitor`` walks the
``module`` nesting down to the first ``class`` node and applies the serializer
directives that are direct ``call`` statements of its body. Accessor bodies
are whole ``do_block`` / ``block`` nodes, so keyword blocks inside them
(``if ... end``, ``case ... end``) never leak into the class body.
"""

import logging

import tree_sitter_ruby
from tree_sitter import Language, Node, Parser

from jsonapi_bridge.errors import MissingDeclaration
from jsonapi_bridge.mapping import RELATIONSHIP_DIRECTIVES
from jsonapi_bridge.parser.base import ResourceDefinition
from jsonapi_bridge.parser.ruby import PendingAttribute, ResourceBuilder, fallback_class_name

logger = logging.getLogger(__name__)

RUBY_LANGUAGE = Language(tree_sitter_ruby.language())

_ENCODING = "utf-8"

# tree-sitter-ruby node types
_CALL_TYPE = "call"
_BODY_TYPES = frozenset({"body_statement", "block_body"})
_HEADER_TYPES = frozenset({"constant", "scope_resolution", "superclass", "block_parameters", "comment"})
_BLOCK_PARAMETERS_TYPE = "block_parameters"
_BLOCK_ARGUMENT_TYPE = "block_argument"
_PAIR_TYPE = "pair"
_STRING_TYPES = frozenset({"string", "delimited_symbol"})


def get_parser() -> Parser:
    parser = Parser()
    parser.language = RUBY_LANGUAGE
    return parser


def parse_source(text: str) -> Node:
    """Parse Ruby source and return the ``program`` root node."""
    tree = get_parser().parse(text.encode(_ENCODING))
    if tree.root_node.has_error:
        logger.debug("Ruby source has syntax errors; extracting from the recovered tree")
    return tree.root_node


def get_node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode(_ENCODING)


def find_nodes_by_type(node: Node, node_type: str) -> list[Node]:
    """All descendants of ``node_type``, depth-first."""
    results = [node] if node.type == node_type else []
    for child in node.children:
        results.extend(find_nodes_by_type(child, node_type))
    return results


def body_statements(node: Node) -> list[Node]:
    """Statements of a ``module``, ``class`` or block body, without the header nodes."""
    statements = []
    for child in node.named_children:
        if child.type in _BODY_TYPES:
            statements.extend(c for c in child.named_children if c.type != "comment")
        elif child.type not in _HEADER_TYPES:
            statements.append(child)
    return statements


def symbol_value(node: Node, source: bytes) -> str | None:
    """``:articles`` / ``record_type:`` / ``'users'`` -> the bare name; None for anything computed."""
    if node.type == "simple_symbol":
        return get_node_text(node, source)[1:]
    if node.type == "hash_key_symbol":
        return get_node_text(node, source)
    if node.type in _STRING_TYPES:
        parts = node.named_children
        if all(p.type == "string_content" for p in parts):
            return "".join(get_node_text(p, source) for p in parts)
    return None


def call_arguments(call: Node) -> list[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return []
    return [a for a in arguments.named_children if a.type != "comment"]


def block_body(block: Node, source: bytes) -> str:
    return "\n".join(
        get_node_text(child, source)
        for child in block.named_children
        if child.type != _BLOCK_PARAMETERS_TYPE
    )


class ResourceVisitor:
    """Walks a syntax tree and collects the first class body's directives."""

    def __init__(self, source: bytes):
        self.source = source
        self.modules: list[str] = []
        self.builder: ResourceBuilder | None = None

    def visit(self, node: Node) -> ResourceBuilder | None:
        method = getattr(self, f"visit_{node.type}", None)
        if method is not None:
            method(node)
        return self.builder

    def visit_program(self, node: Node):
        for child in node.named_children:
            if self.builder is not None:
                break
            self.visit(child)

    def visit_module(self, node: Node):
        parts = [p for p in self._name(node).split("::") if p]
        self.modules.extend(parts)
        for child in body_statements(node):
            if self.builder is not None:
                break
            self.visit(child)
        del self.modules[len(self.modules) - len(parts):]

    def visit_class(self, node: Node):
        if self.builder is not None:
            return
        self.builder = ResourceBuilder.for_class(self._name(node) or "Unknown", list(self.modules))
        for child in body_statements(node):
            if child.type == _CALL_TYPE:
                self.visit_directive(child)

    def visit_directive(self, call: Node):
        method = call.child_by_field_name("method")
        if method is None or call.child_by_field_name("receiver") is not None:
            return

        builder = self.builder
        name = self._text(method)
        args = call_arguments(call)
        first = symbol_value(args[0], self.source) if args else None

        if name == "set_type" and first:
            builder.resource_type = first
        elif name == "set_id" and first:
            builder.id_field = first
        elif name == "attributes":
            for arg in args:
                attr_name = symbol_value(arg, self.source)
                if attr_name:
                    builder.add_attribute(PendingAttribute(name=attr_name, infer=False))
        elif name == "attribute" and first:
            block = call.child_by_field_name("block")
            builder.add_attribute(
                PendingAttribute(
                    name=first,
                    has_block=block is not None,
                    block=block_body(block, self.source) if block is not None else "",
                    accessor=self._accessor(args),
                )
            )
        elif name in RELATIONSHIP_DIRECTIVES and first:
            if len(args) > 1 and args[1].type != _PAIR_TYPE:
                logger.debug(f"Only the first relationship of '{self._text(call)}' is captured")
            builder.add_relationship(name, first, self._options(args).get("record_type"))
        elif name == "cache_options":
            options = {"enabled": True}
            options.update({k: v.strip("'\"") for k, v in self._raw_options(args).items()})
            builder.cache_options = options

    def _name(self, node: Node) -> str:
        name = node.child_by_field_name("name")
        return self._text(name) if name is not None else ""

    def _text(self, node: Node) -> str:
        return get_node_text(node, self.source)

    def _accessor(self, args: list[Node]) -> str | None:
        for arg in args:
            if arg.type == _BLOCK_ARGUMENT_TYPE and arg.named_children:
                return symbol_value(arg.named_children[0], self.source)
        return None

    def _pairs(self, args: list[Node]):
        for arg in args:
            if arg.type != _PAIR_TYPE:
                continue
            key = arg.child_by_field_name("key")
            value = arg.child_by_field_name("value")
            key_name = symbol_value(key, self.source) if key is not None else None
            if key_name and value is not None:
                yield key_name, value

    def _options(self, args: list[Node]) -> dict:
        """Keyword arguments whose values are literal names."""
        return {k: symbol_value(v, self.source) for k, v in self._pairs(args)}

    def _raw_options(self, args: list[Node]) -> dict:
        """Keyword arguments with their value source text."""
        return {k: self._text(v) for k, v in self._pairs(args)}


class SyntaxTreeExtractor:
    """Parse with tree-sitter, then visit the first class in the source."""

    def __init__(self, strict: bool = True):
        self.strict = strict

    def parse(self, text: str) -> Node:
        return parse_source(text)

    def extract(self, text: str, fallback_name: str = "unknown") -> ResourceDefinition:
        builder = ResourceVisitor(text.encode(_ENCODING)).visit(self.parse(text))
        if builder is None:
            if self.strict:
                raise MissingDeclaration(f"No class declaration found in '{fallback_name}'")
            logger.warning(f"No class declaration found in '{fallback_name}'; returning an empty resource")
            return ResourceDefinition(name=fallback_class_name(fallback_name))
        return builder.build()
