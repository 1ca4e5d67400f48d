"""Auto-detect the kind of input file."""

import re
from pathlib import Path

import yaml

RUBY_SUFFIXES = (".rb",)
TYPESPEC_SUFFIXES = (".tsp",)
SCHEMA_SUFFIXES = (".yml", ".yaml", ".json")

_RUBY_HINT_RE = re.compile(r"^\s*(class|module)\s+\w+", re.MULTILINE)
_TYPESPEC_HINT_RE = re.compile(r"^\s*(namespace|model)\s+\w+[^\n]*\{", re.MULTILINE)


def detect_format(file_path: Path) -> str:
    """Detect the format of an input file.

    Returns: 'ruby', 'typespec', or 'schema'.
    """
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix in RUBY_SUFFIXES:
        return "ruby"
    if suffix in TYPESPEC_SUFFIXES:
        return "typespec"
    if suffix in SCHEMA_SUFFIXES:
        return "schema"

    text = file_path.read_text(encoding="utf-8")

    # YAML is a superset of JSON, so this covers both document flavours
    try:
        data = yaml.safe_load(text)
        if isinstance(data, dict) and ("serializers" in data or "resources" in data):
            return "schema"
    except yaml.YAMLError:
        pass

    if _TYPESPEC_HINT_RE.search(text) or 'import "@typespec/' in text:
        return "typespec"
    if _RUBY_HINT_RE.search(text):
        return "ruby"
    return "schema"
