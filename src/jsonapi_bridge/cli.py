"""CLI entry point for jsonapi-bridge."""

import json
import logging
from pathlib import Path

import click
import yaml

from jsonapi_bridge.converter.forward import DEFAULT_NAMESPACE, ConversionOptions, to_typespec
from jsonapi_bridge.converter.reverse import from_typespec
from jsonapi_bridge.errors import BridgeError, MissingDeclaration
from jsonapi_bridge.generator.openapi import GeneratorOptions, Server, generate_openapi
from jsonapi_bridge.generator.typespec import render_typespec
from jsonapi_bridge.parser.base import ResourceSchema
from jsonapi_bridge.parser.detect import detect_format
from jsonapi_bridge.parser.ruby import DEFAULT_STRATEGY, EXTRACTION_STRATEGIES, extract_file
from jsonapi_bridge.parser.schema import dump_schema, load_schema, schema_from_resources
from jsonapi_bridge.parser.typespec import load_typespec

FORMATS = ["auto", "ruby", "schema", "typespec"]
SERIALIZER_GLOB = "*_serializer.rb"


def _echo_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        click.echo(f"Warning: {warning}", err=True)


def _check_errors(errors: list[str]) -> None:
    if errors:
        raise click.ClickException("; ".join(errors))


def _ruby_files(paths: tuple[Path, ...]) -> list[tuple[Path, bool]]:
    """Expand directories to their serializer files; each entry is (path, found_by_scan)."""
    files = []
    for path in paths:
        if path.is_dir():
            files.extend((p, True) for p in sorted(path.rglob(SERIALIZER_GLOB)))
        else:
            files.append((path, False))
    return files


def _extract_schema(paths: tuple[Path, ...], strategy: str, strict: bool) -> ResourceSchema:
    resources, warnings = [], []
    for file_path, found_by_scan in _ruby_files(paths):
        click.echo(f"Extracting {file_path}...", err=True)
        try:
            resources.append(extract_file(file_path, strategy=strategy, strict=strict))
        except MissingDeclaration as e:
            if not found_by_scan:
                raise
            warnings.append(f"Skipped {file_path}: {e}")
    _echo_warnings(warnings)
    return schema_from_resources(resources)


def _load_input(input_path: Path, fmt: str, strategy: str) -> ResourceSchema:
    """Read any supported input as a resource schema."""
    if fmt == "auto":
        fmt = "ruby" if input_path.is_dir() else detect_format(input_path)

    if fmt == "ruby":
        return _extract_schema((input_path,), strategy, strict=True)
    if fmt == "typespec":
        result = from_typespec(load_typespec(input_path))
        _echo_warnings(result.warnings)
        _check_errors(result.errors)
        return result.schema

    schema, warnings = load_schema(input_path)
    _echo_warnings(warnings)
    return schema


def _write(output: Path, content: str) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    click.echo(f"Saved to {output}")


def _dump_document(data: dict, output: Path) -> str:
    if output.suffix.lower() == ".json":
        return json.dumps(data, indent=2) + "\n"
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """jsonapi-bridge: convert between jsonapi-serializer classes, TypeSpec and OpenAPI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output schema file (.yml or .json).")
@click.option("--strategy", default=DEFAULT_STRATEGY, type=click.Choice(EXTRACTION_STRATEGIES), help="Extraction strategy.")
@click.option("--lenient", is_flag=True, help="Keep files without a class declaration as empty resources.")
def extract(sources: tuple[Path, ...], output: Path, strategy: str, lenient: bool):
    """Extract a resource schema from Ruby serializer files or directories."""
    try:
        schema = _extract_schema(sources, strategy, strict=not lenient)
    except BridgeError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Found {len(schema.resources)} resources.")
    _write(output, _dump_document(dump_schema(schema), output))


@main.command(name="to-typespec")
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output .tsp file.")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "ruby", "schema"]), help="Input format.")
@click.option("--namespace", default=DEFAULT_NAMESPACE, help="TypeSpec namespace.")
@click.option("--operations/--no-operations", default=False, help="Generate CRUD operations.")
@click.option("--relationships/--no-relationships", default=True, help="Include relationship properties.")
@click.option("--title", default=None, help="Service title.")
@click.option("--version", "api_version", default=None, help="Service version.")
@click.option("--strategy", default=DEFAULT_STRATEGY, type=click.Choice(EXTRACTION_STRATEGIES), help="Ruby extraction strategy.")
def to_typespec_command(
    input_path: Path,
    output: Path,
    fmt: str,
    namespace: str,
    operations: bool,
    relationships: bool,
    title: str | None,
    api_version: str | None,
    strategy: str,
):
    """Convert Ruby serializers or a schema document to TypeSpec."""
    try:
        schema = _load_input(input_path, fmt, strategy)
    except BridgeError as e:
        raise click.ClickException(str(e)) from e

    options = ConversionOptions(
        namespace=namespace,
        include_relationships=relationships,
        generate_operations=operations,
        title=title,
        version=api_version,
    )
    result = to_typespec(schema, options)
    _echo_warnings(result.warnings)
    _check_errors(result.errors)

    click.echo(f"Converted {len(result.model.models)} models, {len(result.model.operations)} operations.")
    _write(output, render_typespec(result.model))


@main.command(name="from-typespec")
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output schema file (.yml or .json).")
@click.option("--namespace", default=None, help="Namespace recorded on every resource.")
def from_typespec_command(input_path: Path, output: Path, namespace: str | None):
    """Convert a TypeSpec file back to a resource schema."""
    try:
        definition = load_typespec(input_path)
    except BridgeError as e:
        raise click.ClickException(str(e)) from e

    result = from_typespec(definition, ConversionOptions(namespace=namespace))
    _echo_warnings(result.warnings)
    _check_errors(result.errors)

    click.echo(f"Recovered {len(result.schema.resources)} resources.")
    _write(output, _dump_document(dump_schema(result.schema), output))


@main.command()
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output OpenAPI file (.yaml or .json).")
@click.option("--format", "fmt", default="auto", type=click.Choice(FORMATS), help="Input format.")
@click.option("--structured", is_flag=True, help="Nest attributes and relationships JSON:API style.")
@click.option("--server", "servers", multiple=True, help="Server URL (repeatable).")
@click.option("--title", default=None, help="Document title.")
@click.option("--version", "api_version", default=None, help="Document version.")
@click.option("--strategy", default=DEFAULT_STRATEGY, type=click.Choice(EXTRACTION_STRATEGIES), help="Ruby extraction strategy.")
def openapi(
    input_path: Path,
    output: Path,
    fmt: str,
    structured: bool,
    servers: tuple[str, ...],
    title: str | None,
    api_version: str | None,
    strategy: str,
):
    """Generate an OpenAPI document from any supported input."""
    try:
        schema = _load_input(input_path, fmt, strategy)
    except BridgeError as e:
        raise click.ClickException(str(e)) from e

    options = GeneratorOptions(structured_format=structured, title=title, version=api_version)
    if servers:
        options.servers = [Server(url=url) for url in servers]

    result = generate_openapi(schema, options)
    _echo_warnings(result.warnings)
    _check_errors(result.errors)

    click.echo(f"Generated {len(result.document['paths'])} paths.")
    _write(output, _dump_document(result.document, output))
