"""
CLI commands for CSV import and export.

``flask importer`` lists the enabled entities; ``import-csv`` and
``export-csv`` run the reconciliation engine inline against the app database.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from flask.cli import ScriptInfo

from crm_app.importer.codec import parse_csv_document
from crm_app.importer.errors import MalformedInput
from crm_app.importer.mapping import MappingLoadError, get_active_schema, map_headers
from crm_app.importer.pipeline import ImportResult
from crm_app.importer.service import ensure_entity_enabled, export_csv, import_csv
from crm_app.importer.utils import decode_csv_bytes, persist_import_summary
from crm_app.utils.importer import get_importer_entities, is_importer_enabled


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    CSV import/export commands.

    Displays enabled entities when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        entities = get_importer_entities(app)
        if not entities:
            click.echo("No importer entities configured.")
        else:
            click.echo("Enabled importer entities:")
            for entity in entities:
                click.echo(f"  - {entity}")


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _resolve_entity(entity: str) -> str:
    try:
        return ensure_entity_enabled(entity)
    except (LookupError, MappingLoadError) as exc:
        raise click.ClickException(str(exc)) from exc


def _format_summary(result: ImportResult, suggestions: Optional[dict[str, str]] = None) -> str:
    lines = [
        f"Import of {result.entity} finished with status {result.status}.",
        f"  rows_total     : {result.total_rows}",
        f"  rows_processed : {result.processed_rows}",
        f"  inserted       : {result.success_count}",
        f"  updated        : {result.update_count}",
        f"  duplicates     : {result.duplicate_count}",
        f"  errors         : {result.error_count}",
    ]
    if result.permission_denied_count:
        lines.append(f"  denied         : {result.permission_denied_count}")
    if result.fatal_error:
        lines.append(f"  fatal_error    : {result.fatal_error}")
    for error in result.errors:
        lines.append(f"  ! {error}")
    for warning in result.warnings:
        lines.append(f"  ~ {warning}")
    for header, field_name in (suggestions or {}).items():
        lines.append(f'  ? "{header}" looks like "{field_name}"; add it as a synonym to map it')
    return "\n".join(lines)


def _header_suggestions(entity: str, text: str) -> dict[str, str]:
    try:
        document = parse_csv_document(text)
    except MalformedInput:
        return {}
    return map_headers(document.headers, get_active_schema(entity)).suggestions


@importer_cli.command("schemas")
@click.argument("entity", required=False)
def importer_schemas(entity: Optional[str]):
    """Print the canonical CSV columns for one or all enabled entities."""
    entities = [_resolve_entity(entity)] if entity else list(get_importer_entities())
    for name in entities:
        schema = get_active_schema(name)
        natural_key = ", ".join(schema.natural_key_fields) or "id only"
        if schema.update_on_natural_key:
            natural_key += ", matches are updated"
        click.echo(f"{schema.entity_name} (natural key: {natural_key})")
        for spec in schema.fields:
            flags = []
            if spec.required:
                flags.append("required")
            if spec.read_only:
                flags.append("export only")
            flag_display = f" [{', '.join(flags)}]" if flags else ""
            click.echo(f"  {spec.name:<22} {spec.type.value:<13} {spec.label}{flag_display}")


@importer_cli.command("import-csv")
@click.argument("entity")
@click.option(
    "--file",
    "file_path",
    required=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Path to the CSV file to import.",
)
@click.option("--principal", "principal_id", help="Principal id performing the import (defaults to config).")
@click.option("--batch-size", type=click.IntRange(min=1), help="Rows per batch (defaults to IMPORTER_BATCH_SIZE).")
@click.option("--summary-json", is_flag=True, help="Emit a machine-readable summary payload after completion.")
@click.option(
    "--summary-file",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Also write the JSON summary to this path.",
)
@click.pass_context
def importer_import_csv(
    ctx,
    entity: str,
    file_path: Path,
    principal_id: Optional[str],
    batch_size: Optional[int],
    summary_json: bool,
    summary_file: Optional[Path],
):
    """Import a CSV file into ENTITY (leads, contacts, meetings or deals)."""
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    entity = _resolve_entity(entity)
    try:
        text = decode_csv_bytes(file_path.read_bytes(), max_mb=app.config.get("IMPORTER_MAX_UPLOAD_MB"))
    except MalformedInput as exc:
        raise click.ClickException(str(exc)) from exc

    result = import_csv(entity, text, principal_id=principal_id, batch_size=batch_size)
    app.logger.info(
        "Importer run completed via CLI",
        extra={
            "importer_entity": entity,
            "importer_source": str(file_path),
            "importer_status": result.status,
        },
    )
    if summary_file is not None:
        persist_import_summary(result, app, source=str(file_path), path=summary_file)

    if summary_json:
        click.echo(json.dumps(result.as_dict(), indent=2))
    else:
        click.echo(_format_summary(result, _header_suggestions(entity, text)))

    if result.fatal_error:
        ctx.exit(1)


@importer_cli.command("export-csv")
@click.argument("entity")
@click.option(
    "--output",
    "output_path",
    type=click.Path(path_type=Path),
    help="File or directory to write; defaults to <entity>_export_<date>.csv in the current directory.",
)
def importer_export_csv(entity: str, output_path: Optional[Path]):
    """Export every ENTITY record to CSV."""
    entity = _resolve_entity(entity)
    filename, text = export_csv(entity)
    if output_path is None:
        target = Path.cwd() / filename
    elif output_path.is_dir():
        target = output_path / filename
    else:
        target = output_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    document = parse_csv_document(text)
    click.echo(f"Exported {entity} to {target}")
    click.echo(f"  columns : {len(document.headers)}")
    click.echo(f"  rows    : {len(document)}")
