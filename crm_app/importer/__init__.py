"""
CSV import/export reconciliation for CRM entities.

Provides conditional blueprint and CLI registration along with entity
validation while remaining lightweight when the importer is disabled.
"""

from __future__ import annotations

from typing import Tuple

from flask import Flask

from crm_app.utils.importer import get_importer_entities, is_importer_enabled

from .cli import get_disabled_importer_group, importer_cli
from .contracts import get_schema_registry, resolve_entities
from .pipeline import BatchReconciler, ExportAssembler, ImportResult
from .service import export_csv, import_csv
from .views import importer_blueprint

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "BatchReconciler",
    "ExportAssembler",
    "ImportResult",
    "export_csv",
    "import_csv",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "entities": (),
        },
    )


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Conditionally mount importer blueprint and CLI based on configuration.

    Records importer state inside ``app.extensions['importer']``. Unknown
    entity names in ``IMPORTER_ENTITIES`` raise ``ValueError``.
    """
    enabled = is_importer_enabled(app)
    configured: Tuple[str, ...] = get_importer_entities(app)

    state = _ensure_extension_state(app)
    state["enabled"] = enabled

    if not enabled:
        state["entities"] = ()
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    schemas = resolve_entities(configured, get_schema_registry())
    state["entities"] = tuple(schema.entity_name for schema in schemas)

    if importer_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(importer_blueprint)
    elif importer_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )
    _set_cli(app, enabled=True)

    app.logger.info("Importer enabled for entities: %s", ", ".join(state["entities"]) or "none")
