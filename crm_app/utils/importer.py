"""
Utility helpers for importer feature flag checks.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from flask import current_app


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_importer_enabled(app=None) -> bool:
    """Return True when the importer feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("IMPORTER_ENABLED", False))


def get_importer_entities(app=None) -> Tuple[str, ...]:
    """Return the configured importer entity identifiers."""
    config = _get_config(app)
    entities: Iterable[str] = config.get("IMPORTER_ENTITIES", ())
    if isinstance(entities, str):
        entities = entities.split(",")
    return tuple(item.strip().lower() for item in entities if item and item.strip())


def get_batch_size(app=None) -> int:
    config = _get_config(app)
    return max(1, int(config.get("IMPORTER_BATCH_SIZE", 20)))


def get_lookup_workers(app=None) -> int:
    config = _get_config(app)
    return max(1, int(config.get("IMPORTER_LOOKUP_WORKERS", 1)))
