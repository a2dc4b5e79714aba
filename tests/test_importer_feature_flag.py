import json

import pytest
from flask import Flask

from crm_app.importer import IMPORTER_EXTENSION_KEY, init_importer


def build_app(enabled=False, entities=()):
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY="test-secret",
        TESTING=True,
        IMPORTER_ENABLED=enabled,
        IMPORTER_ENTITIES=tuple(entities),
    )

    init_importer(app)
    return app


def test_importer_disabled_registers_stub_cli(monkeypatch):
    called = {"flag": False}

    def record_call(*args, **kwargs):
        called["flag"] = True
        return ()

    monkeypatch.setattr("crm_app.importer.resolve_entities", record_call)

    app = build_app(enabled=False)

    assert called["flag"] is False, "resolve_entities should not run when importer disabled"
    assert "importer" not in app.blueprints
    assert app.extensions[IMPORTER_EXTENSION_KEY] == {"enabled": False, "entities": ()}

    runner = app.test_cli_runner()
    result = runner.invoke(args=["importer"])
    assert result.exit_code != 0
    assert "Importer commands are unavailable" in result.output


def test_importer_enabled_registers_blueprint_and_cli():
    app = build_app(enabled=True, entities=("leads", "meetings"))

    assert "importer" in app.blueprints
    assert "importer.importer_healthcheck" in app.view_functions

    client = app.test_client()
    response = client.get("/importer/health")
    assert response.status_code == 200
    payload = json.loads(response.data)
    assert payload == {"status": "ok", "enabled": True, "entities": ["leads", "meetings"]}

    assert app.cli.commands["importer"].name == "importer"


def test_importer_rejects_unknown_entities():
    with pytest.raises(ValueError, match="opportunities"):
        build_app(enabled=True, entities=("leads", "opportunities"))


def test_init_importer_is_idempotent():
    app = build_app(enabled=True, entities=("contacts",))

    init_importer(app)

    assert list(app.blueprints) == ["importer"]
    assert app.extensions[IMPORTER_EXTENSION_KEY]["entities"] == ("contacts",)
