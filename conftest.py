# conftest.py

import os
import tempfile
import uuid

import pytest

# Set testing environment BEFORE importing app to prevent database corruption
# This ensures app.py uses TestingConfig when imported
os.environ["FLASK_ENV"] = "testing"

# Now import app and other modules after environment is set
from app import create_app
from crm_app.models import Principal, db


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    # Create a unique temporary database file for each test
    db_fd, temp_db = tempfile.mkstemp(suffix=f"_{uuid.uuid4().hex[:8]}.db")

    try:
        flask_app = create_app(
            {
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": f"sqlite:///{temp_db}",
                "SECRET_KEY": "test-secret-key-for-testing-only",
                "ENABLE_FILE_LOGGING": False,
                "ENABLE_CONSOLE_LOGGING": False,
                "LOG_LEVEL": "DEBUG",
                "IMPORTER_ENABLED": True,
                "IMPORTER_ENTITIES": ("leads", "contacts", "meetings", "deals"),
                "IMPORTER_METRICS_ENABLED": False,
                "IMPORTER_SYNONYMS_PATH": None,
                "IMPORTER_DEFAULT_PRINCIPAL_ID": None,
            }
        )

        with flask_app.app_context():
            # Drop any existing tables to ensure clean state
            db.drop_all()
            # Create all tables
            db.create_all()
            yield flask_app
            # Clean up: remove all data and drop tables
            db.session.remove()
            db.drop_all()
            db.engine.dispose()
    finally:
        # Always close and remove the temporary database file, even on error
        try:
            os.close(db_fd)
        except OSError:
            pass
        try:
            if os.path.exists(temp_db):
                os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def principal(app):
    """Create a regular (non-admin) principal
    Note: app_context fixture is autouse, so app context is already available
    """
    user = Principal(
        display_name="jdoe",
        full_name="Jane Doe",
        email="jane.doe@example.com",
        is_admin=False,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def other_principal(app):
    """Create a second regular principal"""
    user = Principal(
        display_name="asmith",
        full_name="Alex Smith",
        email="alex.smith@example.com",
        is_admin=False,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_principal(app):
    """Create an admin principal"""
    user = Principal(
        display_name="admin",
        full_name="Admin User",
        email="admin@example.com",
        is_admin=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers and ensure testing environment"""
    # Ensure FLASK_ENV is set to testing before any tests run
    os.environ["FLASK_ENV"] = "testing"

    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.slow)
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
