# config/base.py
import os


def _coerce_bool(value, default=False):
    """Convert environment-style truthy/falsey values to bool."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_entity_list(value):
    """
    Parse a comma-separated entity list while keeping order and removing duplicates.

    Returns:
        tuple[str, ...]: Normalized entity identifiers.
    """
    if not value:
        return ()

    seen = set()
    entities = []
    for raw_item in value.split(","):
        item = raw_item.strip().lower()
        if not item or item in seen:
            continue
        seen.add(item)
        entities.append(item)
    return tuple(entities)


def _parse_int(value, *, default, minimum=1, maximum=None):
    """
    Parse an integer environment value, falling back to ``default`` when invalid.
    """

    try:
        number = int(value) if value not in (None, "") else default
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    if maximum is not None and number > maximum:
        return maximum
    return number


class Config:
    _flask_env = os.environ.get("FLASK_ENV", "development")
    _is_testing = _flask_env == "testing"
    _is_production = _flask_env == "production"

    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Only require SECRET_KEY in production mode
    if not SECRET_KEY and _is_production:
        raise ValueError("SECRET_KEY environment variable is required in production.")

    if not SECRET_KEY and not _is_testing:
        import warnings

        warnings.warn(
            "SECRET_KEY not set. Using default for development only. "
            "Set SECRET_KEY before deploying.",
            UserWarning,
        )
        SECRET_KEY = "dev-secret-key-change-in-production"

    if not SECRET_KEY:
        SECRET_KEY = "test-secret-key-placeholder"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Importer configuration
    IMPORTER_ENABLED = _coerce_bool(os.environ.get("IMPORTER_ENABLED"), default=True)
    IMPORTER_ENTITIES = _parse_entity_list(os.environ.get("IMPORTER_ENTITIES", "leads,contacts,meetings,deals"))

    if IMPORTER_ENABLED and not IMPORTER_ENTITIES:
        raise ValueError("IMPORTER_ENABLED is true but IMPORTER_ENTITIES is empty. Provide at least one entity name.")

    IMPORTER_BATCH_SIZE = _parse_int(os.environ.get("IMPORTER_BATCH_SIZE"), default=20, maximum=5000)
    IMPORTER_LOOKUP_WORKERS = _parse_int(os.environ.get("IMPORTER_LOOKUP_WORKERS"), default=1, maximum=32)
    IMPORTER_MAX_UPLOAD_MB = _parse_int(os.environ.get("IMPORTER_MAX_UPLOAD_MB"), default=25)
    IMPORTER_DEFAULT_PRINCIPAL_ID = os.environ.get("IMPORTER_DEFAULT_PRINCIPAL_ID")
    IMPORTER_SYNONYMS_PATH = os.environ.get("IMPORTER_SYNONYMS_PATH")
    IMPORTER_ARTIFACT_DIR = os.environ.get("IMPORTER_ARTIFACT_DIR")
    IMPORTER_METRICS_ENABLED = _coerce_bool(os.environ.get("IMPORTER_METRICS_ENABLED"), default=True)


class DevelopmentConfig(Config):
    DEBUG = True
    _config_dir = os.path.dirname(os.path.abspath(__file__))
    _project_root = os.path.dirname(_config_dir)
    instance_path = os.path.join(_project_root, "instance")

    if not os.path.exists(instance_path):
        os.makedirs(instance_path, exist_ok=True)

    # SQLite URIs need forward slashes on Windows
    db_path = os.path.join(instance_path, "crm_dev.db").replace("\\", "/")
    db_uri = f"sqlite:///{db_path}"

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", db_uri)
    SQLALCHEMY_ECHO = False
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": 5,
            }
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {}


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get("SECRET_KEY", "test-secret-key-for-testing-only")
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": 5,
        }
    }
    IMPORTER_METRICS_ENABLED = False


class ProductionConfig(Config):
    DEBUG = False
    uri = os.environ.get("DATABASE_URL")
    if uri and uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_ECHO = False
