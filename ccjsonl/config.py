"""cc-jsonl Configuration."""
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger("ccjsonl")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _config_dir() -> Path:
    xdg_config_home = os.getenv("XDG_CONFIG_HOME")
    return Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"


def default_target_dir() -> Path:
    xdg_config_home = os.getenv("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "claude" / "projects"
    return Path.home() / ".claude" / "projects"


def load_settings(path: Path | None = None) -> dict:
    """Read the optional settings.json; missing or broken files yield {}."""
    settings_path = path or SETTINGS_PATH
    if not settings_path.exists():
        return {}
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load settings file {settings_path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def save_settings(settings: dict, path: Path | None = None) -> None:
    settings_path = path or SETTINGS_PATH
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")


CONFIG_DIR = _config_dir() / "cc-jsonl"
SETTINGS_PATH = CONFIG_DIR / "settings.json"
_SETTINGS = load_settings()

# Database
DB_PATH = (
    _SETTINGS.get("databaseFileName")
    or os.getenv("CCJSONL_DB_PATH")
    or os.getenv("DATABASE_FILE_NAME")
    or str(CONFIG_DIR / "data.db")
)

# Log source
WATCH_TARGET_DIR = (
    _SETTINGS.get("watchTargetDir")
    or os.getenv("CCJSONL_WATCH_TARGET_DIR")
    or os.getenv("WATCH_TARGET_DIR")
    or str(default_target_dir())
)

# Batch processing
BATCH_PATTERN = os.getenv("CCJSONL_BATCH_PATTERN", "**/*.jsonl")
BATCH_MAX_CONCURRENCY = _env_int("CCJSONL_BATCH_MAX_CONCURRENCY", 5)
BATCH_SKIP_EXISTING = _env_bool("CCJSONL_BATCH_SKIP_EXISTING", True)
BATCH_INTERVAL_MINUTES = _env_int("CCJSONL_BATCH_INTERVAL_MINUTES", 60)

# Live mode
WATCHER_ENABLED = _env_bool("CCJSONL_WATCHER_ENABLED", False)
PERIODIC_ENABLED = _env_bool("CCJSONL_PERIODIC_ENABLED", False)
WATCHER_STABILITY_MS = _env_int("CCJSONL_WATCHER_STABILITY_MS", 1000)
WATCHER_POLL_MS = _env_int("CCJSONL_WATCHER_POLL_MS", 100)

# Observability
OTEL_ENABLED = _env_bool("CCJSONL_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CCJSONL_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CCJSONL_OTEL_SERVICE_NAME", "ccjsonl-ingest")
PROM_PORT = _env_int("CCJSONL_PROM_PORT", 9464)
LOG_LEVEL = os.getenv("CCJSONL_LOG_LEVEL", "INFO").upper()

# Server settings
HOST = os.getenv("CCJSONL_HOST", "127.0.0.1")
PORT = _env_int("CCJSONL_PORT", 8000)
