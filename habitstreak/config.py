import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

HOME_DIR = Path.home() / ".habitstreak"
DB_PATH = HOME_DIR / "habitstreak.db"
CONFIG_PATH = HOME_DIR / "config.yaml"
BACKUP_DIR = HOME_DIR / "backups"

DEFAULT_DEBOUNCE_MS = 300
DEFAULT_STREAK_WINDOW = 100


class Config:
    """Single-instance config manager. Load once, cache in memory."""

    _instance: "Config | None" = None
    _data: dict[str, object]

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = {}
            cls._instance._load()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached instance so the next access re-reads CONFIG_PATH."""
        cls._instance = None

    def _load(self) -> None:
        """Load config from disk."""
        if not CONFIG_PATH.exists():
            self._data = {}
            return
        try:
            with CONFIG_PATH.open() as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("ignoring unreadable config %s: %s", CONFIG_PATH, e)
            loaded = None
        self._data = loaded if isinstance(loaded, dict) else {}

    def _save(self) -> None:
        """Persist config to disk."""
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        with CONFIG_PATH.open("w") as f:
            yaml.dump(self._data, f, default_flow_style=False, allow_unicode=True)

    def get(self, key: str, default: object = None) -> object:
        """Get config value."""
        return self._data.get(key, default)

    def set(self, key: str, value: object) -> None:
        """Set config value and persist."""
        self._data[key] = value
        self._save()


def _positive_int(key: str, default: int) -> int:
    val = Config().get(key, default)
    try:
        parsed = int(val)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def get_debounce_ms() -> int:
    """Window in which repeated auto-saves for one date collapse into one write."""
    return _positive_int("debounce_ms", DEFAULT_DEBOUNCE_MS)


def get_streak_window() -> int:
    """Most recent completions scanned per habit when counting a streak."""
    return _positive_int("streak_window", DEFAULT_STREAK_WINDOW)


def is_legacy_imported() -> bool:
    return bool(Config().get("legacy_imported", False))


def mark_legacy_imported() -> None:
    Config().set("legacy_imported", True)
