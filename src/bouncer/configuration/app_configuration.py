from __future__ import annotations
from pathlib import Path
import fcntl
import re
from typing import Any, Dict, Optional
import yaml

from bouncer.util.logger import get_logger

logger = get_logger("app_configuration")


DEFAULT_COMMAND_PREFIX = "!bb"
DEFAULT_VERIFICATION_BASE_URL = "http://localhost:8080"
DEFAULT_THRESHOLD = 3
DEFAULT_NEW_ACCOUNT_DAYS = 7
DEFAULT_CODE_LENGTH = 6
DEFAULT_DATABASE_PATH = "data/bouncer.db"
DEFAULT_LOG_LEVEL = "INFO"

# Names ending in a run of digits, or carrying an invite / link
DEFAULT_SUSPICIOUS_NAME_PATTERN = r"(\d{4,}$)|(discord\.gg/)|(https?://)|(\.(com|net|xyz|ru)\b)"


class AppConfig:
    """File-lock based accessor around the YAML-based bot configuration.

    The instance is created once by :mod:`bouncer.main` and handed to every
    component that needs it. Missing keys fall back to module defaults so an
    empty file still yields a usable configuration.

    Relative paths in the file are anchored at ``base_dir`` (the project
    root when started through :mod:`bouncer.main`, else the directory of the
    config file), never at the working directory of the process.
    """

    def __init__(self, config_path: Path, token: Optional[str] = None, base_dir: Optional[Path] = None) -> None:
        self.config_path = config_path
        self.base_dir = (base_dir or config_path.parent).resolve()
        self.token = token
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _int(self, key: str, default: int, minimum: int = 0) -> int:
        value = self._data.get(key, default)
        try:
            value = int(value)
        except (TypeError, ValueError):
            logger.warning("[APP CONFIGURATION] %s=%r is not an integer; using %d", key, value, default)
            return default
        if value < minimum:
            logger.warning("[APP CONFIGURATION] %s=%d is below %d; using %d", key, value, minimum, default)
            return default
        return value

    def _pattern(self, key: str, default: Optional[str]) -> Optional[re.Pattern[str]]:
        raw = self._data.get(key, default)
        if not raw:
            return None
        try:
            return re.compile(str(raw), re.IGNORECASE)
        except re.error as exc:
            logger.error("[APP CONFIGURATION] Invalid regex for %s: %s", key, exc)
            return re.compile(default, re.IGNORECASE) if default else None

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache. Callers should not mutate it.
        """
        return self._data

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def command_prefix(self) -> str:
        return str(self._data.get("command_prefix") or DEFAULT_COMMAND_PREFIX)

    @property
    def verification_base_url(self) -> str:
        """Base URL of the verification web server, without a trailing slash."""
        value = self._data.get("verification_base_url") or DEFAULT_VERIFICATION_BASE_URL
        return str(value).rstrip("/")

    @property
    def join_threshold(self) -> int:
        """Score at or above which a joining member is quarantined."""
        return self._int("join_threshold", DEFAULT_THRESHOLD, minimum=1)

    @property
    def prepare_threshold(self) -> int:
        """Threshold used by ``prepare`` when the moderator gives none."""
        return self._int("prepare_threshold", DEFAULT_THRESHOLD, minimum=1)

    @property
    def new_account_days(self) -> int:
        return self._int("new_account_days", DEFAULT_NEW_ACCOUNT_DAYS)

    @property
    def verification_code_length(self) -> int:
        return self._int("verification_code_length", DEFAULT_CODE_LENGTH, minimum=4)

    @property
    def suspicious_name_pattern(self) -> Optional[re.Pattern[str]]:
        return self._pattern("suspicious_name_pattern", DEFAULT_SUSPICIOUS_NAME_PATTERN)

    @property
    def prescreen_name_pattern(self) -> Optional[re.Pattern[str]]:
        """Optional filter applied by ``prepare`` before any scoring."""
        return self._pattern("prescreen_name_pattern", None)

    @property
    def flag_weights(self) -> Dict[str, int]:
        """Per-flag weight overrides.

        Only non-negative integers are accepted; anything else is dropped so
        the flag keeps its default weight of 1.
        """
        raw = self._data.get("flag_weights", {})
        if not isinstance(raw, dict):
            return {}
        weights: Dict[str, int] = {}
        for name, value in raw.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                logger.warning("[APP CONFIGURATION] Ignoring weight %r for flag %s", value, name)
                continue
            weights[str(name)] = value
        return weights

    @property
    def database_path(self) -> Path:
        path = Path(str(self._data.get("database_path") or DEFAULT_DATABASE_PATH)).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path.resolve()

    @property
    def log_level(self) -> str:
        """Console log level name; the log file always records DEBUG."""
        value = str(self._data.get("log_level") or DEFAULT_LOG_LEVEL).upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            logger.warning("[APP CONFIGURATION] Unknown log_level %r; using %s", value, DEFAULT_LOG_LEVEL)
            return DEFAULT_LOG_LEVEL
        return value
