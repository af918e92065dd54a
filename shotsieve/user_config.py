"""
Layered settings for ShotSieve.

Each setting is looked up in this order, first hit wins:
1. SHOTSIEVE_* environment variable (parsed as JSON when it is valid JSON)
2. ~/.shotsieve/config.json (directory overridable with SHOTSIEVE_CONFIG_DIR)
3. Default from config.py

Values that cannot be converted to the setting's type are ignored with a
warning and the next layer is used.

Example config.json:
{
    "db_file": "/data/photos/scanner.db",
    "batch_size": 20,
    "blur_base_threshold": 100.0,
    "similarity_threshold": 15,
    "similarity_window_seconds": 120,
    "enable_enrichment": false
}
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional
import logging

from . import config
from .models import BlurConfig, SimilarityConfig

logger = logging.getLogger(__name__)


class Setting(NamedTuple):
    env_var: str
    default: Any
    cast: Callable[[Any], Any]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


SETTINGS: dict[str, Setting] = {
    'db_file': Setting('SHOTSIEVE_DB', None, str),
    'batch_size': Setting('SHOTSIEVE_BATCH_SIZE', config.DEFAULT_BATCH_SIZE, int),
    'blur_base_threshold': Setting('SHOTSIEVE_BLUR_THRESHOLD', config.BLUR_BASE_THRESHOLD, float),
    'similarity_threshold': Setting('SHOTSIEVE_SIMILARITY_THRESHOLD', config.SIMILARITY_THRESHOLD, int),
    'similarity_window_seconds': Setting('SHOTSIEVE_SIMILARITY_WINDOW', config.SIMILARITY_WINDOW_SECONDS, int),
    'similarity_max_candidates': Setting('SHOTSIEVE_SIMILARITY_CANDIDATES', config.SIMILARITY_MAX_CANDIDATES, int),
    'enable_enrichment': Setting('SHOTSIEVE_ENRICHMENT', False, _as_bool),
    'enrichment_timeout': Setting('SHOTSIEVE_ENRICHMENT_TIMEOUT', config.ENRICHMENT_TIMEOUT_SECONDS, float),
}


class UserConfig:
    """
    Process-wide view of the user's settings.

    The config file is read once and cached until reload(); environment
    variables are consulted on every access so tests and wrappers can
    change them at runtime.
    """

    _instance: Optional['UserConfig'] = None
    _file_values: Optional[dict] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def config_dir(self) -> Path:
        override = os.getenv('SHOTSIEVE_CONFIG_DIR')
        return Path(override) if override else Path(config.APP_DIR)

    @property
    def config_file_path(self) -> Path:
        return self.config_dir / 'config.json'

    def _read_file(self) -> dict:
        path = self.config_file_path
        if not path.exists():
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                values = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable config file {path}: {e}")
            return {}
        if not isinstance(values, dict):
            logger.warning(f"Ignoring config file {path}: top level is not an object")
            return {}
        logger.debug(f"Read settings from {path}")
        return values

    def _file(self) -> dict:
        if self._file_values is None:
            self._file_values = self._read_file()
        return self._file_values

    def reload(self):
        """Forget the cached config file so the next access re-reads it."""
        self._file_values = None

    def get(self, key: str, default: Any = None, env_var: Optional[str] = None) -> Any:
        """
        Raw value of a setting, without type conversion.

        Args:
            key: Key in config.json
            default: Returned when neither layer has a value
            env_var: Environment variable that overrides the file

        Returns:
            The first value found, env before file before default
        """
        if env_var:
            raw = os.getenv(env_var)
            if raw is not None:
                try:
                    return json.loads(raw)
                except (json.JSONDecodeError, TypeError):
                    return raw

        values = self._file()
        return values[key] if key in values else default

    def value(self, key: str) -> Any:
        """
        Typed value of a known setting.

        A value that does not convert falls through to the next layer.
        """
        setting = SETTINGS[key]
        env_raw = os.getenv(setting.env_var)
        candidates = []
        if env_raw is not None:
            candidates.append((setting.env_var, self.get(key, env_var=setting.env_var)))
        if key in self._file():
            candidates.append((str(self.config_file_path), self._file()[key]))

        for source, raw in candidates:
            if raw is None:
                continue
            try:
                return setting.cast(raw)
            except (TypeError, ValueError):
                logger.warning(f"Invalid value {raw!r} for {key} from {source}, ignoring")
        return setting.default

    def as_dict(self) -> dict[str, Any]:
        """Every known setting with its effective value."""
        values = {key: self.value(key) for key in SETTINGS}
        values['db_file'] = self.db_file
        return values

    @property
    def db_file(self) -> str:
        return self.value('db_file') or config.DB_FILE

    @property
    def batch_size(self) -> int:
        return self.value('batch_size')

    @property
    def blur_base_threshold(self) -> float:
        return self.value('blur_base_threshold')

    @property
    def similarity_threshold(self) -> int:
        return self.value('similarity_threshold')

    @property
    def similarity_window_seconds(self) -> int:
        return self.value('similarity_window_seconds')

    @property
    def similarity_max_candidates(self) -> int:
        return self.value('similarity_max_candidates')

    @property
    def enable_enrichment(self) -> bool:
        return self.value('enable_enrichment')

    @property
    def enrichment_timeout(self) -> float:
        return self.value('enrichment_timeout')

    def create_example_config(self) -> bool:
        """
        Write config.json with every setting at its default.

        Returns:
            True if the file was written
        """
        sample = {'_comment': "ShotSieve settings; environment variables SHOTSIEVE_* take precedence"}
        sample.update({key: setting.default for key, setting in SETTINGS.items()})

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, 'w', encoding='utf-8') as f:
                json.dump(sample, f, indent=2)
        except OSError as e:
            logger.error(f"Could not write {self.config_file_path}: {e}")
            return False
        logger.info(f"Wrote example settings to {self.config_file_path}")
        return True


@dataclass
class ScanSettings:
    """Everything a scan session needs besides its collaborators."""
    batch_size: int = config.DEFAULT_BATCH_SIZE
    blur: BlurConfig = field(default_factory=BlurConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)
    enable_enrichment: bool = False
    enrichment_timeout: float = config.ENRICHMENT_TIMEOUT_SECONDS
    breaker_threshold: int = config.CIRCUIT_BREAKER_THRESHOLD

    @classmethod
    def from_user_config(cls, user_config: Optional[UserConfig] = None) -> 'ScanSettings':
        """Build settings from the layered user configuration."""
        uc = user_config or get_user_config()
        return cls(
            batch_size=uc.batch_size,
            blur=BlurConfig(base_threshold=uc.blur_base_threshold),
            similarity=SimilarityConfig(
                time_window_seconds=uc.similarity_window_seconds,
                max_compare_count=uc.similarity_max_candidates,
                similar_threshold=uc.similarity_threshold,
            ),
            enable_enrichment=uc.enable_enrichment,
            enrichment_timeout=uc.enrichment_timeout,
        )


_user_config = UserConfig()


def get_user_config() -> UserConfig:
    """The shared UserConfig instance."""
    return _user_config
