"""
Configuration loader for the article narration system.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "NEWSCAST_CONFIG"


class Config:
    """Configuration manager for narration generation and playback."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not self._config:
            self._load_config()

    def _get_project_root(self) -> Path:
        """Get the project root directory."""
        # Navigate up from newscast/utils to project root
        current = Path(__file__).resolve()
        return current.parent.parent.parent

    def _load_config(self, config_path: Optional[Path] = None) -> None:
        """Load configuration from YAML file, layered over the defaults."""
        if config_path is None:
            override = os.environ.get(CONFIG_ENV_VAR)
            if override:
                config_path = Path(override)
            else:
                config_path = self._get_project_root() / "config" / "settings.yaml"

        defaults = self._get_defaults()
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            self._config = _merge(defaults, loaded)
        else:
            # Use defaults if config doesn't exist
            self._config = defaults

    def reload(self, config_path: Optional[Path] = None) -> None:
        """Reload configuration, optionally from an explicit file."""
        self._load_config(Path(config_path) if config_path else None)

    def _get_defaults(self) -> Dict[str, Any]:
        """Return default configuration."""
        return {
            "voice": {
                "default": "fr-FR-VivienneMultilingualNeural",
                "rate": "+0%",
                "lang": "fr-FR",
            },
            "chunking": {
                "max_length": 2000,
            },
            "synthesis": {
                "concurrency": 10,
                "max_attempts": 3,
                "backoff_base": 2.0,
                "backoff_jitter": 1.0,
                "chunk_pause": 0.2,
                "timeout": 60,
            },
            "audio": {
                "probe": "ffprobe",
                "extension": "mp3",
            },
            "captions": {
                "extension": "vtt",
            },
            "text": {
                "boilerplate_labels": ["Discussion HN", "Article source"],
            },
            "paths": {
                "articles": "src/content/news",
                "output": "public/audio",
            },
            "playback": {
                "viewport_band": [0.2, 0.8],
                "lookahead": 4,
                "words_per_minute": 200,
            },
        }

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Example:
            config.get("voice", "default") -> "fr-FR-VivienneMultilingualNeural"
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    def get_path(self, key: str) -> Path:
        """Get a path configuration as absolute Path."""
        relative_path = self.get("paths", key, default=key)
        return self._get_project_root() / relative_path

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._get_project_root()

    @property
    def voice(self) -> str:
        """Get the default voice."""
        return self.get("voice", "default", default="fr-FR-VivienneMultilingualNeural")

    @property
    def voice_rate(self) -> str:
        """Get the edge-tts rate string."""
        return self.get("voice", "rate", default="+0%")

    @property
    def max_chunk_length(self) -> int:
        """Get the maximum chunk length in code points."""
        return int(self.get("chunking", "max_length", default=2000))

    @property
    def concurrency(self) -> int:
        """Get the number of article jobs allowed in flight."""
        return int(self.get("synthesis", "concurrency", default=10))

    @property
    def audio_extension(self) -> str:
        return self.get("audio", "extension", default="mp3")

    @property
    def captions_extension(self) -> str:
        return self.get("captions", "extension", default="vtt")


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# Singleton instance
config = Config()
