"""
Configuration management for the chat client.

Settings come from three places, later ones winning:
1. dataclass defaults
2. an optional YAML file (--config)
3. command line flags that were explicitly given
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..errors import ConfigError

TRANSPORTS = ("openai", "sse")
THEMES = ("auto", "dark", "light")
LANGUAGES = ("ko", "en", "es", "fr")

DEBUG_LOG_FILE = "vizchat_debug.log"


@dataclass
class ChatConfig:
    """Configuration for the chat client."""
    base_url: str = "http://localhost:8000"
    model: Optional[str] = None
    # Tried in order after `model` when a stream attempt fails
    fallback_models: List[str] = field(default_factory=list)
    transport: str = "openai"
    chat_path: str = "/api/chat"
    api_key: str = "dummy"
    temperature: float = 0.4
    max_tokens: int = 4096
    stream: bool = True
    debug: bool = False
    language: str = "en"
    theme: str = "auto"
    observer_lat: float = 37.5665
    observer_lon: float = 126.9780
    physics_steps: int = 90
    speech_output: Optional[str] = None
    speech_model: str = "tts-1"
    speech_voice: str = "alloy"
    context_endpoint: Optional[str] = None
    timeout: float = 120.0

    def __post_init__(self):
        """Validate and normalize configuration."""
        self.base_url = self.base_url.rstrip('/')
        if not self.chat_path.startswith('/'):
            self.chat_path = '/' + self.chat_path
        if self.context_endpoint:
            self.context_endpoint = self.context_endpoint.rstrip('/')

        if self.transport not in TRANSPORTS:
            raise ConfigError(f"transport must be one of {', '.join(TRANSPORTS)}, got {self.transport!r}")
        if self.theme not in THEMES:
            raise ConfigError(f"theme must be one of {', '.join(THEMES)}, got {self.theme!r}")
        if self.language not in LANGUAGES:
            raise ConfigError(f"language must be one of {', '.join(LANGUAGES)}, got {self.language!r}")
        if not -90.0 <= self.observer_lat <= 90.0:
            raise ConfigError(f"observer_lat out of range: {self.observer_lat}")
        if not -180.0 <= self.observer_lon <= 180.0:
            raise ConfigError(f"observer_lon out of range: {self.observer_lon}")
        if self.physics_steps < 0:
            raise ConfigError("physics_steps must be >= 0")
        if isinstance(self.fallback_models, str):
            self.fallback_models = [m.strip() for m in self.fallback_models.split(',') if m.strip()]

    @property
    def observer_location(self) -> Tuple[float, float]:
        return self.observer_lat, self.observer_lon

    @property
    def models(self) -> List[str]:
        """Model attempt order for failover."""
        ordered = [self.model] if self.model else []
        for name in self.fallback_models:
            if name not in ordered:
                ordered.append(name)
        return ordered

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChatConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ChatConfig':
        """Load configuration from YAML file."""
        return cls.from_dict(load_yaml_config(yaml_path))

    @classmethod
    def from_args(cls, args) -> 'ChatConfig':
        """Create config from parsed command line arguments.

        Flags left at None fall through to the YAML file (when --config is
        given) and then to the dataclass defaults.
        """
        data: Dict[str, Any] = {}
        config_path = getattr(args, 'config', None)
        if config_path:
            data.update(load_yaml_config(config_path))

        for f in fields(cls):
            value = getattr(args, f.name, None)
            if value is not None:
                data[f.name] = value
        return cls.from_dict(data)


def load_yaml_config(yaml_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Raises:
        ConfigError: If the file is missing, unparsable, or not a mapping
    """
    path = Path(yaml_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {yaml_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {yaml_path}: {e}") from e

    if data is None:
        raise ConfigError(f"Empty or invalid YAML file: {yaml_path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {yaml_path}")
    return data


def setup_logging(config: ChatConfig) -> None:
    """Debug mode logs everything to vizchat_debug.log, otherwise warnings to stderr."""
    if config.debug:
        logging.basicConfig(
            filename=DEBUG_LOG_FILE,
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            filemode='w',
            force=True,
        )
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format='%(levelname)s: %(message)s',
            force=True,
        )


def truncate(text: str, limit: int = 500) -> str:
    """Shorten long prompts/responses for the debug log."""
    return f"{text[:limit]}{'...' if len(text) > limit else ''}"
