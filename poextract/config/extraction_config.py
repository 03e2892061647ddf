"""
poextract Configuration Management

Loads the packaged default configuration, layers an optional user YAML file
and environment overrides on top, and exposes typed accessors for the
extraction components.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..jobs.rate_limiter import RateLimitConfig
from ..processors.chunking.base import ChunkConfig
from ..processors.llm.retry import RetryPolicy, TimeoutPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'default_config.yaml'

# Environment variable -> dot-notation key
ENV_OVERRIDES = {
    'OPENAI_API_KEY': 'openai.api_key',
    'POEXTRACT_MODEL': 'openai.model',
    'POEXTRACT_LOG_LEVEL': 'logging.level',
}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _update_config_recursive(base: Dict[str, Any], update: Mapping[str, Any]) -> None:
    """Update configuration recursively"""
    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _update_config_recursive(base[key], value)
        else:
            base[key] = copy.deepcopy(value)


def _set_dotted(config: Dict[str, Any], key: str, value: Any) -> None:
    keys = key.split('.')
    for k in keys[:-1]:
        config = config.setdefault(k, {})
    config[keys[-1]] = value


def _read_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file {path}: {str(e)}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


class ExtractionSettings:
    """
    Read-only extraction settings

    Usage:
        settings = ExtractionSettings.load('my_config.yaml')
        planner = ChunkPlanner(settings.chunk_config())
        model = settings.get('openai.model')
    """

    def __init__(self, config: Mapping[str, Any]):
        self._config: Dict[str, Any] = copy.deepcopy(dict(config))

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None,
             environ: Optional[Mapping[str, str]] = None) -> 'ExtractionSettings':
        """
        Load settings

        Args:
            path: Optional user YAML file merged over the defaults
            environ: Environment mapping (default: os.environ)

        Returns:
            ExtractionSettings instance

        Raises:
            FileNotFoundError: If path does not exist
            ValueError: If a file is not a YAML mapping
        """
        config = _read_yaml(DEFAULT_CONFIG_PATH)
        if path is not None:
            _update_config_recursive(config, _read_yaml(path))
            logger.info(f"Configuration loaded from {path}")

        environ = os.environ if environ is None else environ
        for variable, key in ENV_OVERRIDES.items():
            value = environ.get(variable)
            if value:
                _set_dotted(config, key, value)

        return cls(config)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value

        Args:
            key: Configuration key (dot notation)
            default: Default value if key not found

        Returns:
            A copy of the configuration value
        """
        try:
            value = self._config
            for k in key.split('.'):
                value = value[k]
            return copy.deepcopy(value)
        except (KeyError, TypeError):
            return default

    def get_all(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    @property
    def api_key(self) -> Optional[str]:
        return self.get('openai.api_key')

    @property
    def model(self) -> str:
        return self.get('openai.model', 'gpt-4o-mini')

    def chunk_config(self) -> ChunkConfig:
        return ChunkConfig().with_overrides(self.get('chunking', {}) or {})

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(**(self.get('retry', {}) or {}))

    def timeout_policy(self) -> TimeoutPolicy:
        return TimeoutPolicy(**(self.get('timeout', {}) or {}))

    def rate_limit_config(self) -> RateLimitConfig:
        return RateLimitConfig(**(self.get('rate_limit', {}) or {}))

    def extraction_options(self, **overrides):
        """Default per-request ExtractionOptions, with keyword overrides"""
        from ..processors.purchase_order.orchestrator import ExtractionOptions

        values = self.get('extraction', {}) or {}
        values.update(overrides)
        return ExtractionOptions(**values)

    def service_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for OpenAIExtractionService"""
        return {
            'api_key': self.api_key,
            'model': self.model,
            'max_tokens': self.get('openai.max_tokens', 16000),
            'temperature': self.get('openai.temperature', 0.0),
            'retry_policy': self.retry_policy(),
            'timeout_policy': self.timeout_policy(),
        }


def setup_logging(level: Union[str, int] = 'INFO', file: Optional[str] = None) -> None:
    """
    Configure root logging

    Args:
        level: Level name or number
        file: Optional log file; logs go to stderr when omitted
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    handlers = [logging.FileHandler(file)] if file else [logging.StreamHandler()]
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
