"""Configuration management for booxsync."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import ConfigError
from .logger import logger

DEFAULT_CONFIG_FILE = Path('config.json')
DEFAULT_TIMEOUT = 30.0
DEFAULT_PORT = 8085

# Keys accepted in listing requests besides libraryUniqueId
LISTING_PARAM_KEYS = ('limit', 'offset', 'sortBy', 'order')


class Config:
    """Manages configuration for a sync run."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None,
                 overrides: Optional[Dict[str, Any]] = None):
        """Initialize config manager.

        Args:
            config_file: JSON file to read. Defaults to ./config.json
            overrides: Values taking precedence over the file (e.g. command
                line options). None values are ignored.
        """
        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE
        self.config_file = Path(config_file)
        self._config: Dict[str, Any] = {}
        self.load()
        self._config.update({key: value for key, value in (overrides or {}).items()
                             if value is not None})

    def load(self) -> None:
        """Load configuration from file.

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        if not self.config_file.exists():
            logger.debug(f"config file {self.config_file} does not exist")
            self._config = {}
            return

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"config file {self.config_file} is not valid JSON: {e}") from e
        except IOError as e:
            raise ConfigError(f"could not open config file {self.config_file}: {e}") from e

        if not isinstance(loaded, dict):
            raise ConfigError(f"config file {self.config_file} must contain a JSON object")
        self._config = loaded
        logger.debug(f"read config: {self._config}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key (supports dot notation, e.g., 'listingParams.limit')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    @property
    def host(self) -> str:
        """Base URL of the library, normalized.

        A bare host gets ``http://`` and, without an explicit port, the
        BooxDrop default port.
        """
        return normalize_host(self.get('host') or '')

    @property
    def sync_root(self) -> str:
        """Absolute local folder to sync ("" when not configured)."""
        root = self.get('syncRoot') or ''
        if not root:
            return ''
        return os.path.abspath(os.path.expanduser(root))

    @property
    def skip_paths(self) -> List[str]:
        # pathsToSkip is the key older config files used
        paths = self.get('skipPaths', self.get('pathsToSkip', []))
        if not isinstance(paths, list):
            return []
        return [str(p) for p in paths]

    @property
    def boundary_aware_paths(self) -> bool:
        return bool(self.get('boundaryAwarePaths', False))

    @property
    def max_workers(self) -> Optional[int]:
        value = self.get('maxWorkers')
        return int(value) if value else None

    @property
    def timeout(self) -> Optional[float]:
        value = self.get('timeout', DEFAULT_TIMEOUT)
        return float(value) if value else None

    @property
    def listing_params(self) -> Dict[str, Any]:
        params = self.get('listingParams', {})
        if not isinstance(params, dict):
            return {}
        return {k: v for k, v in params.items() if k in LISTING_PARAM_KEYS}

    @property
    def dry_run(self) -> bool:
        return bool(self.get('dryRun', False))

    @property
    def create_folders(self) -> bool:
        return bool(self.get('createFolders', False))

    @property
    def debug(self) -> bool:
        return bool(self.get('debug', False))

    def validate(self, require_sync_root: bool = True) -> None:
        """Validate configuration values.

        Args:
            require_sync_root: Also check the sync root (not needed to
                inspect the library alone)

        Raises:
            ConfigError: If configuration is invalid
        """
        if not self.get('host'):
            raise ConfigError("host cannot be empty")
        if require_sync_root:
            if not self.sync_root:
                raise ConfigError("syncRoot cannot be empty")
            if not os.path.isdir(self.sync_root):
                raise ConfigError(f"sync root {self.sync_root!r} does not exist")
        if not isinstance(self.get('skipPaths', []), list):
            raise ConfigError("skipPaths must be a list of strings")
        workers = self.get('maxWorkers')
        if workers is not None and (not isinstance(workers, int) or workers < 0):
            raise ConfigError("maxWorkers must be a non-negative integer")
        timeout = self.get('timeout')
        if timeout is not None and (isinstance(timeout, bool)
                                    or not isinstance(timeout, (int, float))
                                    or timeout < 0):
            raise ConfigError("timeout must be a non-negative number of seconds")


def normalize_host(host: str) -> str:
    """Turn a configured host into a base URL.

    Args:
        host: e.g. "192.168.1.20", "192.168.1.20:8085" or "http://boox.local:8085/"

    Returns:
        Base URL without trailing slash, or "" for an empty host
    """
    host = host.strip().rstrip('/')
    if not host:
        return ''
    if '://' in host:
        return host
    if ':' not in host:
        host = f"{host}:{DEFAULT_PORT}"
    return f"http://{host}"


def parse_config(config_file: Optional[Union[str, Path]] = None,
                 overrides: Optional[Dict[str, Any]] = None,
                 require_sync_root: bool = True) -> Config:
    """Load and validate configuration.

    Args:
        config_file: JSON file to read
        overrides: Values overriding the file
        require_sync_root: Validate the sync root too

    Returns:
        Validated Config

    Raises:
        ConfigError: If configuration is invalid
    """
    config = Config(config_file, overrides)
    config.validate(require_sync_root)
    return config
