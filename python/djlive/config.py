"""
Configuration system for djlive

Provides centralized configuration for:
- Heartbeat watchdog timing
- Upload limits and temp storage
- CSRF session key and pub/sub group naming
- Protocol debug logging
"""

import os
import tempfile
from typing import Dict, Any


class LiveViewConfig:
    """
    Central configuration for djlive session behavior.

    Usage:
        # In settings.py
        DJLIVE_CONFIG = {
            'heartbeat_timeout': 90,
            'upload_temp_dir': '/var/tmp/uploads',
        }

        # Or programmatically
        from djlive.config import config
        config.set('debug_protocol', True)
    """

    # Default configuration
    _defaults = {
        # Heartbeat watchdog
        "heartbeat_interval": 30,  # Seconds between watchdog checks
        "heartbeat_timeout": 60,  # Seconds without a heartbeat before forced leave
        # Uploads
        "upload_temp_dir": None,  # None = <system tmp>/djlive.files
        "upload_chunk_size": 64_000,  # Chunk size advertised to the client
        "upload_max_file_size": 10_000_000,  # 10MB default
        "upload_token_salt": "djlive.uploads",  # Salt for signed upload tokens
        # Connection
        "csrf_session_key": "djlive_csrf_token",  # Session key holding the per-session CSRF token
        "group_prefix": "djlive",  # Channel layer group prefix for pub/sub topics
        "websocket_path": "live/websocket",  # Path the client connects to
        # Debug settings
        "debug_protocol": False,  # Log every inbound protocol message at DEBUG
    }

    def __init__(self):
        self._config = self._defaults.copy()
        self._load_from_settings()

    def _load_from_settings(self):
        """Load configuration from Django settings if available"""
        try:
            from django.conf import settings
            from django.core.exceptions import ImproperlyConfigured

            try:
                overrides = getattr(settings, "DJLIVE_CONFIG", None)
            except ImproperlyConfigured:
                overrides = None
            if overrides:
                self._config.update(overrides)
        except ImportError:
            pass

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key (supports dot notation for nested values)
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            config.get('heartbeat_timeout')  # 60
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default

    def set(self, key: str, value: Any):
        """
        Set a configuration value.

        Args:
            key: Configuration key (supports dot notation for nested values)
            value: Value to set
        """
        keys = key.split(".")

        target = self._config
        for k in keys[:-1]:
            if k not in target:
                target[k] = {}
            target = target[k]

        target[keys[-1]] = value

    def upload_dir(self) -> str:
        """
        Directory where chunked uploads are written, created on first use.

        Returns:
            Absolute path of the upload temp directory
        """
        path = self.get("upload_temp_dir") or os.path.join(tempfile.gettempdir(), "djlive.files")
        os.makedirs(path, exist_ok=True)
        return path

    def reset(self):
        """Reset configuration to defaults"""
        self._config = self._defaults.copy()
        self._load_from_settings()

    def update(self, config_dict: Dict[str, Any]):
        """Update multiple configuration values at once."""
        self._config.update(config_dict)

    def as_dict(self) -> Dict[str, Any]:
        """Get the entire configuration as a dictionary"""
        return self._config.copy()


# Global configuration instance
config = LiveViewConfig()
