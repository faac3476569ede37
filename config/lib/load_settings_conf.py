"""Settings configuration loader module.

This module handles loading and parsing of the main settings.conf file which contains
general application settings: the database URL, session signing secret, object
storage location and the timeout applied to every remote call.

The settings file uses INI format with a [DEFAULT] section containing key-value pairs.
Every key has a default, so a missing settings.conf falls back to DEFAULTS.

Example settings.conf:
    [DEFAULT]
    db_url = postgresql://postgres@localhost:5432/sneakers
    storage_root = ./storage
    storage_public_url = http://localhost:8000/storage

Raises:
    SettingsError: If the settings file is invalid or holds invalid values
"""
from configparser import ConfigParser
from pathlib import Path
from typing import Dict, Any, List
import logging
import os

logger = logging.getLogger(__name__)

class ConfigValidationError:
    """Helper class to format configuration validation errors"""
    def __init__(self):
        self.missing: List[str] = []
        self.invalid_values: List[str] = []
        self.missing_sections: List[str] = []

    def has_errors(self) -> bool:
        """Check if any errors exist"""
        return bool(self.missing or self.invalid_values or self.missing_sections)

    def format_message(self) -> str:
        """Format error message in a clean, readable way"""
        messages = []

        if self.missing_sections:
            messages.append("Missing required sections:")
            messages.extend(f"  - {item}" for item in self.missing_sections)

        if self.missing:
            if messages:
                messages.append("")
            messages.append("Missing required settings:")
            messages.extend(f"  - {item}" for item in self.missing)

        if self.invalid_values:
            if messages:
                messages.append("")
            messages.append("Invalid values:")
            messages.extend(f"  - {item}" for item in self.invalid_values)

        return "\n".join(messages)

class SettingsError(Exception):
    """Raised when there are issues loading or parsing the settings configuration."""
    pass

# Default settings
DEFAULTS = {
    'db_url': 'postgresql://postgres@localhost:5432/sneakers',
    'jwt_secret': '',  # Empty means a random secret is generated on startup
    'session_expiry_days': '30',
    'storage_root': './storage',
    'storage_bucket': 'images',
    'storage_public_url': 'http://localhost:8000/storage',
    'max_image_bytes': str(5 * 1024 * 1024),  # 5 MB
    'remote_timeout': '30',  # Seconds before a database call is abandoned
    'api_host': '0.0.0.0',
    'api_port': '8000'
}

# Settings converted to int by validate_settings
INT_SETTINGS = ('session_expiry_days', 'max_image_bytes', 'remote_timeout', 'api_port')

def load_settings_conf(settings_path: str = ".") -> Dict[str, Any]:
    """Load and parse settings.conf file

    Args:
        settings_path: Directory containing settings.conf

    Returns:
        Dictionary containing parsed and validated settings

    Raises:
        SettingsError: If parsing fails or validation fails
    """
    config_path = Path(settings_path) / 'settings.conf'
    settings = dict(DEFAULTS)

    if not config_path.exists():
        logger.warning(f"Settings file not found at {config_path}, using defaults")
        return validate_settings(settings)

    try:
        parser = ConfigParser()
        parser.read(config_path)

        errors = ConfigValidationError()

        # Ensure DEFAULT section holds something
        if not parser.defaults():
            errors.missing_sections.append('[DEFAULT]')
            raise SettingsError(
                "Settings Configuration Validation Failed\n\n" +
                errors.format_message()
            )

        settings.update(dict(parser['DEFAULT']))

        if not settings.get('db_url'):
            errors.missing.append('db_url')

        if errors.has_errors():
            raise SettingsError(
                "Settings Configuration Validation Failed\n\n" +
                errors.format_message()
            )

        return validate_settings(settings)

    except Exception as e:
        if isinstance(e, SettingsError):
            raise
        raise SettingsError(f"Error parsing settings.conf: {str(e)}")

def validate_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Validate loaded settings.

    Args:
        settings: Dictionary of settings to validate

    Returns:
        Validated and processed settings

    Raises:
        SettingsError: If validation fails
    """
    errors = ConfigValidationError()

    for key in INT_SETTINGS:
        try:
            settings[key] = int(settings[key])
            if settings[key] < 1:
                errors.invalid_values.append(f"{key} must be at least 1")
        except (ValueError, KeyError, TypeError):
            errors.invalid_values.append(f"{key}: {settings.get(key)!r} is not an integer")

    if errors.has_errors():
        raise SettingsError(
            "Invalid settings configuration\n\n" + errors.format_message()
        )

    settings['storage_root'] = os.path.abspath(os.path.expanduser(settings['storage_root']))
    settings['storage_public_url'] = settings['storage_public_url'].rstrip('/')
    return settings
