"""Configuration module for loading and managing application settings"""
from typing import Dict, Any, Optional
from .lib.load_settings_conf import load_settings_conf, SettingsError
from dotenv import load_dotenv
import os

__all__ = [
    'settings_conf', 'SettingsError',
    'get_storage_api_key', 'get_wallet_private_key',
    'STORAGE_API_KEY_ENV', 'WALLET_PRIVATE_KEY_ENV'
]

STORAGE_API_KEY_ENV = 'LH_API_KEY'
WALLET_PRIVATE_KEY_ENV = 'WALLET_PRIVATE_KEY'

# Pick up a local .env before anything reads the environment
load_dotenv()

def get_storage_api_key() -> Optional[str]:
    """Storage service credential, read from the environment on every call."""
    return os.environ.get(STORAGE_API_KEY_ENV) or None

def get_wallet_private_key() -> Optional[str]:
    return os.environ.get(WALLET_PRIVATE_KEY_ENV) or None

try:
    settings_conf: Dict[str, Any] = load_settings_conf()
except SettingsError as e:
    # Re-raise the error but provide more context
    raise SettingsError(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please check settings.conf and the environment overrides.\n"
        "Run `python -m config` to print the effective settings."
    )
