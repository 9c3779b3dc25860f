import json
from typing import Optional

from pydantic import ValidationError
from loguru import logger

from .schema import AppConfig
from .paths import get_user_config_file, get_system_prompt_file
from ..core.errors import IoDenied
from ..core.export import write_text_file

_cached_config: Optional[AppConfig] = None

def load_config() -> AppConfig:
    """Loads the application configuration."""
    global _cached_config
    if _cached_config:
        return _cached_config

    config_path = get_user_config_file()
    loaded_data = {}

    if config_path.exists():
        logger.info(f"Loading user configuration from: {config_path}")
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded_data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load user config file {config_path}: {e}")
            try:
                 backup_path = config_path.with_suffix(".json.corrupted")
                 if backup_path.exists(): backup_path.unlink(missing_ok=True) # Remove old backup
                 config_path.rename(backup_path)
                 logger.info(f"Backed up corrupted config to: {backup_path}")
            except OSError as backup_err:
                 logger.error(f"Failed to backup corrupted config: {backup_err}")
            loaded_data = {} # Fallback to defaults
    else:
        logger.info("No user config found. Using default settings.")

    try:
        config = AppConfig(**loaded_data)
        _cached_config = config
        logger.info("Configuration loaded successfully.")
        return config
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        logger.warning("Falling back to default configuration.")
        _cached_config = AppConfig()
        return _cached_config

def save_config(config: AppConfig) -> None:
    """Saves the application configuration with an atomic write. Raises IoDenied on failure."""
    config_path = get_user_config_file()
    logger.info(f"Saving configuration to: {config_path}")
    write_text_file(config_path, config.model_dump_json(indent=4))
    logger.info("Configuration saved successfully.")

def get_config() -> AppConfig:
    """Returns the cached configuration object, loading if necessary."""
    if _cached_config is None:
        return load_config()
    return _cached_config

def reset_config_cache() -> None:
    global _cached_config
    _cached_config = None

# --- Process-wide system prompt ---

def load_system_prompt() -> str:
    """Loads the persisted system prompt; a missing or unreadable file yields ""."""
    path = get_system_prompt_file()
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"load_system_prompt failed: {e}")
        return ""

def save_system_prompt(value: str) -> None:
    try:
        write_text_file(get_system_prompt_file(), value)
        logger.debug(f"System prompt saved ({len(value)} chars).")
    except IoDenied as e:
        # Fire-and-forget: a failed save must not disturb editing
        logger.warning(f"save_system_prompt failed: {e.message}")
