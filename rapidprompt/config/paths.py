import sys
import os
from pathlib import Path

HOME_ENV_VAR = "RAPIDPROMPT_HOME"

def _get_app_name() -> str:
    # Centralize the app name
    return "RapidPrompt"

def get_user_data_dir() -> Path:
    """Get the per-user application data directory ($RAPIDPROMPT_HOME overrides)."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        path = Path(override)
    elif sys.platform == "win32":
        appdata_path = os.environ.get("APPDATA")
        path = Path(appdata_path) / _get_app_name() if appdata_path else Path.home() / "AppData/Roaming" / _get_app_name()
    elif sys.platform == "darwin":
        path = Path.home() / "Library/Application Support" / _get_app_name()
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        path = (Path(xdg) if xdg else Path.home() / ".config") / _get_app_name().lower()

    path.mkdir(parents=True, exist_ok=True)
    return path

def get_user_config_file() -> Path:
    """Get the path to the user's config.json file."""
    return get_user_data_dir() / "config.json"

def get_system_prompt_file() -> Path:
    """Get the path to the persisted system prompt."""
    return get_user_data_dir() / "system_prompt.txt"

def get_user_log_dir() -> Path:
    """Get the path to the user's log directory."""
    path = get_user_data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path
