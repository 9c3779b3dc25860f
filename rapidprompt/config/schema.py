from pydantic import BaseModel, Field
from typing import List

class AppConfig(BaseModel):
    # ASCII file tree rendering
    tree_depth_limit: int = Field(default=4, ge=1)
    tree_entry_limit: int = Field(default=1500, ge=50)
    tree_show_root_path: bool = True

    # Folder mode
    max_file_bytes: int = Field(default=512 * 1024, gt=0) # Per-file read cap
    skip_hidden: bool = True # Skip dotfiles/dot-directories while scanning
    respect_gitignore: bool = True # Apply the root .gitignore while scanning
    ignore_patterns: List[str] = Field(default_factory=lambda: [
        # Version control
        ".git", ".svn", ".hg",
        # Python specific
        "__pycache__", "*.pyc", "*.pyo", "*.pyd",
        "*.egg-info", ".pytest_cache", ".mypy_cache",
        # Virtual environments
        "venv", ".venv", "env", ".env",
        # Build artifacts / Distribution
        "build", "dist", "node_modules", "target",
        # OS specific
        ".DS_Store", "Thumbs.db",
    ])

    # Token counting
    token_encoding: str = "o200k_base"

    # Debounce intervals (ms)
    recompute_debounce_ms: int = Field(default=250, ge=0)
    system_prompt_save_debounce_ms: int = Field(default=400, ge=0)

    # Remote table extraction
    http_timeout_seconds: float = Field(default=60.0, gt=0)
    http_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/127 Safari/537.36"
    )

    # Defaults offered when a block source is first picked
    default_regex_delimiter: str = r"^ID:\s"
    default_regex_id_capture: str = r"^ID:\s*(\S+)"
    default_regex_flags: str = "m"
    default_html_item_selector: str = ".item"
    default_html_id_attr: str = "id"
