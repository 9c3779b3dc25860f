# rapidprompt/extractors/html_blocks.py
from pathlib import Path
from typing import List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag
from loguru import logger

from ..core.errors import SourceUnavailable, ValidationFailed
from ..core.models import PromptUnit
from ..core.unit_config import HtmlConfig


def _select(scope: Tag, selector: str, label: str) -> List[Tag]:
    try:
        return scope.select(selector)
    except Exception as e:  # soupsieve raises SelectorSyntaxError
        raise ValidationFailed(f"Invalid {label}: {selector!r} ({e})") from e


def _text(el: Tag) -> str:
    return el.get_text().strip()


def _resolve_id(item: Tag, index: int, config: HtmlConfig, id_attr: str) -> str:
    if config.id_selector:
        found = _select(item, config.id_selector, "idSelector")
        if not found:
            return str(index + 1)
        node = found[0]
        value = node.get(id_attr)
        if value is not None:
            return value if isinstance(value, str) else " ".join(value)
        return _text(node) or str(index + 1)
    value = item.get(id_attr)
    if value is not None:
        return value if isinstance(value, str) else " ".join(value)
    return str(index + 1)


def _resolve_body(item: Tag, config: HtmlConfig) -> str:
    if not config.desc_selector:
        return _text(item)
    parts = [t for t in (_text(n) for n in _select(item, config.desc_selector, "descSelector")) if t]
    return "\n".join(parts) if parts else _text(item)


def split_html(markup: str, config: HtmlConfig) -> List[PromptUnit]:
    """One unit per element matching `item_selector`; items with no text are skipped."""
    soup = BeautifulSoup(markup, "html.parser")
    id_attr: Optional[str] = config.id_attr or "id"
    units: List[PromptUnit] = []
    for i, item in enumerate(_select(soup, config.item_selector, "itemSelector")):
        body = _resolve_body(item, config)
        if not body:
            continue
        units.append(PromptUnit(id=_resolve_id(item, i, config, id_attr), body=body))
    return units


def extract_html_units(path: str, config: HtmlConfig) -> List[PromptUnit]:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise SourceUnavailable(f"Could not read {path}: {e}") from e
    units = split_html(data.decode("utf-8", errors="replace"), config)
    logger.info(f"Extracted {len(units)} HTML items from {path}.")
    return units
