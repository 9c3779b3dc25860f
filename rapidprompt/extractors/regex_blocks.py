# rapidprompt/extractors/regex_blocks.py
import re
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..core.errors import SourceUnavailable, ValidationFailed
from ..core.models import PromptUnit
from ..core.unit_config import RegexConfig

_FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}


def compile_pattern(pattern: str, flags: Optional[str]) -> "re.Pattern[str]":
    re_flags = 0
    for letter in (flags or ""):
        re_flags |= _FLAG_MAP.get(letter, 0)
    try:
        return re.compile(pattern, re_flags)
    except re.error as e:
        raise ValidationFailed(f"Invalid pattern {pattern!r}: {e}") from e


def _capture_id(id_re: Optional["re.Pattern[str]"], text: str) -> Optional[str]:
    if id_re is None or id_re.groups < 1:
        return None
    m = id_re.search(text)
    if m and m.group(1) is not None:
        return m.group(1)
    return None


def split_blocks(text: str, config: RegexConfig) -> List[PromptUnit]:
    """
    Cuts text at the start of every delimiter match. Each block is trimmed and empty
    blocks are dropped. The id is group 1 of `id_capture`, else the running count.
    With no delimiter match the whole text is one unit.
    """
    delim = compile_pattern(config.delimiter, config.flags)
    id_re = compile_pattern(config.id_capture, config.flags) if config.id_capture else None

    starts = [m.start() for m in delim.finditer(text)]
    units: List[PromptUnit] = []
    if not starts:
        body = text.strip()
        if body:
            units.append(PromptUnit(id=_capture_id(id_re, text) or "1", body=body))
        return units

    bounds = [0, *starts, len(text)]
    for s, e in zip(bounds, bounds[1:]):
        if e <= s:
            continue
        block = text[s:e].strip()
        if not block:
            continue
        unit_id = _capture_id(id_re, block) or str(len(units) + 1)
        units.append(PromptUnit(id=unit_id, body=block))
    return units


def extract_regex_units(path: str, config: RegexConfig) -> List[PromptUnit]:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise SourceUnavailable(f"Could not read {path}: {e}") from e
    units = split_blocks(data.decode("utf-8", errors="replace"), config)
    logger.info(f"Extracted {len(units)} regex blocks from {path}.")
    return units
