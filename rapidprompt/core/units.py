# rapidprompt/core/units.py
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .errors import ValidationFailed
from .models import PromptUnit, UnitCursor


class UnitSequence:
    """
    An ordered, immutable run of PromptUnits with a clamped cursor.

    The sequence itself is never patched; a new extraction produces a new
    UnitSequence. Navigation returns the new index and never wraps around.
    """

    def __init__(self, units: Iterable[PromptUnit] = (), index: int = 0):
        self._units: Tuple[PromptUnit, ...] = tuple(units)
        self._index = self._clamp(index)

    def _clamp(self, index: int) -> int:
        if not self._units:
            return 0
        return max(0, min(len(self._units) - 1, index))

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self):
        return iter(self._units)

    def __getitem__(self, i: int) -> PromptUnit:
        return self._units[i]

    @property
    def units(self) -> Tuple[PromptUnit, ...]:
        return self._units

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> Optional[PromptUnit]:
        return self._units[self._index] if self._units else None

    def move_to(self, index: int) -> int:
        self._index = self._clamp(index)
        return self._index

    def next(self) -> int:
        return self.move_to(self._index + 1)

    def prev(self) -> int:
        return self.move_to(self._index - 1)

    def find_id(self, unit_id: str) -> Optional[int]:
        for i, unit in enumerate(self._units):
            if unit.id == unit_id:
                return i
        return None

    def jump_to_id(self, unit_id: str) -> Optional[int]:
        """Moves to the first unit whose id matches exactly. No match leaves the cursor alone and returns None."""
        found = self.find_id(unit_id)
        if found is None:
            logger.debug(f"Jump to id '{unit_id}': no match among {len(self._units)} units.")
            return None
        self._index = found
        return found

    def restore(self, cursor: Optional[UnitCursor]) -> int:
        """Applies a saved cursor: the saved index if its unit still has the saved id, else the id, else the clamped index."""
        if cursor is None:
            return self.move_to(0)
        index = cursor.index if cursor.index is not None else 0
        if cursor.id is not None:
            clamped = self._clamp(index)
            if self._units and self._units[clamped].id == cursor.id:
                return self.move_to(clamped)
            found = self.find_id(cursor.id)
            if found is not None:
                return self.move_to(found)
        return self.move_to(index)

    def cursor(self) -> Optional[UnitCursor]:
        unit = self.current
        if unit is None:
            return UnitCursor(index=self._index)
        return UnitCursor(index=self._index, id=unit.id if unit.id else None)


def split_into_parts_keep_remainder(text: str, parts: int) -> List[str]:
    """
    Splits `text` into exactly `parts` chunks. The first parts-1 newlines are hard
    boundaries; the remainder, embedded newlines included, is the last chunk.
    Missing chunks are padded with "".
    """
    if parts <= 1:
        return [text]
    out: List[str] = []
    start = 0
    while len(out) < parts - 1:
        idx = text.find("\n", start)
        if idx == -1:
            break
        out.append(text[start:idx])
        start = idx + 1
    out.append(text[start:])
    while len(out) < parts:
        out.append("")
    return out


def render_labeled_list(names: Sequence[str], values: Sequence[str]) -> str:
    """Renders `- **Name:** value` bullets; multi-line values go under the bullet, indented two spaces."""
    lines: List[str] = []
    for i, name in enumerate(names):
        raw = (values[i] if i < len(values) else "").strip()
        if not raw:
            continue
        if "\n" in raw:
            indented = "\n".join(f"  {ln}" for ln in raw.replace("\r\n", "\n").split("\n"))
            lines.append(f"- **{name}:**\n{indented}")
        else:
            lines.append(f"- **{name}:** {raw}")
    return "\n".join(lines)


def coerce_units(raw: Any) -> List[PromptUnit]:
    """Validates a collaborator's unit list. Anything not unit-shaped rejects the whole response."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationFailed(f"Extraction returned {type(raw).__name__}, expected a list of units")
    units: List[PromptUnit] = []
    for i, item in enumerate(raw):
        if isinstance(item, PromptUnit):
            units.append(item)
            continue
        if not isinstance(item, Mapping):
            raise ValidationFailed(f"Unit {i} is not a mapping")
        unit_id = item.get("id"); body = item.get("body"); meta = item.get("meta")
        if not isinstance(unit_id, str) or not isinstance(body, str):
            raise ValidationFailed(f"Unit {i} needs string 'id' and 'body'")
        if meta is not None and not isinstance(meta, Mapping):
            raise ValidationFailed(f"Unit {i} has a non-mapping 'meta'")
        units.append(PromptUnit(id=unit_id, body=body, meta=dict(meta) if meta is not None else None))
    return units
