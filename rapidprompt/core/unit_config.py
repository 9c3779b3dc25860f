# rapidprompt/core/unit_config.py
"""
Extraction configurations: one closed variant per source kind.

Optional refinements are stored as None when unset (blank strings and empty
lists are normalized away), so dumping with exclude_none never emits
present-but-empty fields.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationIncomplete, ValidationFailed
from .models import ApiTable, PromptUnit


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        """The camelCase mapping used in session files, with unset refinements omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, list) and not value:
        return None
    return value


class SpreadsheetConfig(WireModel):
    kind: Literal["spreadsheet"] = "spreadsheet"
    sheet: StrictStr
    id_column: StrictStr
    description_columns: List[StrictStr] = Field(default_factory=list)


class RegexConfig(WireModel):
    kind: Literal["regex"] = "regex"
    delimiter: StrictStr
    id_capture: Optional[StrictStr] = None
    flags: Optional[StrictStr] = None

    @field_validator("id_capture", "flags", mode="before")
    @classmethod
    def omit_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class HtmlConfig(WireModel):
    kind: Literal["html"] = "html"
    item_selector: StrictStr
    id_selector: Optional[StrictStr] = None
    id_attr: Optional[StrictStr] = None
    desc_selector: Optional[StrictStr] = None

    @field_validator("id_selector", "id_attr", "desc_selector", mode="before")
    @classmethod
    def omit_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ApiConfig(WireModel):
    kind: Literal["api"] = "api"
    endpoint: StrictStr
    id_column: Optional[StrictStr] = None
    description_columns: Optional[List[StrictStr]] = None

    @field_validator("id_column", "description_columns", mode="before")
    @classmethod
    def omit_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def has_mapping(self) -> bool:
        return bool(self.id_column) and bool(self.description_columns)


UnitConfig = Annotated[Union[SpreadsheetConfig, RegexConfig, HtmlConfig, ApiConfig], Field(discriminator="kind")]
_unit_config_adapter: TypeAdapter = TypeAdapter(UnitConfig)


def parse_unit_config(raw: Any) -> "UnitConfig":
    """Validates a camelCase mapping into the matching configuration model."""
    try:
        return _unit_config_adapter.validate_python(raw)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid extraction configuration: {e}") from e


# --- Builders: blank refinements are omitted, not sent as empty ---

def spreadsheet_config(sheet: str, id_column: str, description_columns: List[str]) -> SpreadsheetConfig:
    return SpreadsheetConfig(sheet=sheet, id_column=id_column, description_columns=list(description_columns))

def regex_config(delimiter: str, id_capture: str = "", flags: str = "") -> RegexConfig:
    return RegexConfig(delimiter=delimiter, id_capture=id_capture, flags=flags)

def html_config(item_selector: str, id_selector: str = "", id_attr: str = "", desc_selector: str = "") -> HtmlConfig:
    return HtmlConfig(item_selector=item_selector, id_selector=id_selector, id_attr=id_attr, desc_selector=desc_selector)

def api_config(endpoint: str, id_column: str = "", description_columns: Optional[List[str]] = None) -> ApiConfig:
    return ApiConfig(endpoint=endpoint, id_column=id_column, description_columns=list(description_columns or []))


# --- Local validation before any external call ---

def require_complete(config: "UnitConfig", source_path: Optional[str]) -> None:
    """Raises ConfigurationIncomplete when the fields an extraction needs are missing."""
    if not source_path:
        raise ConfigurationIncomplete("Pick a source file first.")
    if isinstance(config, SpreadsheetConfig):
        if not config.sheet.strip() or not config.id_column.strip() or not any(c.strip() for c in config.description_columns):
            raise ConfigurationIncomplete("Select sheet, ID and Description columns.")
    elif isinstance(config, RegexConfig):
        if not config.delimiter.strip():
            raise ConfigurationIncomplete("Enter a delimiter pattern.")
    elif isinstance(config, HtmlConfig):
        if not config.item_selector.strip():
            raise ConfigurationIncomplete("Enter an item selector.")
    elif isinstance(config, ApiConfig):
        if not config.endpoint.strip():
            raise ConfigurationIncomplete("Enter API endpoint.")
    else:
        raise ConfigurationIncomplete(f"Unsupported configuration: {type(config).__name__}")


def require_api_mapping(config: ApiConfig) -> None:
    if not config.id_column or not config.description_columns:
        raise ConfigurationIncomplete("Choose ID column and at least one Description column.")


def build_api_units(table: ApiTable, config: ApiConfig) -> List[PromptUnit]:
    """
    Reduces raw API rows to units with the chosen column mapping.

    id is the trimmed id-column value, or the 1-based row number when blank.
    body is the non-blank description values in configured order, joined by newlines.
    Rows with an empty body are dropped.
    """
    require_api_mapping(config)
    id_column = config.id_column or ""
    desc_columns = config.description_columns or []
    missing = [c for c in [id_column, *desc_columns] if c not in table.columns]
    if missing:
        logger.warning(f"API mapping refers to columns not in the extracted table: {missing}")

    units: List[PromptUnit] = []
    for i, row in enumerate(table.rows):
        unit_id = str(row.get(id_column, "")).strip() or str(i + 1)
        values = [str(row.get(c, "")).strip() for c in desc_columns]
        body = "\n".join(v for v in values if v)
        if not body:
            continue
        units.append(PromptUnit(id=unit_id, body=body))
    logger.debug(f"Built {len(units)} API units from {len(table.rows)} rows.")
    return units
