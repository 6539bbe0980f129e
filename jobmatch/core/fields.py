"""Dual-format list fields: JSON arrays or comma-separated text.

Profile and job fields such as skills_required, target_roles and
preferred_locations are stored as text that is either a JSON array
('["Python", "Go"]') or a plain comma-separated list ("Python, Go").
parse_list_field() reports which form was found.
"""

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict


class JsonList(BaseModel):
    """Items decoded from a JSON array."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    items: list[str]


class DelimitedList(BaseModel):
    """Items split from comma-separated text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["delimited"] = "delimited"
    items: list[str]


class EmptyList(BaseModel):
    """No usable items."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"

    @property
    def items(self) -> list[str]:
        return []


ParsedList = JsonList | DelimitedList | EmptyList


def _split(text: str) -> list[str]:
    return [part.strip() for part in text.split(",") if part.strip()]


def parse_list_field(raw: str | None) -> ParsedList:
    """Parse a stored list field, preferring JSON and falling back to commas.

    A JSON string value is itself treated as comma-separated text. Any other
    JSON value (number, object, null) yields EmptyList.
    """
    if raw is None or not raw.strip():
        return EmptyList()

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        items = _split(raw)
        return DelimitedList(items=items) if items else EmptyList()

    if isinstance(decoded, list):
        items = [str(item).strip() for item in decoded if item is not None and str(item).strip()]
        return JsonList(items=items) if items else EmptyList()
    if isinstance(decoded, str):
        items = _split(decoded)
        return DelimitedList(items=items) if items else EmptyList()
    return EmptyList()


def read_list_field(raw: str | None) -> list[str]:
    """Return just the items of a stored list field."""
    return list(parse_list_field(raw).items)
