from __future__ import annotations

import os
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field


class ValidationResult(BaseModel):
    valid: bool
    missing: List[str] = Field(default_factory=list)


class Layout(BaseModel):
    """Column layout of one deployment: identifier, read order, write-back set."""

    identifier: str = "id"
    columns: List[str] = Field(default_factory=list)
    writable: List[str] = Field(default_factory=list)


def resolve_read_columns(declared: Sequence[str], discovered: Iterable[str]) -> List[str]:
    """Declared names first, then newly discovered names in discovery order."""

    columns: List[str] = []
    seen: set[str] = set()
    for name in list(declared) + list(discovered):
        if name in seen:
            continue
        seen.add(name)
        columns.append(name)
    return columns


def validate_writable(
    header: Sequence[object], required: Sequence[str], identifier: str
) -> ValidationResult:
    present = {str(name).strip() for name in header if name is not None}
    missing: List[str] = []
    for name in [identifier, *required]:
        if name not in present and name not in missing:
            missing.append(name)
    return ValidationResult(valid=not missing, missing=missing)


def load(path: str) -> Layout | None:
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        data = handle.read()
    return Layout.model_validate_json(data)


def save(layout: Layout, path: Optional[str] = None) -> str:
    p = path or "layout.json"
    with open(p, "w", encoding="utf-8") as handle:
        handle.write(layout.model_dump_json(indent=2))
    return p
