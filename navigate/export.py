"""Exports of filtered data: per-collection CSV, scenario JSON and an XLSX workbook."""
from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from pydantic import BaseModel

from navigate.filters import FilteredView

# collection key -> sheet title / download stem
EXPORT_COLLECTIONS: dict[str, str] = {
    "stakeholders": "Stakeholders",
    "technologies": "Technologies",
    "funding_events": "Funding Events",
    "projects": "Projects",
    "relationships": "Relationships",
}


def _as_dict(record: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json")
    return dict(record)


def flatten_value(value: Any) -> str:
    """Cell text: arrays joined by ``"; "``, nested objects as JSON, None as blank."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "; ".join(
            json.dumps(v, default=str) if isinstance(v, (dict, list)) else str(v) for v in value
        )
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_rows(records: Iterable[BaseModel | Mapping[str, Any]]) -> tuple[list[str], list[list[str]]]:
    """Header (field names of the first record) and flattened rows."""
    dicts = [_as_dict(r) for r in records]
    if not dicts:
        return [], []
    headers = list(dicts[0])
    return headers, [[flatten_value(d.get(h)) for h in headers] for d in dicts]


def to_csv(records: Iterable[BaseModel | Mapping[str, Any]]) -> str:
    """Serialize records as CSV; an empty input yields an empty string."""
    headers, rows = to_rows(records)
    if not headers:
        return ""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue()


def scenario_json(
    view: FilteredView,
    filters: Mapping[str, Any] | BaseModel | None = None,
    metadata: Mapping[str, Any] | BaseModel | None = None,
) -> dict[str, Any]:
    """A self-contained snapshot of the filtered data plus the filters that produced it."""
    return {
        "stakeholders": [s.model_dump(mode="json") for s in view.stakeholders],
        "technologies": [t.model_dump(mode="json") for t in view.technologies],
        "funding_events": [f.model_dump(mode="json") for f in view.funding_events],
        "projects": [p.model_dump(mode="json") for p in view.projects],
        "relationships": [r.model_dump(mode="json") for r in view.relationships],
        "filters": _as_dict(filters) if filters is not None else {},
        "metadata": {
            **(_as_dict(metadata) if metadata is not None else {}),
            "exported_at": datetime.now(UTC).isoformat(),
            "counts": view.counts(),
        },
    }


def _style_sheet(sheet) -> None:
    sheet.freeze_panes = "A2"
    sheet.auto_filter.ref = sheet.dimensions

    header_fill = PatternFill(fill_type="solid", fgColor="1F4E78")
    header_font = Font(color="FFFFFF", bold=True)
    for cell in sheet[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for col_cells in sheet.columns:
        values = [str(cell.value) if cell.value is not None else "" for cell in col_cells]
        width = min(90, max(12, max(len(value) for value in values) + 2))
        sheet.column_dimensions[col_cells[0].column_letter].width = width


def to_xlsx(view: FilteredView) -> bytes:
    """Workbook with one sheet per non-empty collection plus a Summary sheet."""
    workbook = Workbook()
    summary = workbook.active
    summary.title = "Summary"
    summary.append(["collection", "rows"])
    for key, count in view.counts().items():
        summary.append([key, count])
    summary.append(["exported_at", datetime.now(UTC).isoformat()])
    _style_sheet(summary)

    for key, title in EXPORT_COLLECTIONS.items():
        headers, rows = to_rows(getattr(view, key))
        if not headers:
            continue
        sheet = workbook.create_sheet(title)
        sheet.append(headers)
        for row in rows:
            sheet.append(row)
        _style_sheet(sheet)

    buf = io.BytesIO()
    workbook.save(buf)
    return buf.getvalue()
