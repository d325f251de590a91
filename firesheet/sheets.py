from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Iterator, List, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import SheetAccessError

Grid = List[List[Any]]

SERIAL_EPOCH = datetime(1899, 12, 30)
FORMAT_FIELDS = "properties.timeZone,sheets.data.rowData.values.effectiveFormat.numberFormat.type"


class SheetSurface(Protocol):
    def read_grid(self) -> Grid: ...

    def write_grid(self, grid: Grid) -> None: ...


class MemorySheet:
    def __init__(self, grid: Optional[Grid] = None):
        self.grid: Grid = [list(row) for row in (grid or [])]

    def read_grid(self) -> Grid:
        return [list(row) for row in self.grid]

    def write_grid(self, grid: Grid) -> None:
        self.grid = [list(row) for row in grid]


def _service(creds: Credentials):
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


@contextmanager
def _sheet_errors(action: str) -> Iterator[None]:
    try:
        yield
    except HttpError as exc:
        raise SheetAccessError(f"sheet {action} failed with HTTP {exc.resp.status}") from exc
    except GoogleAuthError as exc:
        raise SheetAccessError(f"sheet {action} failed: {exc}") from exc


def _pad(rows: Grid) -> Grid:
    width = max((len(row) for row in rows), default=0)
    return [list(row) + [""] * (width - len(row)) for row in rows]


def column_letter(index: int) -> str:
    """1-based column number to its A1 letters."""

    letters = ""
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def serial_to_datetime(serial: float, kind: str, tz: Optional[ZoneInfo] = None):
    moment = SERIAL_EPOCH + timedelta(days=serial)
    if kind == "DATE":
        return moment.date()
    return moment.replace(tzinfo=tz) if tz else moment


def apply_date_formats(values: Grid, formats: List[List[Optional[str]]], tz: Optional[ZoneInfo] = None) -> Grid:
    """Turn serial numbers in DATE/DATE_TIME formatted cells into date objects."""

    rows: Grid = []
    for r, row in enumerate(values):
        kinds = formats[r] if r < len(formats) else []
        converted = []
        for c, cell in enumerate(row):
            kind = kinds[c] if c < len(kinds) else None
            if kind in ("DATE", "DATE_TIME") and isinstance(cell, (int, float)) and not isinstance(cell, bool):
                cell = serial_to_datetime(cell, kind, tz)
            converted.append(cell)
        rows.append(converted)
    return rows


class GoogleSheet:
    """A worksheet of a Google spreadsheet, read and replaced as a whole."""

    def __init__(self, creds: Credentials, spreadsheet_id: str, worksheet: str = "Sheet1"):
        self.creds = creds
        self.spreadsheet_id = spreadsheet_id
        self.worksheet = worksheet

    def a1(self, ref: str = "") -> str:
        name = "'" + self.worksheet.replace("'", "''") + "'"
        return f"{name}!{ref}" if ref else name

    def read_grid(self) -> Grid:
        with _sheet_errors("read"):
            svc = _service(self.creds)
            res = (
                svc.spreadsheets()
                .values()
                .get(
                    spreadsheetId=self.spreadsheet_id,
                    range=self.a1(),
                    valueRenderOption="UNFORMATTED_VALUE",
                    dateTimeRenderOption="SERIAL_NUMBER",
                )
                .execute()
            )
            formats, tz = self._number_formats(svc)
        return _pad(apply_date_formats(res.get("values", []), formats, tz))

    def _number_formats(self, svc):
        res = (
            svc.spreadsheets()
            .get(spreadsheetId=self.spreadsheet_id, ranges=[self.a1()], fields=FORMAT_FIELDS)
            .execute()
        )
        tz = None
        tz_name = (res.get("properties") or {}).get("timeZone")
        if tz_name:
            try:
                tz = ZoneInfo(tz_name)
            except ZoneInfoNotFoundError:
                tz = None
        sheets = res.get("sheets") or [{}]
        data = (sheets[0].get("data") or [{}])[0]
        formats = [
            [((cell.get("effectiveFormat") or {}).get("numberFormat") or {}).get("type") for cell in row.get("values", [])]
            for row in data.get("rowData", [])
        ]
        return formats, tz

    def write_grid(self, grid: Grid) -> None:
        with _sheet_errors("write"):
            svc = _service(self.creds)
            values = svc.spreadsheets().values()
            if not grid:
                values.clear(spreadsheetId=self.spreadsheet_id, range=self.a1(), body={}).execute()
                return
            old = values.get(spreadsheetId=self.spreadsheet_id, range=self.a1()).execute().get("values", [])
            new = _pad(grid)
            values.update(
                spreadsheetId=self.spreadsheet_id,
                range=self.a1("A1"),
                valueInputOption="RAW",
                body={"values": new},
            ).execute()

            height, width = len(new), len(new[0])
            old_height = len(old)
            old_width = max((len(row) for row in old), default=0)
            stale: List[str] = []
            if old_height > height:
                stale.append(self.a1(f"A{height + 1}:{column_letter(max(old_width, width))}{old_height}"))
            if old_width > width:
                stale.append(self.a1(f"{column_letter(width + 1)}1:{column_letter(old_width)}{height}"))
            if stale:
                values.batchClear(spreadsheetId=self.spreadsheet_id, body={"ranges": stale}).execute()
