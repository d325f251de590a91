from datetime import date, datetime
from zoneinfo import ZoneInfo

import httplib2
import pytest
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

import firesheet.sheets as sheets_mod
from firesheet.codec import FieldCodec
from firesheet.errors import SheetAccessError
from firesheet.sheets import GoogleSheet, column_letter


class _Call:
    def __init__(self, result=None, error=None):
        self.result = result or {}
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeService:
    """Stands in for the discovery client of the Sheets v4 API."""

    def __init__(self, values=None, spreadsheet=None, error=None, fail_on=None):
        self.values_result = {"values": values or []}
        self.spreadsheet_result = spreadsheet or {}
        self.error = error
        self.fail_on = fail_on
        self.calls: list[tuple[str, dict]] = []

    def _call(self, name, kwargs, result=None):
        self.calls.append((name, kwargs))
        if self.error is not None and self.fail_on in (None, name):
            return _Call(error=self.error)
        return _Call(result)

    def spreadsheets(self):
        return self

    def values(self):
        return _Values(self)

    def get(self, **kwargs):
        return self._call("get", kwargs, self.spreadsheet_result)


class _Values:
    def __init__(self, service: FakeService):
        self.service = service

    def get(self, **kwargs):
        return self.service._call("values.get", kwargs, self.service.values_result)

    def update(self, **kwargs):
        return self.service._call("values.update", kwargs)

    def clear(self, **kwargs):
        return self.service._call("values.clear", kwargs)

    def batchClear(self, **kwargs):
        return self.service._call("values.batchClear", kwargs)


def _formats(*rows):
    return {
        "properties": {"timeZone": "Europe/Berlin"},
        "sheets": [
            {
                "data": [
                    {
                        "rowData": [
                            {"values": [{"effectiveFormat": {"numberFormat": {"type": kind}}} if kind else {} for kind in row]}
                            for row in rows
                        ]
                    }
                ]
            }
        ],
    }


def _sheet(monkeypatch, service: FakeService) -> GoogleSheet:
    monkeypatch.setattr(sheets_mod, "_service", lambda creds: service)
    return GoogleSheet(creds=None, spreadsheet_id="sheet-1", worksheet="Puzzles")


def test_read_grid_turns_date_serials_into_dates(monkeypatch):
    service = FakeService(
        values=[["id", "due", "seen", "difficulty"], ["doc1", 45356, 45356.5, 3]],
        spreadsheet=_formats([None, None, None, None], [None, "DATE", "DATE_TIME", "NUMBER"]),
    )
    grid = _sheet(monkeypatch, service).read_grid()

    assert grid[1][1] == date(2024, 3, 5)
    assert grid[1][2] == datetime(2024, 3, 5, 12, 0, tzinfo=ZoneInfo("Europe/Berlin"))
    assert grid[1][3] == 3
    name, kwargs = service.calls[0]
    assert name == "values.get"
    assert kwargs["dateTimeRenderOption"] == "SERIAL_NUMBER"


def test_edited_date_is_written_back_as_timestamp(monkeypatch):
    service = FakeService(
        values=[["id", "due"], ["doc1", 45356]],
        spreadsheet=_formats([None, None], [None, "DATE"]),
    )
    grid = _sheet(monkeypatch, service).read_grid()
    assert FieldCodec().encode(grid[1][1], "due") == {"timestampValue": "2024-03-05T00:00:00.000Z"}


def test_write_grid_updates_before_clearing_leftovers(monkeypatch):
    old = [["a", "b", "c", "d"], ["1", "2", "3", "4"], ["x"], ["y"]]
    service = FakeService(values=old)
    _sheet(monkeypatch, service).write_grid([["id", "n"], ["doc1", 1]])

    names = [name for name, _ in service.calls]
    assert names == ["values.get", "values.update", "values.batchClear"]
    assert service.calls[1][1]["body"] == {"values": [["id", "n"], ["doc1", 1]]}
    assert service.calls[2][1]["body"] == {"ranges": ["'Puzzles'!A3:D4", "'Puzzles'!C1:D2"]}


def test_failed_update_leaves_sheet_untouched(monkeypatch):
    error = HttpError(httplib2.Response({"status": 429}), b"{}")
    service = FakeService(values=[["a"]], error=error, fail_on="values.update")
    with pytest.raises(SheetAccessError):
        _sheet(monkeypatch, service).write_grid([["id"], ["doc1"]])
    assert "values.batchClear" not in [name for name, _ in service.calls]
    assert "values.clear" not in [name for name, _ in service.calls]


@pytest.mark.parametrize(
    "error",
    [HttpError(httplib2.Response({"status": 429}), b"{}"), RefreshError("token expired")],
)
def test_api_and_auth_errors_become_sheet_errors(monkeypatch, error):
    service = FakeService(error=error)
    with pytest.raises(SheetAccessError):
        _sheet(monkeypatch, service).read_grid()


def test_column_letters():
    assert [column_letter(n) for n in (1, 26, 27, 52, 703)] == ["A", "Z", "AA", "AZ", "AAA"]
