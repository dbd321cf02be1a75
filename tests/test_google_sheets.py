"""Tests for towel_tracker.adapters.google_sheets — Sheets v4 calls over a mocked service."""

from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from towel_tracker.adapters.google_sheets import GoogleSheetsStore
from towel_tracker.ports.storage_port import StorageError


def _http_error(status: int) -> HttpError:
    resp = MagicMock()
    resp.status = status
    resp.reason = "error"
    return HttpError(resp, b'{"error": {"message": "denied"}}')


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def sheets(service):
    return GoogleSheetsStore("sheet-123", service=service)


def test_requires_spreadsheet_id():
    with pytest.raises(StorageError):
        GoogleSheetsStore("")


class TestValues:
    def test_get_values(self, sheets, service):
        values_api = service.spreadsheets.return_value.values.return_value
        values_api.get.return_value.execute.return_value = {"values": [["a", "b"]]}
        assert sheets.get_values("slots!A2:F") == [["a", "b"]]
        values_api.get.assert_called_once_with(
            spreadsheetId="sheet-123", range="slots!A2:F", majorDimension="ROWS",
        )

    def test_get_values_empty_range(self, sheets, service):
        values_api = service.spreadsheets.return_value.values.return_value
        values_api.get.return_value.execute.return_value = {}
        assert sheets.get_values("slots!A2:F") == []

    def test_append_uses_raw_input(self, sheets, service):
        values_api = service.spreadsheets.return_value.values.return_value
        sheets.append_rows("events!A:E", [["t", "s", "CREATE", "1", "x"]])
        kwargs = values_api.append.call_args.kwargs
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["body"]["values"] == [["t", "s", "CREATE", "1", "x"]]

    def test_batch_update_is_one_call(self, sheets, service):
        values_api = service.spreadsheets.return_value.values.return_value
        sheets.batch_update([("slots!F2:F2", [["t"]]), ("slots!F5:F5", [["t"]])])
        values_api.batchUpdate.assert_called_once()
        body = values_api.batchUpdate.call_args.kwargs["body"]
        assert [d["range"] for d in body["data"]] == ["slots!F2:F2", "slots!F5:F5"]

    def test_batch_update_skips_empty(self, sheets, service):
        sheets.batch_update([])
        service.spreadsheets.return_value.values.return_value.batchUpdate.assert_not_called()

    def test_http_error_becomes_storage_error(self, sheets, service):
        values_api = service.spreadsheets.return_value.values.return_value
        values_api.get.return_value.execute.side_effect = _http_error(403)
        with pytest.raises(StorageError):
            sheets.get_values("slots!A2:F")


class TestDeleteRow:
    def _metadata(self, service, sheets_meta):
        service.spreadsheets.return_value.get.return_value.execute.return_value = {
            "sheets": sheets_meta,
        }

    def test_delete_uses_sheet_id(self, sheets, service):
        self._metadata(service, [
            {"properties": {"title": "slots", "sheetId": 11}},
            {"properties": {"title": "events", "sheetId": 22}},
        ])
        sheets.delete_row("slots", 4)
        body = service.spreadsheets.return_value.batchUpdate.call_args.kwargs["body"]
        rng = body["requests"][0]["deleteDimension"]["range"]
        assert rng == {"sheetId": 11, "dimension": "ROWS", "startIndex": 3, "endIndex": 4}

    def test_sheet_id_is_memoized(self, sheets, service):
        self._metadata(service, [{"properties": {"title": "slots", "sheetId": 11}}])
        sheets.delete_row("slots", 2)
        sheets.delete_row("slots", 2)
        assert service.spreadsheets.return_value.get.call_count == 1

    def test_unknown_sheet(self, sheets, service):
        self._metadata(service, [{"properties": {"title": "slots", "sheetId": 11}}])
        with pytest.raises(StorageError):
            sheets.delete_row("users", 2)

    def test_failed_delete_forgets_sheet_ids(self, sheets, service):
        self._metadata(service, [{"properties": {"title": "slots", "sheetId": 11}}])
        batch = service.spreadsheets.return_value.batchUpdate.return_value
        batch.execute.side_effect = _http_error(400)
        with pytest.raises(StorageError):
            sheets.delete_row("slots", 2)

        batch.execute.side_effect = None
        self._metadata(service, [{"properties": {"title": "slots", "sheetId": 99}}])
        sheets.delete_row("slots", 2)
        assert service.spreadsheets.return_value.get.call_count == 2
        body = service.spreadsheets.return_value.batchUpdate.call_args.kwargs["body"]
        assert body["requests"][0]["deleteDimension"]["range"]["sheetId"] == 99

    def test_credential_failure_becomes_storage_error(self):
        sheets = GoogleSheetsStore("sheet-123")
        with patch(
            "towel_tracker.integrations.google_auth.get_sheets_service",
            side_effect=ValueError("bad private key"),
        ):
            with pytest.raises(StorageError):
                sheets.delete_row("slots", 2)
