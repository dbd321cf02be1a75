"""Google Sheets adapter — implements TabularStore for the Sheets v4 API.

All Google-specific logic lives here. Repositories never import this directly;
they depend on the TabularStore protocol.
"""

from __future__ import annotations

import logging

from googleapiclient.errors import HttpError

from towel_tracker.ports.storage_port import StorageError

logger = logging.getLogger(__name__)


def _status_of(exc: Exception) -> int | None:
    if isinstance(exc, HttpError):
        return exc.resp.status
    return None


class GoogleSheetsStore:
    """Google Sheets implementation of TabularStore."""

    def __init__(self, spreadsheet_id: str, service=None) -> None:
        if not spreadsheet_id:
            raise StorageError("SPREADSHEET_ID is not set")
        self._spreadsheet_id = spreadsheet_id
        self._service = service
        # Sheet title -> numeric sheetId. Only needed for row deletion; a
        # stale or missing entry is simply fetched again.
        self._sheet_ids: dict[str, int] = {}

    def _values(self):
        if self._service is None:
            from towel_tracker.integrations.google_auth import get_sheets_service

            self._service = get_sheets_service()
        return self._service.spreadsheets().values()

    def get_values(self, range_a1: str) -> list[list[str]]:
        try:
            result = (
                self._values()
                .get(spreadsheetId=self._spreadsheet_id, range=range_a1, majorDimension="ROWS")
                .execute()
            )
        except Exception as exc:
            logger.error("Sheets get %s failed (status=%s): %s", range_a1, _status_of(exc), exc)
            raise StorageError(f"Failed to read {range_a1}: {exc}") from exc
        return result.get("values", [])

    def append_rows(self, range_a1: str, rows: list[list[str]]) -> None:
        body = {"range": range_a1, "majorDimension": "ROWS", "values": rows}
        try:
            (
                self._values()
                .append(
                    spreadsheetId=self._spreadsheet_id,
                    range=range_a1,
                    valueInputOption="RAW",
                    body=body,
                )
                .execute()
            )
        except Exception as exc:
            logger.error("Sheets append %s failed (status=%s): %s", range_a1, _status_of(exc), exc)
            raise StorageError(f"Failed to append to {range_a1}: {exc}") from exc
        logger.debug("Appended %d row(s) to %s", len(rows), range_a1)

    def batch_update(self, updates: list[tuple[str, list[list[str]]]]) -> None:
        if not updates:
            return
        body = {
            "valueInputOption": "RAW",
            "data": [{"range": rng, "values": values} for rng, values in updates],
        }
        try:
            (
                self._values()
                .batchUpdate(spreadsheetId=self._spreadsheet_id, body=body)
                .execute()
            )
        except Exception as exc:
            logger.error("Sheets batchUpdate failed (status=%s): %s", _status_of(exc), exc)
            raise StorageError(f"Failed to update {len(updates)} range(s): {exc}") from exc

    def delete_row(self, sheet: str, row_number: int) -> None:
        sheet_id = self._sheet_id(sheet)
        body = {
            "requests": [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": row_number - 1,
                            "endIndex": row_number,
                        }
                    }
                }
            ]
        }
        try:
            self._service.spreadsheets().batchUpdate(
                spreadsheetId=self._spreadsheet_id, body=body,
            ).execute()
        except Exception as exc:
            # the sheet may have been recreated under a new id
            self._sheet_ids.clear()
            logger.error(
                "Sheets delete row %d in %s failed (status=%s): %s",
                row_number, sheet, _status_of(exc), exc,
            )
            raise StorageError(f"Failed to delete row {row_number} in {sheet}: {exc}") from exc
        logger.info("Deleted row %d in sheet %s", row_number, sheet)

    def _sheet_id(self, title: str) -> int:
        if title in self._sheet_ids:
            return self._sheet_ids[title]

        try:
            self._values()  # make sure the service is built
            meta = (
                self._service.spreadsheets()
                .get(spreadsheetId=self._spreadsheet_id, fields="sheets.properties")
                .execute()
            )
        except Exception as exc:
            logger.error("Sheets metadata fetch failed (status=%s): %s", _status_of(exc), exc)
            raise StorageError(f"Failed to read spreadsheet metadata: {exc}") from exc

        self._sheet_ids = {
            s["properties"]["title"]: s["properties"]["sheetId"]
            for s in meta.get("sheets", [])
        }
        if title not in self._sheet_ids:
            raise StorageError(f"Sheet {title!r} not found in spreadsheet")
        return self._sheet_ids[title]
