from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from src.application_tracker.models import HEADERS, Application
from src.application_tracker.sheets_writer import SheetStore
from src.application_tracker.status import Status

WHITE = {"backgroundColor": {"red": 1.0, "green": 1.0, "blue": 1.0}}


@pytest.fixture
def ws():
    ws = MagicMock()
    ws.get_all_values.return_value = [
        list(HEADERS),
        ["Acme", "", "2026-10-01", "Applied", "t1", "2026-10-01 09:00:00"],
        ["Globex", "Engineer", "2026-10-02", "Ghosted", "t2", "2026-10-02 09:00:00"],
    ]
    return ws


def make_record(thread_id="t3", status=Status.APPLIED):
    return Application("Initech", "", date(2026, 10, 3), status, thread_id, datetime(2026, 10, 18, 12, 0))


def test_read_rows_numbers_from_row_two(ws):
    rows = SheetStore(ws).read_rows()
    assert [r for r, _ in rows] == [2, 3]
    assert rows[0][1][4] == "t1"


def appended_at(range_a1):
    return {"updates": {"updatedRange": range_a1, "updatedRows": 1}}


def test_append_returns_row_reported_by_api(ws):
    ws.append_row.return_value = appended_at("Applications!A4:F4")
    assert SheetStore(ws).append(make_record("t3")) == 4
    ws.append_row.assert_called_once_with(make_record("t3").to_row(), value_input_option="RAW", table_range="A1")


def test_append_into_cleared_gap_uses_api_row(ws):
    # rows 2, 4 and 5 hold data; row 3 was blanked by hand, so the table
    # detected from A1 ends at row 2 and the API writes into row 3
    ws.get_all_values.return_value = [
        list(HEADERS),
        ["Acme", "", "2026-10-01", "Applied", "t1", ""],
        ["", "", "", "", "", ""],
        ["Globex", "", "2026-10-02", "Applied", "t2", ""],
        ["Hooli", "", "2026-10-03", "Applied", "t4", ""],
    ]
    ws.append_row.return_value = appended_at("'Job Apps'!A3:F3")
    store = SheetStore(ws)
    store.read_rows()
    assert store.append(make_record("t5")) == 3


def test_append_without_updated_range_fails(ws):
    ws.append_row.return_value = {}
    with pytest.raises(RuntimeError):
        SheetStore(ws).append(make_record())


def test_update_status_writes_two_cells(ws):
    SheetStore(ws).update_status(2, make_record("t1", Status.INTERVIEW))
    ws.update_cell.assert_any_call(2, 4, "Interview")
    ws.update_cell.assert_any_call(2, 6, "2026-10-18 12:00:00")
    assert ws.update_cell.call_count == 2


def test_color_row_formats_whole_row(ws):
    SheetStore(ws).color_row(7, Status.APPLIED)
    ws.format.assert_called_once_with("A7:F7", WHITE)


def test_recolor_all_skips_unknown_statuses(ws):
    assert SheetStore(ws).recolor_all() == 1
    ws.batch_format.assert_called_once_with([{"range": "A2:F2", "format": WHITE}])


def test_recolor_all_on_empty_sheet(ws):
    ws.get_all_values.return_value = [list(HEADERS)]
    assert SheetStore(ws).recolor_all() == 0
    ws.batch_format.assert_not_called()


def test_clear_blanks_rows_without_deleting_them(ws):
    SheetStore(ws).clear()
    ws.batch_clear.assert_called_once_with(["A2:F"])
    ws.format.assert_called_once_with("A2:F", WHITE)
    ws.update.assert_called_once_with(range_name="A1:F1", values=[HEADERS])
    ws.resize.assert_not_called()
    ws.delete_rows.assert_not_called()
