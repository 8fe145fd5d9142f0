import os, re, logging
from typing import Dict, List, Tuple
import gspread

from .models import HEADERS, Application
from .status import RowColor, Status, parse_status, row_color

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 1000
_LAST_COL = chr(ord("A") + len(HEADERS) - 1)
STATUS_COL = HEADERS.index("Status") + 1
UPDATED_COL = HEADERS.index("Last Updated") + 1
# "Applications!A7:F7" -> 7
_UPDATED_ROW = re.compile(r"!\$?[A-Z]+\$?(\d+)")


def _get_client():
    sa_path = os.getenv("GSPREAD_SERVICE_ACCOUNT_JSON", "").strip()
    if sa_path:
        return gspread.service_account(filename=sa_path)
    return gspread.oauth(
        credentials_filename=os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", "credentials", "client_secret.json"),
        authorized_user_filename=os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", "credentials", "token.json"),
    )


def ensure_sheet(spreadsheet_name: str, worksheet_name: str):
    gc = _get_client()
    try:
        sh = gc.open(spreadsheet_name)
    except gspread.SpreadsheetNotFound:
        sh = gc.create(spreadsheet_name)
    try:
        ws = sh.worksheet(worksheet_name)
    except gspread.WorksheetNotFound:
        ws = sh.add_worksheet(title=worksheet_name, rows=DEFAULT_ROWS, cols=len(HEADERS))
        ws.append_row(HEADERS)
    first_row = ws.row_values(1)
    if first_row != HEADERS:
        if not first_row:
            ws.append_row(HEADERS)
        else:
            ws.delete_rows(1)
            ws.insert_row(HEADERS, index=1)
    return ws


def _row_range(row: int) -> str:
    return f"A{row}:{_LAST_COL}{row}"


def _background(color: RowColor) -> Dict[str, Dict[str, float]]:
    hex_value = color.value.lstrip("#")
    red, green, blue = (int(hex_value[i:i + 2], 16) / 255 for i in (0, 2, 4))
    return {"backgroundColor": {"red": red, "green": green, "blue": blue}}


class SheetStore:
    """Application rows in a worksheet; row 1 is the header."""

    def __init__(self, ws):
        self.ws = ws

    def read_rows(self) -> List[Tuple[int, List[str]]]:
        """All data rows as (sheet row number, cell values)."""
        values = self.ws.get_all_values()
        return [(i, row) for i, row in enumerate(values[1:], start=2)]

    def append(self, record: Application) -> int:
        """Append a record and return the sheet row the API wrote it to.

        The API appends after the table it detects from A1, which ends at the
        first blank row, so the row number has to come from the response.
        """
        resp = self.ws.append_row(record.to_row(), value_input_option="RAW", table_range="A1")
        updated_range = (resp or {}).get("updates", {}).get("updatedRange", "")
        m = _UPDATED_ROW.search(updated_range)
        if not m:
            raise RuntimeError(f"append for thread {record.thread_id} returned no row: {updated_range!r}")
        return int(m.group(1))

    def update_status(self, row: int, record: Application) -> None:
        values = record.to_row()
        self.ws.update_cell(row, STATUS_COL, values[STATUS_COL - 1])
        self.ws.update_cell(row, UPDATED_COL, values[UPDATED_COL - 1])

    def color_row(self, row: int, status: Status) -> None:
        self.ws.format(_row_range(row), _background(row_color(status)))

    def recolor_all(self) -> int:
        """Reapply the status colour to every row; returns rows styled."""
        formats = []
        for row, cells in self.read_rows():
            if len(cells) < STATUS_COL:
                continue
            try:
                status = parse_status(cells[STATUS_COL - 1])
            except ValueError:
                logger.warning("Row %d has unknown status %r; leaving its colour alone", row, cells[STATUS_COL - 1])
                continue
            formats.append({"range": _row_range(row), "format": _background(row_color(status))})
        if formats:
            self.ws.batch_format(formats)
        return len(formats)

    def clear(self) -> None:
        """Blank every data row (values and colours) and rewrite the header.

        Rows are cleared rather than deleted; the API refuses to delete every
        unfrozen row when the header row is frozen.
        """
        data_range = f"A2:{_LAST_COL}"
        self.ws.batch_clear([data_range])
        self.ws.format(data_range, _background(RowColor.WHITE))
        self.ws.update(range_name=_row_range(1), values=[HEADERS])


def open_store(spreadsheet_name: str, worksheet_name: str) -> SheetStore:
    return SheetStore(ensure_sheet(spreadsheet_name, worksheet_name))
