import sys
from pathlib import Path

import gspread
import pytest

# Ensure the `glow_hunter` package is importable when running pytest from the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeWorksheet:
    def __init__(self, title, rows=None):
        self.title = title
        self.rows = [list(r) for r in rows or []]
        self.header_writes = 0
        self.header_ranges = []
        self.append_calls = []
        self.append_error = None

    def row_values(self, index):
        if len(self.rows) < index:
            return []
        # gspread drops trailing empty cells.
        values = list(self.rows[index - 1])
        while values and values[-1] == "":
            values.pop()
        return values

    def update(self, range_name=None, values=None, value_input_option=None):
        assert range_name.startswith("A1:")
        self.header_writes += 1
        self.header_ranges.append(range_name)
        if self.rows:
            self.rows[0] = list(values[0])
        else:
            self.rows.append(list(values[0]))

    def get(self, range_name):
        assert range_name.startswith("A2:")
        return [list(r) for r in self.rows[1:]]

    def append_rows(self, values, value_input_option=None, insert_data_option=None, table_range=None):
        if self.append_error is not None:
            raise self.append_error
        self.append_calls.append(
            {"values": [list(v) for v in values], "value_input_option": value_input_option, "table_range": table_range}
        )
        self.rows.extend(list(v) for v in values)


class FakeSpreadsheet:
    def __init__(self):
        self.worksheets = {}
        self.created = []

    def worksheet(self, title):
        try:
            return self.worksheets[title]
        except KeyError:
            raise gspread.exceptions.WorksheetNotFound(title) from None

    def add_worksheet(self, title, rows, cols):
        self.created.append((title, rows, cols))
        sheet = FakeWorksheet(title)
        self.worksheets[title] = sheet
        return sheet


class FakeClient:
    def __init__(self):
        self.spreadsheet = FakeSpreadsheet()
        self.opened = []

    def open_by_key(self, key):
        self.opened.append(key)
        return self.spreadsheet


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def make_worksheet():
    return FakeWorksheet
