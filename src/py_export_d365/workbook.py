# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Builds one Excel workbook per entity from mapped rows."""

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font

# Hard limit on the number of characters an xlsx cell can hold.
MAX_CELL_LENGTH = 32767

logger = logging.getLogger(__name__)


def _cell_value(value: Any) -> Any:
    """Coerce a mapped value into something openpyxl can write."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if not isinstance(value, str):
        value = json.dumps(value, default=str)
    value = ILLEGAL_CHARACTERS_RE.sub("", value)
    if len(value) > MAX_CELL_LENGTH:
        logger.warning(
            "Truncating cell value of %d characters to %d.", len(value), MAX_CELL_LENGTH,
        )
        value = value[:MAX_CELL_LENGTH]
    return value


class WorkbookBuilder:
    """Accumulates named sheets and writes them to a single .xlsx file.

    The header of each sheet is taken from the keys of its first row; every
    later row is written in that column order.
    """

    def __init__(self) -> None:
        self.workbook = Workbook()
        # openpyxl always starts with one empty sheet; it is dropped as soon
        # as a real sheet is added, so a builder with no sheets still saves.
        self._placeholder = self.workbook.active
        self.sheet_names: list[str] = []

    def add_sheet(self, name: str, rows: Sequence[dict[str, Any]]) -> None:
        """Add a sheet; an empty `rows` still creates the sheet, without a header."""
        if self._placeholder is not None:
            self.workbook.remove(self._placeholder)
            self._placeholder = None

        worksheet = self.workbook.create_sheet(title=name)
        self.sheet_names.append(name)
        if not rows:
            logger.debug("Sheet %s has no rows; leaving it empty.", name)
            return

        header = list(rows[0].keys())
        worksheet.append(header)
        for cell in worksheet[1]:
            cell.font = Font(bold=True)
        worksheet.freeze_panes = "A2"

        for row in rows:
            worksheet.append([_cell_value(row.get(column)) for column in header])
            # Values starting with "=" are exported text, never formulas.
            for cell in worksheet[worksheet.max_row]:
                if isinstance(cell.value, str) and cell.value.startswith("="):
                    cell.data_type = "s"

    def save(self, path: str | Path) -> Path:
        """Write the workbook, creating the parent directory and overwriting `path`."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.workbook.save(path)
        logger.info("Wrote file: %s", path)
        return path
