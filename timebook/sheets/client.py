import logging
import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from ..errors import FileLockedError, NotFoundError, StorageError, ValidationError
from .models import BASELINE_SHEETS, LEDGER_HEADER, LEDGER_SHEET, MAX_SHEET_TITLE, RESERVED_PREFIX

logger = logging.getLogger(__name__)

INVALID_TITLE_CHARS = set("[]:*?/\\")
NEW_FILE_MODE = 0o644
RESERVED_TITLES = {"history"} | {name.lower() for name in BASELINE_SHEETS}


def validate_sheet_title(name: str) -> str:
    """Check that a project name can double as a sheet label and return it trimmed"""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Project name must not be empty")

    name = name.strip()
    if len(name) > MAX_SHEET_TITLE:
        raise ValidationError(f"Project name must be at most {MAX_SHEET_TITLE} characters long")
    if INVALID_TITLE_CHARS.intersection(name):
        raise ValidationError("Project name must not contain any of [ ] : * ? / \\")
    if name.startswith("'") or name.endswith("'"):
        raise ValidationError("Project name must not start or end with an apostrophe")
    if name.startswith(RESERVED_PREFIX):
        raise ValidationError(f"Project name must not start with '{RESERVED_PREFIX}'")
    if name.lower() in RESERVED_TITLES:
        raise ValidationError(f"'{name}' is a reserved name")
    return name


class WorkbookClient:
    """Handles all operations on a single workbook file.

    The whole workbook is held in memory between ``open`` and ``save``. Rows
    are addressed with 1-based sheet indices, row 1 being the header.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.workbook: Workbook | None = None

    def open(self, expect_existing: bool = False) -> Workbook:
        """Load the backing file, or start a new workbook when there is none"""
        if self.path.exists():
            self.workbook = self._read_workbook()
        elif expect_existing:
            raise NotFoundError(f"Time tracking file not found: {self.path.name}")
        else:
            logger.info(f"Initializing new workbook {self.path}")
            self.workbook = self._new_workbook()

        self._ensure_baseline_sheets()
        return self.workbook

    def _read_workbook(self) -> Workbook:
        try:
            return load_workbook(self.path)
        except PermissionError as e:
            logger.error(f"Workbook {self.path} is locked: {e}")
            raise FileLockedError(self.path) from e
        except FileNotFoundError as e:
            raise NotFoundError(f"Time tracking file not found: {self.path.name}") from e
        except (OSError, BadZipFile, InvalidFileException, KeyError) as e:
            logger.error(f"Error reading workbook {self.path}: {e}")
            raise StorageError(f"Failed to read time tracking file: {str(e)}") from e

    @staticmethod
    def _new_workbook() -> Workbook:
        workbook = Workbook()
        ledger = workbook.active
        ledger.title = LEDGER_SHEET
        ledger.append(LEDGER_HEADER)
        return workbook

    def _ensure_baseline_sheets(self) -> None:
        for name, header in BASELINE_SHEETS.items():
            if not self.has_sheet(name):
                logger.info(f"Adding missing sheet {name} to {self.path.name}")
                self.create_sheet(name, header)

    def save(self) -> None:
        """Serialize the workbook and atomically replace the file.

        The workbook is rendered into memory before the file is touched, so a
        failure leaves the previous file intact.
        """
        buffer = BytesIO()
        self._require_workbook().save(buffer)

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=self.path.stem + "_", suffix=".tmp", dir=str(self.path.parent)
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as tmp_file:
                tmp_file.write(buffer.getvalue())
            # mkstemp creates the file private to the owner
            if self.path.exists():
                shutil.copymode(self.path, tmp_path)
            else:
                os.chmod(tmp_path, NEW_FILE_MODE)
            os.replace(tmp_path, self.path)
        except PermissionError as e:
            logger.error(f"Workbook {self.path} is locked: {e}")
            raise FileLockedError(self.path) from e
        except OSError as e:
            logger.error(f"Error writing workbook {self.path}: {e}")
            raise StorageError(f"Failed to write time tracking file: {str(e)}") from e
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)

    def _require_workbook(self) -> Workbook:
        if self.workbook is None:
            raise StorageError("Workbook is not open")
        return self.workbook

    def _sheet(self, sheet_name: str) -> Worksheet:
        workbook = self._require_workbook()
        if sheet_name not in workbook.sheetnames:
            raise NotFoundError(f"Sheet not found: {sheet_name}")
        return workbook[sheet_name]

    def sheet_names(self) -> list[str]:
        return list(self._require_workbook().sheetnames)

    def has_sheet(self, sheet_name: str) -> bool:
        return sheet_name in self._require_workbook().sheetnames

    def find_sheet(self, sheet_name: str) -> str | None:
        """Return the existing sheet whose label matches regardless of case"""
        wanted = sheet_name.lower()
        for name in self._require_workbook().sheetnames:
            if name.lower() == wanted:
                return name
        return None

    def create_sheet(self, sheet_name: str, header: list[str], index: int | None = None) -> Worksheet:
        sheet = self._require_workbook().create_sheet(title=sheet_name, index=index)
        sheet.append(list(header))
        return sheet

    def reset_sheet(self, sheet_name: str, header: list[str]) -> Worksheet:
        """Drop a sheet and recreate it empty at the same position"""
        workbook = self._require_workbook()
        index = None
        if sheet_name in workbook.sheetnames:
            index = workbook.sheetnames.index(sheet_name)
            workbook.remove(workbook[sheet_name])
        return self.create_sheet(sheet_name, header, index=index)

    def get_header(self, sheet_name: str) -> list[str]:
        sheet = self._sheet(sheet_name)
        if sheet.max_row < 1:
            return []
        return [str(cell.value) if cell.value is not None else "" for cell in sheet[1]]

    def update_header_row(self, sheet_name: str, header: list[str]) -> None:
        sheet = self._sheet(sheet_name)
        for column, value in enumerate(header, start=1):
            sheet.cell(row=1, column=column, value=value)

    def get_indexed_rows(self, sheet_name: str) -> list[tuple[int, list]]:
        """Return (row index, values) for every non-empty data row"""
        sheet = self._sheet(sheet_name)
        width = max(len(self.get_header(sheet_name)), sheet.max_column)
        rows = []
        for row_index, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
            values = self._ensure_row_length(list(row), width)
            if any(value not in (None, "") for value in values):
                rows.append((row_index, values))
        return rows

    def get_rows(self, sheet_name: str) -> list[list]:
        return [values for _, values in self.get_indexed_rows(sheet_name)]

    def get_row_values(self, sheet_name: str, row_index: int) -> list:
        sheet = self._sheet(sheet_name)
        return [cell.value for cell in sheet[row_index]]

    def update_row(self, sheet_name: str, row_index: int, values: list) -> None:
        """Overwrite a whole row, clearing cells past the new values"""
        sheet = self._sheet(sheet_name)
        width = max(len(values), sheet.max_column)
        for column in range(1, width + 1):
            value = values[column - 1] if column <= len(values) else None
            sheet.cell(row=row_index, column=column, value=value)

    def append_row(self, sheet_name: str, values: list) -> None:
        self._sheet(sheet_name).append(list(values))

    def delete_row(self, sheet_name: str, row_index: int) -> None:
        self._sheet(sheet_name).delete_rows(row_index)

    def replace_rows(self, sheet_name: str, rows: list[list]) -> None:
        """Rewrite every data row of a sheet, keeping its header"""
        sheet = self._sheet(sheet_name)
        if sheet.max_row > 1:
            sheet.delete_rows(2, sheet.max_row - 1)
        for row in rows:
            sheet.append(list(row))

    @staticmethod
    def _ensure_row_length(values: list, required_length: int) -> list:
        """Ensure the row has the required length, padding with None if needed"""
        return values + [None] * (required_length - len(values))
