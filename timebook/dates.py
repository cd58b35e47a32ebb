import re
from datetime import date, datetime

from dateutil import parser as date_parser


DATE_FORMAT = "%Y-%m-%d"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DOTTED_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_SLASHED_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def format_date(value: date) -> str:
    """Format a date as YYYY-MM-DD"""
    return value.strftime(DATE_FORMAT)


def current_date() -> str:
    return format_date(datetime.now())


def normalize_date(value: object) -> str:
    """Normalize a date to YYYY-MM-DD.

    Accepts YYYY-MM-DD, DD.MM.YYYY and DD/MM/YYYY strings as well as date
    cells read back from a workbook. Anything else goes through the generic
    date parser; strings nobody can parse are returned unchanged.
    """
    if isinstance(value, (date, datetime)):
        return format_date(value)
    if value is None:
        return ""

    date_str = str(value).strip()
    if _ISO_DATE.match(date_str):
        return date_str

    for pattern in (_DOTTED_DATE, _SLASHED_DATE):
        match = pattern.match(date_str)
        if match:
            day, month, year = match.groups()
            return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    try:
        return format_date(date_parser.parse(date_str))
    except (ValueError, OverflowError):
        return str(value)


def workbook_filename(day: date) -> str:
    """Name of the month workbook holding entries for the given day"""
    return f"time-tracking-{day.year}-{day.month:02d}.xlsx"


def export_filename(label: str, day: date) -> str:
    return f"{day.month:02d}-{day.year}-{label}.xlsx"
