from datetime import date, datetime, timezone
from enum import Enum
import re
from typing import Any, Optional

import pendulum
import pendulum.parsing


DATE_FORMAT = '%Y-%m-%d'
NEWLINE_REGEX = re.compile(r'\r?\n')


class StrEnum(str, Enum):
    """Enum class whose __str__ representation is just a plain string value.
    NOTE: this class exists in the standard library in Python >= 3.11."""

    def __str__(self) -> str:
        return self.value


###################
# STRING HANDLING #
###################

def cell_text(val: Any) -> str:
    """Converts a spreadsheet cell value (string, number, boolean, or null) to a string.
    Integral floats are rendered without a fractional part."""
    if val is None:
        return ''
    if isinstance(val, bool):
        return 'TRUE' if val else 'FALSE'
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val)

def split_lines(s: str) -> list[str]:
    """Splits a string on newlines, dropping empty lines."""
    return [line for line in NEWLINE_REGEX.split(s) if line.strip()]

def single_line(s: str) -> str:
    """Replaces any line breaks in a string with spaces."""
    return NEWLINE_REGEX.sub(' ', s)


############
# DATETIME #
############

def get_current_time() -> datetime:
    """Gets the current time (timezone-aware)."""
    return datetime.now(timezone.utc).astimezone()

def get_today() -> date:
    """Gets the current local date."""
    return get_current_time().date()

def render_date(d: date) -> str:
    """Renders a date in YYYY-MM-DD format."""
    return d.strftime(DATE_FORMAT)

def parse_date(val: Any) -> Optional[date]:
    """Parses a date from a cell value, returning None if it cannot be parsed.
    Accepts date/datetime objects, ISO dates and timestamps, and locale-formatted strings like '3/1/2025' or 'Mar 1, 2025'."""
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    s = cell_text(val).strip()
    if (not s) or s.isdigit():
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        pass
    try:
        parsed = pendulum.parse(s, strict=False, tz=pendulum.UTC)
    except (ValueError, OverflowError, pendulum.parsing.ParserError):
        return None
    if isinstance(parsed, datetime):
        return parsed.date()
    if isinstance(parsed, date):
        return parsed
    return None

def parse_timestamp(val: Any) -> Optional[datetime]:
    """Parses a timezone-aware timestamp from a cell value, returning None if it cannot be parsed.
    Naive timestamps are assumed to be UTC."""
    if isinstance(val, datetime):
        dt = val
    else:
        s = cell_text(val).strip()
        if not s:
            return None
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            try:
                parsed = pendulum.parse(s, strict=False, tz=pendulum.UTC)
            except (ValueError, OverflowError, pendulum.parsing.ParserError):
                return None
            if not isinstance(parsed, datetime):
                return None
            dt = parsed
    return dt if (dt.tzinfo is not None) else dt.replace(tzinfo=timezone.utc)

def render_timestamp(dt: datetime) -> str:
    """Renders a timestamp in ISO 8601 format."""
    return dt.isoformat()


#########
# STYLE #
#########

def style_str(val: Any, color: str, bold: bool = False) -> str:
    """Renders a value as a rich-formatted string with a given color.
    If bold=True, make it bold."""
    tag = ('' if bold else 'not ') + f'bold {color}'
    return f'[{tag}]{val}[/]'


##########
# ERRORS #
##########

class TeamSyncError(ValueError):
    """Custom error type for TeamSync errors."""

class UserInputError(TeamSyncError):
    """Class for user input errors."""
