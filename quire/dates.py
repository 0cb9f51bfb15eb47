"""
Temporal page metadata.

A page's `date` value is a timezone-qualified timestamp; from it we derive the
calendar fields templates and permalinks use. Only month and weekday names
depend on the locale.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from email.utils import format_datetime
from typing import Optional

from babel import Locale, UnknownLocaleError
from babel.dates import get_day_names, get_month_names

from .errors import DateParseError, MetadataTypeError

DATE_FORMATS = ['%Y-%m-%dT%H:%M:%S%z', '%Y-%m-%dT%H:%M:%S.%f%z']


@dataclass(frozen=True)
class Date:
    """Calendar fields of a page's timestamp, all as strings."""

    year: str = ''          # 2024
    short_year: str = ''    # 24
    month: str = ''         # 01..12
    i_month: str = ''       # 1..12
    short_month: str = ''   # Jan
    long_month: str = ''    # January
    day: str = ''           # 01..31
    i_day: str = ''         # 1..31
    y_day: str = ''         # 001..366
    w_year: str = ''        # ISO week-year
    week: str = ''          # ISO week, 01..53
    w_day: str = ''         # 1..7, Monday is 1
    short_day: str = ''     # Fri
    long_day: str = ''      # Friday
    hour: str = ''
    minute: str = ''
    second: str = ''
    rfc_3339: str = ''
    rfc_2822: str = ''

    def __str__(self):
        return self.rfc_3339

    def __bool__(self):
        return bool(self.rfc_3339)

    def as_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


EMPTY_DATE = Date()


def parse_locale(locale_id: str, path: str) -> Locale:
    """Resolve a locale identifier such as 'en_US' or 'fr-CA'."""
    try:
        return Locale.parse(locale_id.replace('-', '_'))
    except (UnknownLocaleError, ValueError) as e:
        raise MetadataTypeError('locale', locale_id, path, 'known locale identifier') from e


def parse_timestamp(value: str, path: str) -> datetime:
    """Parse a timezone-qualified timestamp."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise DateParseError(value, path)


def from_datetime(moment: datetime, locale_id: str, path: str = '<global>') -> Date:
    """Derive every calendar field of a Date from an aware datetime."""
    locale = parse_locale(locale_id, path)
    month_names = get_month_names('wide', locale=locale)
    short_month_names = get_month_names('abbreviated', locale=locale)
    day_names = get_day_names('wide', locale=locale)
    short_day_names = get_day_names('abbreviated', locale=locale)
    iso_year, iso_week, iso_weekday = moment.isocalendar()

    return Date(
        year=f'{moment.year:04d}',
        short_year=f'{moment.year % 100:02d}',
        month=f'{moment.month:02d}',
        i_month=str(moment.month),
        short_month=short_month_names[moment.month],
        long_month=month_names[moment.month],
        day=f'{moment.day:02d}',
        i_day=str(moment.day),
        y_day=moment.strftime('%j'),
        w_year=str(iso_year),
        week=f'{iso_week:02d}',
        w_day=str(iso_weekday),
        # babel indexes weekdays from Monday == 0
        short_day=short_day_names[moment.weekday()],
        long_day=day_names[moment.weekday()],
        hour=f'{moment.hour:02d}',
        minute=f'{moment.minute:02d}',
        second=f'{moment.second:02d}',
        rfc_3339=moment.isoformat(),
        rfc_2822=format_datetime(moment),
    )


def derive_date(value: Optional[str], locale_id: str, path: str) -> Date:
    """
    Build the Date for a page.

    A missing value yields the all-empty Date (pages such as static pages
    carry no timestamp); an unparseable one is a DateParseError.
    """
    if value is None:
        return EMPTY_DATE
    return from_datetime(parse_timestamp(value, path), locale_id, path)
