"""
The Page entity and the parts of page building that need no rendering:
reading the source file, resolving recognized metadata keys and expanding
permalink shorthand.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict

from .dates import EMPTY_DATE, Date, derive_date
from .errors import FileReadError
from .frontmatter import get_bool, get_str, parse_metadata, split_frontmatter

logger = logging.getLogger('PageBuilder')

PERMALINK_SHORTHANDS = {
    'date': '/{{ page.data.collection }}/{{ page.date.year }}/{{ page.date.month }}/{{ page.date.day }}/{{ page.data.title }}.html',
    'pretty': '/{{ page.data.collection }}/{{ page.date.year }}/{{ page.date.month }}/{{ page.date.day }}/{{ page.data.title }}/index.html',
    'ordinal': '/{{ page.data.collection }}/{{ page.date.year }}/{{ page.date.y_day }}/{{ page.data.title }}.html',
    'weekdate': '/{{ page.data.collection }}/{{ page.date.year }}/W{{ page.date.week }}/{{ page.date.short_day }}/{{ page.data.title }}.html',
    'none': '/{{ page.data.collection }}/{{ page.data.title }}.html',
}


def get_permalink(permalink: str) -> str:
    """Expand permalink shorthand; any other value is already a template."""
    return PERMALINK_SHORTHANDS.get(permalink, permalink)


@dataclass
class Page:
    """One compiled unit of content."""

    data: Dict[str, Any] = field(default_factory=dict)
    content: str = ''
    permalink: str = ''
    date: Date = EMPTY_DATE
    directory: str = ''
    name: str = ''
    url: str = ''
    markdown: bool = True
    math: bool = True
    minify: bool = False
    locale: str = 'en_US'
    path: str = ''

    @property
    def location(self) -> str:
        """Where this page came from, for error messages."""
        if self.directory:
            return f"{self.directory}/{self.name}"
        return self.name or '<string>'

    @property
    def layout(self):
        return self.data.get('layout')

    @property
    def collection(self):
        return self.data.get('collection')


def read_source(path: str) -> str:
    """Read a UTF-8 source file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError as e:
        raise FileReadError(path) from e
    except (IOError, OSError, UnicodeDecodeError) as e:
        raise FileReadError(path, str(e)) from e


def read_metadata(path: str) -> Dict[str, Any]:
    """Read only the metadata block of a file; the body is discarded."""
    raw, _ = split_frontmatter(read_source(path))
    return parse_metadata(raw, path)


def load_page(path: str, default_locale: str, default_minify: bool) -> Page:
    """
    Build a Page from a source file, without resolving its URL.

    Recognized keys are type-checked; every other key is passed through to
    templates untouched.
    """
    raw, body = split_frontmatter(read_source(path))
    data = parse_metadata(raw, path)

    permalink = get_str(data, 'permalink', path, default='')
    date_value = get_str(data, 'date', path)
    locale = get_str(data, 'locale', path, default=default_locale)
    # Read later through Page.layout / Page.collection
    for key in ('layout', 'collection'):
        get_str(data, key, path)

    page = Page(
        data=data,
        content=body,
        permalink=permalink,
        date=derive_date(date_value, locale, path),
        directory=os.path.dirname(path),
        name=os.path.splitext(os.path.basename(path))[0],
        markdown=get_bool(data, 'markdown', path, default=True),
        math=get_bool(data, 'math', path, default=True),
        minify=get_bool(data, 'minify', path, default=default_minify),
        locale=locale,
        path=path,
    )
    logger.debug(f"Loaded page {path}")
    return page
