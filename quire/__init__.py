"""
Quire - a static site build engine.

Quire turns a tree of text files, each carrying a YAML metadata header and a
body, into rendered HTML pages. Bodies are expanded with Jinja2, may call
reusable snippets inline, are converted from Markdown and LaTeX math, and are
wrapped in nested layouts. Pages can join named collections that later pages
enumerate.
"""

__version__ = "1.0.0"

from .core import Quire
from .page import Page, get_permalink
from .dates import Date
from .settings import Global, QuireSettings
from .errors import QuireError, BuildError

__all__ = ['Quire', 'Page', 'Date', 'Global', 'QuireSettings', 'get_permalink', 'QuireError', 'BuildError']
