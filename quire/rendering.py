"""
Rendering stages that run after template expansion: Markdown to HTML, LaTeX
math to MathML, smart punctuation and minification. Also the extra filters
made available to templates.
"""

import re
import unicodedata
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import csscompressor
import minify_html
import mistune
import rjsmin
import smartypants
from latex2mathml.converter import convert as latex_to_mathml
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .dates import Date, parse_timestamp
from .errors import MathConversionError

MARKDOWN_PLUGINS = ['table', 'strikethrough', 'task_lists', 'footnotes', 'def_list']

BLOCK_MATH_RE = re.compile(r'\$\$(.+?)\$\$', re.DOTALL)
PAREN_MATH_RE = re.compile(r'\\\((.+?)\\\)', re.DOTALL)
# Opening $ not followed by a space, closing $ not preceded by one nor followed by a digit
INLINE_MATH_RE = re.compile(r'(?<![\\$])\$(?![\s$])([^$\n]+?)(?<![\s\\])\$(?!\d)')
CODE_SPAN_RE = re.compile(r'(<pre\b.*?</pre>|<code\b.*?</code>)', re.DOTALL | re.IGNORECASE)

STYLE_RE = re.compile(r'(<style\b[^>]*>)(.*?)(</style>)', re.DOTALL | re.IGNORECASE)
SCRIPT_RE = re.compile(r'(<script\b([^>]*)>)(.*?)(</script>)', re.DOTALL | re.IGNORECASE)
SCRIPT_TYPE_RE = re.compile(r'\btype\s*=\s*["\']?([^"\'\s>]+)', re.IGNORECASE)
JAVASCRIPT_TYPES = {'text/javascript', 'application/javascript', 'module'}

UTC_OFFSET_RE = re.compile(r'^([+-])(\d{2}):?(\d{2})$')


def slugify(text, separator='-'):
    """Lower-case `text`, drop punctuation and join words with `separator`."""
    text = unicodedata.normalize('NFKC', str(text)).lower()
    text = re.sub(r'<[^>]+>', '', text)
    text = re.sub(r'[^\w\s-]', '', text)
    return re.sub(r'[\s_-]+', separator, text).strip(separator)


def heading_ids(md, state):
    """Give every top-level heading an id derived from its text."""
    seen = {}
    for token in state.tokens:
        if token['type'] != 'heading':
            continue
        slug = slugify(token.get('text', ''))
        count = seen.get(slug, 0)
        seen[slug] = count + 1
        token['attrs']['id'] = slug if count == 0 else f"{slug}-{count}"


class PageRenderer(mistune.HTMLRenderer):
    """HTML renderer passing raw HTML through and highlighting fenced code."""

    def __init__(self):
        super().__init__(escape=False)

    def block_code(self, code, info=None):
        language = info.strip().split(None, 1)[0] if info and info.strip() else None
        if not language:
            return '<pre><code>{}</code></pre>\n'.format(mistune.escape(code))

        try:
            lexer = get_lexer_by_name(language)
        except ClassNotFound:
            highlighted = mistune.escape(code)
        else:
            highlighted = highlight(code, lexer, HtmlFormatter(nowrap=True))
        return '<pre lang="{}"><code>{}</code></pre>\n'.format(mistune.escape(language), highlighted)


def create_markdown_parser(math=True):
    """
    Create a Mistune markdown parser.

    With math enabled the `math` plugin keeps `$...$` spans away from
    emphasis and escaping; superscript is left out since `^` is math syntax.
    """
    plugins = list(MARKDOWN_PLUGINS)
    plugins.append('math' if math else 'superscript')
    parser = mistune.create_markdown(renderer=PageRenderer(), plugins=plugins, hard_wrap=True)
    parser.before_render_hooks.append(heading_ids)
    return parser


def smarten(html):
    """Curl quotes and convert dashes and ellipses; skips code and math."""
    # Markdown escapes double quotes to &quot;, which `w` turns back into quotes first
    return smartypants.smartypants(html, smartypants.Attr.set2 | smartypants.Attr.w)


def _convert(match, display, location):
    expression = match.group(1).strip()
    try:
        return latex_to_mathml(expression, display=display)
    except Exception as e:
        raise MathConversionError(location, expression, e) from e


def render_math(text, location='<string>'):
    """Replace `$$...$$`, `\\(...\\)` and `$...$` with MathML, outside code."""
    parts = CODE_SPAN_RE.split(text)
    for index in range(0, len(parts), 2):
        part = parts[index]
        if '$' not in part and '\\(' not in part:
            continue
        part = BLOCK_MATH_RE.sub(lambda m: _convert(m, 'block', location), part)
        part = PAREN_MATH_RE.sub(lambda m: _convert(m, 'inline', location), part)
        part = INLINE_MATH_RE.sub(lambda m: _convert(m, 'inline', location), part)
        parts[index] = part
    return ''.join(parts)


def _minify_script(match):
    script_type = SCRIPT_TYPE_RE.search(match.group(2))
    if script_type and script_type.group(1).lower() not in JAVASCRIPT_TYPES:
        return match.group(0)
    return match.group(1) + rjsmin.jsmin(match.group(3)) + match.group(4)


def minify(html):
    """Minify markup, embedded CSS and embedded JavaScript."""
    html = STYLE_RE.sub(lambda m: m.group(1) + csscompressor.compress(m.group(2)) + m.group(3), html)
    html = SCRIPT_RE.sub(_minify_script, html)
    return minify_html.minify(
        html,
        keep_closing_tags=True,
        keep_html_and_head_opening_tags=True,
        keep_comments=False,
        minify_css=False,
        minify_js=False,
    )


def array_to_sentence_string(items, connector='and'):
    """Join items as an English list: 'a, b, and c'."""
    items = [str(item) for item in items]
    if not items:
        return ''
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} {connector} {items[1]}"
    return f"{', '.join(items[:-1])}, {connector} {items[-1]}"


def pluralize(count, singular, plural):
    """Return `singular` when count is one, else `plural`."""
    return singular if count == 1 else plural


def push(items, item):
    """Return a copy of `items` with `item` appended."""
    return list(items) + [item]


def pop(items):
    """Return a copy of `items` without its last element."""
    return list(items)[:-1]


def shift(items):
    """Return a copy of `items` without its first element."""
    return list(items)[1:]


def unshift(items, item):
    """Return a copy of `items` with `item` prepended."""
    return [item] + list(items)


def _timezone(tz):
    """Resolve hours (9), an offset ('+0900', '-05:30') or a zone name."""
    if isinstance(tz, int) and not isinstance(tz, bool):
        return timezone(timedelta(hours=tz))

    match = UTC_OFFSET_RE.match(str(tz))
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-offset if sign == '-' else offset)

    try:
        return ZoneInfo(str(tz))
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"unknown timezone {tz!r}") from e


def date_in_tz(value, fmt, tz):
    """
    Format a date in another timezone with strftime directives.

    `value` may be a page Date, a timestamp string or a datetime; naive
    datetimes are taken as UTC.
    """
    if isinstance(value, Date):
        if not value:
            raise ValueError("cannot convert an empty date")
        moment = datetime.fromisoformat(value.rfc_3339)
    elif isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    else:
        moment = parse_timestamp(str(value), '<template>')
    return moment.astimezone(_timezone(tz)).strftime(fmt)


TEMPLATE_FILTERS = {
    'slugify': slugify,
    'array_to_sentence_string': array_to_sentence_string,
    'pluralize': pluralize,
    'push': push,
    'pop': pop,
    'shift': shift,
    'unshift': unshift,
    'date_in_tz': date_in_tz,
}
