import os
import logging
from dataclasses import replace
from datetime import datetime

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from .errors import (
    BuildError,
    LayoutCycleError,
    OutputError,
    QuireError,
    SnippetCallError,
    TemplateRenderError,
)
from .page import Page, get_permalink, load_page, read_metadata, read_source
from .rendering import TEMPLATE_FILTERS, create_markdown_parser, minify, render_math, smarten
from .settings import Global, QuireSettings
from .snippets import SnippetCall, find_snippet_calls, parse_snippet_call

SOURCE_SUFFIX = '.quire'
LAYOUTS_DIR = 'layouts'
SNIPPETS_DIR = 'snippets'

TEMPLATE_RUNTIME_ERRORS = (
    TemplateError,
    TypeError,
    ValueError,
    ArithmeticError,
    LookupError,
    AttributeError,
)


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Build completed in",
            "Total pages compiled:",
            "Total pages written:",
            "Collections:",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Quire:
    """
    A build session.

    Holds everything a build run shares between pages: the global config,
    the template environment and the collections table. Pages are compiled
    one at a time, in order, so a template reading `collections` sees only
    the pages compiled before the current one.
    """

    def __init__(self, site_dir='.', global_config: Global = None, log_to_file=False):
        self.site_dir = site_dir
        self.layouts_dir = os.path.join(site_dir, LAYOUTS_DIR)
        self.snippets_dir = os.path.join(site_dir, SNIPPETS_DIR)
        self.pages_compiled = 0
        self.pages_written = 0

        self.setup_logging(log_to_file)

        self.global_config = global_config or QuireSettings(site_dir).load_global()
        self.collections = {}
        self._active_snippets = []

        self.env = Environment(
            loader=FileSystemLoader(self.snippets_dir),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self.env.filters.update(TEMPLATE_FILTERS)

        self.markdown_parsers = {
            True: create_markdown_parser(math=True),
            False: create_markdown_parser(math=False),
        }

    def setup_logging(self, log_to_file=False):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Quire')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_formatter = logging.Formatter('%(message)s')
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        has_file_handler = any(isinstance(h, logging.FileHandler) for h in self.logger.handlers)
        if log_to_file and not has_file_handler:
            # File handler for all logs
            logs_dir = os.path.join(self.site_dir, 'logs')
            os.makedirs(logs_dir, exist_ok=True)
            log_filename = datetime.now().strftime('quire_%Y-%m-%d_%H-%M-%S.log')
            log_filepath = os.path.join(logs_dir, log_filename)

            file_handler = logging.FileHandler(log_filepath)
            file_handler.setLevel(logging.DEBUG)
            file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def layout_path(self, name):
        if not name.endswith(SOURCE_SUFFIX):
            name += SOURCE_SUFFIX
        return os.path.join(self.layouts_dir, name)

    def snippet_path(self, call: SnippetCall):
        """Resolve a snippet call's name inside the snippets directory."""
        path = os.path.normpath(os.path.join(self.snippets_dir, call.name))
        snippets_root = os.path.abspath(self.snippets_dir)
        if not os.path.abspath(path).startswith(snippets_root + os.sep):
            raise SnippetCallError(call.source, f"snippet path escapes {self.snippets_dir}: {call.name}")
        return path

    def get_page(self, path) -> Page:
        """Build a Page from a file and resolve its URL."""
        page = load_page(path, self.global_config.locale, self.global_config.minify)
        if page.permalink:
            page.url = self.render(page, get_permalink(page.permalink), only_context=True)
        return page

    def get_layout(self, name) -> Page:
        return self.get_page(self.layout_path(name))

    def get_contexts(self, page: Page, snippet_context=None):
        """Assemble what templates see while rendering `page`."""
        layout = read_metadata(self.layout_path(page.layout)) if page.layout else {}

        contexts = {
            'global': self.global_config.as_context(),
            'page': page,
            'layout': layout,
            'collections': self.collections,
        }
        if snippet_context is not None:
            contexts['snippet'] = snippet_context
        return contexts

    def render_template(self, page: Page, text, snippet_context=None):
        contexts = self.get_contexts(page, snippet_context)
        try:
            return self.env.from_string(text).render(contexts)
        except QuireError:
            raise
        except TEMPLATE_RUNTIME_ERRORS as e:
            # Expressions like `{{ title + 1 }}` fail with plain Python errors
            raise TemplateRenderError(page.location, e) from e

    def render_markdown(self, text, math=True):
        """Convert markdown text to HTML."""
        return self.markdown_parsers[bool(math)](text)

    def render(self, page: Page, text, only_context=False, snippet_context=None):
        """
        Run `text` through the rendering pipeline with `page` as context.

        With `only_context` only templates and snippets are expanded (used for
        permalinks, layouts and snippets); otherwise Markdown, math and
        minification follow according to the page's flags.
        """
        rendered = self.render_template(page, text, snippet_context)
        rendered = self.render_snippets(page, rendered)
        if only_context:
            return rendered

        if page.markdown:
            rendered = self.render_markdown(rendered, page.math)
        if page.math:
            rendered = render_math(rendered, page.location)
        if page.markdown:
            rendered = smarten(rendered)
        if page.minify:
            rendered = minify(rendered)
        return rendered

    def render_snippets(self, page: Page, text):
        """Replace every inline snippet call in `text` with its rendered output."""
        for call in find_snippet_calls(text):
            text = text.replace(call, self.render_snippet(page, parse_snippet_call(call)))
        return text

    def render_snippet(self, page: Page, call: SnippetCall):
        """Render one snippet with the call's arguments available as `snippet`."""
        path = self.snippet_path(call)
        if path in self._active_snippets:
            raise SnippetCallError(call.source, f"snippet '{call.name}' includes itself")

        text = read_source(path)
        self._active_snippets.append(path)
        try:
            rendered = self.render(page, text, only_context=True, snippet_context=call.arguments)
        finally:
            self._active_snippets.pop()

        self.logger.debug(f"Rendered snippet {call.name} for {page.location}")
        return rendered

    def render_layouts(self, sub: Page, layout: Page, visited):
        """
        Wrap `sub` in `layout` and then in each of the layout's ancestors.

        Each level is rendered with the page below it as context, so
        `{{ page.content }}` is the already-rendered inner text. Going up a
        level, the merged page keeps sub's identity but takes the layout's
        rendered content, flags and metadata; layout keys win over sub's.
        """
        rendered = self.render(sub, layout.content, only_context=True)
        self.logger.debug(f"Rendered layout {layout.name} for {sub.location}")

        parent = layout.layout
        if not parent:
            return rendered
        if parent in visited:
            raise LayoutCycleError(list(visited) + [parent])

        merged = replace(
            sub,
            content=rendered,
            markdown=layout.markdown,
            math=layout.math,
            data={**sub.data, **layout.data},
        )
        return self.render_layouts(merged, self.get_layout(parent), list(visited) + [parent])

    def add_to_collection(self, page: Page):
        """Append a compiled page to the collection it declares, if any."""
        name = page.collection
        if name is None:
            return
        self.collections.setdefault(name, []).append(page)
        self.logger.debug(f"Added {page.location} to collection '{name}'")

    def compile(self, page: Page):
        """Render a page with its layouts and note it in its collection."""
        page.content = self.render(page, page.content)

        if page.layout:
            layouts = self.render_layouts(page, self.get_layout(page.layout), [page.layout])
            # Final pass picks up whatever the layouts and snippets introduced
            compiled = self.render(page, layouts, only_context=True)
            if page.minify:
                compiled = minify(compiled)
        else:
            compiled = page.content

        self.add_to_collection(page)
        self.pages_compiled += 1
        self.logger.debug(f"Compiled {page.location}")
        return compiled

    def collect_sources(self, paths):
        """Expand files and directories into the page sources to build."""
        excluded = {os.path.abspath(self.layouts_dir), os.path.abspath(self.snippets_dir)}
        sources = []
        for path in paths:
            if os.path.isdir(path):
                found = []
                for root, dirs, files in os.walk(path):
                    dirs[:] = sorted(d for d in dirs
                                     if os.path.abspath(os.path.join(root, d)) not in excluded
                                     and not d.startswith('.'))
                    found.extend(os.path.join(root, f) for f in files if f.endswith(SOURCE_SUFFIX))
                sources.extend(sorted(found))
            else:
                sources.append(path)
        return sources

    def build(self, paths):
        """
        Compile every page in order.

        A failing page is logged and the run continues so that every failure
        is reported; the run then ends with a BuildError.
        """
        results = {}
        errors = []

        for path in paths:
            try:
                page = self.get_page(path)
                results[path] = (page, self.compile(page))
            except QuireError as e:
                self.logger.error(f"Error compiling {path}: {e}")
                errors.append(e)

        if errors:
            raise BuildError(errors)

        self.logger.info(f"Total pages compiled: {self.pages_compiled}")
        if self.collections:
            summary = ', '.join(f"{name} ({len(pages)})" for name, pages in self.collections.items())
            self.logger.info(f"Collections: {summary}")
        return results

    def write(self, results, output_dir):
        """Write every compiled page that has a URL under `output_dir`."""
        output_root = os.path.abspath(output_dir)
        for page, compiled in results.values():
            if not page.url:
                continue

            relative = page.url.lstrip('/')
            if not relative or relative.endswith('/'):
                relative += 'index.html'
            output_path = os.path.normpath(os.path.join(output_dir, relative))
            if not os.path.abspath(output_path).startswith(output_root + os.sep):
                raise OutputError(output_path, f"URL {page.url!r} of {page.location} escapes the output directory")

            try:
                os.makedirs(os.path.dirname(output_path), exist_ok=True)
                with open(output_path, 'w', encoding='utf-8') as f:
                    f.write(compiled)
            except (IOError, OSError) as e:
                raise OutputError(output_path, str(e)) from e

            self.pages_written += 1
            self.logger.debug(f"Wrote {output_path}")

        self.logger.info(f"Total pages written: {self.pages_written}")
        return self.pages_written
