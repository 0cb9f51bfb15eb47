"""Tests for the Markdown, math, punctuation and minification stages."""

import pytest
import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from quire.rendering import (
    create_markdown_parser,
    minify,
    render_math,
    slugify,
    smarten,
    array_to_sentence_string,
    pluralize,
    push,
    pop,
    shift,
    unshift,
    date_in_tz,
)
from quire.dates import EMPTY_DATE, derive_date
from quire.errors import MathConversionError, TemplateRenderError


class TestMarkdown:
    """Test Markdown conversion."""

    def test_basic_markdown(self):
        """Paragraphs and emphasis are converted."""
        html = create_markdown_parser()("Some *emphasis* here.\n")
        assert html == "<p>Some <em>emphasis</em> here.</p>\n"

    def test_heading_ids(self):
        """Headings get ids, with repeats numbered."""
        html = create_markdown_parser()("# Hello World\n\n## Hello World\n")
        assert '<h1 id="hello-world">Hello World</h1>' in html
        assert '<h2 id="hello-world-1">Hello World</h2>' in html

    def test_tables_and_strikethrough(self):
        """Table and strikethrough plugins are enabled."""
        html = create_markdown_parser()("| a | b |\n|---|---|\n| 1 | 2 |\n\n~~gone~~\n")
        assert '<table>' in html
        assert '<del>gone</del>' in html

    def test_hard_wrap(self):
        """Single newlines become line breaks."""
        html = create_markdown_parser()("one\ntwo\n")
        assert '<br' in html

    def test_raw_html_passes_through(self):
        """Inline HTML is not escaped."""
        html = create_markdown_parser()('<div class="box">kept</div>\n')
        assert '<div class="box">kept</div>' in html

    def test_code_highlighting(self):
        """Fenced code with a language is highlighted."""
        html = create_markdown_parser()("```python\ndef f():\n    return 1\n```\n")
        assert '<pre lang="python"><code>' in html
        assert '<span' in html

    def test_plain_code_block(self):
        """Fenced code without a language is escaped."""
        html = create_markdown_parser()("```\n<b>\n```\n")
        assert html == "<pre><code>&lt;b&gt;\n</code></pre>\n"

    def test_superscript_without_math(self):
        """`^` is superscript when math is off."""
        html = create_markdown_parser(math=False)("x^2^\n")
        assert '<sup>2</sup>' in html


class TestMath:
    """Test math conversion."""

    def test_inline_math(self):
        """Dollar-delimited math becomes inline MathML."""
        html = render_math("Area is $x^2$ units")
        assert html.startswith("Area is <math")
        assert 'display="inline"' in html
        assert '<msup>' in html
        assert '$' not in html

    def test_block_math(self):
        """Double-dollar math becomes block MathML."""
        html = render_math("$$\\frac{1}{2}$$")
        assert 'display="block"' in html
        assert '<mfrac>' in html

    def test_paren_math(self):
        """`\\(...\\)` is inline math."""
        assert '<math' in render_math("\\(a+b\\)")

    def test_prices_untouched(self):
        """Dollar amounts are not math."""
        text = "It costs $5 or $ 10."
        assert render_math(text) == text

    def test_code_untouched(self):
        """Math syntax inside code is left alone."""
        text = "<code>$x$</code> and <pre>$$y$$</pre>"
        assert render_math(text) == text

    def test_math_through_markdown(self):
        """Math spans survive Markdown conversion and are then converted."""
        html = render_math(create_markdown_parser(math=True)("Euler: $e^{i\\pi} + 1 = 0$\n"))
        assert '<math' in html
        assert '$' not in html

    def test_bad_math(self):
        """A conversion failure names the location and expression."""
        with pytest.raises(MathConversionError) as exc_info:
            render_math("$$x^$$", 'posts/a')
        assert exc_info.value.location == 'posts/a'


class TestSmarten:
    """Test smart punctuation."""

    def test_dashes_and_apostrophes(self):
        """Dashes and apostrophes are converted."""
        html = smarten("<p>it's 1990 -- 2000 --- done</p>")
        assert '&#8217;' in html
        assert '&#8211;' in html
        assert '&#8212;' in html

    def test_escaped_quotes_curled(self):
        """Double quotes escaped by Markdown are curled."""
        html = smarten(create_markdown_parser()('He said "hi".\n'))
        assert '&#8220;hi&#8221;' in html

    def test_code_untouched(self):
        """Code keeps straight punctuation."""
        html = smarten("<code>a -- b</code>")
        assert html == "<code>a -- b</code>"


class TestMinify:
    """Test minification."""

    def test_whitespace_removed(self):
        """Whitespace between blocks is collapsed."""
        html = "<div>\n    <p>  a  </p>\n\n    <p>b</p>\n</div>\n"
        result = minify(html)
        assert len(result) < len(html)
        assert '\n' not in result

    def test_deterministic(self):
        """Identical input gives identical output."""
        html = "<html><head><style> body { color : red ; } </style></head><body> <p> x </p> </body></html>"
        assert minify(html) == minify(html)

    def test_embedded_css_and_js(self):
        """Style and script contents are compressed."""
        html = "<style>\n body { color : red ; }\n</style><script>\n var  a = 1 ;\n</script>"
        result = minify(html)
        assert 'body{color:red}' in result
        assert 'var a=1' in result

    def test_non_js_script_untouched(self):
        """Scripts that are not JavaScript keep their contents."""
        html = '<script type="text/template"><p>  {{ x }}  </p></script>'
        assert '<p>  {{ x }}  </p>' in minify(html)


class TestTemplateFilters:
    """Test the extra template filters."""

    def test_slugify(self):
        """Slugs are lower-case and hyphenated."""
        assert slugify("Hello, World!") == 'hello-world'
        assert slugify("  Quire  Docs_v2 ") == 'quire-docs-v2'

    def test_array_to_sentence_string(self):
        """Lists become English sentences."""
        assert array_to_sentence_string([]) == ''
        assert array_to_sentence_string(['a']) == 'a'
        assert array_to_sentence_string(['a', 'b']) == 'a and b'
        assert array_to_sentence_string(['a', 'b', 'c'], 'or') == 'a, b, or c'

    def test_pluralize(self):
        """Pick the singular only for one."""
        assert pluralize(1, 'post', 'posts') == 'post'
        assert pluralize(0, 'post', 'posts') == 'posts'

    def test_list_filters(self):
        """List filters return new lists."""
        items = [1, 2, 3]
        assert push(items, 4) == [1, 2, 3, 4]
        assert pop(items) == [1, 2]
        assert shift(items) == [2, 3]
        assert unshift(items, 0) == [0, 1, 2, 3]
        assert items == [1, 2, 3]

    def test_date_in_tz_offsets(self):
        """Dates are shifted into the given offset before formatting."""
        date = derive_date('2024-01-05T10:20:30Z', 'en_US', 'p')
        assert date_in_tz(date, '%Y-%m-%d %H:%M', '+0900') == '2024-01-05 19:20'
        assert date_in_tz('2024-01-05T23:30:00Z', '%Y-%m-%d %H:%M', '+05:30') == '2024-01-06 05:00'
        assert date_in_tz('2024-01-05T10:00:00+02:00', '%H:%M %z', -5) == '03:00 -0500'

    def test_date_in_tz_naive_datetime(self):
        """Naive datetimes are taken as UTC."""
        assert date_in_tz(datetime(2024, 1, 5, 12, 0), '%H:%M', '-0100') == '11:00'

    def test_date_in_tz_errors(self):
        """Unknown timezones and empty dates are rejected."""
        with pytest.raises(ValueError):
            date_in_tz('2024-01-05T10:00:00Z', '%H', 'Not/AZone')
        with pytest.raises(ValueError):
            date_in_tz(EMPTY_DATE, '%H', '+0000')

    def test_date_in_tz_in_template(self, quire, write_file):
        """The filter is available to templates."""
        path = write_file('p.quire', """---
date: 2024-01-05T10:20:30Z
markdown: false
math: false
---
{{ page.date | date_in_tz('%H:%M', '+0100') }}
""")
        assert quire.compile(quire.get_page(path)) == "11:20\n"

    def test_date_in_tz_bad_zone_in_template(self, quire, write_file):
        """A bad timezone in a template fails the page with its location."""
        path = write_file('tz.quire', "---\ndate: 2024-01-05T10:20:30Z\n---\n{{ page.date | date_in_tz('%H', 'Nowhere/Land') }}\n")
        with pytest.raises(TemplateRenderError) as exc_info:
            quire.compile(quire.get_page(path))
        assert 'tz' in exc_info.value.location


class TestPipeline:
    """Test the stages in sequence through a build session."""

    def test_identity_without_markdown_or_math(self, quire, write_file):
        """With Markdown and math off the template output is unchanged."""
        path = write_file('p.quire', """---
title: Plain
markdown: false
math: false
---
# {{ page.data.title }} costs $x$ -- "quoted"
""")
        assert quire.compile(quire.get_page(path)) == '# Plain costs $x$ -- "quoted"\n'

    def test_full_body(self, quire, write_file):
        """Markdown, math and punctuation are all applied."""
        path = write_file('p.quire', """---
title: Full
---
# {{ page.data.title }}

It's $a^2$.
""")
        html = quire.compile(quire.get_page(path))
        assert '<h1 id="full">Full</h1>' in html
        assert '<math' in html
        assert '&#8217;' in html

    def test_math_without_markdown(self, quire, write_file):
        """Math conversion runs on its own."""
        path = write_file('p.quire', "---\nmarkdown: false\n---\n$y$\n")
        html = quire.compile(quire.get_page(path))
        assert html.startswith('<math')

    def test_page_minify(self, quire, write_file):
        """Pages with `minify` set are minified."""
        path = write_file('p.quire', "---\nminify: true\n---\nOne\n\nTwo\n")
        assert quire.compile(quire.get_page(path)) == '<p>One</p><p>Two</p>'

    def test_global_variables(self, quire, write_file):
        """Global settings and the build date are visible to templates."""
        path = write_file('p.quire', """---
markdown: false
math: false
---
{{ global.title }} {{ global.locale }} {{ global.date.long_day }} {{ global.minify }}
""")
        assert quire.compile(quire.get_page(path)) == "Test Site en_US Friday False\n"

    def test_filters_available(self, quire, write_file):
        """Extra filters are registered on the environment."""
        path = write_file('p.quire', """---
markdown: false
math: false
tags: [a, b, c]
---
{{ page.data.tags | array_to_sentence_string }} {{ "My Title" | slugify }}
""")
        assert quire.compile(quire.get_page(path)) == "a, b, and c my-title\n"

    def test_undefined_variable(self, quire, write_file):
        """Unresolved names are template errors naming the page."""
        path = write_file('broken.quire', "{{ page.data.nothing }}\n")
        with pytest.raises(TemplateRenderError) as exc_info:
            quire.compile(quire.get_page(path))
        assert 'broken' in exc_info.value.location

    def test_template_syntax_error(self, quire, write_file):
        """Template syntax errors are template errors."""
        path = write_file('broken.quire', "{% if %}\n")
        with pytest.raises(TemplateRenderError):
            quire.compile(quire.get_page(path))

    @pytest.mark.parametrize('body', [
        "{{ page.data.title + 1 }}\n",
        "{{ 1 / 0 }}\n",
        "{{ page.data.tags[5] }}\n",
    ])
    def test_runtime_errors_are_template_errors(self, quire, write_file, body):
        """Python errors raised while expanding a template name the page."""
        path = write_file('runtime.quire', f"---\ntitle: Hi\ntags: [a]\n---\n{body}")
        with pytest.raises(TemplateRenderError) as exc_info:
            quire.compile(quire.get_page(path))
        assert 'runtime' in exc_info.value.location
