#!/usr/bin/env python3
"""
Command-line interface for Quire - static site build engine.
"""

import os
import sys
import argparse
import time
from typing import List, Optional

from . import __version__
from .core import Quire, LAYOUTS_DIR, SNIPPETS_DIR
from .errors import BuildError, QuireError
from .settings import QuireSettings


def create_starter_structure(site_dir: str) -> None:
    """Create the layouts and snippets directories plus a sample layout and page."""
    for directory in [LAYOUTS_DIR, SNIPPETS_DIR]:
        dir_path = os.path.join(site_dir, directory)
        if os.path.exists(dir_path):
            print(f"Directory already exists: {directory}")
        else:
            os.makedirs(dir_path, exist_ok=True)
            print(f"Created directory: {directory}")

    samples = {
        os.path.join(LAYOUTS_DIR, 'default.quire'): """---
markdown: false
---
<!DOCTYPE html>
<html lang="{{ global.locale[:2] }}">
<head>
    <title>{{ page.data.title }} | {{ global.title }}</title>
</head>
<body>
{{ page.content }}
</body>
</html>
""",
        os.path.join(SNIPPETS_DIR, 'greet.html'): """<p class="greeting">Hello, {{ snippet.name }}!</p>
""",
        'index.quire': """---
title: index
layout: default
permalink: /index.html
---
# Welcome

{! snippet greet.html name="new Quire user" !}

This page was built on {{ global.date.long_day }}, {{ global.date.long_month }} {{ global.date.i_day }}.
""",
    }

    for relative_path, content in samples.items():
        path = os.path.join(site_dir, relative_path)
        if os.path.exists(path):
            print(f"Sample file already exists: {relative_path}")
        else:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
            print(f"Created sample file: {relative_path}")


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description='Quire - Static Site Build Engine')
    parser.add_argument('paths', nargs='*',
                        help='Page files or directories to build (defaults to the site directory)')
    parser.add_argument('--site', type=str, default='.',
                        help='Site directory containing _global.yml, layouts/ and snippets/')
    parser.add_argument('--output', type=str, default='output',
                        help='Output directory for rendered pages')
    parser.add_argument('--log-file', action='store_true',
                        help='Also write a detailed build log under logs/')
    parser.add_argument('--init', action='store_true',
                        help='Create a sample configuration file and starter structure')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    args = parser.parse_args(argv)

    if args.init:
        try:
            config_path = QuireSettings(args.site).create_sample_config()
        except QuireError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Created sample configuration file: {config_path}")

        print("\nCreating starter project structure...")
        create_starter_structure(args.site)
        print("\nYour new Quire site is ready! Run 'quire' to build it.")
        return

    output_dir = os.path.expanduser(args.output)
    overall_start_time = time.time()

    try:
        generator = Quire(site_dir=args.site, log_to_file=args.log_file)
        sources = generator.collect_sources(args.paths or [args.site])
        if not sources:
            generator.logger.warning("No page sources found to build.")
            return

        results = generator.build(sources)
        generator.write(results, output_dir)

        total_time = time.time() - overall_start_time
        generator.logger.info(f"Build completed in {total_time:.6f} seconds.")
    except BuildError as e:
        # Each failure has already been logged
        print(f"Error: {len(e.errors)} page(s) failed to build", file=sys.stderr)
        sys.exit(1)
    except QuireError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
