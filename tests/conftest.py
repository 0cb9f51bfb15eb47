"""Test configuration and fixtures for Quire tests."""

import pytest
import tempfile
import shutil
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from quire.core import Quire
from quire.settings import QuireSettings

# Jan 5 2024 is a Friday
BUILD_TIME = datetime(2024, 1, 5, 10, 20, 30, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def site_dir(temp_dir):
    """Create a site directory with a global config, layouts/ and snippets/."""
    site = Path(temp_dir) / 'site'
    (site / 'layouts').mkdir(parents=True)
    (site / 'snippets').mkdir(parents=True)

    (site / '_global.yml').write_text("""locale: en_US
minify: false
title: Test Site
""")

    (site / 'snippets' / 'greet.html').write_text('Hello, {{ snippet.name }}!')

    return str(site)


@pytest.fixture
def write_file(site_dir):
    """Write a file relative to the site directory and return its path."""
    def _write(relative_path, content):
        path = Path(site_dir) / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding='utf-8')
        return str(path)
    return _write


@pytest.fixture
def global_config(site_dir):
    """Global config stamped with a fixed build time."""
    return QuireSettings(site_dir).load_global(now=BUILD_TIME)


@pytest.fixture
def quire(site_dir, global_config):
    """A build session over the test site."""
    return Quire(site_dir=site_dir, global_config=global_config)


@pytest.fixture
def output_dir(temp_dir):
    """Create an output directory."""
    output_dir = Path(temp_dir) / 'output'
    output_dir.mkdir()
    return str(output_dir)
