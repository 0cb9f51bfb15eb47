"""
Frontmatter handling: splitting a source file into its metadata block and
body, parsing the metadata block, and reading recognized keys with type checks.
"""

from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import MetadataParseError, MetadataTypeError

DELIMITER = '---'

# Stands in for a missing or empty metadata block so parsing never fails on absence.
EMPTY_FRONTMATTER = 'empty: true'


class FrontmatterLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamps as plain strings."""


FrontmatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != 'tag:yaml.org,2002:timestamp']
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def split_frontmatter(text: str) -> Tuple[str, str]:
    """
    Split a source file into (metadata_text, body_text).

    The first line that is exactly '---' opens the metadata block and the next
    one closes it. Any later '---' lines belong to the body. Lines end only
    at '\\n' (with an optional '\\r' before it); body lines keep everything
    else they contain.
    """
    begin = False
    end = False
    frontmatter_lines = []
    body = []

    lines = text.split('\n')
    if lines[-1] == '':
        lines.pop()

    for line in lines:
        stripped = line[:-1] if line.endswith('\r') else line
        if not begin and stripped == DELIMITER:
            begin = True
        elif begin and not end and stripped == DELIMITER:
            end = True
        elif begin and not end:
            frontmatter_lines.append(stripped)
        else:
            body.append(line + '\n')

    frontmatter = '\n'.join(frontmatter_lines)
    if not frontmatter.strip():
        frontmatter = EMPTY_FRONTMATTER

    return frontmatter, ''.join(body)


def parse_metadata(raw: str, path: str) -> Dict[str, Any]:
    """Parse a metadata block into a mapping."""
    try:
        metadata = yaml.load(raw, Loader=FrontmatterLoader)
    except yaml.YAMLError as e:
        raise MetadataParseError(path, raw, str(e)) from e

    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise MetadataParseError(path, raw, f"expected a mapping, got {type(metadata).__name__}")

    return {str(key): value for key, value in metadata.items()}


def get_str(data: Dict[str, Any], key: str, path: str, default: Optional[str] = None) -> Optional[str]:
    """Return a string-valued key, or `default` when the key is absent."""
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, str):
        raise MetadataTypeError(key, value, path, 'string')
    return value


def get_bool(data: Dict[str, Any], key: str, path: str, default: bool) -> bool:
    """Return a boolean-valued key, or `default` when the key is absent."""
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, bool):
        raise MetadataTypeError(key, value, path, 'boolean')
    return value


def parse_scalar(text: str) -> Any:
    """
    Parse a bare value with the metadata scalar rules.

    Booleans and numbers come back typed; anything else is returned as the
    original text.
    """
    try:
        value = yaml.load(text, Loader=FrontmatterLoader)
    except yaml.YAMLError:
        return text
    if isinstance(value, (bool, int, float)):
        return value
    return text
