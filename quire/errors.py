"""
Exceptions raised while building a Quire site.

Every error carries enough context (file, field, value) to locate the
offending input. All of them are fatal to the page being compiled; the build
session collects them and raises a single BuildError at the end of the run.
"""

from typing import List, Sequence


class QuireError(Exception):
    """Base exception for all Quire errors."""

    pass


class FileReadError(QuireError):
    """Raised when a page, layout, snippet or config file cannot be read."""

    def __init__(self, path: str, reason: str = "file not found"):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read {path}: {reason}")


class MetadataParseError(QuireError):
    """Raised when a frontmatter block is not a valid YAML mapping."""

    def __init__(self, path: str, raw: str, reason: str = ""):
        self.path = path
        self.raw = raw
        self.reason = reason
        message = f"Invalid frontmatter in {path}"
        if reason:
            message += f": {reason}"
        super().__init__(f"{message}\n---\n{raw}\n---")


class MetadataTypeError(QuireError):
    """Raised when a recognized metadata key holds a value of the wrong type."""

    def __init__(self, key: str, value, path: str, expected: str):
        self.key = key
        self.value = value
        self.path = path
        self.expected = expected
        super().__init__(
            f"Metadata key '{key}' in {path} must be a {expected}, got {value!r}"
        )


class DateParseError(QuireError):
    """Raised when a `date` value is not a timezone-qualified timestamp."""

    def __init__(self, value, path: str):
        self.value = value
        self.path = path
        super().__init__(
            f"Could not parse date {value!r} in {path} "
            "(expected a timestamp such as 2024-01-05T10:20:30Z)"
        )


class TemplateRenderError(QuireError):
    """Raised when the template engine fails to parse or render text."""

    def __init__(self, location: str, cause: Exception):
        self.location = location
        self.cause = cause
        super().__init__(f"Could not render the template at {location}: {cause}")


class MathConversionError(QuireError):
    """Raised when a math expression cannot be converted to MathML."""

    def __init__(self, location: str, expression: str, cause: Exception = None):
        self.location = location
        self.expression = expression
        self.cause = cause
        message = f"Could not convert math {expression!r} at {location}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class SnippetCallError(QuireError):
    """Raised when an inline snippet call is malformed or cannot be resolved."""

    def __init__(self, call: str, reason: str):
        self.call = call
        self.reason = reason
        super().__init__(f"Invalid snippet call {call!r}: {reason}")


class LayoutCycleError(QuireError):
    """Raised when a layout (transitively) declares itself as its parent."""

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__(f"Layout cycle detected: {' -> '.join(self.chain)}")


class ConfigError(QuireError):
    """Raised when the global configuration file is unreadable or malformed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration file {path}: {reason}")


class BuildError(QuireError):
    """Raised at the end of a build run when one or more pages failed."""

    def __init__(self, errors: List[QuireError]):
        self.errors = list(errors)
        lines = [f"{len(self.errors)} page(s) failed to build:"]
        lines.extend(f"  - {error}" for error in self.errors)
        super().__init__("\n".join(lines))


class OutputError(QuireError):
    """Raised when a compiled page cannot be written to the output directory."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write {path}: {reason}")
