"""
Inline snippet calls.

A snippet call looks like

    {! snippet greet.html name="Jane Doe" count=3 !}

and may appear anywhere in template-expanded text. This module finds the
calls in a piece of text and parses each one into a SnippetCall; rendering
the snippet itself is the build session's job.

Grammar, over whitespace-separated tokens between the `{!` and `!}` markers:

    call     := 'snippet' NAME argument*
    argument := KEY '=' VALUE
    VALUE    := STRING | WORD

A STRING is double-quoted and may contain spaces, `=` and `\\"` escapes; it
is always a string. A WORD is parsed with the metadata scalar rules, so
`3` is an int and `true` a bool.
"""

import re
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .errors import SnippetCallError
from .frontmatter import parse_scalar

OPEN = '{!'
CLOSE = '!}'
KEYWORD = 'snippet'
# Whitespace after '{!' is optional, after the keyword it is required
CALL_START_RE = re.compile(r'\{!\s*' + KEYWORD + r'\s')
QUOTE = '"'
ESCAPE = '\\'

WORD = 'WORD'
STRING = 'STRING'
EQUALS = 'EQUALS'

Token = namedtuple('Token', ['kind', 'value'])


@dataclass
class SnippetCall:
    """One parsed inline call; lives only while it is being resolved."""

    source: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


def find_snippet_calls(text: str) -> List[str]:
    """
    Return the distinct snippet calls in `text`, in order of appearance.

    Each candidate starts at `{!` and runs to its matching closing brace, so
    braces nested inside a call are balanced and braces inside a quoted
    argument do not count. A candidate is a call only when `{!` is followed by
    the `snippet` keyword (spaces before it optional); anything else is left alone.
    """
    calls = []
    position = text.find(OPEN)

    while position != -1:
        end = _match_braces(text, position)
        if end is None:
            if CALL_START_RE.match(text, position):
                raise SnippetCallError(text[position:position + 60], "unterminated snippet call")
            position = text.find(OPEN, position + len(OPEN))
            continue

        span = text[position:end]
        if CALL_START_RE.match(span):
            if span not in calls:
                calls.append(span)
            position = text.find(OPEN, end)
        else:
            position = text.find(OPEN, position + len(OPEN))

    return calls


def _match_braces(text: str, start: int):
    """Return the index just past the brace closing the one at `start`."""
    depth = 0
    in_quote = False
    escaped = False

    for index in range(start, len(text)):
        character = text[index]
        if in_quote:
            if escaped:
                escaped = False
            elif character == ESCAPE:
                escaped = True
            elif character == QUOTE:
                in_quote = False
        elif character == QUOTE:
            in_quote = True
        elif character == '{':
            depth += 1
        elif character == '}':
            depth -= 1
            if depth == 0:
                return index + 1

    return None


def tokenize(call: str) -> List[Token]:
    """Split the inside of a snippet call into tokens."""
    if not (call.startswith(OPEN) and call.endswith(CLOSE)) or len(call) < len(OPEN) + len(CLOSE):
        raise SnippetCallError(call, f"a snippet call must be wrapped in '{OPEN}' and '{CLOSE}'")

    body = call[len(OPEN):-len(CLOSE)]
    tokens = []
    position = 0

    while position < len(body):
        character = body[position]
        if character.isspace():
            position += 1
        elif character == '=':
            tokens.append(Token(EQUALS, '='))
            position += 1
        elif character == QUOTE:
            value, position = _read_string(call, body, position + 1)
            tokens.append(Token(STRING, value))
        else:
            end = position
            while end < len(body) and not body[end].isspace() and body[end] not in ('=', QUOTE):
                end += 1
            tokens.append(Token(WORD, body[position:end]))
            position = end

    return tokens


def _read_string(call: str, body: str, position: int):
    """Read a quoted string starting just after its opening quote."""
    value = []
    while position < len(body):
        character = body[position]
        if character == ESCAPE and position + 1 < len(body) and body[position + 1] in (QUOTE, ESCAPE):
            value.append(body[position + 1])
            position += 2
        elif character == QUOTE:
            return ''.join(value), position + 1
        else:
            value.append(character)
            position += 1
    raise SnippetCallError(call, "unterminated quoted value")


def parse_snippet_call(call: str) -> SnippetCall:
    """Parse one snippet call into its name and typed arguments."""
    tokens = tokenize(call)

    if not tokens or tokens[0] != Token(WORD, KEYWORD):
        raise SnippetCallError(call, f"expected the '{KEYWORD}' keyword")
    if len(tokens) < 2 or tokens[1].kind == EQUALS or not tokens[1].value:
        raise SnippetCallError(call, "missing snippet name")

    name = tokens[1].value
    arguments = {}
    position = 2

    while position < len(tokens):
        key = tokens[position]
        if key.kind != WORD:
            raise SnippetCallError(call, f"expected an argument name, got {key.value!r}")
        if position + 1 >= len(tokens) or tokens[position + 1].kind != EQUALS:
            raise SnippetCallError(call, f"argument '{key.value}' is missing '='")
        if position + 2 >= len(tokens) or tokens[position + 2].kind == EQUALS:
            raise SnippetCallError(call, f"argument '{key.value}' is missing a value")

        value = tokens[position + 2]
        if value.kind == STRING:
            arguments[key.value] = value.value
        else:
            arguments[key.value] = parse_scalar(value.value)
        position += 3

    return SnippetCall(source=call, name=name, arguments=arguments)
