"""
Parser for field tag strings, e.g. `env:"HOME" map:"home_dir"`.
"""

import re

from .errors import MalformedTagError


_ESCAPE_PATTERN = re.compile(
    r"\\(x[0-9a-fA-F]{2}|[0-7]{3}|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|.)", re.DOTALL
)

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    '"': '"',
}


def _unescape(body: str) -> str:
    def replace(match: re.Match[str]) -> str:
        seq = match.group(1)
        if len(seq) == 1:
            if seq not in _SIMPLE_ESCAPES:
                raise ValueError(f"unknown escape sequence \\{seq}")
            return _SIMPLE_ESCAPES[seq]
        if seq[0] in "xuU":
            code = int(seq[1:], 16)
            if 0xD800 <= code <= 0xDFFF:
                raise ValueError(f"surrogate code point in escape: \\{seq}")
            return chr(code)
        code = int(seq, 8)
        if code > 0xFF:
            raise ValueError(f"octal escape value > 255: \\{seq}")
        return chr(code)

    return _ESCAPE_PATTERN.sub(replace, body)


def _is_control(c: str) -> bool:
    code = ord(c)
    return code < 0x20 or code == 0x7F


def _control_char_error(raw: str, pos: int) -> MalformedTagError:
    return MalformedTagError(
        raw,
        f"unexpected control character (code {ord(raw[pos])}) at position {pos}",
    )


def parse_tags(raw: str) -> dict[str, str]:
    """
    Parse a tag string made of space separated `key:"value"` pairs.

    Values are double-quoted and may contain backslash escapes (e.g. `\\"`).
    When a key appears more than once, the first value wins.

    Raises:
        MalformedTagError: If the string doesn't follow the grammar above. The
            message always embeds the raw tag text.
    """
    tags: dict[str, str] = {}
    n = len(raw)
    pos = 0
    while True:
        while pos < n and raw[pos] == " ":
            pos += 1
        if pos >= n:
            return tags

        # Scan the name up to the colon. Spaces, quotes and control characters end it.
        start = pos
        while (
            pos < n
            and raw[pos] > " "
            and raw[pos] not in (":", '"')
            and not _is_control(raw[pos])
        ):
            pos += 1
        if pos < n and _is_control(raw[pos]):
            raise _control_char_error(raw, pos)
        if pos == start:
            raise MalformedTagError(raw, "missing name")
        if pos >= n or raw[pos] != ":":
            raise MalformedTagError(raw, "missing colon after name")
        name = raw[start:pos]
        pos += 1

        if pos < n and _is_control(raw[pos]):
            raise _control_char_error(raw, pos)
        if pos >= n or raw[pos] != '"':
            raise MalformedTagError(raw, "missing quotes")

        # Scan the quoted value, skipping escaped characters.
        value_start = pos
        pos += 1
        while pos < n and raw[pos] != '"':
            if raw[pos] == "\\":
                pos += 1
                if pos >= n:
                    break
            if _is_control(raw[pos]):
                raise _control_char_error(raw, pos)
            pos += 1
        if pos >= n:
            raise MalformedTagError(raw, "missing end quote")
        pos += 1

        quoted = raw[value_start:pos]
        try:
            value = _unescape(quoted[1:-1])
        except ValueError as e:
            raise MalformedTagError(raw, f"invalid quoted value {quoted}") from e
        tags.setdefault(name, value)

        if pos < n and raw[pos] != " ":
            if _is_control(raw[pos]):
                raise _control_char_error(raw, pos)
            raise MalformedTagError(raw, "missing space after value")
