"""Encoding of environment variables for systemd's ``EnvironmentFile=``.

systemd reads a double-quoted value as one logical value even when it spans
several lines, so quoting the value and escaping the quotes it contains is
enough to carry arbitrary text across the re-exec boundary.
"""

from __future__ import annotations

from typing import Iterable, Mapping


def encode(key: str, value: str) -> str:
    """Return the ``KEY="value"`` line for one variable."""

    escaped = value.replace('"', '\\"')
    return f'{key}="{escaped}"\n'


def encode_environment(
    environ: Mapping[str, str], ignore: Iterable[str] = ()
) -> str:
    """Encode every variable of *environ* whose name is not in *ignore*."""

    ignored = frozenset(ignore)
    return "".join(
        encode(key, value) for key, value in environ.items() if key not in ignored
    )


def decode(text: str) -> dict[str, str]:
    """Parse text produced by :func:`encode_environment` back into a mapping."""

    values: dict[str, str] = {}
    pos = 0
    length = len(text)
    while pos < length:
        if text[pos] == "\n":
            pos += 1
            continue
        eq = text.index("=", pos)
        key = text[pos:eq]
        if eq + 1 >= length or text[eq + 1] != '"':
            raise ValueError(f"Unquoted value for {key!r}")
        pos = eq + 2
        chunks: list[str] = []
        while True:
            if pos >= length:
                raise ValueError(f"Unterminated value for {key!r}")
            char = text[pos]
            if char == "\\" and pos + 1 < length and text[pos + 1] == '"':
                chunks.append('"')
                pos += 2
            elif char == '"':
                pos += 1
                break
            else:
                chunks.append(char)
                pos += 1
        values[key] = "".join(chunks)
    return values


__all__ = ["decode", "encode", "encode_environment"]
