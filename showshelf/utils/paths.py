"""
Path normalizer

Turns filesystem paths into NormalizedKey strings. Two paths that denote the
same filesystem object yield the same key, and normalizing a key again returns
it unchanged. Rescans match shows and episodes by key equality only.
"""
from __future__ import annotations

import os
import sys
import unicodedata
from typing import NewType, Optional, Union

from showshelf.errors import PathEncodingError

__all__ = [
    "NormalizedKey",
    "is_within",
    "normalize",
]

NormalizedKey = NewType("NormalizedKey", str)

PathInput = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]

# Default filesystems on Windows and macOS are case-insensitive
_CASE_INSENSITIVE = os.name == "nt" or sys.platform == "darwin"


def _decode(path: PathInput) -> str:
    raw = os.fspath(path)
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PathEncodingError(f"Path is not valid UTF-8: {raw!r}") from e
    else:
        text = raw
        try:
            # lone surrogates come from undecodable names (surrogateescape)
            text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise PathEncodingError(f"Path contains undecodable characters: {text!r}") from e
    if not text:
        raise PathEncodingError("Empty path")
    if "\x00" in text:
        raise PathEncodingError(f"Path contains a NUL byte: {text!r}")
    return text


def normalize(path: PathInput, *, casefold: Optional[bool] = None, resolve: bool = True) -> NormalizedKey:
    """Return the canonical key for *path*.

    Absolute, symlinks resolved (unless ``resolve`` is false), ``.``/``..``
    collapsed, NFC Unicode form, ``/`` as separator, case-folded when the
    platform's filesystem ignores case (or when ``casefold`` says so).
    """
    text = _decode(path)
    if resolve:
        text = os.path.realpath(text)
    else:
        text = os.path.abspath(text)
    text = os.path.normpath(text)
    text = unicodedata.normalize("NFC", text)
    if os.sep != "/":
        text = text.replace(os.sep, "/")
    if casefold is None:
        casefold = _CASE_INSENSITIVE
    if casefold:
        text = text.casefold()
    return NormalizedKey(text)


def is_within(key: str, root_key: str) -> bool:
    """True if *key* is *root_key* or lies below it."""
    if key == root_key:
        return True
    prefix = root_key if root_key.endswith("/") else root_key + "/"
    return key.startswith(prefix)
