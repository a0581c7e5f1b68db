import os

import pytest

from showshelf.errors import PathEncodingError
from showshelf.utils.paths import is_within, normalize


@pytest.mark.parametrize("raw", [
    "relative/show",
    "/library/shows/../shows/Show A/",
    "/library//double///slash",
    "./here",
])
def test_normalize_is_idempotent(raw):
    key = normalize(raw, casefold=False)
    assert normalize(key, casefold=False) == key


def test_normalize_collapses_dots_and_separators(tmp_path):
    a = normalize(str(tmp_path / "a" / ".." / "b"), casefold=False)
    b = normalize(str(tmp_path) + "//b/", casefold=False)
    assert a == b
    assert a.endswith("/b")


def test_symlink_resolves_to_target_key(tmp_path):
    target = tmp_path / "real"
    target.mkdir()
    link = tmp_path / "link"
    try:
        os.symlink(target, link)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported here")
    assert normalize(link, casefold=False) == normalize(target, casefold=False)
    assert normalize(link, casefold=False, resolve=False) != normalize(target, casefold=False)


def test_casefold_makes_case_irrelevant():
    assert normalize("/Shows/Vinland SAGA", casefold=True) == normalize("/shows/vinland saga", casefold=True)
    assert normalize("/Shows/A", casefold=False) != normalize("/shows/a", casefold=False)


def test_unicode_forms_compare_equal():
    decomposed = "/shows/Poke\u0301mon"
    composed = "/shows/Pok\u00e9mon"
    assert normalize(decomposed, casefold=False) == normalize(composed, casefold=False)


def test_bytes_paths_are_accepted():
    assert normalize(b"/shows/a", casefold=False) == normalize("/shows/a", casefold=False)


def test_invalid_utf8_bytes_raise():
    with pytest.raises(PathEncodingError):
        normalize(b"/shows/\xff\xfe", casefold=False)


def test_surrogate_escaped_names_raise():
    with pytest.raises(PathEncodingError):
        normalize("/shows/bad\udcff", casefold=False)


def test_empty_path_raises():
    with pytest.raises(PathEncodingError):
        normalize("")


def test_is_within():
    assert is_within("/media/show/ep.mkv", "/media/show")
    assert is_within("/media/show", "/media/show")
    assert not is_within("/media/showcase/ep.mkv", "/media/show")
    assert is_within("/media/a", "/")
