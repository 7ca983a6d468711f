import pytest

from pluginhost.semver.semver import (
    PluginVersion,
    compareRawVersions,
    parsePluginVersion,
    tryParsePluginVersion,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1",        (1, 0, 0, (), ())),
        ("1.2",      (1, 2, 0, (), ())),
        ("1.2.3",    (1, 2, 3, (), ())),
        ("0.0.1",    (0, 0, 1, (), ())),
        ("v1.2.3",   (1, 2, 3, (), ())),
        (" 2.0.0 ",  (2, 0, 0, (), ())),
        ("1.2.3-beta.1",        (1, 2, 3, ("beta", "1"), ())),
        ("1.2.3+build.7",       (1, 2, 3, (), ("build", "7"))),
        ("1.2.3-rc+exp.sha",    (1, 2, 3, ("rc",), ("exp", "sha"))),
    ],
)
def test_parsePluginVersion_valid(raw, expected):
    v = parsePluginVersion(raw)
    assert (v.major, v.minor, v.patch, v.prerelease, v.build) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "   ", ".1", "1.", "1..2", "1.2.3.4", "01.2.3", "1.2.3-", "1.2.3+", "v", "vv1.2.3", "abc"],
)
def test_parsePluginVersion_invalid(raw):
    with pytest.raises(ValueError):
        parsePluginVersion(raw)


def test_parsePluginVersion_rejects_non_string():
    with pytest.raises(TypeError):
        parsePluginVersion(123)  # type: ignore[arg-type]


def test_tryParsePluginVersion_returns_none_for_garbage():
    assert tryParsePluginVersion("not-a-version") is None
    assert tryParsePluginVersion(None) is None
    assert tryParsePluginVersion("1.0") == PluginVersion(1, 0, 0)


@pytest.mark.parametrize(
    "a, b",
    [
        ("1.0.0", "1.0.1"),
        ("1.9.0", "1.10.0"),
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-beta.2", "1.0.0-beta.11"),
        ("1.0.0-rc.1", "1.0.0"),
        ("1", "1.0.1"),
    ],
)
def test_pluginVersion_ordering(a, b):
    assert parsePluginVersion(a) < parsePluginVersion(b)
    assert parsePluginVersion(b) > parsePluginVersion(a)


def test_build_metadata_ignored_in_comparison():
    a = parsePluginVersion("1.0.0+build.1")
    b = parsePluginVersion("1.0.0+build.2")
    assert a == b
    assert hash(a) == hash(b)
    assert a == parsePluginVersion("1")


def test_compareRawVersions_is_ordinal():
    assert compareRawVersions("abc", "abc") == 0
    assert compareRawVersions("abc", "abd") == -1
    assert compareRawVersions("b", "a") == 1
    # Ordinal, not numeric.
    assert compareRawVersions("10", "9") == -1
