from romtag.common import sanitize_dirname, uniq


def test_uniq() -> None:
    assert uniq(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
    assert uniq([]) == []


def test_sanitize_dirname() -> None:
    assert sanitize_dirname("0.261 (mame0261)") == "0.261_(mame0261)"
    assert sanitize_dirname("a/b:c") == "a_b_c"
    assert sanitize_dirname("  ") == "_"
