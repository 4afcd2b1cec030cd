# tests/test_matcher.py
from __future__ import annotations

import re

import pytest

from concatenator.matcher import Token, is_match, pattern_matches, select_files, tokenize, translate
from concatenator.models import DEFAULT_BLACKLIST, SelectionMode, TreeEntry


def entries(*specs):
    return [TreeEntry(path=p, type=t) for p, t in specs]


def test_tokenize_splits_literals_and_wildcards():
    assert tokenize("src/*.p?") == [
        Token("literal", "src/"),
        Token("any_sequence"),
        Token("literal", ".p"),
        Token("any_char"),
    ]
    assert tokenize("") == []


def test_translate_escapes_regex_metacharacters():
    regex = translate("a+b(c).txt")
    assert re.fullmatch(regex, "a+b(c).txt")
    assert not re.fullmatch(regex, "aab(c)xtxt")


@pytest.mark.parametrize("path, pattern, expected", [
    ("icons/logo.svg", "*.svg", True),
    ("logo.svg", "*.svg", True),
    ("logo.svg.bak", "*.svg", False),
    ("src/a.ts", "src/*.ts", True),
    ("src/deep/a.ts", "src/*.ts", True),
    ("src/a.ts", "src/?.ts", True),
    ("src/ab.ts", "src/?.ts", False),
    ("my.app.js", "*.min.*", False),
    ("vendor/jquery.min.js", "*.min.*", True),
    ("README.md", "README.md", True),
    ("docs/README.md", "README.md", False),
    ("READMEXmd", "README.md", False),
    (".env.local", ".env*", True),
])
def test_pattern_is_anchored_to_whole_path(path, pattern, expected):
    assert pattern_matches(path, pattern) is expected


def test_directory_pattern_matches_by_prefix():
    assert is_match("dist/bundle/app.js", ["dist/"])
    assert is_match("node_modules/", ["node_modules/"])
    assert not is_match("src/dist/app.js", ["dist/"])
    # prefix rule only applies to patterns ending in '/'
    assert not is_match("dist/bundle/app.js", ["dist"])


def test_empty_pattern_list_never_matches():
    assert not is_match("anything", [])
    assert not is_match("", [])


def test_match_is_or_across_patterns():
    assert is_match("a.py", ["*.ts", "*.py"])
    assert is_match("a.py", ["*.py", "*.ts"])
    assert not is_match("a.rb", ["*.ts", "*.py"])


def test_unusual_patterns_do_not_raise():
    assert not is_match("src/a.py", ["[unclosed"])
    assert is_match("[unclosed", ["[unclosed"])
    assert not is_match("src/a.py", ["(", "\\"])


def test_default_blacklist_components_ui_rule():
    assert is_match("app/components/ui/button.tsx", DEFAULT_BLACKLIST)
    assert is_match("yarn.lock", DEFAULT_BLACKLIST)
    assert not is_match("app/page.tsx", DEFAULT_BLACKLIST)


def test_minimal_mode_requires_whitelist_and_respects_blacklist():
    tree = entries(("src", "tree"), ("src/a.py", "blob"), ("src/a_test.py", "blob"), ("setup.cfg", "blob"))
    selected = select_files(tree, SelectionMode.minimal, ["src/*.py"], ["*_test.py"])
    assert [e.path for e in selected] == ["src/a.py"]


def test_minimal_mode_with_empty_whitelist_selects_nothing():
    tree = entries(("a.py", "blob"), ("b.py", "blob"))
    assert select_files(tree, SelectionMode.minimal, [], []) == []
    assert select_files(tree, SelectionMode.minimal, [], ["*.md"]) == []


def test_full_mode_ignores_whitelist():
    tree = entries(("README.md", "blob"), ("src/a.ts", "blob"), ("src/b.ts", "blob"))
    selected = select_files(tree, SelectionMode.full, ["nothing-matches"], ["README.md"])
    assert [e.path for e in selected] == ["src/a.ts", "src/b.ts"]


def test_directory_entries_are_never_selected():
    tree = entries(("src", "tree"), ("lib", "commit"), ("src/a.ts", "blob"))
    for mode in SelectionMode:
        selected = select_files(tree, mode, ["*"], [])
        assert [e.path for e in selected] == ["src/a.ts"]


def test_selection_preserves_tree_order():
    tree = entries(("z.py", "blob"), ("a.py", "blob"), ("m.py", "blob"))
    selected = select_files(tree, SelectionMode.full, [], [])
    assert [e.path for e in selected] == ["z.py", "a.py", "m.py"]
