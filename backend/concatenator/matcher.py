"""Glob-style path selection.

Patterns are tokenized into literal runs and wildcards and translated into an
anchored regular expression. ``*`` matches any sequence of characters
(including ``/``) and ``?`` matches exactly one character; everything else is
literal. A pattern ending in ``/`` additionally matches every path that starts
with the pattern text, so ``dist/`` selects the whole ``dist`` subtree.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence

from .models import SelectionMode, TreeEntry

ANY_SEQUENCE = "*"
ANY_CHAR = "?"


@dataclass(frozen=True)
class Token:
    kind: str # 'literal', 'any_sequence' or 'any_char'
    text: str = ""


def tokenize(pattern: str) -> List[Token]:
    tokens: List[Token] = []
    literal: List[str] = []
    for char in pattern:
        if char in (ANY_SEQUENCE, ANY_CHAR):
            if literal:
                tokens.append(Token("literal", "".join(literal)))
                literal = []
            tokens.append(Token("any_sequence" if char == ANY_SEQUENCE else "any_char"))
        else:
            literal.append(char)
    if literal:
        tokens.append(Token("literal", "".join(literal)))
    return tokens


def translate(pattern: str) -> str:
    """Returns a regular expression matching exactly the paths ``pattern`` describes."""
    parts = []
    for token in tokenize(pattern):
        if token.kind == "any_sequence":
            parts.append(".*")
        elif token.kind == "any_char":
            parts.append(".")
        else:
            parts.append(re.escape(token.text))
    return "".join(parts)


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> Optional["re.Pattern[str]"]:
    try:
        return re.compile(translate(pattern), re.DOTALL)
    except re.error: # Never expected after escaping, but a bad pattern must only fail to match
        return None


def is_directory_pattern(pattern: str) -> bool:
    return pattern.endswith("/")


def pattern_matches(path: str, pattern: str) -> bool:
    regex = _compile(pattern)
    if regex is not None and regex.fullmatch(path):
        return True
    return is_directory_pattern(pattern) and path.startswith(pattern)


def is_match(path: str, patterns: Iterable[str]) -> bool:
    """True when any of ``patterns`` matches ``path``. No patterns, no match."""
    return any(pattern_matches(path, pattern) for pattern in patterns)


def is_selected(entry: TreeEntry, mode: SelectionMode,
                whitelist: Sequence[str], blacklist: Sequence[str]) -> bool:
    if not entry.is_blob:
        return False
    if is_match(entry.path, blacklist):
        return False
    if mode == SelectionMode.minimal:
        return is_match(entry.path, whitelist)
    return True


def select_files(tree: Iterable[TreeEntry], mode: SelectionMode,
                 whitelist: Sequence[str], blacklist: Sequence[str]) -> List[TreeEntry]:
    """Applies the selection policy to every blob entry, preserving tree order."""
    return [entry for entry in tree if is_selected(entry, mode, whitelist, blacklist)]
