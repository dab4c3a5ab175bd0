"""
Title extraction and normalization for solved-status matching.

Cards mark solved problems in bold, usually with the problem number:

    Solved: **3044. Most Frequent Prime**

Bold spans are found by pairing ``**`` tokens left to right within each line.
A token without a partner on its line is not a match. Nested or mixed
emphasis is not interpreted.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

BOLD_MARKER = "**"

_NUMBER_PREFIX = re.compile(r"^\d+\.\s*")


def _line_spans(line: str) -> list[str]:
    spans: list[str] = []
    pos = 0
    marker_len = len(BOLD_MARKER)
    while True:
        start = line.find(BOLD_MARKER, pos)
        if start < 0:
            break
        end = line.find(BOLD_MARKER, start + marker_len)
        if end < 0:
            break  # unpaired opener
        inner = line[start + marker_len:end]
        if inner.strip():
            spans.append(inner)
        pos = end + marker_len
    return spans


def extract_bold_spans(content: str) -> list[str]:
    """
    Return the text between each pair of bold markers, in order.

    Markers pair within a line; a stray marker never reaches into the next line.

    >>> extract_bold_spans("a **b** c **d**")
    ['b', 'd']
    >>> extract_bold_spans("**open only")
    []
    >>> extract_bold_spans("use a ** map\\n**3Sum**")
    ['3Sum']
    """
    spans: list[str] = []
    if not content:
        return spans

    for line in content.splitlines():
        spans.extend(_line_spans(line))
    return spans


def normalize_title(title: str, strip_number_prefix: bool = False) -> str:
    """
    Lowercase and trim a title; optionally drop a leading ``<digits>.`` prefix.

    >>> normalize_title("  3044. Most Frequent Prime ", strip_number_prefix=True)
    'most frequent prime'
    """
    normalized = title.lower().strip()
    if strip_number_prefix:
        normalized = _NUMBER_PREFIX.sub("", normalized)
    return normalized


def extract_card_titles(content: str) -> set[str]:
    """Normalized titles found in one card's content."""
    titles = set()
    for span in extract_bold_spans(content):
        title = normalize_title(span, strip_number_prefix=True)
        if title:
            titles.add(title)
    return titles


def build_solved_title_set(contents: Iterable[str]) -> set[str]:
    """Union of the normalized titles across all card contents."""
    solved: set[str] = set()
    for content in contents:
        solved |= extract_card_titles(content)
    return solved
