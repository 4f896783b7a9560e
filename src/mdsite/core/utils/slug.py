"""Slug generation for document identifiers, tag keys, and heading anchors"""

import re


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_]+', '-', text)
    return re.sub(r'-+', '-', text).strip('-')


def unique_slug(text: str, seen: dict[str, int]) -> str:
    """Slugify text and suffix -1, -2, ... on repeats. Updates seen in place."""
    base = slugify(text) or "section"
    count = seen.get(base, 0)
    seen[base] = count + 1
    return base if count == 0 else f"{base}-{count}"


def path_slug(path: str) -> str:
    """Slug for a '/'-separated path: each segment slugified, empty ones dropped.

    A trailing 'index' segment names its directory, so 'post/index' -> 'post'.
    """
    segments = [s for s in (slugify(part) for part in path.split('/')) if s]
    if len(segments) > 1 and segments[-1] == 'index':
        segments.pop()
    return '/'.join(segments)


_SYMBOL_NAMES = {'+': 'plus', '#': 'sharp', '.': 'dot', '&': 'and', '@': 'at', '/': 'slash', '*': 'star'}


def label_key(text: str) -> str:
    """Slug for a tag or series label that keeps punctuation distinct.

    'C++' -> 'c-plus-plus', 'C#' -> 'c-sharp'; other symbols become their
    code point ('F!' -> 'f-u0021'). Only case, whitespace, '_' and '-' fold.
    """
    out = []
    for ch in text.strip():
        if ch in _SYMBOL_NAMES:
            out.append(f' {_SYMBOL_NAMES[ch]} ')
        elif re.match(r'[\w\s-]', ch):
            out.append(ch)
        else:
            out.append(f' u{ord(ch):04x} ')
    return slugify(''.join(out))
