"""Shared text normalization helpers for extracted page text."""

import html as htmllib
import re
from typing import Iterable, Optional

_SPACE_RUN = re.compile(r" {2,}")
_EDGE_CHARS = " \r\n\t"


def collapse_spaces(text: Optional[str]) -> Optional[str]:
    """Collapse runs of spaces into one and trim whitespace at both edges.

    Examples:
        >>> collapse_spaces("  Some   text \\n")
        'Some text'
    """
    if text is None:
        return None
    text = text.replace("\xa0", " ")
    return _SPACE_RUN.sub(" ", text.strip(_EDGE_CHARS))


def join_visible_text(fragments: Iterable[str]) -> str:
    """Join text fragments with single spaces, decode entities and normalize spacing."""
    joined = " ".join(fragment for fragment in fragments if fragment is not None)
    return collapse_spaces(htmllib.unescape(joined)) or ""


__all__ = ["collapse_spaces", "join_visible_text"]
