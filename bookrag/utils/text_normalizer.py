"""Text normalization for extracted document text.

PDF text layers are full of layout debris: carriage returns, form feeds
between pages, tab-aligned columns and stray control characters.  These
helpers reduce that to plain spaced prose before chunking so embeddings
capture content rather than formatting.
"""

import re

# Control characters other than "\n"; \r, \f, \t and \v are included here.
_NON_PRINTABLE = re.compile(r"[\x00-\x09\x0b-\x1f\x7f-\x9f\u200b\ufeff]")
_MULTI_SPACE = re.compile(r" {2,}")
_MULTI_NEWLINE = re.compile(r"\n{3,}")


def normalize_extracted_text(text: str) -> str:
    """Clean raw PDF text for chunking.

    Steps:
        1. Replace carriage returns, form feeds, tabs and other
           non-printable characters with a single space.
        2. Collapse runs of two or more spaces to one.
        3. Collapse three or more consecutive newlines to two.
        4. Trim leading and trailing whitespace.

    Args:
        text: Raw extracted text.

    Returns:
        Normalized text; empty string for empty or whitespace-only input.
    """
    if not text:
        return ""

    cleaned = _NON_PRINTABLE.sub(" ", text)
    cleaned = _MULTI_SPACE.sub(" ", cleaned)
    # Spaces left around line breaks would otherwise stop 3+ newlines
    # from being recognised as a run.
    cleaned = re.sub(r" *\n *", "\n", cleaned)
    cleaned = _MULTI_NEWLINE.sub("\n\n", cleaned)
    return cleaned.strip()


def count_words(text: str) -> int:
    """Return the number of whitespace-delimited words in *text*."""
    return len(text.split())
