"""HTML-to-text conversion for email bodies.

Ticket confirmations are often HTML-only with no text/plain part. The
composer quotes their text into a plain-text notification, so layout is
reduced to one block of text per line.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_NOISE_TAGS = ("script", "style", "head", "noscript")
_BLANK_RUNS = re.compile(r"\n{3,}")


def html_to_text(html: str) -> str:
    """Convert an HTML email body to plain text.

    Args:
        html: Raw HTML string from email body.

    Returns:
        Plain text, one visual block per line, no leading/trailing blanks.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()

    text = soup.get_text(separator="\n").replace("\xa0", " ")

    lines = [" ".join(line.split()) for line in text.splitlines()]
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()
