"""
Parsing helpers shared by the listing scanner and the detail fetcher.
"""
import re
import posixpath
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, CData, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

TRAILING_DIGITS = re.compile(r"(\d+)$")
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
# Markup strings that are not rendered text
NON_TEXT_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)


def clean_text(value: Optional[str]) -> str:
    """Trim surrounding whitespace; None becomes an empty string."""
    return (value or "").strip()


def extract_job_id(job_url: str) -> Optional[int]:
    """
    Derive the numeric job id from the end of the URL's last path segment.

    https://www.linkedin.com/jobs/view/frontend-developer-12345?trk=x -> 12345

    Returns:
        The id, or None when the last segment does not end in digits
    """
    if not job_url:
        return None
    try:
        path = urlparse(job_url).path
    except ValueError:
        return None

    last_segment = posixpath.basename(path.rstrip("/"))
    match = TRAILING_DIGITS.search(last_segment)
    if not match:
        return None
    return int(match.group(1))


def html_to_text(node: Tag) -> str:
    """
    Convert a description node to plain text, walking children in document order.

    Paragraphs and headings end with a blank line, strong/b become **text**,
    em/i become *text*, list items become bullet lines and <br> becomes a newline.
    div/span recurse only when they contain child elements.
    """
    parts = []

    for child in node.children:
        if isinstance(child, NON_TEXT_STRINGS):
            continue

        if isinstance(child, NavigableString):
            text = str(child).strip()
            if text:
                parts.append(text)
            continue

        if not isinstance(child, Tag):
            continue

        tag = child.name
        if tag == "br":
            parts.append("\n")
            continue

        text = child.get_text().strip()
        if not text:
            continue

        if tag == "p" or tag in HEADING_TAGS:
            parts.append(text + "\n\n")
        elif tag in ("strong", "b"):
            parts.append(f"**{text}**")
        elif tag in ("em", "i"):
            parts.append(f"*{text}*")
        elif tag == "li":
            parts.append(f"• {text}\n")
        elif tag in ("ul", "ol"):
            for li in child.find_all("li"):
                li_text = li.get_text().strip()
                if li_text:
                    parts.append(f"• {li_text}\n")
            parts.append("\n")
        elif tag in ("div", "span"):
            if child.find(True, recursive=False) is not None:
                parts.append(html_to_text(child))
            else:
                parts.append(text + " ")
        else:
            parts.append(text + " ")

    return "".join(parts)


def make_soup(html: str) -> BeautifulSoup:
    """Helper to create BeautifulSoup instance"""
    return BeautifulSoup(html, "html.parser")
