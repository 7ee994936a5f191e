import re

from bs4 import BeautifulSoup
from markdownify import markdownify as md

_MANY_NEWLINES = re.compile(r"\n{3,}")
_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_WS = re.compile(r"\s+")


def html_to_plain(html: str) -> str:
    """Strip HN comment HTML down to plain text.

    Paragraph tags become blank lines, ``<br>`` a newline and list items
    ``• `` bullets; entities are decoded by the parser.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for p in soup.find_all("p"):
        p.insert_before("\n\n")
    for li in soup.find_all("li"):
        li.insert_before("\n• ")
    text = _TRAILING_SPACE.sub("\n", soup.get_text())
    return _MANY_NEWLINES.sub("\n\n", text).strip()


def html_to_md(html: str) -> str:
    if not html:
        return ""
    return _MANY_NEWLINES.sub("\n\n", md(html, heading_style="ATX")).strip()


def clamp(s: str, n: int) -> str:
    return s[:n] if len(s) > n else s


def squash(s: str) -> str:
    return _WS.sub(" ", s).strip()
