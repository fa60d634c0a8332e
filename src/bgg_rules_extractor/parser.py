"""
Markup parsing helpers.

BeautifulSoup with the lxml parser recovers from broken markup the way a
browser does, so ``parse`` never raises on malformed input.
"""

from typing import Optional, Union

from bs4 import BeautifulSoup, Tag

NBSP = "\xa0"


def parse(markup: Optional[Union[str, bytes]]) -> BeautifulSoup:
    """Parse raw markup into a traversable document tree."""
    return BeautifulSoup(markup or "", "lxml")


def clean_text(node: Optional[Tag]) -> str:
    """
    Extract plain text from a node.

    Inline markup is discarded, non-breaking spaces become regular spaces,
    each line is trimmed and blank lines are dropped.

    Example:
        clean_text(parse("<p>Roll&nbsp;<b>two</b> dice</p>").p)
        # Returns: "Roll two dice"
    """
    if node is None:
        return ""
    text = node.get_text().replace(NBSP, " ")
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)
