"""
Forum locator: find the URL of a named forum section for a game.

Also provides ``detect_subject`` to derive the game id and title from a
game page, for callers that start from a page URL rather than an id.
"""

import logging
import re
from typing import Optional
from urllib.parse import urlparse

from .config import FORUM_NAME, Settings
from .errors import NotFoundError
from .fetcher import PageFetcher
from .models import Subject
from .parser import clean_text, parse
from .resolver import SelectorResolver
from .utils import canonicalize_url, resolve_link

logger = logging.getLogger(__name__)

SITE_TITLE_SUFFIX = re.compile(r"\s*\|\s*BoardGameGeek\s*$", re.IGNORECASE)


class ForumLocator:
    """
    Locate a forum section (e.g. "Rules") on a game's forum index page.

    Ranking:
        1. first anchor whose text contains the forum name (case-insensitive)
        2. otherwise, first anchor whose href contains it
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        resolver: Optional[SelectorResolver] = None,
        settings: Optional[Settings] = None,
    ):
        self.fetcher = fetcher
        self.resolver = resolver or SelectorResolver()
        self.settings = settings or Settings()

    @property
    def forum_name(self) -> str:
        return self.settings.forum_name or FORUM_NAME

    async def locate(self, subject_id: str) -> str:
        """
        Return the absolute URL of the forum section for ``subject_id``.

        Raises:
            NotFoundError: no anchor matches the forum name
            FetchError, NetworkError: the index page could not be fetched
        """
        index_url = self.settings.forum_index_url(subject_id)
        logger.info("Locating '%s' forum from %s", self.forum_name, index_url)

        soup = parse(await self.fetcher.fetch(index_url))
        anchors = self.resolver.resolve_all(soup, "anchor")
        needle = self.forum_name.lower()

        by_text = [a for a in anchors if needle in clean_text(a).lower()]
        by_href = [a for a in anchors if needle in (a.get("href") or "").lower()]

        for candidates, rule in ((by_text, "link text"), (by_href, "link URL")):
            for anchor in candidates:
                url = resolve_link(anchor.get("href"), index_url)
                if url:
                    logger.info("Found '%s' forum by %s: %s", self.forum_name, rule, url)
                    return url

        raise NotFoundError(
            f"Forum section '{self.forum_name}' not found for subject {subject_id}"
        )


def detect_subject(
    page_url: str,
    markup: str,
    resolver: Optional[SelectorResolver] = None,
) -> Subject:
    """
    Derive the game identity from a game page.

    The id is the path segment after ``boardgame``; the title comes from
    the page heading, the og:title meta tag, or the document title with the
    site suffix removed.

    Example:
        detect_subject("https://boardgamegeek.com/boardgame/13/catan", html)
        # Returns: Subject(subject_id="13", title="Catan", url=...)

    Raises:
        NotFoundError: the URL is not a game page or no title is present
    """
    parts = [p for p in urlparse(page_url).path.split("/") if p]
    subject_id = None
    if "boardgame" in parts:
        idx = parts.index("boardgame")
        if idx + 1 < len(parts):
            subject_id = parts[idx + 1]
    if not subject_id:
        raise NotFoundError(f"Not a game page: {page_url}")

    resolver = resolver or SelectorResolver()
    title = resolver.resolve_value(parse(markup), "subject_title")
    title = SITE_TITLE_SUFFIX.sub("", title or "").strip()
    if not title:
        raise NotFoundError(f"Could not find a game title on {page_url}")

    return Subject(subject_id=subject_id, title=title, url=canonicalize_url(page_url))
