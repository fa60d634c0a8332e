"""
Post extractor: walk a thread's pages and collect its posts in order.

Post containers are found with a three-tier fallback:

1. the modern selector set
2. the legacy selector set, when the modern one matches nothing
3. every paragraph on the page, joined into one synthetic post by
   "Unknown", when neither matches
"""

import logging
from typing import List, Optional, Set

from bs4 import BeautifulSoup, Tag

from .config import Settings
from .context import RunContext
from .errors import FetchError, NetworkError, NotFoundError
from .fetcher import PageFetcher
from .models import MIN_BODY_LENGTH, UNKNOWN_AUTHOR, UNTITLED_THREAD, Post, ThreadRecord
from .parser import clean_text, parse
from .resolver import SelectorResolver
from .utils import canonicalize_url, resolve_link

logger = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (FetchError, NetworkError, NotFoundError)


class PostExtractor:
    """
    Extract one thread into a ThreadRecord.

    Fetch failures are recorded on the record instead of raised, so one
    broken thread never aborts the run.
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

    async def extract_thread(
        self,
        thread_url: str,
        context: Optional[RunContext] = None,
    ) -> ThreadRecord:
        """Fetch every page of a thread and return its record."""
        context = context or RunContext()
        record = ThreadRecord(url=canonicalize_url(thread_url))
        try:
            await self._walk_pages(record, context)
        except RECOVERABLE_ERRORS as e:
            logger.warning("Thread %s failed after %d posts: %s",
                           record.url, len(record.posts), e)
            record.error = f"Extraction failed: {e}"
        return record

    async def _walk_pages(self, record: ThreadRecord, context: RunContext):
        visited: Set[str] = set()
        page_url: Optional[str] = record.url
        first_page = True

        while page_url:
            visited.add(page_url)
            soup = parse(await self.fetcher.fetch(page_url))

            if first_page:
                record.title = self.resolver.resolve_value(soup, "thread_title") or UNTITLED_THREAD
                first_page = False

            page_posts = self.extract_posts(soup)
            record.posts.extend(page_posts)
            logger.debug("%s: %d posts on page %d", record.url, len(page_posts), len(visited))

            if context.cancelled:
                break

            next_link = self.resolver.resolve_next(soup, "next_page")
            next_url = None
            if next_link is not None:
                next_url = resolve_link(next_link.get("href"), page_url)
            page_url = None if next_url in visited else next_url

    def extract_posts(self, soup: BeautifulSoup) -> List[Post]:
        """Extract the posts of one page, applying the three-tier fallback."""
        nodes = self.resolver.resolve_all(soup, "post_modern")
        if not nodes:
            nodes = self.resolver.resolve_all(soup, "post_legacy")
            if nodes:
                logger.debug("Using legacy post selectors (%d posts)", len(nodes))

        if nodes:
            posts = []
            for node in nodes:
                post = self._post_from_node(node)
                if post is not None:
                    posts.append(post)
            return posts

        return self._paragraph_fallback(soup)

    def _post_from_node(self, node: Tag) -> Optional[Post]:
        body_node = self.resolver.resolve_next(node, "post_body")
        body = clean_text(body_node if body_node is not None else node)
        if len(body) < MIN_BODY_LENGTH:
            return None
        return Post(
            author=self.resolver.resolve_value(node, "post_author") or UNKNOWN_AUTHOR,
            timestamp=self.resolver.resolve_value(node, "post_timestamp"),
            body=body,
        )

    def _paragraph_fallback(self, soup: BeautifulSoup) -> List[Post]:
        paragraphs = [clean_text(p) for p in self.resolver.resolve_all(soup, "paragraph")]
        body = "\n\n".join(p for p in paragraphs if p)
        if len(body) < MIN_BODY_LENGTH:
            return []
        logger.warning("No post containers matched, using %d paragraphs as one post",
                       len(paragraphs))
        return [Post(author=UNKNOWN_AUTHOR, timestamp=None, body=body)]
