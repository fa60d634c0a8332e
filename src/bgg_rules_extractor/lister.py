"""
Thread lister: walk a forum section's paginated index.
"""

import logging
from typing import Dict, List, Optional, Set

from .config import Settings
from .context import RunContext
from .fetcher import PageFetcher
from .models import Stage
from .parser import parse
from .resolver import SelectorResolver
from .utils import canonicalize_url, resolve_link

logger = logging.getLogger(__name__)


class ThreadLister:
    """
    Collect every thread URL of a forum section.

    Pagination follows the "next page" link until one of:
        - there is no next link
        - the next link points to a page already visited
        - the safety cap on thread count is reached (normal termination)
        - the run is cancelled

    A page without thread links does not stop the walk.
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

    async def list_threads(
        self,
        start_url: str,
        context: Optional[RunContext] = None,
    ) -> List[str]:
        """
        Return the canonical thread URLs in discovery order, without duplicates.

        Raises:
            FetchError, NetworkError: an index page could not be fetched
        """
        context = context or RunContext()
        cap = self.settings.max_threads
        # dict keeps insertion order; used as an ordered set
        found: Dict[str, None] = {}
        visited: Set[str] = set()
        page_url: Optional[str] = canonicalize_url(start_url)
        page_number = 0

        while page_url and not context.cancelled:
            visited.add(page_url)
            page_number += 1

            soup = parse(await self.fetcher.fetch(page_url))

            new_links = 0
            for link in self.resolver.resolve_all(soup, "thread_link"):
                if len(found) >= cap:
                    break
                url = resolve_link(link.get("href"), page_url)
                if url is None:
                    continue
                if url not in found:
                    found[url] = None
                    new_links += 1

            context.thread_urls = list(found)
            logger.info("Index page %d: %d new threads (%d total)",
                        page_number, new_links, len(found))
            context.emit(
                Stage.LISTING,
                f"Listed page {page_number}: {page_url} ({len(found)} threads)",
                current=len(found),
                url=page_url,
            )

            if len(found) >= cap:
                logger.info("Reached thread cap (%d), stopping", cap)
                break

            next_link = self.resolver.resolve_next(soup, "next_page")
            next_url = None
            if next_link is not None:
                next_url = resolve_link(next_link.get("href"), page_url)
            if next_url in visited:
                logger.info("Next page %s already visited, stopping", next_url)
                next_url = None
            page_url = next_url

        return list(found)
