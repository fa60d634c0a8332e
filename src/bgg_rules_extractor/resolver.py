"""
Resilient element selection with CSS selector fallback chains.

Every semantic target ("next page link", "post container", "author", ...)
has an ordered list of strategies. Resolution tries them in order and the
first strategy that matches anything wins. Supporting a new site layout
means adding a strategy to the table (or to a JSON override file), not
changing the scraping code.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import orjson
from bs4 import BeautifulSoup, Tag

from .parser import clean_text

logger = logging.getLogger(__name__)

Node = Union[BeautifulSoup, Tag]


@dataclass(frozen=True)
class Strategy:
    """
    One way of finding a target.

    Attributes:
        css: CSS selector evaluated against the document or a sub-tree
        attr: Attribute holding the value; when unset, the cleaned text
              content of the node is the value
    """
    css: str
    attr: Optional[str] = None

    @classmethod
    def from_spec(cls, spec: Union[str, Mapping[str, str]]) -> "Strategy":
        if isinstance(spec, str):
            return cls(css=spec)
        return cls(css=spec["css"], attr=spec.get("attr"))

    def value_of(self, node: Tag) -> Optional[str]:
        if self.attr:
            value = node.get(self.attr)
            if isinstance(value, list):
                value = " ".join(value)
            return value.strip() if value else None
        return clean_text(node) or None


class SelectorChain:
    """
    CSS selector fallback chain for one semantic target.

    Tries strategies in order until one finds a match.
    """

    def __init__(self, strategies: Sequence[Strategy], name: str = "unnamed"):
        self.strategies = list(strategies)
        self.name = name

    def _first_matching(self, root: Node):
        for index, strategy in enumerate(self.strategies):
            nodes = root.select(strategy.css)
            if nodes:
                if index > 0:
                    logger.debug("%s: using fallback selector #%d: %s",
                                 self.name, index + 1, strategy.css)
                return strategy, nodes
        logger.debug("%s: all selectors failed", self.name)
        return None, []

    def select_one(self, root: Node) -> Optional[Tag]:
        _strategy, nodes = self._first_matching(root)
        return nodes[0] if nodes else None

    def select(self, root: Node) -> List[Tag]:
        _strategy, nodes = self._first_matching(root)
        return nodes

    def value(self, root: Node) -> Optional[str]:
        """Value of the first match of the first strategy that yields a value."""
        for strategy in self.strategies:
            for node in root.select(strategy.css):
                value = strategy.value_of(node)
                if value:
                    return value
        return None


# -------------------------------------------------------
# DEFAULT STRATEGY TABLE
# -------------------------------------------------------
# Modern layouts first, then older templates. Strings are plain CSS
# selectors; dicts name the attribute carrying the value.
DEFAULT_STRATEGIES: Dict[str, List[Union[str, Dict[str, str]]]] = {
    "next_page": [
        'a[rel~="next"][href]',
        'a[aria-label="Next" i][href]',
        'a[title="next page" i][href]',
        'li.pagination-next a[href]',
    ],
    "thread_link": [
        'a.thread-link[href]',
        'a[href*="/thread/"]',
    ],
    "thread_title": [
        'h1.thread-title',
        'h1[itemprop="headline"]',
        '.forum-thread-header h1',
        'h1',
    ],
    "post_modern": [
        'article.post',
        'gg-forum-post',
        'div.post[data-post-id]',
    ],
    "post_legacy": [
        'div.article',
        'table.forum_table td.forum_post',
        'div.rg_article',
    ],
    "post_author": [
        '.username',
        '.post-author',
        'a[href*="/user/"]',
        '.author',
    ],
    "post_timestamp": [
        {"css": "time[datetime]", "attr": "datetime"},
        {"css": "[data-timestamp]", "attr": "data-timestamp"},
        '.post-date',
        '.commentheader .date',
    ],
    "post_body": [
        '.post-body',
        '.article-body',
        '[itemprop="text"]',
        '.body',
    ],
    "paragraph": [
        'p',
    ],
    "anchor": [
        'a[href]',
    ],
    "subject_title": [
        'h1[itemprop="name"]',
        {"css": 'meta[property="og:title"]', "attr": "content"},
        'title',
    ],
}


class SelectorResolver:
    """
    Resolve semantic targets against a document tree.

    Usage:
        resolver = SelectorResolver()
        next_link = resolver.resolve_next(soup, "next_page")
        posts = resolver.resolve_all(soup, "post_modern")
    """

    def __init__(self, strategies: Optional[Mapping[str, Iterable]] = None):
        table = dict(DEFAULT_STRATEGIES)
        if strategies:
            table.update(strategies)
        self.chains: Dict[str, SelectorChain] = {
            target: SelectorChain([Strategy.from_spec(s) for s in specs], name=target)
            for target, specs in table.items()
        }

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SelectorResolver":
        """
        Build a resolver whose table is overridden by a JSON file.

        The file maps target names to strategy lists; named targets replace
        the defaults entirely, others keep them:

            {"next_page": ["a.next", {"css": "link[rel=next]", "attr": "href"}]}
        """
        data = orjson.loads(Path(path).read_bytes())
        if not isinstance(data, dict):
            raise ValueError(f"Selector file {path} must contain a JSON object")
        logger.info("Loaded selector overrides for: %s", ", ".join(sorted(data)))
        return cls(data)

    def chain(self, target: str) -> SelectorChain:
        try:
            return self.chains[target]
        except KeyError:
            raise KeyError(f"Unknown selector target: {target}") from None

    def resolve_next(self, tree: Node, target: str) -> Optional[Tag]:
        """First node of the first strategy that matches, or None."""
        return self.chain(target).select_one(tree)

    def resolve_all(self, tree: Node, target: str) -> List[Tag]:
        """All nodes of the first strategy that matches, in document order."""
        return self.chain(target).select(tree)

    def resolve_value(self, tree: Node, target: str) -> Optional[str]:
        """Attribute value or cleaned text of the first usable match."""
        return self.chain(target).value(tree)
