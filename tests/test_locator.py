"""Tests for the forum locator and subject detection."""

import pytest

from bgg_rules_extractor.config import Settings
from bgg_rules_extractor.errors import FetchError, NotFoundError
from bgg_rules_extractor.locator import ForumLocator, detect_subject

from conftest import FakeSite, make_fetcher

SETTINGS = Settings(base_url="https://bgg.test", request_delay=0)
INDEX_URL = "https://bgg.test/boardgame/12345/forums/0"

FORUM_INDEX_HTML = """
<html><body>
<nav>
  <a href="/boardgame/12345/catan/forums/0">All Forums</a>
  <a href="/boardgame/12345/catan/forums/65">General</a>
  <a href="/boardgame/12345/catan/forums/66#top">RULES</a>
  <a href="/boardgame/12345/catan/forums/67">Strategy</a>
</nav>
</body></html>
"""

HREF_ONLY_HTML = """
<html><body>
  <a href="/boardgame/12345/catan/forums/65">General</a>
  <a href="/forum/66/catan/rules">Regeln</a>
</body></html>
"""

NO_RULES_HTML = """
<html><body>
  <a href="/boardgame/12345/catan/forums/65">General</a>
  <a href="/boardgame/12345/catan/forums/67">Strategy</a>
</body></html>
"""


def make_locator(pages):
    site = FakeSite(pages)
    return ForumLocator(make_fetcher(site), settings=SETTINGS), site


class TestLocate:
    @pytest.mark.asyncio
    async def test_matches_link_text_case_insensitive(self):
        locator, site = make_locator({INDEX_URL: FORUM_INDEX_HTML})
        url = await locator.locate("12345")
        assert url == "https://bgg.test/boardgame/12345/catan/forums/66"
        assert site.fetched == [INDEX_URL]

    @pytest.mark.asyncio
    async def test_falls_back_to_link_url(self):
        locator, _ = make_locator({INDEX_URL: HREF_ONLY_HTML})
        url = await locator.locate("12345")
        assert url == "https://bgg.test/forum/66/catan/rules"
        assert "rules" in url

    @pytest.mark.asyncio
    async def test_text_match_preferred_over_url_match(self):
        html = ('<a href="/forum/1/rules-archive">Archive</a>'
                '<a href="/forum/66">Rules</a>')
        locator, _ = make_locator({INDEX_URL: html})
        assert await locator.locate("12345") == "https://bgg.test/forum/66"

    @pytest.mark.asyncio
    async def test_not_found(self):
        locator, _ = make_locator({INDEX_URL: NO_RULES_HTML})
        with pytest.raises(NotFoundError) as info:
            await locator.locate("12345")
        assert "Rules" in str(info.value)

    @pytest.mark.asyncio
    async def test_custom_forum_name(self):
        site = FakeSite({INDEX_URL: FORUM_INDEX_HTML})
        locator = ForumLocator(make_fetcher(site), settings=SETTINGS.with_overrides(forum_name="Strategy"))
        assert await locator.locate("12345") == "https://bgg.test/boardgame/12345/catan/forums/67"

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self):
        locator, _ = make_locator({INDEX_URL: 500})
        with pytest.raises(FetchError):
            await locator.locate("12345")


class TestDetectSubject:
    def test_title_from_heading(self):
        html = '<html><head><title>Catan | BoardGameGeek</title></head><body><h1 itemprop="name"> Catan </h1></body></html>'
        subject = detect_subject("https://boardgamegeek.com/boardgame/13/catan#top", html)
        assert subject.subject_id == "13"
        assert subject.title == "Catan"
        assert subject.url == "https://boardgamegeek.com/boardgame/13/catan"

    def test_title_from_document_title(self):
        html = "<html><head><title>Azul | BoardGameGeek</title></head><body></body></html>"
        subject = detect_subject("https://boardgamegeek.com/boardgame/230802/azul", html)
        assert subject.title == "Azul"

    def test_not_a_game_page(self):
        with pytest.raises(NotFoundError):
            detect_subject("https://boardgamegeek.com/browse/boardgame", "<h1>x</h1>")

    def test_missing_title(self):
        with pytest.raises(NotFoundError):
            detect_subject("https://boardgamegeek.com/boardgame/13/catan", "<html></html>")
