# File: tests/test_crawler.py
# Crawl-order and scoping tests for SiteCrawler over a fake browser session
from __future__ import annotations

import pytest

from conftest import ROOT, FakeBrowser, html_page
from site_audit.crawler import CrawlFrontier, PageFetcher, SiteCrawler


def url(path: str) -> str:
    return ROOT + path.lstrip("/")


async def run_crawl(site, options, failing=(), sleep=None, redirects=None):
    browser = FakeBrowser(site, failing=failing, redirects=redirects)
    kwargs = {} if sleep is None else {"sleep": sleep}
    crawler = SiteCrawler(PageFetcher(browser, options), options, **kwargs)
    pages = await crawler.crawl()
    return pages, browser


# --------------------------------------------------------------------------- #
#                                   Frontier                                  #
# --------------------------------------------------------------------------- #


def test_frontier_queues_each_url_once():
    frontier = CrawlFrontier(ROOT)
    assert ROOT in frontier
    assert frontier.take_batch() == [ROOT]
    frontier.mark_visited(ROOT)

    assert frontier.enqueue([url("a"), ROOT, url("a"), url("b")]) == 2
    assert frontier.enqueue([url("b")]) == 0
    assert not frontier.has_pending()

    frontier.advance()
    assert frontier.current_depth == 1
    assert frontier.to_visit == [url("a"), url("b")]


# --------------------------------------------------------------------------- #
#                                    Crawler                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_cycle_terminates_without_refetching(make_options):
    site = {
        ROOT: html_page("Home", ["/a"]),
        url("a"): html_page("A", ["/", "/b"]),
        url("b"): html_page("B", ["/a", "/"]),
    }
    pages, browser = await run_crawl(site, make_options())

    assert [p.url for p in pages] == [ROOT, url("a"), url("b")]
    assert len(browser.goto_calls) == len(set(browser.goto_calls)) == 3
    assert browser.open_pages == 0


@pytest.mark.asyncio()
async def test_breadth_first_depth_order(make_options):
    site = {
        ROOT: html_page("Home", ["/a", "/b"]),
        url("a"): html_page("A", ["/c"]),
        url("b"): html_page("B", ["/d"]),
        url("c"): html_page("C"),
        url("d"): html_page("D"),
    }
    pages, _ = await run_crawl(site, make_options())

    assert [p.url for p in pages] == [ROOT, url("a"), url("b"), url("c"), url("d")]
    assert [p.depth for p in pages] == [0, 1, 1, 2, 2]
    depths = [p.depth for p in pages]
    assert depths == sorted(depths)


@pytest.mark.asyncio()
async def test_max_pages_caps_inside_a_batch(make_options):
    site = {
        ROOT: html_page("Home", ["/a", "/b", "/c"]),
        url("a"): html_page("A", ["/d"]),
        url("b"): html_page("B"),
        url("c"): html_page("C"),
        url("d"): html_page("D"),
    }
    pages, browser = await run_crawl(site, make_options(max_pages=3))

    assert [p.url for p in pages] == [ROOT, url("a"), url("b")]
    assert url("c") not in browser.goto_calls


@pytest.mark.asyncio()
async def test_max_depth_zero_fetches_only_start(make_options):
    site = {ROOT: html_page("Home", ["/a"]), url("a"): html_page("A")}
    pages, browser = await run_crawl(site, make_options(max_depth=0))

    assert [p.url for p in pages] == [ROOT]
    assert browser.goto_calls == [ROOT]


@pytest.mark.asyncio()
async def test_max_depth_one_stops_after_first_level(make_options):
    site = {
        ROOT: html_page("Home", ["/a"]),
        url("a"): html_page("A", ["/b"]),
        url("b"): html_page("B"),
    }
    pages, _ = await run_crawl(site, make_options(max_depth=1))
    assert [p.url for p in pages] == [ROOT, url("a")]


@pytest.mark.asyncio()
async def test_single_page_site(make_options):
    pages, _ = await run_crawl({ROOT: html_page("Only")}, make_options())
    assert len(pages) == 1
    assert pages[0].depth == 0
    assert pages[0].title == "Only"


@pytest.mark.asyncio()
async def test_domain_scoping_and_excludes(make_options):
    site = {
        ROOT: html_page(
            "Home",
            [
                "http://other.test/x",
                "https://site.test/secure",
                "/admin/users",
                "/about",
                "/about#team",
                "/brochure.pdf",
            ],
        ),
        url("about"): html_page("About"),
        url("admin/users"): html_page("Admin"),
    }
    pages, browser = await run_crawl(site, make_options(exclude_patterns=["/admin/*"]))

    assert [p.url for p in pages] == [ROOT, url("about")]
    assert browser.goto_calls == [ROOT, url("about")]


@pytest.mark.asyncio()
async def test_unreachable_start_yields_empty_crawl(make_options):
    pages, browser = await run_crawl({ROOT: html_page()}, make_options(), failing=[ROOT])

    assert pages == []
    assert browser.goto_calls == [ROOT, ROOT, ROOT]
    assert browser.open_pages == 0


@pytest.mark.asyncio()
async def test_error_status_pages_are_skipped(make_options):
    site = {ROOT: html_page("Home", ["/missing", "/a"]), url("a"): html_page("A")}
    pages, browser = await run_crawl(site, make_options())

    assert [p.url for p in pages] == [ROOT, url("a")]
    # a 404 is a definitive answer and is not retried
    assert browser.goto_calls.count(url("missing")) == 1


@pytest.mark.asyncio()
async def test_request_delay_between_fetches(make_options):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    site = {ROOT: html_page("Home", ["/a"]), url("a"): html_page("A")}
    pages, _ = await run_crawl(site, make_options(request_delay=0.5), sleep=fake_sleep)

    assert len(pages) == 2
    assert delays == [0.5, 0.5]


@pytest.mark.asyncio()
async def test_start_url_without_trailing_slash_is_fetched_once(make_options):
    site = {ROOT: html_page("Home", ["/", "/a"]), url("a"): html_page("A", ["/"])}
    pages, browser = await run_crawl(site, make_options(url=ROOT.rstrip("/")))

    assert [(p.url, p.depth) for p in pages] == [(ROOT, 0), (url("a"), 1)]
    assert browser.goto_calls == [ROOT, url("a")]


def test_frontier_normalizes_urls():
    frontier = CrawlFrontier("HTTP://Site.Test")
    assert frontier.take_batch() == [ROOT]
    frontier.mark_visited(ROOT)

    assert frontier.enqueue(["http://site.test", url("a") + "#top", url("a")]) == 1
    assert ROOT.rstrip("/") in frontier


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "links, fetched",
    [
        (["/old", "/new"], ["", "old"]),
        (["/new", "/old"], ["", "new", "old"]),
    ],
)
async def test_redirect_target_is_crawled_once(make_options, links, fetched):
    site = {ROOT: html_page("Home", links), url("new"): html_page("New")}
    pages, browser = await run_crawl(site, make_options(), redirects={url("old"): url("new")})

    assert [p.url for p in pages] == [ROOT, url("new")]
    assert pages[1].depth == 1
    assert browser.goto_calls == [url(p) for p in fetched]
