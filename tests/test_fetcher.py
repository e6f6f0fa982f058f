# File: tests/test_fetcher.py
from __future__ import annotations

from pathlib import Path

import pytest

from conftest import ROOT, FakeBrowser, html_page
from site_audit.crawler.fetcher import USER_AGENT, PageFetcher, extract_metadata, extract_text, snapshot_name
from site_audit.errors import FetchError

RICH_PAGE = """
<html lang="en">
<head>
  <title> Rich page </title>
  <meta name="description" content="A page with everything">
  <meta property="og:title" content="Rich">
  <script type="application/ld+json">{"@type": "Organization", "name": "Acme"}</script>
  <script type="application/ld+json">{ not json </script>
  <style>body { color: red }</style>
</head>
<body>
  <h1>Welcome</h1>
  <script>var tracking = "do-not-show";</script>
  <noscript>Enable JS</noscript>
  <p>Visible paragraph</p>
</body>
</html>
"""


def test_extract_text_strips_scripts():
    text = extract_text(RICH_PAGE)
    assert "Welcome" in text
    assert "Visible paragraph" in text
    assert "do-not-show" not in text
    assert "Enable JS" not in text
    assert "color: red" not in text


def test_extract_metadata_drops_malformed_json_ld():
    meta = extract_metadata(RICH_PAGE)
    assert meta["description"] == "A page with everything"
    assert meta["og:title"] == "Rich"
    assert meta["structured_data"] == [{"@type": "Organization", "name": "Acme"}]


@pytest.mark.asyncio()
async def test_fetch_builds_page_record(make_options):
    browser = FakeBrowser({ROOT: RICH_PAGE})
    options = make_options()
    record = await PageFetcher(browser, options).fetch(ROOT, 0)

    assert record.url == ROOT
    assert record.final_url == ROOT
    assert record.title == "Rich page"
    assert record.status_code == 200
    assert record.depth == 0
    assert record.html == RICH_PAGE
    assert "do-not-show" not in record.text_content
    assert record.structured_data == [{"@type": "Organization", "name": "Acme"}]
    assert record.screenshot_path is None
    assert record.archive_path is None

    page = browser.pages[0]
    assert page.closed
    assert page.options["user_agent"] == USER_AGENT
    assert "http_credentials" not in page.options
    assert page.default_timeout == options.operation_timeout * 1000
    assert page.navigation_timeout == options.navigation_timeout * 1000


@pytest.mark.asyncio()
async def test_fetch_error_status_raises_and_closes_tab(make_options):
    browser = FakeBrowser({})
    with pytest.raises(FetchError) as excinfo:
        await PageFetcher(browser, make_options()).fetch(ROOT + "missing", 1)

    assert excinfo.value.status == 404
    assert "HTTP 404" in str(excinfo.value)
    assert browser.open_pages == 0


@pytest.mark.asyncio()
async def test_fetch_retries_navigation_then_fails(make_options):
    browser = FakeBrowser({ROOT: RICH_PAGE}, failing=[ROOT])
    with pytest.raises(FetchError, match="Failed after 2 attempts"):
        await PageFetcher(browser, make_options(retry_attempts=2)).fetch(ROOT, 0)
    assert browser.goto_calls == [ROOT, ROOT]


@pytest.mark.asyncio()
async def test_fetch_passes_http_credentials(make_options):
    browser = FakeBrowser({ROOT: RICH_PAGE})
    await PageFetcher(browser, make_options(auth="alice:s3cret")).fetch(ROOT, 0)
    assert browser.pages[0].options["http_credentials"] == {"username": "alice", "password": "s3cret"}


@pytest.mark.asyncio()
async def test_fetch_writes_screenshot_and_archive(make_options):
    browser = FakeBrowser({ROOT: RICH_PAGE, ROOT + "blog/post": RICH_PAGE})
    options = make_options(take_screenshots=True, create_archive=True)
    fetcher = PageFetcher(browser, options)

    home = await fetcher.fetch(ROOT, 0)
    post = await fetcher.fetch(ROOT + "blog/post", 1)

    home_file = Path(home.screenshot_path)
    assert home_file.parent == options.screenshots_dir
    assert home_file.name.startswith("index_") and home_file.suffix == ".jpg"
    assert home_file.exists()
    assert Path(home.archive_path).read_text(encoding="utf-8") == RICH_PAGE
    assert Path(post.archive_path).name.startswith("blog_post_")


@pytest.mark.asyncio()
async def test_snapshots_of_query_variants_do_not_collide(make_options):
    one = html_page("One")
    two = html_page("Two")
    browser = FakeBrowser({ROOT + "p?id=1": one, ROOT + "p?id=2": two})
    options = make_options(take_screenshots=True, create_archive=True)
    fetcher = PageFetcher(browser, options)

    first = await fetcher.fetch(ROOT + "p?id=1", 1)
    second = await fetcher.fetch(ROOT + "p?id=2", 1)

    assert first.archive_path != second.archive_path
    assert first.screenshot_path != second.screenshot_path
    assert Path(first.archive_path).read_text(encoding="utf-8") == one
    assert Path(second.archive_path).read_text(encoding="utf-8") == two


def test_snapshot_name_separates_similar_paths():
    assert snapshot_name(ROOT + "a-b") != snapshot_name(ROOT + "a_b")
    assert snapshot_name(ROOT + "a-b").startswith("a_b_")
    assert snapshot_name(ROOT + "p?id=1").startswith("p_id_1_")


@pytest.mark.asyncio()
async def test_screenshot_failure_is_not_fatal(make_options):
    browser = FakeBrowser({ROOT: RICH_PAGE}, screenshot_error=True)
    record = await PageFetcher(browser, make_options(take_screenshots=True)).fetch(ROOT, 0)
    assert record.screenshot_path is None
    assert record.title == "Rich page"
