"""
Link extraction for the crawl frontier.

Pulls every ``a[href]`` out of a page and keeps only links the crawler may
follow: http(s), same scheme and host as the start URL, no fragment, not a
downloadable file and not matching an exclude pattern.
"""
from __future__ import annotations

from typing import List, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_audit.utils import (
    has_fragment,
    is_non_html_link,
    is_same_domain,
    normalize_url,
    resolve_url,
    should_exclude_url,
)


def iter_hrefs(html: str) -> List[str]:
    """Raw ``href`` values of all anchors, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    hrefs: List[str] = []
    for tag in soup.select("a[href]"):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if isinstance(href_val, str):
            hrefs.append(href_val)
    return hrefs


def is_crawlable(url: str, start_url: str, exclude_patterns: Sequence[str] = ()) -> bool:
    return (
        is_same_domain(url, start_url)
        and not has_fragment(url)
        and not is_non_html_link(url)
        and not should_exclude_url(url, exclude_patterns)
    )


def extract_links(
    html: str,
    page_url: str,
    start_url: str,
    exclude_patterns: Sequence[str] = (),
) -> List[str]:
    """
    Crawlable absolute URLs found in *html*, normalized, unique, in first-seen order.

    Relative hrefs are resolved against *page_url*; scoping is done against
    *start_url*.
    """
    links: List[str] = []
    seen = set()
    for href in iter_hrefs(html):
        absolute = resolve_url(href, page_url)
        if absolute is None or not is_crawlable(absolute, start_url, exclude_patterns):
            continue
        link = normalize_url(absolute)
        if link not in seen:
            seen.add(link)
            links.append(link)
    return links


__all__ = ["extract_links", "iter_hrefs", "is_crawlable"]
