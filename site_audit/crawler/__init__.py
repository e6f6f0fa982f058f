"""site_audit.crawler: frontier, page fetcher and link extraction."""

from site_audit.crawler.crawler import SiteCrawler
from site_audit.crawler.fetcher import PageFetcher
from site_audit.crawler.frontier import CrawlFrontier
from site_audit.crawler.link_extractor import extract_links

__all__ = ["SiteCrawler", "PageFetcher", "CrawlFrontier", "extract_links"]
