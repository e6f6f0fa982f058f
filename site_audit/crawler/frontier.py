"""site_audit.crawler.frontier: depth-batched crawl queue with a discovered-set.

Every URL that ever entered the frontier (the start URL, queued URLs, URLs of
the batch in flight, visited URLs and redirect targets) is remembered by its
normalized form, so a page is queued at most once and its depth is the depth
at which it was first seen.
"""
from __future__ import annotations

from typing import Iterable, List, Set

from site_audit.utils import normalize_url

__all__ = ("CrawlFrontier",)


class CrawlFrontier:
    """Breadth-first frontier: ``to_visit`` holds only URLs of ``current_depth``."""

    def __init__(self, start_url: str) -> None:
        start = normalize_url(start_url)
        self.visited: Set[str] = set()
        self.to_visit: List[str] = [start]
        self.current_depth: int = 0
        self._discovered: Set[str] = {start}
        self._next: List[str] = []

    def __contains__(self, url: str) -> bool:
        return normalize_url(url) in self._discovered

    def has_pending(self) -> bool:
        return bool(self.to_visit)

    def take_batch(self) -> List[str]:
        """Hand out every URL of the current depth and empty ``to_visit``."""
        batch, self.to_visit = self.to_visit, []
        return batch

    def is_visited(self, url: str) -> bool:
        return normalize_url(url) in self.visited

    def mark_visited(self, url: str) -> None:
        key = normalize_url(url)
        self.visited.add(key)
        self._discovered.add(key)

    def enqueue(self, urls: Iterable[str]) -> int:
        """Queue never-seen *urls* for the next depth; returns how many were added."""
        added = 0
        for url in urls:
            key = normalize_url(url)
            if key in self._discovered:
                continue
            self._discovered.add(key)
            self._next.append(key)
            added += 1
        return added

    def advance(self) -> None:
        """Move to the next depth; URLs enqueued during the batch become ``to_visit``."""
        self.to_visit = [u for u in self._next if u not in self.visited]
        self._next = []
        self.current_depth += 1
