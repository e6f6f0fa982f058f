"""site_audit.analyzers.discovery: robots.txt and sitemap discovery for an origin.

Results are cached per origin for the lifetime of a :class:`SiteDiscovery`.
"""
from __future__ import annotations

import asyncio
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from aiohttp import ClientError, ClientSession, ClientTimeout
from lxml import etree

from site_audit.logger import logger

COMMON_SITEMAP_PATHS = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/sitemap.php",
    "/sitemap1.xml",
    "/sitemaps.xml",
)
DISCOVERY_TIMEOUT = 10.0
BOT_USER_AGENT = "Mozilla/5.0 (compatible; SiteAudit-Bot/1.0)"
ROBOTS_PREVIEW_LEN = 1000


class RobotsTxtRules:
    """
    Parses robots.txt (RFC 9309).
    An empty Disallow allows every path; ``Sitemap`` lines are collected
    regardless of the group they appear in.
    """
    _WILDCARD_RE = re.compile(r"(\*|\$)")

    def __init__(self, text: str) -> None:
        self._groups: List[Dict[str, Any]] = []
        self._regex_cache: Dict[str, re.Pattern[str]] = {}
        self.sitemaps: List[str] = []
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        allow: Optional[bool] = None
        for directive, pattern in group["directives"]:
            if not self._match_path(path, pattern):
                continue
            length = self._rule_len(pattern)
            if length > best_len or (length == best_len and directive == "allow" and allow is False):
                best_len = length
                allow = directive == "allow"
        return True if allow is None else allow

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._match_group(user_agent)
        return None if group is None else group["crawl_delay"]

    def _new_group(self) -> Dict[str, Any]:
        group: Dict[str, Any] = {"agents": [], "directives": [], "crawl_delay": None}
        self._groups.append(group)
        return group

    def _parse(self, text: str) -> None:
        current: Optional[Dict[str, Any]] = None
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            key, _, val = line.partition(":")
            key = key.lower().strip()
            val = val.strip()
            if key == "sitemap":
                if val:
                    self.sitemaps.append(val)
            elif key == "user-agent":
                if current is None or current["directives"] or current["crawl_delay"] is not None:
                    current = self._new_group()
                current["agents"].append(val.lower())
            elif key in ("allow", "disallow"):
                if key == "disallow" and not val:
                    continue
                if current is None:
                    current = self._new_group()
                    current["agents"].append("*")
                current["directives"].append((key, val))
            elif key == "crawl-delay":
                if current is None:
                    current = self._new_group()
                    current["agents"].append("*")
                try:
                    current["crawl_delay"] = float(val)
                except ValueError:
                    logger.debug("Ignoring non-numeric Crawl-delay %r", val)

    def _match_group(self, user_agent: str) -> Optional[Dict[str, Any]]:
        ua = user_agent.lower()
        for group in self._groups:
            if any(a != "*" and ua.startswith(a) for a in group["agents"]):
                return group
        for group in self._groups:
            if "*" in group["agents"]:
                return group
        return None

    def _match_path(self, path: str, pattern: str) -> bool:
        if pattern not in self._regex_cache:
            esc = re.escape(pattern).replace(r"\*", ".*")
            if pattern.endswith("$"):
                esc = esc[:-2] + "$"
            else:
                esc += ".*"
            self._regex_cache[pattern] = re.compile(f"^{esc}")
        return bool(self._regex_cache[pattern].match(path))

    @classmethod
    def _rule_len(cls, pattern: str) -> int:
        return len(cls._WILDCARD_RE.sub("", pattern))


def parse_sitemap(xml_content: str) -> Tuple[int, int]:
    """Number of ``<url>`` and ``<sitemap>`` entries in a sitemap or sitemap index."""
    parser = etree.XMLParser(ns_clean=True, recover=True)
    try:
        root = etree.fromstring(xml_content.encode("utf-8"), parser=parser)
    except etree.XMLSyntaxError:
        return 0, 0
    if root is None:
        return 0, 0
    return len(root.findall(".//{*}url")), len(root.findall(".//{*}sitemap"))


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class SiteDiscovery:
    """Fetches robots.txt and sitemaps once per origin."""

    def __init__(self, session: Optional[ClientSession] = None, timeout: float = DISCOVERY_TIMEOUT) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)
        self._cache: Dict[str, asyncio.Future[Dict[str, Any]]] = {}

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(headers={"User-Agent": BOT_USER_AGENT})
            self._owns_session = True
        return self._session

    async def discover(self, url: str) -> Dict[str, Any]:
        base = origin_of(url)
        future = self._cache.get(base)
        if future is None:
            future = asyncio.ensure_future(self._discover(base))
            self._cache[base] = future
        return await asyncio.shield(future)

    async def _discover(self, base: str) -> Dict[str, Any]:
        robots = await self.check_robots_txt(base)
        sitemaps: List[Dict[str, Any]] = []
        seen = set()
        for sitemap_url in robots.get("sitemap_references", []):
            info = await self.check_sitemap(sitemap_url)
            if info["exists"]:
                sitemaps.append({**info, "source": "robots.txt"})
                seen.add(sitemap_url)
        for path in COMMON_SITEMAP_PATHS:
            sitemap_url = f"{base}{path}"
            if sitemap_url in seen:
                continue
            info = await self.check_sitemap(sitemap_url)
            if info["exists"]:
                sitemaps.append({**info, "source": "common_path"})
        return {"base_url": base, "robots_txt": robots, "sitemaps": sitemaps}

    async def check_robots_txt(self, base: str) -> Dict[str, Any]:
        robots_url = f"{base}/robots.txt"
        try:
            async with self._get_session().get(robots_url, timeout=self._timeout) as resp:
                if resp.status != 200:
                    return {"exists": False, "url": robots_url, "status": resp.status}
                content = await resp.text()
        except asyncio.TimeoutError:
            return {"exists": False, "url": robots_url, "error": "Timeout"}
        except ClientError as exc:
            return {"exists": False, "url": robots_url, "error": str(exc)}

        rules = RobotsTxtRules(content)
        lowered = content.lower()
        return {
            "exists": True,
            "url": robots_url,
            "content": content[:ROBOTS_PREVIEW_LEN],
            "sitemap_references": rules.sitemaps,
            "has_user_agent": "user-agent:" in lowered,
            "has_disallow": "disallow:" in lowered,
            "has_crawl_delay": "crawl-delay:" in lowered,
            "crawl_delay": rules.crawl_delay(BOT_USER_AGENT),
            "allows_root": rules.can_fetch(BOT_USER_AGENT, "/"),
        }

    async def check_sitemap(self, sitemap_url: str) -> Dict[str, Any]:
        headers = {"Accept": "application/xml,text/xml,*/*"}
        try:
            async with self._get_session().get(sitemap_url, headers=headers, timeout=self._timeout) as resp:
                if resp.status != 200:
                    return {"exists": False, "url": sitemap_url, "status": resp.status}
                content = await resp.text()
                last_modified = resp.headers.get("Last-Modified")
                content_type = resp.headers.get("Content-Type")
        except asyncio.TimeoutError:
            return {"exists": False, "url": sitemap_url, "error": "Timeout"}
        except ClientError as exc:
            return {"exists": False, "url": sitemap_url, "error": str(exc)}

        url_count, sitemap_count = parse_sitemap(content)
        return {
            "exists": True,
            "url": sitemap_url,
            "last_modified": last_modified,
            "content_type": content_type,
            "url_count": url_count,
            "sitemap_count": sitemap_count,
            "is_index": sitemap_count > 0,
            "size": len(content),
        }


__all__ = ["RobotsTxtRules", "SiteDiscovery", "parse_sitemap", "origin_of", "COMMON_SITEMAP_PATHS"]
