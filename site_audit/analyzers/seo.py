"""site_audit.analyzers.seo: on-page SEO checks plus site-level discovery."""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from site_audit.analyzers.discovery import SiteDiscovery
from site_audit.models import PageRecord

FALLBACK: Dict[str, Any] = {
    "score": 0,
    "title": {"content": "", "length": 0, "exists": False, "optimal": False, "issues": []},
    "meta_description": {"content": "", "length": 0, "exists": False, "optimal": False, "issues": []},
    "headings": {"h1_count": 0, "has_h1": False, "multiple_h1": False, "issues": []},
    "images": {"total": 0, "missing_alt": 0, "empty_alt": 0, "with_alt": 0, "issues": []},
    "links": {"internal": 0, "external": 0, "nofollow": 0, "total": 0, "issues": []},
    "structured_data": {"has_structured_data": False, "types": [], "count": 0, "issues": []},
    "social_tags": {"open_graph": {}, "twitter_card": {}, "has_open_graph": False, "has_twitter_card": False},
    "technical": {"has_canonical": False, "has_robots": False, "has_viewport": False, "has_lang": False},
    "content": {"word_count": 0, "reading_time": 0, "has_content": False, "sufficient": False},
    "site_discovery": {},
    "issues": [],
    "recommendations": [],
}

WORDS_PER_MINUTE = 200


def _meta(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = tag.get("content")
    return content if isinstance(content, str) else None


def analyze_title(soup: BeautifulSoup) -> Dict[str, Any]:
    tag = soup.find("title")
    title = tag.get_text(strip=True) if tag else ""
    issues: List[str] = []
    if not title:
        issues.append("Missing title tag")
    elif len(title) < 30:
        issues.append("Title too short (< 30 characters)")
    elif len(title) > 60:
        issues.append("Title too long (> 60 characters)")
    return {
        "content": title,
        "length": len(title),
        "exists": bool(title),
        "optimal": 30 <= len(title) <= 60,
        "issues": issues,
    }


def analyze_meta_description(soup: BeautifulSoup) -> Dict[str, Any]:
    description = (_meta(soup, name="description") or "").strip()
    issues: List[str] = []
    if not description:
        issues.append("Missing meta description")
    elif len(description) < 120:
        issues.append("Meta description too short (< 120 characters)")
    elif len(description) > 160:
        issues.append("Meta description too long (> 160 characters)")
    return {
        "content": description,
        "length": len(description),
        "exists": bool(description),
        "optimal": 120 <= len(description) <= 160,
        "issues": issues,
    }


def analyze_headings(soup: BeautifulSoup) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for level in range(1, 7):
        texts = [h.get_text(strip=True) for h in soup.find_all(f"h{level}")]
        result[f"h{level}"] = [{"text": t, "length": len(t)} for t in texts if t]
    h1_count = len(result["h1"])
    hierarchy = h1_count > 0
    issues: List[str] = []
    if h1_count == 0:
        issues.append("Missing H1 tag")
    if h1_count > 1:
        issues.append("Multiple H1 tags found")
    if not hierarchy:
        issues.append("Heading hierarchy issues detected")
    result.update(
        h1_count=h1_count,
        has_h1=h1_count > 0,
        multiple_h1=h1_count > 1,
        hierarchy=hierarchy,
        issues=issues,
    )
    return result


def analyze_images(soup: BeautifulSoup) -> Dict[str, Any]:
    images = []
    missing_alt = empty_alt = 0
    for img in soup.find_all("img"):
        src = img.get("src")
        if not src:
            continue
        alt = img.get("alt")
        images.append({"src": src, "alt": alt or "", "has_alt": alt is not None, "alt_length": len(alt or "")})
        if alt is None:
            missing_alt += 1
        elif alt == "":
            empty_alt += 1
    issues: List[str] = []
    if missing_alt:
        issues.append(f"{missing_alt} images missing alt attributes")
    if empty_alt:
        issues.append(f"{empty_alt} images with empty alt attributes")
    return {
        "total": len(images),
        "missing_alt": missing_alt,
        "empty_alt": empty_alt,
        "with_alt": len(images) - missing_alt,
        "images": images,
        "issues": issues,
    }


def analyze_links(soup: BeautifulSoup, page_url: str) -> Dict[str, Any]:
    host = urlparse(page_url).hostname or ""
    internal = external = nofollow = 0
    for a in soup.select("a[href]"):
        href = (a.get("href") or "").strip()
        if not href:
            continue
        if href.startswith("http") and urlparse(href).hostname != host:
            external += 1
        elif not href.startswith(("#", "mailto:", "tel:", "javascript:")):
            internal += 1
        rel = a.get("rel") or []
        if "nofollow" in (rel if isinstance(rel, list) else rel.split()):
            nofollow += 1
    issues: List[str] = []
    if internal == 0:
        issues.append("No internal links found")
    if external == 0:
        issues.append("No external links found")
    return {
        "internal": internal,
        "external": external,
        "nofollow": nofollow,
        "total": internal + external,
        "issues": issues,
    }


def analyze_structured_data(structured: List[Any]) -> Dict[str, Any]:
    types = [d.get("@type") for d in structured if isinstance(d, dict) and d.get("@type")]
    return {
        "has_structured_data": bool(structured),
        "types": types,
        "count": len(structured),
        "schemas": structured,
        "issues": [] if structured else ["No structured data found"],
    }


def analyze_social_tags(soup: BeautifulSoup) -> Dict[str, Any]:
    open_graph = {
        tag["property"][3:]: tag.get("content")
        for tag in soup.select('meta[property^="og:"]')
    }
    twitter = {
        tag["name"][8:]: tag.get("content")
        for tag in soup.select('meta[name^="twitter:"]')
    }
    issues: List[str] = []
    if not open_graph.get("title") and not open_graph.get("description"):
        issues.append("Missing Open Graph tags")
    if not twitter.get("card"):
        issues.append("Missing Twitter Card tags")
    return {
        "open_graph": open_graph,
        "twitter_card": twitter,
        "has_open_graph": bool(open_graph),
        "has_twitter_card": bool(twitter),
        "issues": issues,
    }


def analyze_technical(soup: BeautifulSoup) -> Dict[str, Any]:
    canonical_tag = soup.find("link", rel="canonical")
    canonical = canonical_tag.get("href") if canonical_tag else None
    robots = _meta(soup, name="robots")
    viewport = _meta(soup, name="viewport")
    html = soup.find("html")
    lang = html.get("lang") if html else None
    issues: List[str] = []
    if not canonical:
        issues.append("Missing canonical URL")
    if not viewport:
        issues.append("Missing viewport meta tag")
    if not lang:
        issues.append("Missing language attribute on html tag")
    return {
        "canonical": canonical,
        "robots": robots,
        "viewport": viewport,
        "lang": lang,
        "has_canonical": bool(canonical),
        "has_robots": bool(robots),
        "has_viewport": bool(viewport),
        "has_lang": bool(lang),
        "issues": issues,
    }


def analyze_content(text: str) -> Dict[str, Any]:
    word_count = len(text.split())
    issues: List[str] = []
    if word_count < 50:
        issues.append("Very little content detected")
    elif word_count < 300:
        issues.append("Content may be too short for SEO")
    return {
        "word_count": word_count,
        "reading_time": math.ceil(word_count / WORDS_PER_MINUTE),
        "has_content": word_count > 50,
        "sufficient": word_count >= 300,
        "issues": issues,
    }


def calculate_score(analysis: Dict[str, Any]) -> int:
    score = 100
    if not analysis["title"]["exists"]:
        score -= 15
    elif not analysis["title"]["optimal"]:
        score -= 5
    if not analysis["meta_description"]["exists"]:
        score -= 15
    elif not analysis["meta_description"]["optimal"]:
        score -= 5
    if not analysis["headings"]["has_h1"]:
        score -= 10
    if analysis["headings"]["multiple_h1"]:
        score -= 5
    if analysis["images"]["missing_alt"]:
        score -= min(20, analysis["images"]["missing_alt"] * 2)
    technical = analysis["technical"]
    score -= 5 * sum(not technical[k] for k in ("has_canonical", "has_viewport", "has_lang"))
    if not analysis["content"]["has_content"]:
        score -= 20
    elif not analysis["content"]["sufficient"]:
        score -= 10
    if not analysis["social_tags"]["has_open_graph"]:
        score -= 5
    return max(0, score)


def build_recommendations(analysis: Dict[str, Any]) -> List[str]:
    recs: List[str] = []
    if analysis["title"]["issues"]:
        recs.append("Optimize title tag for better search visibility")
    if analysis["meta_description"]["issues"]:
        recs.append("Improve meta description to increase click-through rates")
    if analysis["images"]["missing_alt"]:
        recs.append("Add alt attributes to images for accessibility and SEO")
    if not analysis["structured_data"]["has_structured_data"]:
        recs.append("Add structured data markup for better search results")
    if not analysis["social_tags"]["has_open_graph"]:
        recs.append("Add Open Graph tags for better social media sharing")
    return recs


_ISSUE_SECTIONS = (
    "title", "meta_description", "headings", "images", "links",
    "structured_data", "social_tags", "technical", "content",
)


class SEOAnalyzer:
    def __init__(self, discovery: Optional[SiteDiscovery] = None) -> None:
        self.discovery = discovery

    async def analyze(self, page: PageRecord) -> Dict[str, Any]:
        soup = BeautifulSoup(page.html, "html.parser")
        analysis: Dict[str, Any] = {
            "url": page.url,
            "title": analyze_title(soup),
            "meta_description": analyze_meta_description(soup),
            "headings": analyze_headings(soup),
            "images": analyze_images(soup),
            "links": analyze_links(soup, page.url),
            "structured_data": analyze_structured_data(page.structured_data),
            "social_tags": analyze_social_tags(soup),
            "technical": analyze_technical(soup),
            "content": analyze_content(page.text_content),
            "site_discovery": await self.discovery.discover(page.url) if self.discovery else {},
        }
        analysis["score"] = calculate_score(analysis)
        analysis["issues"] = [issue for key in _ISSUE_SECTIONS for issue in analysis[key]["issues"]]
        analysis["recommendations"] = build_recommendations(analysis)
        return analysis


__all__ = ["SEOAnalyzer", "FALLBACK", "calculate_score", "build_recommendations"]
