"""site_audit.analyzers.information_architecture: cross-page navigation and structure pass.

Runs once over every crawled page after per-page analysis. Compares what the
navigation offers with what the content talks about, and measures hierarchy
signals (URL depth, breadcrumbs, heading order, URL pattern consistency).

Topic categorization is a fixed, ordered substring rule table; the first rule
whose keyword occurs in the topic wins. Being substring based, it has known
marginal hits ("newsletter" lands in ``blog`` through "news").
"""
from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Sequence, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_audit.models import PageRecord
from site_audit.utils import is_same_domain, resolve_url

NAVIGATION_SELECTORS = (
    "nav", ".nav", ".navigation", ".menu", ".main-menu", ".primary-nav", ".header-nav",
    ".site-nav", '[role="navigation"]', ".navbar", ".nav-menu", ".top-nav", ".main-navigation",
)
FOOTER_SELECTORS = ("footer", ".footer", ".site-footer", ".page-footer", '[role="contentinfo"]')
BREADCRUMB_SELECTORS = (".breadcrumb", ".breadcrumbs", '[aria-label*="breadcrumb"]', ".bc-nav", ".breadcrumb-nav")

CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("product", ("product", "shop", "buy")),
    ("service", ("service", "solution")),
    ("about", ("about", "team", "company")),
    ("contact", ("contact", "support", "help")),
    ("blog", ("blog", "news", "article")),
    ("legal", ("legal", "privacy", "terms")),
)
DEFAULT_CATEGORY = "other"

STOP_WORDS = frozenset(
    """the and or but in on at to for of with by this that these those a an as are was were
    been be have has had do does did will would could should may might must can is am it its
    we you they them their our your his her him she he me us my mine""".split()
)

NAV_COVERAGE_THRESHOLD = 0.8
MAX_REPORTED_HIERARCHY_ISSUES = 10


def classify_topic(topic: str) -> str:
    """Category of *topic* by the first matching keyword rule, else ``"other"``."""
    lowered = topic.lower()
    for category, keywords in CATEGORY_RULES:
        if any(k in lowered for k in keywords):
            return category
    return DEFAULT_CATEGORY


def extract_keywords(text: str, limit: int = 20) -> List[str]:
    """Most frequent words longer than three letters, stop words removed."""
    if not text:
        return []
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(limit)]


def extract_topics(text: str, title: str) -> List[str]:
    topics = extract_keywords(title)
    for keyword in extract_keywords(text)[:10]:
        if keyword not in topics:
            topics.append(keyword)
    return topics


def url_segments(url: str) -> List[str]:
    return [s for s in urlparse(url).path.split("/") if s]


def extract_headings(soup: BeautifulSoup) -> List[Dict[str, Any]]:
    """Headings in document order."""
    headings = []
    for h in soup.find_all(re.compile(r"^h[1-6]$")):
        text = h.get_text(strip=True)
        if text:
            headings.append({"level": int(h.name[1]), "text": text})
    return headings


def heading_issues(headings: Sequence[Dict[str, Any]]) -> List[str]:
    issues: List[str] = []
    expected = 1
    for index, heading in enumerate(headings):
        level = heading["level"]
        if index == 0 and level != 1:
            issues.append("Page should start with H1")
        if level > expected + 1:
            issues.append(f"Heading level {level} follows H{expected} - skipped levels")
        expected = level
    return issues


def _select_unique(soup: BeautifulSoup, selectors: Iterable[str]) -> List[Tag]:
    seen = set()
    found: List[Tag] = []
    for selector in selectors:
        for el in soup.select(selector):
            if id(el) not in seen:
                seen.add(id(el))
                found.append(el)
    return found


def _nav_level(link: Tag) -> int:
    return sum(1 for parent in link.parents if getattr(parent, "name", None) in ("ul", "ol"))


def _links_in(element: Tag, page_url: str) -> List[Dict[str, Any]]:
    links = []
    for a in element.select("a[href]"):
        text = a.get_text(strip=True)
        href = resolve_url(a.get("href") or "", page_url)
        if text and href and is_same_domain(href, page_url):
            links.append({"text": text, "href": href, "aria_label": a.get("aria-label"), "level": _nav_level(a)})
    return links


def _breadcrumbs_in(element: Tag) -> List[Dict[str, Any]]:
    crumbs = []
    for el in element.find_all(["a", "span"]):
        text = el.get_text(strip=True)
        if text:
            crumbs.append(
                {
                    "text": text,
                    "href": el.get("href"),
                    "is_active": "active" in (el.get("class") or []) or el.get("aria-current") == "page",
                }
            )
    return crumbs


def _tally(store: Dict[str, Dict[str, Any]], key: str, item: Dict[str, Any], url: str) -> None:
    entry = store.setdefault(key, {**item, "count": 0, "pages": []})
    if url not in entry["pages"]:
        entry["count"] += 1
        entry["pages"].append(url)


def _by_count(store: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(store.values(), key=lambda e: e["count"], reverse=True)


def empty_result() -> Dict[str, Any]:
    return {
        "navigation": {"primary": [], "footer": [], "breadcrumbs": [], "consistency": {}},
        "content_structure": {"topics": [], "url_patterns": [], "heading_structure": [], "content_categories": {}},
        "alignment": {"matched_items": [], "orphaned_navigation": [], "missing_navigation": [], "overall_alignment": 0},
        "hierarchy": {"depth": {}, "breadcrumb_usage": {}, "url_structure": {}, "heading_hierarchy": {}},
        "recommendations": [],
        "score": 0,
        "summary": {
            "total_navigation_items": 0,
            "content_topics": 0,
            "alignment_score": 0,
            "consistency_issues": 0,
            "main_findings": [],
        },
    }


class InformationArchitectureAnalyzer:
    async def analyze(self, pages: Sequence[PageRecord]) -> Dict[str, Any]:
        pages = [p for p in pages if p.html]
        if not pages:
            return empty_result()

        soups = [(page, BeautifulSoup(page.html, "html.parser")) for page in pages]
        navigation = self.extract_navigation(soups)
        content = self.analyze_content_structure(soups)
        alignment = self.analyze_alignment(navigation, content)
        hierarchy = self.analyze_hierarchy(soups)
        recommendations = self.build_recommendations(navigation, alignment, hierarchy)
        return {
            "navigation": navigation,
            "content_structure": content,
            "alignment": alignment,
            "hierarchy": hierarchy,
            "recommendations": recommendations,
            "score": self.calculate_score(navigation, alignment, hierarchy),
            "summary": self.build_summary(navigation, content, alignment),
        }

    # ----- navigation ----- #

    def extract_navigation(self, soups: Sequence[Tuple[PageRecord, BeautifulSoup]]) -> Dict[str, Any]:
        primary: Dict[str, Dict[str, Any]] = {}
        footer: Dict[str, Dict[str, Any]] = {}
        breadcrumbs: Dict[str, Dict[str, Any]] = {}

        for page, soup in soups:
            for element in _select_unique(soup, NAVIGATION_SELECTORS):
                for link in _links_in(element, page.url):
                    _tally(primary, f"{link['text']}|{link['href']}", link, page.url)
            for element in _select_unique(soup, FOOTER_SELECTORS):
                for link in _links_in(element, page.url):
                    _tally(footer, f"{link['text']}|{link['href']}", link, page.url)
            for element in _select_unique(soup, BREADCRUMB_SELECTORS):
                crumbs = _breadcrumbs_in(element)
                if crumbs:
                    key = " > ".join(c["text"] for c in crumbs)
                    _tally(breadcrumbs, key, {"breadcrumbs": crumbs}, page.url)

        return {
            "primary": list(primary.values()),
            "footer": list(footer.values()),
            "breadcrumbs": list(breadcrumbs.values()),
            "consistency": self.navigation_consistency(primary.values()),
        }

    @staticmethod
    def navigation_consistency(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        items = list(items)
        consistency: Dict[str, Any] = {"primary_nav_consistent": True, "missing_nav_pages": []}
        if not items:
            return consistency
        reference = max(item["count"] for item in items)
        for item in items:
            coverage = item["count"] / reference
            if coverage < NAV_COVERAGE_THRESHOLD:
                consistency["primary_nav_consistent"] = False
                consistency["missing_nav_pages"].append(
                    {
                        "label": item["text"],
                        "coverage": round(coverage * 100),
                        "missing_from": reference - item["count"],
                    }
                )
        return consistency

    # ----- content ----- #

    def analyze_content_structure(self, soups: Sequence[Tuple[PageRecord, BeautifulSoup]]) -> Dict[str, Any]:
        topics: Dict[str, Dict[str, Any]] = {}
        segments: Dict[str, Dict[str, Any]] = {}
        headings: Dict[str, Dict[str, Any]] = {}

        for page, soup in soups:
            if page.text_content:
                for topic in extract_topics(page.text_content, page.title):
                    _tally(topics, topic, {"topic": topic}, page.url)
            for segment in url_segments(page.url):
                _tally(segments, segment, {"segment": segment}, page.url)
            for heading in extract_headings(soup):
                _tally(headings, f"{heading['level']}:{heading['text']}", heading, page.url)

        categories: Dict[str, List[Dict[str, Any]]] = {name: [] for name, _ in CATEGORY_RULES}
        categories[DEFAULT_CATEGORY] = []
        for topic in topics.values():
            categories[classify_topic(topic["topic"])].append(topic)

        return {
            "topics": _by_count(topics),
            "url_patterns": _by_count(segments),
            "heading_structure": _by_count(headings),
            "content_categories": categories,
        }

    @staticmethod
    def analyze_alignment(navigation: Dict[str, Any], content: Dict[str, Any]) -> Dict[str, Any]:
        matched: List[Dict[str, Any]] = []
        orphaned: List[Dict[str, Any]] = []
        missing: List[Dict[str, Any]] = []
        topic_names = [t["topic"].lower() for t in content["topics"]]

        for item in navigation["primary"]:
            label = item["text"].lower()
            if any(label in t or t in label for t in topic_names):
                matched.append({"navigation": item["text"], "url": item["href"], "type": "matched"})
            else:
                orphaned.append(
                    {"navigation": item["text"], "url": item["href"], "issue": "Navigation item without substantial content"}
                )

        labels = [item["text"].lower() for item in navigation["primary"]]
        for topic in content["topics"][:10]:
            name = topic["topic"].lower()
            if topic["count"] > 1 and not any(lbl in name or name in lbl for lbl in labels):
                missing.append(
                    {
                        "topic": topic["topic"],
                        "page_count": topic["count"],
                        "issue": "Significant content topic without navigation link",
                    }
                )

        total = len(navigation["primary"])
        return {
            "matched_items": matched,
            "orphaned_navigation": orphaned,
            "missing_navigation": missing,
            "overall_alignment": round(len(matched) / total * 100) if total else 0,
        }

    # ----- hierarchy ----- #

    def analyze_hierarchy(self, soups: Sequence[Tuple[PageRecord, BeautifulSoup]]) -> Dict[str, Any]:
        total = len(soups)
        depths = [len(url_segments(page.url)) for page, _ in soups]
        with_breadcrumbs = sum(
            1 for _, soup in soups if any(soup.select(sel) for sel in BREADCRUMB_SELECTORS)
        )

        first_segments = Counter(url_segments(page.url)[0] for page, _ in soups if url_segments(page.url))
        patterns = [{"pattern": p, "count": c} for p, c in first_segments.most_common()]
        patterned = sum(p["count"] for p in patterns)
        consistency = round(sum(p["count"] for p in patterns[:3]) / patterned * 100) if patterned else 0
        url_recs: List[str] = []
        if len(patterns) > 10:
            url_recs.append("Consider consolidating URL structure - too many top-level categories")
        if any(len(p["pattern"]) > 20 for p in patterns):
            url_recs.append("Some URL segments are very long - consider shorter, more descriptive names")

        good = 0
        problems: List[Dict[str, Any]] = []
        for page, soup in soups:
            issues = heading_issues(extract_headings(soup))
            if issues:
                problems.append({"url": page.url, "issues": issues})
            else:
                good += 1

        return {
            "depth": {
                "max_depth": max(depths),
                "avg_depth": round(sum(depths) / total),
                "distribution": dict(Counter(depths)),
            },
            "breadcrumb_usage": {
                "coverage": round(with_breadcrumbs / total * 100),
                "pages_with_breadcrumbs": with_breadcrumbs,
                "total_pages": total,
            },
            "url_structure": {"patterns": patterns, "consistency": consistency, "recommendations": url_recs},
            "heading_hierarchy": {
                "pages_with_good_hierarchy": good,
                "total_pages": total,
                "hierarchy_score": round(good / total * 100),
                "issues": problems[:MAX_REPORTED_HIERARCHY_ISSUES],
            },
        }

    # ----- verdict ----- #

    @staticmethod
    def build_recommendations(
        navigation: Dict[str, Any], alignment: Dict[str, Any], hierarchy: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        recs: List[Dict[str, Any]] = []
        missing_nav = navigation["consistency"].get("missing_nav_pages", [])
        if missing_nav:
            recs.append(
                {
                    "category": "Navigation Consistency",
                    "priority": "high",
                    "title": "Inconsistent navigation across pages",
                    "description": f"{len(missing_nav)} navigation items are missing from some pages",
                    "action": "Ensure all navigation elements appear consistently across all pages",
                    "affected_items": missing_nav,
                }
            )
        if alignment["missing_navigation"]:
            recs.append(
                {
                    "category": "Information Architecture",
                    "priority": "medium",
                    "title": "Missing navigation for important content",
                    "description": f"{len(alignment['missing_navigation'])} significant content topics lack navigation links",
                    "action": "Add navigation links for important content areas",
                    "affected_items": alignment["missing_navigation"],
                }
            )
        if alignment["orphaned_navigation"]:
            recs.append(
                {
                    "category": "Information Architecture",
                    "priority": "medium",
                    "title": "Navigation items without substantial content",
                    "description": f"{len(alignment['orphaned_navigation'])} navigation items don't lead to substantial content",
                    "action": "Review and either add content or remove unnecessary navigation items",
                    "affected_items": alignment["orphaned_navigation"],
                }
            )
        coverage = hierarchy["breadcrumb_usage"]["coverage"]
        if coverage < 70:
            recs.append(
                {
                    "category": "Site Navigation",
                    "priority": "medium",
                    "title": "Low breadcrumb usage",
                    "description": f"Only {coverage}% of pages have breadcrumbs",
                    "action": "Implement breadcrumbs on deeper pages to improve navigation",
                }
            )
        heading_score = hierarchy["heading_hierarchy"]["hierarchy_score"]
        if heading_score < 80:
            recs.append(
                {
                    "category": "Content Structure",
                    "priority": "medium",
                    "title": "Poor heading hierarchy",
                    "description": f"{100 - heading_score}% of pages have heading hierarchy issues",
                    "action": "Fix heading structure to follow proper H1 > H2 > H3 hierarchy",
                }
            )
        url_consistency = hierarchy["url_structure"]["consistency"]
        if url_consistency < 70:
            recs.append(
                {
                    "category": "URL Structure",
                    "priority": "low",
                    "title": "Inconsistent URL patterns",
                    "description": f"URL structure consistency is only {url_consistency}%",
                    "action": "Develop and follow consistent URL naming conventions",
                }
            )
        return recs

    @staticmethod
    def calculate_score(navigation: Dict[str, Any], alignment: Dict[str, Any], hierarchy: Dict[str, Any]) -> int:
        score = 100.0
        missing_nav = navigation["consistency"].get("missing_nav_pages", [])
        if missing_nav:
            score -= min(20, len(missing_nav) * 5)
        if alignment["overall_alignment"] < 80:
            score -= (80 - alignment["overall_alignment"]) * 0.5
        coverage = hierarchy["breadcrumb_usage"]["coverage"]
        if coverage < 70:
            score -= (70 - coverage) * 0.3
        heading_score = hierarchy["heading_hierarchy"]["hierarchy_score"]
        if heading_score < 80:
            score -= (80 - heading_score) * 0.4
        url_consistency = hierarchy["url_structure"]["consistency"]
        if url_consistency < 70:
            score -= (70 - url_consistency) * 0.2
        return max(0, round(score))

    @staticmethod
    def build_summary(navigation: Dict[str, Any], content: Dict[str, Any], alignment: Dict[str, Any]) -> Dict[str, Any]:
        total_nav = len(navigation["primary"])
        issues = len(navigation["consistency"].get("missing_nav_pages", []))
        alignment_score = alignment["overall_alignment"]
        return {
            "total_navigation_items": total_nav,
            "content_topics": len(content["topics"]),
            "alignment_score": alignment_score,
            "consistency_issues": issues,
            "main_findings": [
                f"Found {total_nav} primary navigation items",
                f"{alignment_score}% navigation-content alignment",
                f"{len(content['topics'])} distinct content topics identified",
                f"{issues} navigation consistency issues" if issues else "Navigation appears consistent",
            ],
        }


__all__ = [
    "InformationArchitectureAnalyzer",
    "CATEGORY_RULES",
    "classify_topic",
    "extract_keywords",
    "heading_issues",
    "empty_result",
]
