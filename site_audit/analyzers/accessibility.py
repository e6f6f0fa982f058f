"""
Accessibility scanner
=====================

WCAG 2.1 rule checks run against the fetched HTML with BeautifulSoup.

Each rule either does not apply to the page, passes, or fails with a list of
offending nodes. The score is the share of applicable rules that passed.
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_audit.models import PageRecord

FALLBACK: Dict[str, Any] = {
    "score": 0,
    "total_violations": 0,
    "total_passes": 0,
    "violations": [],
    "passes": [],
    "wcag_breakdown": {"A": 0, "AA": 0, "AAA": 0},
    "impact_breakdown": {"critical": 0, "serious": 0, "moderate": 0, "minor": 0},
    "summary": {"score": 0, "compliance": "Unknown", "violation_count": 0, "critical_issues": 0},
}

IMPACTS = ("critical", "serious", "moderate", "minor")
_SNIPPET_LEN = 250

Nodes = Optional[List[Tag]]


@dataclass(frozen=True, slots=True)
class Rule:
    id: str
    impact: str
    description: str
    help: str
    tags: tuple[str, ...]
    check: Callable[[BeautifulSoup], Nodes]


# --------------------------------------------------------------------------- #
# Helpers                                                                     #
# --------------------------------------------------------------------------- #


def _has_accessible_name(tag: Tag) -> bool:
    if tag.get_text(strip=True):
        return True
    if (tag.get("aria-label") or "").strip() or tag.get("aria-labelledby") or (tag.get("title") or "").strip():
        return True
    return any((img.get("alt") or "").strip() for img in tag.find_all("img"))


def _target(tag: Tag) -> str:
    if tag.get("id"):
        return f"#{tag['id']}"
    classes = tag.get("class") or []
    return tag.name + "".join(f".{c}" for c in classes)


def _node(tag: Tag, impact: str, summary: str) -> Dict[str, Any]:
    return {
        "target": [_target(tag)],
        "html": str(tag)[:_SNIPPET_LEN],
        "failure_summary": summary,
        "impact": impact,
    }


def wcag_level(tags: tuple[str, ...] | List[str]) -> str:
    for tag in tags:
        if tag in ("wcag2a", "wcag21a"):
            return "A"
        if tag in ("wcag2aa", "wcag21aa"):
            return "AA"
        if tag in ("wcag2aaa", "wcag21aaa"):
            return "AAA"
    return "Unknown"


# --------------------------------------------------------------------------- #
# Checks: None = not applicable, [] = passed, [nodes] = violations            #
# --------------------------------------------------------------------------- #


def _check_lang(soup: BeautifulSoup) -> Nodes:
    html = soup.find("html")
    if not isinstance(html, Tag):
        return None
    return [] if (html.get("lang") or "").strip() else [html]


def _check_title(soup: BeautifulSoup) -> Nodes:
    title = soup.find("title")
    if isinstance(title, Tag) and title.get_text(strip=True):
        return []
    head = soup.find("head")
    return [head if isinstance(head, Tag) else soup.new_tag("head")]


def _check_image_alt(soup: BeautifulSoup) -> Nodes:
    images = soup.find_all("img")
    if not images:
        return None
    return [
        img for img in images
        if img.get("alt") is None and img.get("role") not in ("presentation", "none")
        and not (img.get("aria-label") or "").strip()
    ]


def _check_link_name(soup: BeautifulSoup) -> Nodes:
    links = soup.select("a[href]")
    if not links:
        return None
    return [a for a in links if not _has_accessible_name(a)]


def _check_button_name(soup: BeautifulSoup) -> Nodes:
    buttons = soup.find_all("button")
    inputs = soup.select('input[type="button"], input[type="submit"], input[type="reset"]')
    if not buttons and not inputs:
        return None
    failing = [b for b in buttons if not _has_accessible_name(b)]
    failing += [
        i for i in inputs
        if not (i.get("value") or "").strip() and not (i.get("aria-label") or "").strip()
        and i.get("type") != "submit" and i.get("type") != "reset"
    ]
    return failing


_UNLABELLED_INPUT_TYPES = {"hidden", "submit", "button", "reset", "image"}


def _check_form_labels(soup: BeautifulSoup) -> Nodes:
    fields = [
        f for f in soup.find_all(["input", "select", "textarea"])
        if (f.get("type") or "text").lower() not in _UNLABELLED_INPUT_TYPES
    ]
    if not fields:
        return None
    label_targets = {label.get("for") for label in soup.find_all("label") if label.get("for")}
    failing = []
    for f in fields:
        if f.get("id") and f["id"] in label_targets:
            continue
        if f.find_parent("label") is not None:
            continue
        if (f.get("aria-label") or "").strip() or f.get("aria-labelledby") or (f.get("title") or "").strip():
            continue
        failing.append(f)
    return failing


def _check_heading_order(soup: BeautifulSoup) -> Nodes:
    headings = soup.find_all(re.compile(r"^h[1-6]$"))
    if not headings:
        return None
    failing = []
    previous = 0
    for h in headings:
        level = int(h.name[1])
        if previous and level > previous + 1:
            failing.append(h)
        previous = level
    return failing


def _check_heading_one(soup: BeautifulSoup) -> Nodes:
    body = soup.body
    if body is None:
        return None
    return [] if soup.find("h1") else [body]


def _check_main_landmark(soup: BeautifulSoup) -> Nodes:
    body = soup.body
    if body is None:
        return None
    return [] if soup.find("main") or soup.find(attrs={"role": "main"}) else [body]


def _check_table_headers(soup: BeautifulSoup) -> Nodes:
    tables = [
        t for t in soup.find_all("table")
        if t.get("role") not in ("presentation", "none") and len(t.find_all("tr")) > 1
    ]
    if not tables:
        return None
    return [t for t in tables if not t.find("th")]


def _check_duplicate_ids(soup: BeautifulSoup) -> Nodes:
    tagged = soup.find_all(id=True)
    if not tagged:
        return None
    counts = Counter(t["id"] for t in tagged)
    return [t for t in tagged if counts[t["id"]] > 1]


def _check_viewport_zoom(soup: BeautifulSoup) -> Nodes:
    meta = soup.find("meta", attrs={"name": "viewport"})
    if not isinstance(meta, Tag):
        return None
    content = (meta.get("content") or "").replace(" ", "").lower()
    if "user-scalable=no" in content or "user-scalable=0" in content:
        return [meta]
    match = re.search(r"maximum-scale=([\d.]+)", content)
    if match:
        try:
            if float(match.group(1)) < 2:
                return [meta]
        except ValueError:
            return None
    return []


RULES: tuple[Rule, ...] = (
    Rule("html-has-lang", "serious", "Ensures every HTML document has a lang attribute",
         "<html> element must have a lang attribute", ("wcag2a", "wcag311"), _check_lang),
    Rule("document-title", "serious", "Ensures each HTML document contains a non-empty <title> element",
         "Documents must have <title> element to aid in navigation", ("wcag2a", "wcag242"), _check_title),
    Rule("image-alt", "critical", "Ensures <img> elements have alternate text or a role of none or presentation",
         "Images must have alternate text", ("wcag2a", "wcag111"), _check_image_alt),
    Rule("link-name", "serious", "Ensures links have discernible text",
         "Links must have discernible text", ("wcag2a", "wcag244", "wcag412"), _check_link_name),
    Rule("button-name", "critical", "Ensures buttons have discernible text",
         "Buttons must have discernible text", ("wcag2a", "wcag412"), _check_button_name),
    Rule("label", "critical", "Ensures every form element has a label",
         "Form elements must have labels", ("wcag2a", "wcag412"), _check_form_labels),
    Rule("heading-order", "moderate", "Ensures the order of headings is semantically correct",
         "Heading levels should only increase by one", ("best-practice",), _check_heading_order),
    Rule("page-has-heading-one", "moderate", "Ensures that the page contains a level-one heading",
         "Page should contain a level-one heading", ("best-practice",), _check_heading_one),
    Rule("landmark-one-main", "moderate", "Ensures the document has a main landmark",
         "Document should have one main landmark", ("best-practice",), _check_main_landmark),
    Rule("td-has-header", "serious", "Ensures data tables have header cells",
         "Data tables must mark up their header cells", ("wcag2a", "wcag131"), _check_table_headers),
    Rule("duplicate-id", "minor", "Ensures every id attribute value is unique",
         "id attribute value must be unique", ("wcag2a", "wcag411"), _check_duplicate_ids),
    Rule("meta-viewport", "critical", "Ensures <meta name=viewport> does not disable text scaling and zooming",
         "Zooming and scaling must not be disabled", ("wcag2aa", "wcag144"), _check_viewport_zoom),
)


# --------------------------------------------------------------------------- #
# Scoring                                                                     #
# --------------------------------------------------------------------------- #


def compliance_label(score: int, wcag_breakdown: Dict[str, int]) -> str:
    if score >= 95 and wcag_breakdown["A"] == 0 and wcag_breakdown["AA"] == 0:
        return "WCAG 2.1 AA Compliant"
    if score >= 90 and wcag_breakdown["A"] == 0:
        return "WCAG 2.1 A Compliant"
    if score >= 80:
        return "Mostly Accessible"
    if score >= 60:
        return "Partially Accessible"
    return "Non-compliant"


def recommendation(score: int, impact_breakdown: Dict[str, int]) -> str:
    if score >= 95:
        return "Excellent accessibility! Consider periodic reviews to maintain compliance."
    if impact_breakdown["critical"] > 0:
        return "Critical accessibility issues found. Address immediately to prevent user exclusion."
    if impact_breakdown["serious"] > 0:
        return "Serious accessibility issues detected. Prioritize fixes for better user experience."
    if score < 80:
        return "Multiple accessibility improvements needed. Consider a comprehensive accessibility audit."
    return "Good accessibility foundation. Address remaining issues for better compliance."


class AccessibilityScanner:
    """Runs :data:`RULES` over a page's HTML."""

    def __init__(self, rules: tuple[Rule, ...] = RULES) -> None:
        self.rules = rules

    async def analyze(self, page: PageRecord) -> Dict[str, Any]:
        return self.scan(page.html)

    def scan(self, html: str) -> Dict[str, Any]:
        soup = BeautifulSoup(html, "html.parser")
        violations: List[Dict[str, Any]] = []
        passes: List[str] = []
        for rule in self.rules:
            nodes = rule.check(soup)
            if nodes is None:
                continue
            if not nodes:
                passes.append(rule.id)
                continue
            violations.append(
                {
                    "id": rule.id,
                    "impact": rule.impact,
                    "description": rule.description,
                    "help": rule.help,
                    "tags": list(rule.tags),
                    "wcag_level": wcag_level(rule.tags),
                    "nodes": [_node(n, rule.impact, rule.help) for n in nodes],
                }
            )

        total = len(violations) + len(passes)
        score = round(len(passes) / total * 100) if total else 0
        wcag_breakdown = {lvl: sum(1 for v in violations if v["wcag_level"] == lvl) for lvl in ("A", "AA", "AAA")}
        impact_breakdown = {imp: sum(1 for v in violations if v["impact"] == imp) for imp in IMPACTS}

        return {
            "score": score,
            "total_violations": len(violations),
            "total_passes": len(passes),
            "violations": violations,
            "passes": passes,
            "wcag_breakdown": wcag_breakdown,
            "impact_breakdown": impact_breakdown,
            "summary": {
                "score": score,
                "compliance": compliance_label(score, wcag_breakdown),
                "violation_count": len(violations),
                "critical_issues": impact_breakdown["critical"] + impact_breakdown["serious"],
                "recommendation": recommendation(score, impact_breakdown),
            },
        }


__all__ = ["AccessibilityScanner", "Rule", "RULES", "FALLBACK", "wcag_level"]
