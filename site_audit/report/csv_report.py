"""site_audit.report.csv_report: spreadsheet exports (full audit, priority triage, link status)."""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import urlparse

from site_audit.models import AuditResult, PageResult, utc_timestamp

TRIAGE_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("priority_rank", "Priority Rank"),
    ("severity", "Severity"),
    ("category", "Category"),
    ("issue_summary", "Issue Summary"),
    ("affected_pages_count", "Affected Pages Count"),
    ("affected_pages", "Affected Pages"),
    ("estimated_effort", "Estimated Effort"),
    ("wcag_level", "WCAG Level"),
    ("recommendation", "Recommendation"),
)

LINK_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("source_page", "Source Page"),
    ("source_page_title", "Source Page Title"),
    ("link_url", "Link URL"),
    ("link_text", "Link Text"),
    ("link_aria_label", "ARIA Label"),
    ("link_title", "Link Title"),
    ("status_code", "Status Code"),
    ("status_category", "Status Category"),
    ("original_href", "Original Href"),
    ("is_internal", "Is Internal"),
    ("analysis_date", "Analysis Date"),
)

_SEVERITY_RANK = {"critical": 0, "serious": 1, "high": 1, "moderate": 2, "medium": 2, "minor": 3, "low": 3}


def status_category(status: int) -> str:
    if status == -1:
        return "Timeout"
    if status == -2:
        return "DNS Error"
    if status == -3:
        return "Connection Refused"
    if status == 0:
        return "Network Error"
    if 200 <= status < 300:
        return "Success"
    if 300 <= status < 400:
        return "Redirect"
    if 400 <= status < 500:
        return "Client Error"
    if status >= 500:
        return "Server Error"
    return "Unknown"


def _count_ai_issues(section: Any) -> int:
    if not isinstance(section, Mapping):
        return 0
    return sum(len(section.get(key) or []) for key in ("issues", "inconsistencies", "bottlenecks", "recommendations"))


def _join(values: Optional[Iterable[Any]]) -> str:
    return ", ".join(str(v) for v in values or [])


def page_row(page: PageResult) -> Dict[str, Any]:
    a11y = page.stage("accessibility")
    seo = page.stage("seo")
    perf = page.stage("performance")
    links = page.stage("links")
    ai = page.stage("ai")
    content = ai.get("content") or {}
    uiux = ai.get("uiux") or {}
    structured = ai.get("structured_data") or {}
    link_labels = ai.get("link_labels") or {}
    wcag = a11y.get("wcag_breakdown") or {}
    vitals = perf.get("core_web_vitals") or {}
    return {
        "url": page.url,
        "title": page.page.title,
        "depth": page.page.depth,
        "status_code": page.page.status_code,
        "accessibility_score": a11y.get("score", 0),
        "accessibility_violations": a11y.get("total_violations", 0),
        "wcag_a_issues": wcag.get("A", 0),
        "wcag_aa_issues": wcag.get("AA", 0),
        "wcag_aaa_issues": wcag.get("AAA", 0),
        "seo_score": seo.get("score", 0),
        "has_title": (seo.get("title") or {}).get("exists", False),
        "title_length": (seo.get("title") or {}).get("length", 0),
        "has_meta_description": (seo.get("meta_description") or {}).get("exists", False),
        "has_h1": (seo.get("headings") or {}).get("has_h1", False),
        "h1_count": (seo.get("headings") or {}).get("h1_count", 0),
        "images_missing_alt": (seo.get("images") or {}).get("missing_alt", 0),
        "has_structured_data": (seo.get("structured_data") or {}).get("has_structured_data", False),
        "performance_score": perf.get("score", 0),
        "load_time_ms": perf.get("load_time", 0),
        "fcp": (vitals.get("fcp") or {}).get("display_value", ""),
        "lcp": (vitals.get("lcp") or {}).get("display_value", ""),
        "total_links": links.get("total_links", 0),
        "broken_links": len(links.get("broken_links") or []),
        "working_links_percentage": (links.get("summary") or {}).get("working_percentage", 0),
        "word_count": (seo.get("content") or {}).get("word_count", 0),
        "reading_time": (seo.get("content") or {}).get("reading_time", 0),
        "has_canonical": (seo.get("technical") or {}).get("has_canonical", False),
        "has_viewport": (seo.get("technical") or {}).get("has_viewport", False),
        "has_lang": (seo.get("technical") or {}).get("has_lang", False),
        "ai_accessibility_issues": _count_ai_issues(ai.get("accessibility")),
        "ai_seo_issues": _count_ai_issues(ai.get("seo")),
        "ai_content_issues": _count_ai_issues(content),
        "ai_uiux_issues": _count_ai_issues(uiux),
        "ai_performance_issues": _count_ai_issues(ai.get("performance")),
        "ai_structured_data_issues": _count_ai_issues(structured),
        "ai_link_label_issues": _count_ai_issues(link_labels),
        "content_topics": _join(content.get("topics")),
        "content_tone": content.get("tone", ""),
        "content_quality_score": content.get("quality_score", 0),
        "target_audience": content.get("target_audience", ""),
        "design_consistency": uiux.get("design_consistency", ""),
        "typography_score": uiux.get("typography_score", 0),
        "mobile_responsive": uiux.get("mobile_responsive", False),
        "discoverability_score": structured.get("discoverability_score", 0),
        "accurate_links": link_labels.get("accurate_links", 0),
        "failed_stages": _join(page.analysis.failed_stages() if page.analysis else []),
        "error": page.error or "",
    }


def ia_columns(ia: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not ia:
        return {}
    hierarchy = ia.get("hierarchy") or {}
    return {
        "ia_score": ia.get("score", 0),
        "navigation_items": len((ia.get("navigation") or {}).get("primary") or []),
        "content_alignment": (ia.get("alignment") or {}).get("overall_alignment", 0),
        "breadcrumb_coverage": (hierarchy.get("breadcrumb_usage") or {}).get("coverage", 0),
        "heading_hierarchy_score": (hierarchy.get("heading_hierarchy") or {}).get("hierarchy_score", 0),
        "url_structure_consistency": (hierarchy.get("url_structure") or {}).get("consistency", 0),
    }


def _write(path: Path, columns: Sequence[Tuple[str, str]], rows: Iterable[Mapping[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh)
        writer.writerow([title for _, title in columns])
        for row in rows:
            writer.writerow([row.get(key, "") for key, _ in columns])
    return path


def write_full_audit(result: AuditResult, path: Union[Path, str]) -> Path:
    """One row per page; site-wide IA figures are repeated on every row."""
    extra = ia_columns(result.information_architecture)
    rows = [{**page_row(page), **extra} for page in result.pages]
    keys = list(rows[0]) if rows else ["url", "title", "error"]
    return _write(Path(path), [(k, k) for k in keys], rows)


def triage_rows(issues: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Issues ranked by severity (stable within a severity)."""
    ranked = sorted(issues, key=lambda i: _SEVERITY_RANK.get(str(i.get("severity", "medium")).lower(), 2))
    rows: List[Dict[str, Any]] = []
    for rank, issue in enumerate(ranked, start=1):
        pages = issue.get("affected_pages")
        affected = list(pages) if isinstance(pages, (list, tuple)) else [issue.get("page", "")]
        rows.append(
            {
                "priority_rank": rank,
                "severity": issue.get("severity") or "medium",
                "category": issue.get("type") or issue.get("category") or "general",
                "issue_summary": issue.get("issue") or issue.get("description") or "Unknown issue",
                "affected_pages_count": len(affected),
                "affected_pages": "; ".join(str(p) for p in affected if p),
                "estimated_effort": issue.get("estimated_effort") or "medium",
                "wcag_level": issue.get("wcag_level") or "",
                "recommendation": issue.get("action") or issue.get("recommendation") or "",
            }
        )
    return rows


def write_priority_triage(issues: Sequence[Mapping[str, Any]], path: Union[Path, str]) -> Path:
    return _write(Path(path), TRIAGE_COLUMNS, triage_rows(issues))


def link_rows(pages: Sequence[PageResult]) -> List[Dict[str, Any]]:
    analysed_at = utc_timestamp()
    rows: List[Dict[str, Any]] = []
    for page in pages:
        source_host = urlparse(page.url).hostname
        for link in page.stage("links").get("links") or []:
            status = link.get("status", 0)
            href = link.get("href", "")
            rows.append(
                {
                    "source_page": page.url,
                    "source_page_title": page.page.title or "No title",
                    "link_url": href,
                    "link_text": link.get("text") or "",
                    "link_aria_label": link.get("aria_label") or "",
                    "link_title": link.get("title") or "",
                    "status_code": status,
                    "status_category": status_category(status),
                    "original_href": link.get("original_href") or href,
                    "is_internal": urlparse(href).hostname == source_host,
                    "analysis_date": analysed_at,
                }
            )
    return rows


def write_links_status(pages: Sequence[PageResult], path: Union[Path, str]) -> Path:
    return _write(Path(path), LINK_COLUMNS, link_rows(pages))


__all__ = [
    "write_full_audit",
    "write_priority_triage",
    "write_links_status",
    "page_row",
    "triage_rows",
    "link_rows",
    "status_category",
]
