"""site_audit.report.html_report: HTML and Markdown reports rendered with Jinja2."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_audit.config import AuditOptions
from site_audit.models import AuditResult
from site_audit.report.csv_report import page_row, triage_rows

TEMPLATE_DIR = Path(__file__).parent / "templates"
TOP_ISSUES = 20


def build_environment(template_dir: Union[Path, str, None] = None) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["pct"] = lambda value: f"{round(value or 0)}%"
    return env


def build_context(result: AuditResult, options: AuditOptions) -> Dict[str, Any]:
    """Template variables shared by the HTML and Markdown reports."""
    summary = result.summary or {}
    return {
        "site_url": options.url,
        "context": options.context,
        "category": options.category,
        "generated_at": datetime.now().strftime("%Y-%m-%d %H:%M"),
        "total_pages": len(result.pages),
        "summary": summary,
        "health": summary.get("overall_health") or {"score": 0, "grade": "Unknown", "breakdown": {}},
        "executive_summary": summary.get("executive_summary", ""),
        "rows": [page_row(page) for page in result.pages],
        "top_issues": triage_rows(result.issues)[:TOP_ISSUES],
        "total_issues": len(result.issues),
        "recommendations": result.recommendations,
        "ia": result.information_architecture or {},
    }


def render_html(
    result: AuditResult,
    options: AuditOptions,
    output_path: Union[Path, str],
    template_dir: Optional[Union[Path, str]] = None,
) -> Path:
    """Render ``report.html.j2`` and save it to *output_path*."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    template = build_environment(template_dir).get_template("report.html.j2")
    output_path.write_text(template.render(**build_context(result, options)), encoding="utf-8")
    return output_path


def render_markdown(
    result: AuditResult,
    options: AuditOptions,
    output_path: Union[Path, str],
    template_dir: Optional[Union[Path, str]] = None,
) -> Path:
    """Render ``report.md.j2`` and save it to *output_path*."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = build_environment(template_dir)
    env.autoescape = False
    template = env.get_template("report.md.j2")
    output_path.write_text(template.render(**build_context(result, options)), encoding="utf-8")
    return output_path


__all__ = ["render_html", "render_markdown", "build_context", "build_environment", "TEMPLATE_DIR"]
