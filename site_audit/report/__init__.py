"""site_audit.report: writes every report of a run into the output directory."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from site_audit.config import AuditOptions
from site_audit.logger import logger
from site_audit.models import AuditResult
from site_audit.report.csv_report import write_full_audit, write_links_status, write_priority_triage
from site_audit.report.html_report import render_html, render_markdown
from site_audit.report.json_report import render_json
from site_audit.report.pdf_report import render_pdf

REPORT_FILES = {
    "json": "audit_results.json",
    "full_audit": "full_audit.csv",
    "priority_triage": "priority_triage.csv",
    "links_status": "links_status.csv",
    "markdown": "report.md",
    "html": "report.html",
    "pdf": "report.pdf",
}


class ReportGenerator:
    def __init__(self, options: AuditOptions) -> None:
        self.options = options
        self.output_dir = Path(options.output_dir)

    def path(self, name: str) -> Path:
        return self.output_dir / REPORT_FILES[name]

    async def generate_all(self, result: AuditResult, browser: Optional[Any] = None) -> Dict[str, Path]:
        """Write all reports; the PDF needs *browser* and is skipped without one."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written = {
            "json": render_json(result, self.path("json")),
            "full_audit": write_full_audit(result, self.path("full_audit")),
            "priority_triage": write_priority_triage(result.issues, self.path("priority_triage")),
            "links_status": write_links_status(result.pages, self.path("links_status")),
            "markdown": render_markdown(result, self.options, self.path("markdown")),
            "html": render_html(result, self.options, self.path("html")),
        }
        if browser is not None and self.options.generate_pdf:
            pdf = await render_pdf(browser, written["html"], self.path("pdf"))
            if pdf is not None:
                written["pdf"] = pdf
        for path in written.values():
            logger.info("Report written: %s", path)
        return written


__all__ = ["ReportGenerator", "REPORT_FILES", "render_json", "render_html", "render_markdown", "render_pdf"]
