# File: tests/test_reports.py
from __future__ import annotations

import csv
import json

import pytest

from conftest import ROOT, FakeBrowser, make_record
from site_audit.models import AnalysisRecord, AuditResult, Failed, Ok, PageResult
from site_audit.report import REPORT_FILES, ReportGenerator, render_json, render_pdf
from site_audit.report.csv_report import status_category, triage_rows, write_full_audit


def read_csv(path):
    with path.open(encoding="utf-8", newline="") as fh:
        return list(csv.DictReader(fh))


@pytest.fixture()
def audit_result() -> AuditResult:
    links = {
        "total_links": 2,
        "links": [
            {"href": ROOT + "about", "original_href": "/about", "text": "About", "status": 200},
            {"href": "https://elsewhere.test/x", "text": "Gone", "aria_label": "Old page", "status": 404},
        ],
        "broken_links": [{"href": "https://elsewhere.test/x", "status": 404}],
        "summary": {"working_percentage": 50},
    }
    analysis = AnalysisRecord(
        links=Ok(links),
        accessibility=Ok({"score": 80, "total_violations": 1, "wcag_breakdown": {"A": 1, "AA": 0, "AAA": 0}}),
        seo=Failed.from_error({"score": 0, "issues": []}, "SEO analysis timed out after 300 seconds", timed_out=True),
        performance=Ok({"score": 90, "load_time": 420, "core_web_vitals": {"fcp": {"display_value": "120ms"}}}),
        ai=Ok({"content": {"topics": ["pricing", "plans"], "tone": "Friendly", "quality_score": 8}}),
    )
    return AuditResult(
        pages=[
            PageResult(page=make_record(ROOT, "<html><title>Home <script>x</script></title></html>", title="Home <b>"),
                       analysis=analysis),
            PageResult(page=make_record(ROOT + "broken"), error="analysis exploded"),
        ],
        summary={
            "overall_health": {"score": 72, "grade": "Good", "breakdown": {"performance": 90.0, "seo": 0.0}},
            "executive_summary": "## Website Audit Executive Summary\nAll good.",
        },
        issues=[
            {"type": "seo", "page": ROOT, "severity": "medium", "issue": "Missing meta description"},
            {"type": "accessibility", "page": ROOT, "severity": "critical", "issue": "Images need alt text",
             "wcag_level": "wcag2a"},
            {"type": "information_architecture", "page": "site-wide", "severity": "low", "issue": "URLs",
             "action": "Use consistent URLs"},
        ],
        recommendations=[{"priority": "High", "category": "SEO", "recommendation": "Write meta descriptions",
                          "impact": "More clicks"}],
        information_architecture={"score": 64, "summary": {"main_findings": ["Navigation appears consistent"]}},
    )


@pytest.mark.parametrize(
    "status, label",
    [(-1, "Timeout"), (-2, "DNS Error"), (-3, "Connection Refused"), (0, "Network Error"),
     (200, "Success"), (301, "Redirect"), (404, "Client Error"), (503, "Server Error"), (-9, "Unknown")],
)
def test_status_category(status, label):
    assert status_category(status) == label


def test_triage_rows_ranked_by_severity(audit_result):
    rows = triage_rows(audit_result.issues)
    assert [r["severity"] for r in rows] == ["critical", "medium", "low"]
    assert [r["priority_rank"] for r in rows] == [1, 2, 3]
    assert rows[0]["wcag_level"] == "wcag2a"
    assert rows[2]["recommendation"] == "Use consistent URLs"
    assert rows[2]["affected_pages"] == "site-wide"


@pytest.mark.asyncio()
async def test_generate_all_writes_every_report(audit_result, make_options):
    options = make_options(context="SaaS marketing site", category="SaaS")
    written = await ReportGenerator(options).generate_all(audit_result)

    assert set(written) == set(REPORT_FILES) - {"pdf"}
    for path in written.values():
        assert path.exists()

    data = json.loads(written["json"].read_text(encoding="utf-8"))
    assert data["pages"][1]["error"] == "analysis exploded"
    assert data["pages"][0]["analysis"]["seo"]["timed_out"] is True

    full = read_csv(written["full_audit"])
    assert [row["url"] for row in full] == [ROOT, ROOT + "broken"]
    assert full[0]["failed_stages"] == "seo"
    assert full[0]["content_topics"] == "pricing, plans"
    assert full[0]["ia_score"] == "64"
    assert full[1]["error"] == "analysis exploded"

    links = read_csv(written["links_status"])
    assert [(r["Link Text"], r["Status Category"], r["Is Internal"]) for r in links] == [
        ("About", "Success", "True"),
        ("Gone", "Client Error", "False"),
    ]
    assert links[1]["ARIA Label"] == "Old page"

    triage = read_csv(written["priority_triage"])
    assert triage[0]["Severity"] == "critical"

    html = written["html"].read_text(encoding="utf-8")
    assert "72/100 (Good)" in html
    assert "Home &lt;b&gt;" in html
    assert "Home <b>" not in html
    assert "Write meta descriptions" in html
    assert "Navigation appears consistent" in html

    markdown = written["markdown"].read_text(encoding="utf-8")
    assert markdown.startswith("# Website Audit Report")
    assert "**Context:** SaaS marketing site" in markdown
    assert "## Website Audit Executive Summary" in markdown
    assert "1. **[High] SEO:** Write meta descriptions (More clicks)" in markdown


@pytest.mark.asyncio()
async def test_reports_for_empty_run(make_options):
    options = make_options()
    written = await ReportGenerator(options).generate_all(AuditResult())

    with written["full_audit"].open(encoding="utf-8") as fh:
        assert fh.readline().strip() == "url,title,error"
    assert "0/100 (Unknown)" in written["html"].read_text(encoding="utf-8")


def test_write_full_audit_without_ia(audit_result, tmp_path):
    audit_result.information_architecture = None
    rows = read_csv(write_full_audit(audit_result, tmp_path / "full.csv"))
    assert "ia_score" not in rows[0]


def test_render_json_accepts_plain_dict(tmp_path):
    path = render_json({"pages": [], "when": tmp_path}, tmp_path / "out" / "r.json")
    assert json.loads(path.read_text(encoding="utf-8"))["when"] == str(tmp_path)


@pytest.mark.asyncio()
async def test_render_pdf_best_effort(tmp_path):
    html = tmp_path / "report.html"
    html.write_text("<html><body>Report</body></html>", encoding="utf-8")
    browser = FakeBrowser({})

    pdf = await render_pdf(browser, html, tmp_path / "report.pdf")
    assert pdf == tmp_path / "report.pdf"
    assert pdf.read_bytes().startswith(b"%PDF")

    missing = await render_pdf(browser, tmp_path / "missing.html", tmp_path / "other.pdf")
    assert missing is None
    assert browser.open_pages == 0
