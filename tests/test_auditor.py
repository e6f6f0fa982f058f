# File: tests/test_auditor.py
"""Run-level behaviour: checkpoints, end-to-end runs over a fake browser, fatal provider errors."""
from __future__ import annotations

import json

import pytest

from conftest import ROOT, FakeBrowser, FakeProvider, browser_factory, html_page, make_record
from site_audit.ai import AIAnalyzer, OllamaProvider
from site_audit.ai import analyzer as ai_analyzer
from site_audit.analyzers import AccessibilityScanner, PerformanceAnalyzer, SEOAnalyzer
from site_audit.analyzers import accessibility, links, performance, seo
from site_audit.auditor import CHECKPOINT_FILENAME, WebsiteAuditor
from site_audit.config import AISettings, AppConfig, OllamaSettings
from site_audit.errors import ConfigurationError
from site_audit.models import AnalysisRecord, Ok, PageResult
from site_audit.orchestrator import PageAnalysisOrchestrator, Stage
from site_audit.report import REPORT_FILES


class StubOrchestrator:
    """Returns a fully analyzed result for every page except those listed in *failing*."""

    def __init__(self, failing=()):
        self.failing = set(failing)

    async def analyze_page(self, page):
        if page.url in self.failing:
            return PageResult(page=page, error="analysis exploded")
        analysis = AnalysisRecord(*(Ok({"score": 50}) for _ in range(5)))
        return PageResult(page=page, analysis=analysis)


def spy_checkpoints(auditor: WebsiteAuditor, monkeypatch) -> list:
    calls = []
    original = auditor.save_intermediate_results

    def spy():
        calls.append(len(auditor.result.pages))
        return original()

    monkeypatch.setattr(auditor, "save_intermediate_results", spy)
    return calls


def pages(count: int):
    return [make_record(f"{ROOT}p{i}", html_page(f"P{i}"), depth=1) for i in range(1, count + 1)]


# --------------------------------------------------------------------------- #
#                                  Checkpoints                                #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_checkpoint_every_five_analyzed_pages(make_options, monkeypatch):
    auditor = WebsiteAuditor(make_options(), provider=FakeProvider())
    calls = spy_checkpoints(auditor, monkeypatch)

    await auditor.analyze_pages(pages(12), StubOrchestrator())

    assert calls == [5, 10]
    assert len(auditor.result.pages) == 12


@pytest.mark.asyncio()
async def test_failed_pages_do_not_count_towards_checkpoints(make_options, monkeypatch):
    auditor = WebsiteAuditor(make_options(), provider=FakeProvider())
    calls = spy_checkpoints(auditor, monkeypatch)

    await auditor.analyze_pages(pages(12), StubOrchestrator(failing=[f"{ROOT}p3"]))

    assert calls == [6, 11]
    assert auditor.result.pages[2].error == "analysis exploded"
    assert len(auditor.result.analyzed_pages) == 11


@pytest.mark.asyncio()
async def test_checkpoint_file_contents(make_options):
    options = make_options()
    auditor = WebsiteAuditor(options, provider=FakeProvider())

    await auditor.analyze_pages(pages(5), StubOrchestrator())

    path = options.output_dir / CHECKPOINT_FILENAME
    assert auditor.checkpoint_path == path
    data = json.loads(path.read_text(encoding="utf-8"))
    assert [p["url"] for p in data["pages"]] == [f"{ROOT}p{i}" for i in range(1, 6)]
    assert data["pages"][0]["analysis"]["seo"] == {"score": 50}
    assert data["summary"] == {}


# --------------------------------------------------------------------------- #
#                                   Full runs                                 #
# --------------------------------------------------------------------------- #


class OfflineAuditor(WebsiteAuditor):
    """Real analyzers except the ones that need the network."""

    def build_orchestrator(self, browser, provider):
        async def no_links(page):
            return {"total_links": 0, "links": [], "broken_links": [], "redirects": [], "summary": {}}

        ai = AIAnalyzer(provider, self.options.context, self.options.category)
        return PageAnalysisOrchestrator(
            links=Stage(no_links, links.FALLBACK, "Link analysis"),
            accessibility=Stage(AccessibilityScanner().analyze, accessibility.FALLBACK, "Accessibility scan"),
            seo=Stage(SEOAnalyzer().analyze, seo.FALLBACK, "SEO analysis"),
            performance=Stage(
                PerformanceAnalyzer(browser, self.options).analyze, performance.FALLBACK, "Performance analysis"
            ),
            ai=Stage(ai.analyze_page, ai_analyzer.FALLBACK, "AI analysis"),
        )


@pytest.mark.asyncio()
async def test_single_page_run_end_to_end(make_options):
    options = make_options()
    browser = FakeBrowser({ROOT: html_page("Only page", body="<p>Hello there</p>")})
    provider = FakeProvider()
    auditor = OfflineAuditor(options, browser_factory=browser_factory(browser), provider=provider)

    result = await auditor.run()

    assert len(result.pages) == 1
    page = result.pages[0]
    assert page.page.depth == 0
    assert page.analysis is not None
    assert page.analysis.failed_stages() == []
    assert set(page.to_dict()["analysis"]) == {"links", "accessibility", "seo", "performance", "ai"}
    assert result.summary["analyzed_pages"] == 1
    assert result.summary["ai_generated"] is True
    assert result.information_architecture is not None

    for name, filename in REPORT_FILES.items():
        assert (options.output_dir / filename).exists() is (name != "pdf")
    assert browser.closed
    assert browser.open_pages == 0
    assert provider.initialized and provider.closed


@pytest.mark.asyncio()
async def test_pdf_printed_with_shared_browser(make_options):
    options = make_options(generate_pdf=True)
    browser = FakeBrowser({ROOT: html_page("Only page")})
    auditor = OfflineAuditor(options, browser_factory=browser_factory(browser), provider=FakeProvider())

    await auditor.run()

    assert (options.output_dir / REPORT_FILES["pdf"]).read_bytes().startswith(b"%PDF")
    assert browser.open_pages == 0


@pytest.mark.asyncio()
async def test_unreachable_start_url_completes_with_no_pages(make_options):
    options = make_options()
    browser = FakeBrowser({ROOT: html_page()}, failing=[ROOT])
    auditor = OfflineAuditor(options, browser_factory=browser_factory(browser), provider=FakeProvider())

    result = await auditor.run()

    assert result.pages == []
    assert result.summary["total_pages"] == 0
    assert browser.goto_calls == [ROOT] * options.retry_attempts
    assert (options.output_dir / REPORT_FILES["json"]).exists()
    assert browser.closed


@pytest.mark.asyncio()
async def test_invalid_provider_config_fails_before_browser_opens(make_options):
    opened = []

    def factory():
        opened.append(True)
        raise AssertionError("browser must not be opened")

    config = AppConfig(ai=AISettings(provider="openai"))
    auditor = WebsiteAuditor(make_options(), config, browser_factory=factory)

    with pytest.raises(ConfigurationError, match="OpenAI API key not specified"):
        await auditor.run()
    assert opened == []


@pytest.mark.asyncio()
async def test_provider_initialization_error_is_fatal(make_options):
    class Unreachable(FakeProvider):
        async def initialize(self):
            raise ConfigurationError("Cannot connect to Ollama at http://localhost:11434: refused")

    browser = FakeBrowser({ROOT: html_page()})
    auditor = WebsiteAuditor(make_options(), browser_factory=browser_factory(browser), provider=Unreachable())

    with pytest.raises(ConfigurationError, match="Cannot connect to Ollama"):
        await auditor.run()
    assert browser.goto_calls == []
    assert auditor.provider.closed


class RecordingOllama(OllamaProvider):
    """Keeps every HTTP session it opens so the test can check they were closed."""

    def __init__(self, settings):
        super().__init__(settings)
        self.sessions = []

    def _get_session(self):
        session = super()._get_session()
        self.sessions.append(session)
        return session


@pytest.mark.asyncio()
async def test_unreachable_ollama_session_closed_on_fatal_error(make_options, unused_tcp_port):
    provider = RecordingOllama(OllamaSettings(host=f"http://127.0.0.1:{unused_tcp_port}"))
    browser = FakeBrowser({ROOT: html_page()})
    auditor = WebsiteAuditor(make_options(), browser_factory=browser_factory(browser), provider=provider)

    with pytest.raises(ConfigurationError, match="Cannot connect to Ollama"):
        await auditor.run()

    assert provider.sessions
    assert all(session.closed for session in provider.sessions)
    assert browser.goto_calls == []
