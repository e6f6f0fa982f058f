"""site_audit.auditor: one audit run from start URL to written reports.

The run owns exactly one browser session. Everything that needs a browser
(fetcher, performance analyzer, PDF printer) receives it as an argument and
only :class:`WebsiteAuditor` closes it.
"""
from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, AsyncContextManager, Callable, List, Optional

from site_audit.ai import AIAnalyzer, AIProvider, create_provider
from site_audit.ai import analyzer as ai_analyzer
from site_audit.analyzers import (
    AccessibilityScanner,
    InformationArchitectureAnalyzer,
    LinkAnalyzer,
    PerformanceAnalyzer,
    SEOAnalyzer,
)
from site_audit.analyzers import accessibility, links, performance, seo
from site_audit.analyzers.discovery import SiteDiscovery
from site_audit.browser import open_browser
from site_audit.config import AppConfig, AuditOptions
from site_audit.crawler import PageFetcher, SiteCrawler
from site_audit.logger import logger
from site_audit.models import AuditResult, PageRecord
from site_audit.orchestrator import PageAnalysisOrchestrator, Stage
from site_audit.report import ReportGenerator

CHECKPOINT_EVERY = 5
CHECKPOINT_FILENAME = "intermediate_results.json"

BrowserFactory = Callable[[], AsyncContextManager[Any]]


class WebsiteAuditor:
    """Crawl, analyze, summarize and report one site."""

    def __init__(
        self,
        options: AuditOptions,
        config: Optional[AppConfig] = None,
        *,
        browser_factory: BrowserFactory = open_browser,
        provider: Optional[AIProvider] = None,
    ) -> None:
        self.options = options
        self.config = config or AppConfig()
        self.browser_factory = browser_factory
        self.provider = provider
        self.result = AuditResult()
        self._link_analyzer: Optional[LinkAnalyzer] = None
        self._discovery: Optional[SiteDiscovery] = None

    @property
    def checkpoint_path(self) -> Path:
        return self.options.output_dir / CHECKPOINT_FILENAME

    def setup_directories(self) -> None:
        self.options.output_dir.mkdir(parents=True, exist_ok=True)
        if self.options.take_screenshots:
            self.options.screenshots_dir.mkdir(parents=True, exist_ok=True)
        if self.options.create_archive:
            self.options.archive_dir.mkdir(parents=True, exist_ok=True)

    async def init_provider(self) -> AIProvider:
        """Validate the AI configuration and check the backend; raises ``ConfigurationError``."""
        if self.provider is None:
            self.provider = create_provider(self.config.ai)
        await self.provider.initialize()
        return self.provider

    def build_orchestrator(self, browser: Any, provider: AIProvider) -> PageAnalysisOrchestrator:
        self._link_analyzer = LinkAnalyzer()
        self._discovery = SiteDiscovery()
        ai = AIAnalyzer(provider, self.options.context, self.options.category)
        timeout = self.options.stage_timeout
        return PageAnalysisOrchestrator(
            links=Stage(self._link_analyzer.analyze, links.FALLBACK, "Link analysis", timeout),
            accessibility=Stage(
                AccessibilityScanner().analyze, accessibility.FALLBACK, "Accessibility scan", timeout
            ),
            seo=Stage(SEOAnalyzer(self._discovery).analyze, seo.FALLBACK, "SEO analysis", timeout),
            performance=Stage(
                PerformanceAnalyzer(browser, self.options).analyze,
                performance.FALLBACK,
                "Performance analysis",
                timeout,
            ),
            ai=Stage(ai.analyze_page, ai_analyzer.FALLBACK, "AI analysis", timeout),
        )

    async def close_sessions(self) -> None:
        if self._link_analyzer is not None:
            await self._link_analyzer.close()
        if self._discovery is not None:
            await self._discovery.close()

    async def run(self) -> AuditResult:
        started = time.monotonic()
        logger.info("Starting audit of %s", self.options.url)
        self.setup_directories()
        try:
            provider = await self.init_provider()
            async with self.browser_factory() as browser:
                orchestrator = self.build_orchestrator(browser, provider)
                try:
                    crawler = SiteCrawler(PageFetcher(browser, self.options), self.options)
                    pages = await crawler.crawl()
                    logger.info("Found %d page(s) to analyze", len(pages))
                    await self.analyze_pages(pages, orchestrator)
                    await self.summarize(provider)
                    await ReportGenerator(self.options).generate_all(self.result, browser)
                finally:
                    await self.close_sessions()
        finally:
            if self.provider is not None:
                await self.provider.close()

        logger.info("Audit completed in %.1f s", time.monotonic() - started)
        return self.result

    async def analyze_pages(self, pages: List[PageRecord], orchestrator: PageAnalysisOrchestrator) -> AuditResult:
        """Analyze *pages* in order, checkpointing after every fifth successful page."""
        total = len(pages)
        analyzed = 0
        for index, page in enumerate(pages, start=1):
            logger.info("Analyzing page %d/%d: %s", index, total, page.url)
            page_result = await orchestrator.analyze_page(page)
            self.result.pages.append(page_result)
            if page_result.error is not None:
                continue
            analyzed += 1
            if analyzed % CHECKPOINT_EVERY == 0:
                self.save_intermediate_results()
        return self.result

    def save_intermediate_results(self) -> Path:
        """Rewrite the checkpoint file with everything collected so far."""
        path = self.checkpoint_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.result.to_dict(), fh, ensure_ascii=False, indent=2, default=str)
        logger.info("Checkpoint saved: %d page(s) -> %s", len(self.result.pages), path)
        return path

    async def summarize(self, provider: AIProvider) -> AuditResult:
        """Information-architecture pass followed by the AI cross-site summary."""
        analyzed = self.result.analyzed_pages
        logger.info("Analyzing information architecture")
        ia = await InformationArchitectureAnalyzer().analyze([p.page for p in analyzed])
        logger.info("Generating cross-site summary")
        ai = AIAnalyzer(provider, self.options.context, self.options.category)
        summary = await ai.generate_summary(self.result.pages, ia)
        self.result.summary = summary["summary"]
        self.result.issues = summary["issues"]
        self.result.recommendations = summary["recommendations"]
        self.result.information_architecture = summary["information_architecture"]
        return self.result


__all__ = ["WebsiteAuditor", "CHECKPOINT_EVERY", "CHECKPOINT_FILENAME"]
