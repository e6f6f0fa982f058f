# File: tests/test_orchestrator.py
from __future__ import annotations

import asyncio

import pytest

from conftest import html_page, make_record
from site_audit.models import Failed, Ok
from site_audit.orchestrator import TECHNICAL_STAGES, PageAnalysisOrchestrator, Stage


def fallback(name: str) -> dict:
    return {"summary": f"{name} fallback"}


def build(overrides=None, timeout: float = 1.0, seen: dict = None) -> PageAnalysisOrchestrator:
    """Orchestrator whose stages return ``{"stage": name}`` unless overridden."""
    overrides = overrides or {}

    def default(name):
        async def analyzer(page):
            return {"stage": name, "url": page.url}

        return analyzer

    async def ai(page, technical):
        if seen is not None:
            seen.update(technical)
        return {"ai": True}

    stages = {name: Stage(overrides.get(name, default(name)), fallback(name), name.title(), timeout)
              for name in TECHNICAL_STAGES}
    stages["ai"] = Stage(overrides.get("ai", ai), fallback("ai"), "AI analysis", timeout)
    return PageAnalysisOrchestrator(**stages)


@pytest.mark.asyncio()
async def test_all_stages_ok():
    record = await build().analyze(make_record(html=html_page()))
    assert record.failed_stages() == []
    assert isinstance(record.links, Ok)
    assert record.seo.value["stage"] == "seo"
    assert record.ai.value == {"ai": True}


@pytest.mark.asyncio()
async def test_failing_stage_is_isolated_and_visible_to_ai():
    async def seo(page):
        raise RuntimeError("seo exploded")

    seen = {}
    record = await build({"seo": seo}, seen=seen).analyze(make_record(html=html_page()))

    assert record.failed_stages() == ["seo"]
    assert isinstance(record.seo, Failed)
    assert record.seo.error == "seo exploded"
    assert record.seo.fallback == fallback("seo")
    assert set(seen) == set(TECHNICAL_STAGES)
    assert seen["seo"]["summary"] == "seo fallback"
    assert seen["seo"]["error"] == "seo exploded"
    assert seen["links"] == {"stage": "links", "url": record.links.value["url"]}


@pytest.mark.asyncio()
async def test_technical_stages_run_concurrently():
    started = []
    everyone = asyncio.Event()

    def waiting(name):
        async def analyzer(page):
            started.append(name)
            if len(started) == len(TECHNICAL_STAGES):
                everyone.set()
            await everyone.wait()
            return {"stage": name}

        return analyzer

    overrides = {name: waiting(name) for name in TECHNICAL_STAGES}
    record = await build(overrides, timeout=1.0).analyze(make_record(html=html_page()))

    assert record.failed_stages() == []
    assert sorted(started) == sorted(TECHNICAL_STAGES)


@pytest.mark.asyncio()
async def test_ai_timeout_keeps_technical_results():
    async def stuck(page, technical):
        await asyncio.Event().wait()

    record = await build({"ai": stuck}, timeout=0.05).analyze(make_record(html=html_page()))

    assert record.failed_stages() == ["ai"]
    assert record.ai.timed_out is True
    assert record.ai.error == "AI analysis timed out after 0.05 seconds"
    assert record.performance.value["stage"] == "performance"


@pytest.mark.asyncio()
async def test_analyze_page_turns_unexpected_errors_into_page_error():
    orchestrator = build()

    async def broken(page):
        raise ValueError("assembly failed")

    orchestrator.analyze = broken
    page = make_record(html=html_page())
    result = await orchestrator.analyze_page(page)

    assert result.page is page
    assert result.analysis is None
    assert result.error == "assembly failed"
    assert result.stage("seo") == {}


@pytest.mark.asyncio()
async def test_analyze_page_success():
    result = await build().analyze_page(make_record(html=html_page()))
    assert result.error is None
    assert result.stage("links") == {"stage": "links", "url": result.url}
    assert set(result.to_dict()["analysis"]) == {"links", "accessibility", "seo", "performance", "ai"}
