"""site_audit.orchestrator: runs every analysis stage for one page and assembles the record.

The four technical stages run concurrently; the AI stage runs afterwards and
receives their payloads. Each stage is wrapped by :func:`bounded`, so one slow
or failing analyzer only costs its own slot in the record.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

from site_audit.logger import logger
from site_audit.models import AnalysisRecord, PageRecord, PageResult, StageResult
from site_audit.resilience import DEFAULT_STAGE_TIMEOUT, bounded

TECHNICAL_STAGES = ("links", "accessibility", "seo", "performance")


@dataclass(slots=True)
class Stage:
    """One analyzer with the fallback it degrades to and its deadline."""

    analyzer: Callable[..., Awaitable[Any]]
    fallback: Any
    label: str
    timeout: float = DEFAULT_STAGE_TIMEOUT

    def bound(self) -> Callable[..., Awaitable[StageResult]]:
        return bounded(self.analyzer, self.fallback, self.label, self.timeout)


class PageAnalysisOrchestrator:
    """
    Builds an :class:`AnalysisRecord` per page.

    Technical analyzers are called as ``analyzer(page)``; the AI analyzer as
    ``analyzer(page, technical)`` where *technical* maps stage name to the
    payload of that stage (real result or annotated fallback).
    """

    def __init__(self, *, links: Stage, accessibility: Stage, seo: Stage, performance: Stage, ai: Stage) -> None:
        self.stages: Dict[str, Stage] = {
            "links": links,
            "accessibility": accessibility,
            "seo": seo,
            "performance": performance,
            "ai": ai,
        }
        self._bound = {name: stage.bound() for name, stage in self.stages.items()}

    async def analyze(self, page: PageRecord) -> AnalysisRecord:
        technical_results = await asyncio.gather(
            *(self._bound[name](page) for name in TECHNICAL_STAGES)
        )
        technical: Dict[str, StageResult] = dict(zip(TECHNICAL_STAGES, technical_results))
        payloads = {name: result.payload for name, result in technical.items()}

        ai_result = await self._bound["ai"](page, payloads)

        record = AnalysisRecord(ai=ai_result, **technical)
        failed = record.failed_stages()
        if failed:
            logger.warning("%s: stage(s) fell back: %s", page.url, ", ".join(failed))
        return record

    async def analyze_page(self, page: PageRecord) -> PageResult:
        """Never raises; an unexpected error becomes ``PageResult.error``."""
        try:
            analysis = await self.analyze(page)
        except Exception as exc:
            logger.error("Analysis of %s failed: %s", page.url, exc)
            return PageResult(page=page, error=str(exc) or type(exc).__name__)
        return PageResult(page=page, analysis=analysis)


__all__ = ["Stage", "PageAnalysisOrchestrator", "TECHNICAL_STAGES"]
