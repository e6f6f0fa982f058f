"""site_audit.analyzers.performance: load-time measurement in a browser tab."""
from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from site_audit.config import AuditOptions
from site_audit.crawler.fetcher import USER_AGENT, VIEWPORT, page_options
from site_audit.models import PageRecord

NAVIGATION_TIMEOUT_MS = 30_000

# Navigation Timing / Paint Timing entries, read in the page
TIMING_SCRIPT = """() => {
  const nav = performance.getEntriesByType('navigation')[0];
  const paint = performance.getEntriesByType('paint');
  const find = (name) => (paint.find((e) => e.name === name) || {}).startTime || 0;
  return {
    load_time: nav ? nav.loadEventEnd - nav.loadEventStart : 0,
    dom_content_loaded: nav ? nav.domContentLoadedEventEnd - nav.domContentLoadedEventStart : 0,
    first_paint: find('first-paint'),
    first_contentful_paint: find('first-contentful-paint'),
    transfer_size: nav ? nav.transferSize : 0,
    encoded_body_size: nav ? nav.encodedBodySize : 0,
  };
}"""

FALLBACK: Dict[str, Any] = {
    "score": 0,
    "load_time": 0,
    "metrics": {},
    "summary": {"score": 0, "grade": "Error", "status": "Analysis Failed"},
    "recommendations": [],
    "core_web_vitals": {},
}

# (upper bound in ms, score)
SCORE_BANDS = ((1000, 90), (2000, 75), (3000, 60), (5000, 45))


def score_for(load_time_ms: float) -> int:
    for limit, score in SCORE_BANDS:
        if load_time_ms < limit:
            return score
    return 30


def grade_for(score: int) -> str:
    if score >= 90:
        return "Good"
    if score >= 50:
        return "Needs Improvement"
    return "Poor"


def recommendations_for(load_time_ms: int, metrics: Dict[str, Any]) -> List[Dict[str, str]]:
    recs: List[Dict[str, str]] = []
    if load_time_ms > 3000:
        recs.append(
            {
                "type": "speed",
                "priority": "high",
                "title": "Improve Loading Speed",
                "description": (
                    f"Page takes {load_time_ms}ms to load. Consider optimizing images, "
                    "minifying CSS/JS, and using a CDN."
                ),
                "impact": "High",
            }
        )
    transfer = metrics.get("transfer_size") or 0
    if transfer > 1_000_000:
        recs.append(
            {
                "type": "size",
                "priority": "medium",
                "title": "Reduce Page Size",
                "description": f"Page transfer size is {round(transfer / 1024)}KB. Consider compressing assets.",
                "impact": "Medium",
            }
        )
    return recs


class PerformanceAnalyzer:
    """Reloads the page in its own tab of the shared browser and times it."""

    def __init__(self, browser: Any, options: Optional[AuditOptions] = None) -> None:
        self.browser = browser
        self._page_kwargs = page_options(options) if options else {"viewport": dict(VIEWPORT), "user_agent": USER_AGENT}

    async def analyze(self, page: PageRecord) -> Dict[str, Any]:
        tab = await self.browser.new_page(**self._page_kwargs)
        try:
            started = time.monotonic()
            await tab.goto(page.url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
            load_time = round((time.monotonic() - started) * 1000)
            metrics = dict(await tab.evaluate(TIMING_SCRIPT) or {})
        finally:
            await tab.close()

        score = score_for(load_time)
        fcp = float(metrics.get("first_contentful_paint") or 0)
        return {
            "score": score,
            "load_time": load_time,
            "metrics": metrics,
            "summary": {
                "score": score,
                "grade": grade_for(score),
                "status": f"Page loaded in {load_time}ms",
                "key_metrics": {"load_time": f"{load_time}ms"},
            },
            "recommendations": recommendations_for(load_time, metrics),
            "core_web_vitals": {
                "fcp": {"numeric_value": fcp, "display_value": f"{round(fcp)}ms"},
                "lcp": {"numeric_value": load_time, "display_value": f"{load_time}ms"},
            },
        }


__all__ = ["PerformanceAnalyzer", "FALLBACK", "score_for", "grade_for", "recommendations_for"]
