"""site_audit.browser: the single headless Chromium session shared by a run."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from playwright.async_api import async_playwright

from site_audit.logger import logger

CHROMIUM_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)


@asynccontextmanager
async def open_browser(headless: bool = True) -> AsyncIterator[Any]:
    """Launch Chromium; it is closed and Playwright stopped on every exit path."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(headless=headless, args=list(CHROMIUM_ARGS))
        logger.info("Browser launched")
        try:
            yield browser
        finally:
            await browser.close()
            logger.info("Browser closed")
    finally:
        await playwright.stop()


__all__ = ["open_browser", "CHROMIUM_ARGS"]
