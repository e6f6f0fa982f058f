"""site_audit.engine: entry point that runs one audit for the CLI and for scripts."""
from __future__ import annotations

import time
from typing import Optional

from site_audit.auditor import BrowserFactory, WebsiteAuditor
from site_audit.browser import open_browser
from site_audit.config import AppConfig, AuditOptions, load_config
from site_audit.logger import logger
from site_audit.models import AuditResult

__all__ = ["start_audit"]


async def start_audit(
    options: AuditOptions,
    config: Optional[AppConfig] = None,
    *,
    browser_factory: BrowserFactory = open_browser,
) -> AuditResult:
    """Run a full audit; *config* defaults to :func:`load_config`."""
    config = config or load_config()
    started = time.monotonic()
    try:
        result = await WebsiteAuditor(options, config, browser_factory=browser_factory).run()
    except Exception as exc:
        logger.error("Audit of %s failed after %.1f s: %s", options.url, time.monotonic() - started, exc)
        raise
    return result
