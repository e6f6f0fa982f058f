"""site_audit.report.pdf_report: print the HTML report to PDF with the shared browser."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from site_audit.logger import logger

PDF_MARGIN = {"top": "20mm", "right": "15mm", "bottom": "20mm", "left": "15mm"}


async def render_pdf(browser: Any, html_path: Union[Path, str], output_path: Union[Path, str]) -> Optional[Path]:
    """Best effort: returns ``None`` and logs a warning when printing fails."""
    output_path = Path(output_path)
    page = None
    try:
        page = await browser.new_page()
        await page.set_content(Path(html_path).read_text(encoding="utf-8"), wait_until="load")
        await page.pdf(path=str(output_path), format="A4", print_background=True, margin=PDF_MARGIN)
    except Exception as exc:
        logger.warning("PDF report generation failed: %s", exc)
        return None
    finally:
        if page is not None:
            await page.close()
    return output_path


__all__ = ["render_pdf"]
