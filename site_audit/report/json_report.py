"""
JSON report for SiteAudit.

Serializes an :class:`~site_audit.models.AuditResult` to ``audit_results.json``.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from site_audit.models import AuditResult


def render_json(result: Union[AuditResult, Dict[str, Any]], output_path: Union[Path, str]) -> Path:
    """
    Save *result* as indented UTF-8 JSON at *output_path*.

    Example:
    ```python
    from site_audit.report.json_report import render_json
    path = render_json(result, "audit_results/audit_results.json")
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = result.to_dict() if isinstance(result, AuditResult) else result

    with output.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2, default=str)

    return output
