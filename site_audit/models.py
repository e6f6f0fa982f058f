"""site_audit.models: records passed between the crawler, the analysis stages and the reports.

``PageRecord`` is produced once by the fetcher and never mutated. Stage
outcomes are the tagged pair :class:`Ok` / :class:`Failed`; consumers branch
on ``result.ok`` (or ``isinstance``) instead of probing for error fields.
"""
from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Generic, List, Mapping, Optional, TypeVar, Union

T = TypeVar("T")

STAGE_NAMES: tuple[str, ...] = ("links", "accessibility", "seo", "performance", "ai")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class PageRecord:
    """One crawled page."""

    url: str
    title: str
    html: str
    text_content: str
    metadata: Dict[str, Any]
    status_code: int
    depth: int
    final_url: Optional[str] = None
    screenshot_path: Optional[str] = None
    archive_path: Optional[str] = None
    fetched_at: str = field(default_factory=utc_timestamp)

    @property
    def structured_data(self) -> List[Any]:
        return list(self.metadata.get("structured_data", []))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------------- #
# Stage outcomes                                                              #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A stage finished in time; ``value`` is the analyzer's own result object."""

    value: T
    ok: ClassVar[bool] = True

    @property
    def payload(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failed:
    """A stage raised or ran past its deadline; ``fallback`` stands in for its result."""

    fallback: Any
    error: str
    timed_out: bool = False
    timestamp: str = field(default_factory=utc_timestamp)
    ok: ClassVar[bool] = False

    @classmethod
    def from_error(cls, fallback: Any, error: str, *, timed_out: bool = False) -> Failed:
        return cls(fallback=copy.deepcopy(fallback), error=error, timed_out=timed_out)

    @property
    def payload(self) -> Dict[str, Any]:
        """Fallback mapping annotated with the failure metadata."""
        base = dict(self.fallback) if isinstance(self.fallback, Mapping) else {"value": self.fallback}
        base.update(error=self.error, timed_out=self.timed_out, timestamp=self.timestamp)
        return base


StageResult = Union[Ok[Any], Failed]


@dataclass(frozen=True, slots=True)
class AnalysisRecord:
    """Per-page outcome of every analysis stage; no stage is ever missing."""

    links: StageResult
    accessibility: StageResult
    seo: StageResult
    performance: StageResult
    ai: StageResult

    def stages(self) -> Dict[str, StageResult]:
        return {name: getattr(self, name) for name in STAGE_NAMES}

    def failed_stages(self) -> List[str]:
        return [name for name, result in self.stages().items() if not result.ok]

    def payload(self, stage: str) -> Any:
        return getattr(self, stage).payload

    def to_dict(self) -> Dict[str, Any]:
        return {name: result.payload for name, result in self.stages().items()}


@dataclass(frozen=True, slots=True)
class PageResult:
    """A fetched page together with its analysis, or the error that prevented it."""

    page: PageRecord
    analysis: Optional[AnalysisRecord] = None
    error: Optional[str] = None

    @property
    def url(self) -> str:
        return self.page.url

    def stage(self, name: str) -> Dict[str, Any]:
        """Stage payload as a mapping; empty when the page has no analysis."""
        if self.analysis is None:
            return {}
        value = self.analysis.payload(name)
        return value if isinstance(value, Mapping) else {}

    def to_dict(self) -> Dict[str, Any]:
        data = self.page.to_dict()
        data["analysis"] = self.analysis.to_dict() if self.analysis else None
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(slots=True)
class AuditResult:
    """Whole-run output handed to the reports and written as checkpoints."""

    pages: List[PageResult] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    issues: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[Any] = field(default_factory=list)
    information_architecture: Optional[Dict[str, Any]] = None

    @property
    def analyzed_pages(self) -> List[PageResult]:
        return [p for p in self.pages if p.analysis is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": [p.to_dict() for p in self.pages],
            "summary": self.summary,
            "issues": self.issues,
            "recommendations": self.recommendations,
            "information_architecture": self.information_architecture,
        }


__all__ = [
    "STAGE_NAMES",
    "PageRecord",
    "Ok",
    "Failed",
    "StageResult",
    "AnalysisRecord",
    "PageResult",
    "AuditResult",
    "utc_timestamp",
]
