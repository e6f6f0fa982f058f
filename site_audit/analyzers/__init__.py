"""site_audit.analyzers: per-page analyzers and the cross-page information-architecture pass."""

from site_audit.analyzers.accessibility import AccessibilityScanner
from site_audit.analyzers.information_architecture import InformationArchitectureAnalyzer
from site_audit.analyzers.links import LinkAnalyzer
from site_audit.analyzers.performance import PerformanceAnalyzer
from site_audit.analyzers.seo import SEOAnalyzer

__all__ = [
    "AccessibilityScanner",
    "InformationArchitectureAnalyzer",
    "LinkAnalyzer",
    "PerformanceAnalyzer",
    "SEOAnalyzer",
]
