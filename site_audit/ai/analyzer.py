"""site_audit.ai.analyzer: AI review of a page and of the whole site.

Per page, seven narrow prompts run concurrently (accessibility, SEO, content,
UI/UX, structured data, link labels, performance). Each prompt owns its error
handling and degrades to its own "failed" shape, so one bad answer never
costs the others. The cross-site summary falls back to a summary built from
the collected data when the provider is unavailable.
"""
from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from site_audit.ai.providers import AIProvider
from site_audit.logger import logger
from site_audit.models import PageRecord, PageResult
from site_audit.utils import truncate_text

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-•*]|\d+\.)\s*")

SNIPPET_LEN = 200
CONTENT_SAMPLE_LEN = 2000
HTML_SAMPLE_LEN = 3000
MAX_LINKS_REVIEWED = 10

FALLBACK: Dict[str, Any] = {
    "accessibility": {"summary": "AI analysis failed", "issues": []},
    "seo": {"summary": "AI analysis failed", "issues": []},
    "content": {"summary": "AI analysis failed", "recommendations": []},
    "uiux": {"summary": "AI analysis failed", "recommendations": []},
    "structured_data": {"summary": "AI analysis failed", "recommendations": []},
    "link_labels": {"summary": "AI analysis failed", "issues": []},
    "performance": {"summary": "AI analysis failed", "recommendations": []},
}

_PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


def parse_ai_response(response: str) -> Dict[str, Any]:
    """First ``{...}`` block of *response* as a dict, or ``{"content": ..., "parsed": False}``."""
    match = _JSON_OBJECT_RE.search(response or "")
    if not match:
        return {"content": response, "parsed": False}
    try:
        data = json.loads(match.group(0))
    except ValueError as exc:
        return {"content": response, "parsed": False, "parse_error": str(exc)}
    if not isinstance(data, dict):
        return {"content": response, "parsed": False}
    return data


def _parsed(response: str) -> Dict[str, Any]:
    data = parse_ai_response(response)
    return {} if data.get("parsed") is False else data


def _snippet(text: str) -> str:
    return text[:SNIPPET_LEN] + "..."


def _average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _unique(items: Sequence[Any]) -> List[Any]:
    seen: List[Any] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


# --------------------------------------------------------------------------- #
# Site-level aggregation                                                      #
# --------------------------------------------------------------------------- #


def average_score(pages: Sequence[PageResult], stage: str) -> float:
    scores = [p.stage(stage).get("score") for p in pages]
    return _average([s for s in scores if isinstance(s, (int, float)) and not isinstance(s, bool)])


def _ai_section(page: PageResult, section: str) -> Dict[str, Any]:
    value = page.stage("ai").get(section)
    return value if isinstance(value, dict) else {}


def content_score(pages: Sequence[PageResult]) -> float:
    """Average AI content quality (0-10) scaled to 0-100."""
    qualities = [_ai_section(p, "content").get("quality_score") or 0 for p in pages]
    return _average([q * 10 for q in qualities if isinstance(q, (int, float)) and q > 0])


def grade_for(score: float) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Needs Improvement"
    return "Poor"


def score_description(score: float) -> str:
    if score >= 90:
        return "Excellent"
    if score >= 80:
        return "Good"
    if score >= 60:
        return "Needs Improvement"
    return "Poor"


def overall_health(pages: Sequence[PageResult]) -> Dict[str, Any]:
    breakdown = {
        "performance": average_score(pages, "performance"),
        "accessibility": average_score(pages, "accessibility"),
        "seo": average_score(pages, "seo"),
        "content": content_score(pages),
    }
    score = round(_average(list(breakdown.values())))
    return {"score": score, "grade": grade_for(score), "breakdown": breakdown}


def content_insights(pages: Sequence[PageResult]) -> Dict[str, Any]:
    analyses = [_ai_section(p, "content") for p in pages]
    analyses = [a for a in analyses if a]
    qualities = [a.get("quality_score") or 0 for a in analyses]
    qualities = [q for q in qualities if isinstance(q, (int, float)) and q > 0]
    return {
        "total_topics": len(_unique([t for a in analyses for t in a.get("topics", [])])),
        "common_tones": _unique([a["tone"] for a in analyses if a.get("tone")]),
        "average_quality": round(_average(qualities)),
        "keyword_opportunities": [k for a in analyses for k in a.get("keyword_opportunities", [])][:10],
    }


def technical_insights(pages: Sequence[PageResult]) -> Dict[str, Any]:
    with_schema = sum(1 for p in pages if p.page.structured_data)
    return {
        "accessibility_violations": sum(p.stage("accessibility").get("total_violations", 0) for p in pages),
        "seo_issues": sum(len(p.stage("seo").get("issues", [])) for p in pages),
        "broken_links": sum(len(p.stage("links").get("broken_links", [])) for p in pages),
        "structured_data_coverage": round(100 * with_schema / len(pages)) if pages else 0,
    }


def ux_insights(pages: Sequence[PageResult]) -> Dict[str, Any]:
    analyses = [_ai_section(p, "uiux") for p in pages]
    analyses = [a for a in analyses if a]
    typography = [a.get("typography_score") or 0 for a in analyses]
    typography = [s for s in typography if isinstance(s, (int, float)) and s > 0]
    return {
        "design_inconsistencies": [i for a in analyses for i in a.get("inconsistencies", [])],
        "mobile_readiness": sum(1 for a in analyses if a.get("mobile_responsive")) / max(len(analyses), 1),
        "user_experience_score": round(_average(typography)),
    }


def target_audiences(pages: Sequence[PageResult]) -> List[str]:
    audiences = [_ai_section(p, "content").get("target_audience") for p in pages]
    return _unique([a for a in audiences if a])


def key_findings(pages: Sequence[PageResult]) -> List[str]:
    findings: List[str] = []
    perf = [p.stage("performance").get("score") for p in pages]
    perf = [s for s in perf if isinstance(s, (int, float))]
    if perf:
        findings.append(f"Average Performance Score: {round(_average(perf))}/100")
    violations = sum(p.stage("accessibility").get("total_violations", 0) for p in pages)
    if violations:
        findings.append(f"Total Accessibility Violations: {violations} across {len(pages)} pages")
    seo_issues = sum(len(p.stage("seo").get("issues", [])) for p in pages)
    if seo_issues:
        findings.append(f"SEO Issues Identified: {seo_issues} across {len(pages)} pages")
    topics = _unique([t for p in pages for t in _ai_section(p, "content").get("topics", [])])
    if topics:
        more = "..." if len(topics) > 5 else ""
        findings.append(f"Content Topics Covered: {', '.join(map(str, topics[:5]))}{more}")
    return findings


def critical_issues(pages: Sequence[PageResult]) -> List[str]:
    critical: List[str] = []
    for page in pages:
        for violation in page.stage("accessibility").get("violations", []):
            if violation.get("impact") in ("critical", "serious"):
                critical.append(f"{page.url}: {violation.get('description')}")
        perf = page.stage("performance").get("score")
        if isinstance(perf, (int, float)) and perf < 60:
            critical.append(f"{page.url}: Poor performance score ({perf})")
        seo = page.stage("seo").get("score")
        if isinstance(seo, (int, float)) and seo < 70:
            critical.append(f"{page.url}: SEO score below threshold ({seo})")
    return critical


def aggregate_issues(pages: Sequence[PageResult], ia: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    """Flat issue list: technical findings per page, then site-wide IA recommendations."""
    issues: List[Dict[str, Any]] = []
    for page in pages:
        for violation in page.stage("accessibility").get("violations", []):
            wcag = next((t for t in violation.get("tags", []) if t.startswith("wcag")), None)
            issues.append(
                {
                    "type": "accessibility",
                    "page": page.url,
                    "severity": violation.get("impact"),
                    "issue": violation.get("description"),
                    "wcag_level": wcag,
                }
            )
        for issue in page.stage("seo").get("issues", []):
            issues.append({"type": "seo", "page": page.url, "severity": "medium", "issue": issue})
        for rec in page.stage("performance").get("recommendations", []):
            issues.append(
                {
                    "type": "performance",
                    "page": page.url,
                    "severity": str(rec.get("priority", "medium")).lower(),
                    "issue": rec.get("title"),
                    "description": rec.get("description"),
                }
            )
        for link in page.stage("links").get("broken_links", []):
            issues.append(
                {
                    "type": "links",
                    "page": page.url,
                    "severity": "high",
                    "issue": f"Broken link ({link.get('status')}): {link.get('href')}",
                }
            )
    for rec in (ia or {}).get("recommendations", []):
        issues.append(
            {
                "type": "information_architecture",
                "page": "site-wide",
                "severity": rec.get("priority", "medium"),
                "issue": rec.get("title"),
                "description": rec.get("description"),
                "action": rec.get("action"),
            }
        )
    return issues


def ai_issues(pages: Sequence[PageResult]) -> List[Dict[str, Any]]:
    """Issues reported by the AI sub-prompts, highest priority first."""
    sections = (
        ("accessibility", "issues", "accessibility"),
        ("seo", "issues", "seo"),
        ("uiux", "inconsistencies", "ux"),
        ("link_labels", "issues", "links"),
        ("performance", "bottlenecks", "performance"),
    )
    collected: List[Dict[str, Any]] = []
    for page in pages:
        for section, key, category in sections:
            for item in _ai_section(page, section).get(key, []):
                entry = dict(item) if isinstance(item, dict) else {"issue": item}
                entry.update(page=page.url, category=category)
                collected.append(entry)
    return sorted(
        collected,
        key=lambda i: _PRIORITY_ORDER.get(str(i.get("priority", "")).lower(), 0),
        reverse=True,
    )


def strategic_recommendations(response: str, limit: int = 5) -> List[Dict[str, str]]:
    """Bullet or numbered lines that follow a "recommendations" heading in *response*."""
    recs: List[Dict[str, str]] = []
    in_section = False
    for line in response.splitlines():
        if "recommendation" in line.lower():
            in_section = True
            continue
        if in_section and _LIST_ITEM_RE.match(line):
            text = _LIST_ITEM_RE.sub("", line).strip()
            if text:
                recs.append(
                    {
                        "priority": "High",
                        "category": "Strategic",
                        "recommendation": text,
                        "impact": "Improves overall website effectiveness",
                    }
                )
    return recs[:limit]


def fallback_summary(pages: Sequence[PageResult]) -> str:
    """Markdown executive summary built from scores alone."""
    health = overall_health(pages)
    perf = round(health["breakdown"]["performance"])
    a11y = round(health["breakdown"]["accessibility"])
    seo = round(health["breakdown"]["seo"])
    violations = sum(p.stage("accessibility").get("total_violations", 0) for p in pages)
    seo_issues = sum(len(p.stage("seo").get("issues", [])) for p in pages)
    total_issues = len(aggregate_issues(pages))

    strengths = []
    if perf >= 80:
        strengths.append("- Strong performance metrics with fast loading times")
    if a11y >= 80:
        strengths.append("- Good accessibility compliance with minimal violations")
    if seo >= 70:
        strengths.append("- Well-optimized for search engines")
    if total_issues < 10:
        strengths.append("- Minimal technical issues identified")

    improvements = []
    if perf < 70:
        improvements.append("- Performance optimization needed to improve user experience")
    if a11y < 70:
        improvements.append(f"- Accessibility violations ({violations} total) requiring attention")
    if seo < 60:
        improvements.append(f"- SEO improvements needed ({seo_issues} issues identified)")

    lowest = min((("Performance", perf), ("Accessibility", a11y), ("SEO", seo)), key=lambda kv: kv[1])[0]
    plural = "" if len(pages) == 1 else "s"
    lines = [
        "## Website Audit Executive Summary",
        "",
        "### Overall Assessment",
        f"This audit analyzed **{len(pages)} page{plural}** across technical performance, "
        "accessibility, SEO and user experience.",
        "",
        f"**Overall Health Score: {health['score']}/100 ({health['grade']})**",
        "",
        "### Key Findings",
        "**Strengths:**",
        *(strengths or ["- None identified"]),
        "",
        "**Areas for Improvement:**",
        *(improvements or ["- None identified"]),
        "",
        "### Category Breakdown",
        f"- **Performance:** {perf}% - {score_description(perf)}",
        f"- **Accessibility:** {a11y}% - {score_description(a11y)}",
        f"- **SEO:** {seo}% - {score_description(seo)}",
        "",
        "### Strategic Priorities",
        f"1. **{lowest}** - Focus on the lowest-scoring category first",
        "2. **User Experience** - Ensure consistent navigation and mobile responsiveness",
        "3. **Content Quality** - Review and enhance content structure and messaging",
        "4. **Technical Foundation** - Address any infrastructure or code quality issues",
    ]
    return "\n".join(lines)


def fallback_recommendations(pages: Sequence[PageResult]) -> List[Dict[str, str]]:
    breakdown = overall_health(pages)["breakdown"]
    recs: List[Dict[str, str]] = []
    if breakdown["performance"] < 70:
        recs.append(
            {
                "priority": "High",
                "category": "Performance",
                "recommendation": "Optimize Core Web Vitals and page loading speed",
                "impact": "Improved user experience and search rankings",
            }
        )
    if breakdown["accessibility"] < 70:
        recs.append(
            {
                "priority": "High",
                "category": "Accessibility",
                "recommendation": "Address WCAG compliance violations",
                "impact": "Better accessibility for all users and legal compliance",
            }
        )
    if breakdown["seo"] < 60:
        recs.append(
            {
                "priority": "Medium",
                "category": "SEO",
                "recommendation": "Improve meta tags, headings, and structured data",
                "impact": "Enhanced search engine visibility and rankings",
            }
        )
    recs.append(
        {
            "priority": "Medium",
            "category": "Content",
            "recommendation": "Review and enhance content quality and structure",
            "impact": "Better user engagement and conversion rates",
        }
    )
    recs.append(
        {
            "priority": "Low",
            "category": "Technical",
            "recommendation": "Regular monitoring and maintenance of website health",
            "impact": "Sustained performance and user experience",
        }
    )
    return recs


# --------------------------------------------------------------------------- #
# Analyzer                                                                    #
# --------------------------------------------------------------------------- #


class AIAnalyzer:
    def __init__(self, provider: AIProvider, context: str = "", category: str = "General") -> None:
        self.provider = provider
        self.context = context or "Website audit"
        self.category = category or "General"

    async def analyze_page(self, page: PageRecord, technical: Mapping[str, Any]) -> Dict[str, Any]:
        logger.info("Running AI analysis for %s", page.url)
        results = await asyncio.gather(
            self.analyze_accessibility(page, technical.get("accessibility") or {}),
            self.analyze_seo(page, technical.get("seo") or {}),
            self.analyze_content(page),
            self.analyze_uiux(page),
            self.analyze_structured_data(page),
            self.analyze_link_labels(page, technical.get("links") or {}),
            self.analyze_performance(page, technical.get("performance") or {}),
        )
        return dict(zip(FALLBACK, results))

    # ----- per-page prompts ----- #

    async def analyze_accessibility(self, page: PageRecord, results: Mapping[str, Any]) -> Dict[str, Any]:
        violations = results.get("violations") or []
        if not violations:
            return {"summary": "No accessibility violations detected", "issues": []}
        prompt = (
            "Analyze these accessibility violations and provide actionable recommendations:\n"
            f"{json.dumps(violations[:3], indent=2)}\n\n"
            "Provide concise summary and top 3 priority fixes."
        )
        try:
            response = await self.provider.query(prompt)
        except Exception as exc:
            logger.warning("AI accessibility analysis failed for %s: %s", page.url, exc)
            return {"summary": "Accessibility analysis failed", "issues": []}
        return {
            "summary": _snippet(response),
            "issues": [{"id": v.get("id"), "description": v.get("description"), "impact": v.get("impact")} for v in violations],
        }

    async def analyze_seo(self, page: PageRecord, results: Mapping[str, Any]) -> Dict[str, Any]:
        prompt = (
            "Analyze SEO for this page:\n"
            f"Title: {page.title or 'No title'}\n"
            f"URL: {page.url}\n"
            f"SEO Score: {results.get('score', 'Unknown')}\n\n"
            "Provide 3 key SEO recommendations."
        )
        try:
            response = await self.provider.query(prompt)
        except Exception as exc:
            logger.warning("AI SEO analysis failed for %s: %s", page.url, exc)
            return {"summary": "SEO analysis failed", "issues": []}
        return {"summary": _snippet(response), "issues": list(results.get("issues") or [])}

    async def analyze_content(self, page: PageRecord) -> Dict[str, Any]:
        sample = page.text_content[:CONTENT_SAMPLE_LEN] if page.text_content else "No content"
        prompt = f"""You are a content strategist analyzing this webpage content.

Site Context: {self.context}
Site Category: {self.category}
Page URL: {page.url}
Page Title: {page.title or 'No title'}
Content Sample: {sample}

Analyze the content and provide:
1. Main topics and themes (list 3-5 key topics)
2. Content tone and style assessment
3. Target audience analysis
4. Content quality assessment (clarity, engagement, value) on a 0-10 scale
5. Overused phrases or jargon that should be simplified
6. 3 specific content improvement recommendations
7. Content gaps or missing information
8. Keyword optimization opportunities

Output as JSON: {{
  "main_topics": [],
  "tone": "",
  "target_audience": "",
  "quality_score": 0,
  "overused_phrases": [],
  "content_gaps": [],
  "keyword_opportunities": [],
  "recommendations": []
}}"""
        try:
            data = _parsed(await self.provider.query(prompt))
        except Exception as exc:
            logger.warning("AI content analysis failed for %s: %s", page.url, exc)
            return {"summary": "Content analysis failed", "topics": [], "tone": "Unknown", "recommendations": []}
        topics = [
            t if isinstance(t, str) else t.get("topic") if isinstance(t, dict) else None
            for t in data.get("main_topics") or []
        ]
        return {
            "summary": (
                f"Content analysis: {data.get('tone') or 'Mixed tone'} "
                f"targeting {data.get('target_audience') or 'general audience'}"
            ),
            "topics": [t for t in topics if t],
            "tone": data.get("tone") or "Unknown",
            "target_audience": data.get("target_audience") or "Unknown",
            "quality_score": data.get("quality_score") or 0,
            "overused_phrases": data.get("overused_phrases") or [],
            "content_gaps": data.get("content_gaps") or [],
            "keyword_opportunities": data.get("keyword_opportunities") or [],
            "recommendations": data.get("recommendations") or [],
        }

    async def analyze_uiux(self, page: PageRecord) -> Dict[str, Any]:
        html = page.html[:HTML_SAMPLE_LEN] if page.html else "No HTML available"
        prompt = f"""You are a UI/UX expert analyzing this webpage for design consistency and usability.

Site Context: {self.context}
Site Category: {self.category}
Page URL: {page.url}
Page Title: {page.title or 'No title'}

HTML Structure Analysis:
{html}

Analyze the UI/UX and provide:
1. Visual design consistency assessment
2. Typography and readability analysis (0-10)
3. Navigation and user flow evaluation
4. Interactive elements usability
5. Mobile responsiveness indicators
6. Accessibility from UX perspective
7. Brand consistency evaluation
8. Design improvement recommendations

Output as JSON: {{
  "design_consistency": "",
  "typography_score": 0,
  "navigation_quality": "",
  "interactive_elements": [],
  "mobile_responsive": true,
  "accessibility_ux": "",
  "brand_consistency": "",
  "inconsistencies": [],
  "recommendations": []
}}"""
        try:
            data = _parsed(await self.provider.query(prompt))
        except Exception as exc:
            logger.warning("AI UI/UX analysis failed for %s: %s", page.url, exc)
            return {"summary": "UI/UX analysis failed", "inconsistencies": [], "recommendations": []}
        mobile = data.get("mobile_responsive")
        return {
            "summary": (
                f"UI/UX analysis: {data.get('design_consistency') or 'Mixed consistency'} "
                f"with {data.get('typography_score') or 0}/10 typography score"
            ),
            "design_consistency": data.get("design_consistency") or "Unknown",
            "typography_score": data.get("typography_score") or 0,
            "navigation_quality": data.get("navigation_quality") or "Unknown",
            "interactive_elements": data.get("interactive_elements") or [],
            "mobile_responsive": True if mobile is None else bool(mobile),
            "accessibility_ux": data.get("accessibility_ux") or "Unknown",
            "brand_consistency": data.get("brand_consistency") or "Unknown",
            "inconsistencies": data.get("inconsistencies") or [],
            "recommendations": data.get("recommendations") or [],
        }

    async def analyze_structured_data(self, page: PageRecord) -> Dict[str, Any]:
        meta = {k: v for k, v in page.metadata.items() if k != "structured_data"}
        prompt = f"""You are a structured data and discoverability expert.

Page URL: {page.url}
Meta Tags: {json.dumps(meta, indent=2, ensure_ascii=False)}
Structured Data: {json.dumps(page.structured_data, indent=2, ensure_ascii=False)}

Analyze and provide:
1. Schema.org structured data assessment
2. Open Graph and Twitter Card evaluation
3. Meta tags completeness and quality (0-10)
4. Social media optimization assessment
5. Search engine discoverability analysis (0-10)
6. Missing structured data opportunities for a {self.category} site
7. Implementation recommendations

Output as JSON: {{
  "schema_assessment": "",
  "social_tags_quality": "",
  "meta_tags_completeness": 0,
  "discoverability_score": 0,
  "missing_schema": [],
  "missing_social_tags": [],
  "recommendations": []
}}"""
        try:
            data = _parsed(await self.provider.query(prompt))
        except Exception as exc:
            logger.warning("AI structured data analysis failed for %s: %s", page.url, exc)
            return {"summary": "Structured data analysis failed", "recommendations": []}
        return {
            "summary": f"Structured data: {data.get('discoverability_score') or 0}/10 discoverability score",
            "schema_assessment": data.get("schema_assessment") or "No assessment",
            "social_tags_quality": data.get("social_tags_quality") or "Unknown",
            "meta_tags_completeness": data.get("meta_tags_completeness") or 0,
            "discoverability_score": data.get("discoverability_score") or 0,
            "missing_schema": data.get("missing_schema") or [],
            "missing_social_tags": data.get("missing_social_tags") or [],
            "recommendations": data.get("recommendations") or [],
        }

    async def analyze_link_labels(self, page: PageRecord, results: Mapping[str, Any]) -> Dict[str, Any]:
        links = (results.get("links") or [])[:MAX_LINKS_REVIEWED]
        if not links:
            return {"summary": "No links to analyze", "issues": []}
        reviewed = [
            {"text": link.get("text"), "href": link.get("href"), "aria_label": link.get("aria_label"), "title": link.get("title")}
            for link in links
        ]
        prompt = f"""You are a usability expert checking link label accuracy.

Page URL: {page.url}
Links to analyze: {json.dumps(reviewed, indent=2, ensure_ascii=False)}

For each link, determine:
1. Does the link text accurately describe the destination?
2. Is the link text descriptive enough for accessibility?
3. Are there any misleading or vague link texts?
4. Suggest improved link text where needed

Output as JSON: {{
  "total_links_analyzed": 0,
  "accurate_links": 0,
  "issues": [{{"link_text": "", "href": "", "issue": "", "recommended_text": ""}}],
  "accessibility_score": 0,
  "recommendations": []
}}"""
        try:
            data = _parsed(await self.provider.query(prompt))
        except Exception as exc:
            logger.warning("AI link label analysis failed for %s: %s", page.url, exc)
            return {"summary": "Link label analysis failed", "issues": []}
        total = data.get("total_links_analyzed") or len(links)
        accurate = data.get("accurate_links") or 0
        return {
            "summary": f"Link analysis: {accurate}/{total} links have accurate labels",
            "total_links_analyzed": total,
            "accurate_links": accurate,
            "accessibility_score": data.get("accessibility_score") or 0,
            "issues": data.get("issues") or [],
            "recommendations": data.get("recommendations") or [],
        }

    async def analyze_performance(self, page: PageRecord, results: Mapping[str, Any]) -> Dict[str, Any]:
        prompt = f"""You are a web performance expert analyzing performance metrics.

Page URL: {page.url}
Performance Results: {json.dumps(dict(results), indent=2, default=str)}

Analyze and provide:
1. Performance bottleneck identification
2. Core Web Vitals assessment
3. User experience impact evaluation
4. Specific optimization recommendations
5. Priority ranking for performance fixes

Output as JSON: {{
  "performance_grade": "",
  "core_web_vitals_assessment": "",
  "bottlenecks": [],
  "user_experience_impact": "",
  "optimization_priority": [],
  "recommendations": []
}}"""
        try:
            data = _parsed(await self.provider.query(prompt))
        except Exception as exc:
            logger.warning("AI performance analysis failed for %s: %s", page.url, exc)
            return {"summary": "Performance analysis failed", "recommendations": []}
        return {
            "summary": (
                f"Performance: {data.get('performance_grade') or 'Unknown grade'} "
                f"with {data.get('core_web_vitals_assessment') or 'unknown'} Core Web Vitals"
            ),
            "performance_grade": data.get("performance_grade") or "Unknown",
            "core_web_vitals_assessment": data.get("core_web_vitals_assessment") or "Unknown",
            "bottlenecks": data.get("bottlenecks") or [],
            "user_experience_impact": data.get("user_experience_impact") or "Unknown",
            "optimization_priority": data.get("optimization_priority") or [],
            "recommendations": data.get("recommendations") or [],
        }

    # ----- cross-site ----- #

    def summary_prompt(self, pages: Sequence[PageResult], health: Dict[str, Any]) -> str:
        breakdown = health["breakdown"]
        findings = "\n".join(key_findings(pages)) or "No notable findings"
        critical = "\n".join(critical_issues(pages)) or "No critical issues detected"
        audiences = ", ".join(target_audiences(pages)) or "Unknown"
        return f"""You are a senior digital strategist providing an executive website audit summary.

WEBSITE AUDIT DATA:
- Site: {self.context}
- Category: {self.category}
- Pages Analyzed: {len(pages)}
- Overall Health: {health['score']}/100 ({health['grade']})
- Performance: {breakdown['performance']:.1f}%
- Accessibility: {breakdown['accessibility']:.1f}%
- SEO: {breakdown['seo']:.1f}%
- Content Quality: {content_insights(pages)['average_quality']}/10

KEY FINDINGS:
{findings}

TARGET AUDIENCES FOUND:
{audiences}

CRITICAL ISSUES:
{truncate_text(critical, 4000)}

PROVIDE:
1. **OVERALL HEALTH ASSESSMENT** (3-4 sentences with specific findings and scores)
2. **KEY STRENGTHS** (3 specific bullet points based on actual data)
3. **CRITICAL ISSUES** (3 specific bullet points with page examples)
4. **TARGET AUDIENCE ANALYSIS** (group similar audiences, identify primary vs secondary)
5. **TOP 5 STRATEGIC RECOMMENDATIONS** (specific, actionable, with business impact)

Be specific and reference actual findings, not generic advice. Keep under 600 words total."""

    async def generate_summary(
        self, pages: Sequence[PageResult], ia: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Executive summary, issues and recommendations for the whole site.

        Returns a mapping with ``summary``, ``issues``, ``recommendations`` and
        ``information_architecture``. A provider failure yields a summary and
        recommendations derived from the collected scores instead.
        """
        analyzed = [p for p in pages if p.analysis is not None]
        health = overall_health(analyzed)
        summary: Dict[str, Any] = {
            "total_pages": len(pages),
            "analyzed_pages": len(analyzed),
            "overall_health": health,
            "content_insights": content_insights(analyzed),
            "technical_insights": technical_insights(analyzed),
            "ux_insights": ux_insights(analyzed),
            "key_findings": key_findings(analyzed),
            "critical_issues": critical_issues(analyzed),
        }
        try:
            response = await self.provider.query(self.summary_prompt(analyzed, health))
        except Exception as exc:
            logger.error("AI summary generation failed: %s", exc)
            summary.update(executive_summary=fallback_summary(analyzed), ai_generated=False)
            recommendations = fallback_recommendations(analyzed)
        else:
            summary.update(executive_summary=response, ai_generated=True)
            recommendations = strategic_recommendations(response) or fallback_recommendations(analyzed)

        return {
            "summary": summary,
            "issues": aggregate_issues(analyzed, ia) + ai_issues(analyzed),
            "recommendations": recommendations,
            "information_architecture": ia,
        }


__all__ = [
    "AIAnalyzer",
    "FALLBACK",
    "parse_ai_response",
    "aggregate_issues",
    "overall_health",
    "fallback_summary",
    "fallback_recommendations",
    "strategic_recommendations",
]
