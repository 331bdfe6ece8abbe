"""Prompt templates for business analysis and stage generation.

Two families:
1. build_analysis_prompt - Discovery analysis of a target URL
2. build_stage_prompt    - Stages 2-6, each seeded with prior context
"""

import json
from typing import Any, Dict, Optional

from .models import AnalysisRecord, FirstPartyData
from .stage_schemas import stage_json_schema
from .workflow import stage_name

SYSTEM_PROMPT = (
    "You are an expert startup advisor and business analyst. You give "
    "specific, evidence-based, actionable guidance about the named business. "
    "Respond with a single JSON object and nothing else."
)

ANALYSIS_SHAPE = {
    "summary": "string, 2-3 sentences",
    "overview": {
        "businessName": "string",
        "valueProposition": "string",
        "targetAudience": "string",
        "monetization": "string",
    },
    "market": {
        "competitors": [{"name": "string", "url": "string", "notes": "string"}],
        "swot": {
            "strengths": ["string"],
            "weaknesses": ["string"],
            "opportunities": ["string"],
            "threats": ["string"],
        },
    },
    "technical": {"techStack": ["string"], "confidence": "number 0-1"},
    "data": {"trafficEstimates": "string", "keyMetrics": ["string"]},
    "synthesis": {"summary": "string", "keyInsight": "string", "nextActions": ["string"]},
    "sources": [{"url": "string", "title": "string"}],
}

_STAGE_FOCUS: Dict[int, str] = {
    2: (
        "Apply the Lazy-Entrepreneur Filter: weigh effort against reward, "
        "complexity barriers, validation needs and resource intensity. "
        "Recommend go, no-go or maybe with reasoning."
    ),
    3: (
        "Plan the MVP launch: 3-5 core features, 3-5 nice-to-haves, a tech "
        "stack, a 3-4 phase timeline with concrete deliverables and durations "
        "in weeks or months, and a dollar cost estimate."
    ),
    4: (
        "Design a demand testing strategy: pre-launch validation methods, "
        "success metrics with targets, a dollar budget with a breakdown, and "
        "an overall timeline."
    ),
    5: (
        "Plan scaling and growth: prioritized acquisition channels, milestones "
        "with metrics, and how the team and infrastructure scale by phase."
    ),
    6: (
        "Map AI automation opportunities: 4-6 processes with tools, ROI and a "
        "1-10 priority, a 3-phase implementation plan, and estimated savings."
    ),
}


def build_analysis_prompt(url: str, first_party: Optional[FirstPartyData] = None, goal: Optional[str] = None) -> str:
    """Build the discovery analysis prompt for a target URL."""
    context = ""
    if first_party is not None:
        context = f"""
## FIRST-PARTY PAGE DATA
- Title: {first_party.title or "unknown"}
- Description: {first_party.description or "unknown"}
- Main heading: {first_party.h1 or "unknown"}
- Page text excerpt: {first_party.text_snippet[:1500]}
Prefer these facts over assumptions."""

    goal_section = f"\n## ANALYST GOAL\n{goal}" if goal else ""

    return f"""Analyze the business at {url} as a candidate to clone.
{context}{goal_section}

## OUTPUT
Return JSON with exactly this shape:
{json.dumps(ANALYSIS_SHAPE, indent=2)}

Name real competitors where known. Do not invent traffic numbers; say "unknown" instead."""


def build_stage_prompt(
    stage_number: int,
    record: AnalysisRecord,
    previous_content: Optional[Dict[str, Any]] = None,
) -> str:
    """Build the prompt for stage 2-6 of the cloning plan."""
    business = record.business_name or record.url
    previous = ""
    if previous_content:
        previous = (
            f"\n## PREVIOUS STAGE ({stage_name(stage_number - 1)})\n"
            f"{json.dumps(previous_content, indent=2)[:4000]}"
        )

    return f"""Stage {stage_number}: {stage_name(stage_number)} for cloning {business} ({record.url}).

## BUSINESS ANALYSIS
{record.summary}
{json.dumps(record.structured or {}, indent=2)[:6000]}
{previous}

## TASK
{_STAGE_FOCUS[stage_number]}
Refer to {business} by name. Start every step or deliverable with an action verb.
Use real dollar amounts and durations; never use placeholders.

## OUTPUT
Return JSON matching this JSON schema:
{json.dumps(stage_json_schema(stage_number))}"""
