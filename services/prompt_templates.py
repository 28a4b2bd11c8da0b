"""
Prompt templates for the AI marketing tools
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

SYSTEM_PROMPT = (
    "You are an expert digital marketing strategist. "
    "Always answer with a single JSON object and nothing else."
)

# Long inputs (blog bodies, competitor lists) are cut before templating
MAX_FIELD_CHARS = 4000


@dataclass(frozen=True)
class PromptTemplate:
    task: str
    output_keys: Tuple[str, ...]


TEMPLATES: Dict[str, PromptTemplate] = {
    "seo-audit": PromptTemplate(
        "Audit the website below for on-page and technical SEO against the given keywords and competitors.",
        ("score", "issues", "recommendations"),
    ),
    "social-media": PromptTemplate(
        "Write ready-to-publish social media posts for the business below, one per requested platform.",
        ("posts",),
    ),
    "blog-writing": PromptTemplate(
        "Write an SEO-optimized blog post following the brief below, formatted in Markdown.",
        ("title", "meta_description", "content", "word_count", "readability_score"),
    ),
    "email-marketing": PromptTemplate(
        "Write an email campaign for the brief below, including subject line variants and a preview text.",
        ("subject_lines", "preview_text", "body", "call_to_action"),
    ),
    "client-reporting": PromptTemplate(
        "Write a monthly client report summarizing campaign performance against the KPIs and goals below.",
        ("summary", "kpi_analysis", "wins", "recommendations"),
    ),
    "ad-copy": PromptTemplate(
        "Write high-converting ad variations for each platform in the brief below.",
        ("variations", "targeting_tips"),
    ),
    "landing-page": PromptTemplate(
        "Write landing page copy for the offer below, section by section.",
        ("headline", "subheadline", "sections", "call_to_action"),
    ),
    "competitor-analysis": PromptTemplate(
        "Analyze the competitors below and produce a SWOT analysis for our company.",
        ("competitors", "swot", "opportunities"),
    ),
    "cold-outreach": PromptTemplate(
        "Write a personalized cold outreach sequence for the prospect below.",
        ("messages", "follow_ups"),
    ),
    "reels-scripts": PromptTemplate(
        "Write short-form video scripts (Reels/Shorts/TikTok) for the brief below with hooks and shot notes.",
        ("scripts",),
    ),
    "product-launch": PromptTemplate(
        "Plan a complete product launch campaign for the product below, phase by phase.",
        ("timeline", "channels", "messaging", "budget_allocation"),
    ),
    "blog-to-video": PromptTemplate(
        "Convert the blog post below into a video script for the target platform.",
        ("script", "scenes", "call_to_action"),
    ),
    "local-seo": PromptTemplate(
        "Produce a local SEO plan for the business below covering listings, keywords and citations.",
        ("keywords", "google_business_profile", "citations", "action_plan"),
    ),
}


def _format_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False)
    else:
        text = str(value)
    return text[:MAX_FIELD_CHARS]


def build_messages(tool_id: str, tool_name: str, payload: Dict[str, Any]) -> List[Dict[str, str]]:
    """Chat messages for one generation request."""
    template = TEMPLATES.get(tool_id)
    task = template.task if template else f"Complete the '{tool_name}' task for the brief below."
    keys = template.output_keys if template else ("result",)

    lines = [task, "", "Brief:"]
    for key, value in payload.items():
        if value in (None, "", [], {}):
            continue
        lines.append(f"- {key}: {_format_value(value)}")
    lines.append("")
    lines.append("Return a JSON object with these keys: " + ", ".join(keys) + ".")

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n".join(lines)},
    ]
