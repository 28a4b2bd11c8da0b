"""
Static registry of AI tools. Immutable at runtime.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ToolDefinition:
    id: str
    name: str
    description: str
    category: str
    free_in_trial: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "freeInTrial": self.free_in_trial,
        }


_TOOLS = (
    ToolDefinition("seo-audit", "SEO Audit Tool", "Comprehensive website SEO analysis", "SEO", True),
    ToolDefinition("social-media", "Social Media Content Generator", "Generate engaging social media posts", "Content", True),
    ToolDefinition("blog-writing", "Blog Writing & Optimization", "AI-powered long-form content creation", "Content"),
    ToolDefinition("email-marketing", "Email Marketing Agent", "Create compelling email campaigns", "Email"),
    ToolDefinition("client-reporting", "Client Reporting Agent", "Automated monthly reports with KPI analysis", "Analytics"),
    ToolDefinition("ad-copy", "Ad Copy Generator", "High-converting ad creatives", "Advertising"),
    ToolDefinition("landing-page", "Landing Page Builder Assistant", "Auto-generate compelling landing page copy", "Conversion"),
    ToolDefinition("competitor-analysis", "Competitor Analysis Agent", "Deep competitor insights and SWOT analysis", "Research"),
    ToolDefinition("cold-outreach", "Cold Outreach Personalization", "Personalized outreach messages", "Outreach"),
    ToolDefinition("reels-scripts", "Reels/Shorts Scriptwriter", "Engaging short-form video scripts", "Video"),
    ToolDefinition("product-launch", "Product Launch Agent", "Complete launch campaign planning", "Launch"),
    ToolDefinition("blog-to-video", "Blog-to-Video Agent", "Convert blog content into video scripts", "Video"),
    ToolDefinition("local-seo", "Local SEO Booster", "Optimize local search visibility", "Local SEO"),
)

AI_TOOLS: Dict[str, ToolDefinition] = {tool.id: tool for tool in _TOOLS}


def get_tool(tool_id: str) -> Optional[ToolDefinition]:
    return AI_TOOLS.get(tool_id)


def list_tools() -> List[ToolDefinition]:
    return list(AI_TOOLS.values())


def trial_tool_ids() -> frozenset:
    return frozenset(tool.id for tool in _TOOLS if tool.free_in_trial)
