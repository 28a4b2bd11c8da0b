"""
Generation Service - produces tool output from an external text-generation
API or from deterministic placeholders
"""
import asyncio
import copy
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError

from services.prompt_templates import build_messages
from services.tool_registry import ToolDefinition
from utils.errors import UpstreamGenerationError
from utils.llm_output import Fallback, parse_json_object

logger = logging.getLogger(__name__)

_PLACEHOLDERS: Dict[str, Dict[str, Any]] = {
    "seo-audit": {
        "score": 78,
        "issues": [
            "Missing meta description on 3 pages",
            "Page load speed could be improved",
            "Some images missing alt text",
        ],
        "recommendations": [
            "Add meta descriptions to all pages",
            "Optimize images for faster loading",
            "Improve internal linking structure",
        ],
        "report_url": "https://example.com/seo-report.pdf",
    },
    "social-media": {
        "posts": [
            {
                "platform": "Instagram",
                "content": "Ready to transform your marketing game? Our AI agents are here to help! #MarketingAI #DigitalMarketing",
                "hashtags": ["#MarketingAI", "#DigitalMarketing", "#SocialMedia", "#ContentCreation"],
                "best_time": "2:00 PM",
            },
            {
                "platform": "LinkedIn",
                "content": "Discover how AI-powered marketing tools can streamline your workflow and boost ROI. What's your biggest marketing challenge?",
                "hashtags": ["#MarketingAutomation", "#AI", "#BusinessGrowth"],
                "best_time": "9:00 AM",
            },
        ],
    },
    "blog-writing": {
        "title": "The Ultimate Guide to AI-Powered Marketing",
        "meta_description": "Discover how AI is changing digital marketing. Learn strategies, tools, and best practices.",
        "content": (
            "# The Ultimate Guide to AI-Powered Marketing\n\n"
            "## Introduction\nArtificial Intelligence is transforming the marketing landscape...\n\n"
            "## Key Benefits of AI in Marketing\n1. Personalization at scale\n2. Predictive analytics\n"
            "3. Automated content creation\n\n"
            "## Conclusion\nAI-powered marketing is no longer optional. It is essential for staying competitive."
        ),
        "word_count": 1250,
        "readability_score": "Good",
    },
}


def placeholder_output(tool_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Deterministic stand-in output for a tool."""
    if tool_id in _PLACEHOLDERS:
        return copy.deepcopy(_PLACEHOLDERS[tool_id])
    return {"message": "Content generated successfully", "data": copy.deepcopy(payload)}


class GenerationService:
    """
    Runs one tool's generation routine under a bounded timeout.

    With an API key the prompt goes to the chat completions API in JSON mode;
    without one the deterministic placeholder is returned.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 20.0,
        placeholder_delay: float = 0.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.placeholder_delay = placeholder_delay
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "GenerationService":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.generation_timeout_seconds,
            placeholder_delay=settings.placeholder_delay_seconds,
        )

    @property
    def uses_llm(self) -> bool:
        return bool(self.api_key or self._client)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout_seconds, max_retries=0)
        return self._client

    async def generate(self, tool: ToolDefinition, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Raises:
            UpstreamGenerationError: on timeout, upstream failure or unparsable output
        """
        try:
            return await asyncio.wait_for(self._run(tool, payload), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise UpstreamGenerationError(
                f"Generation timed out after {self.timeout_seconds:g}s",
                code="GENERATION_TIMEOUT",
            )

    async def _run(self, tool: ToolDefinition, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.uses_llm:
            if self.placeholder_delay > 0:
                await asyncio.sleep(self.placeholder_delay)
            return placeholder_output(tool.id, payload)
        return await self._call_llm(tool, payload)

    async def _call_llm(self, tool: ToolDefinition, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=build_messages(tool.id, tool.name, payload),
                temperature=0.7,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.warning(f"Generation request failed for {tool.id}: {e}")
            raise UpstreamGenerationError(f"Generation service error: {e}") from e

        text = response.choices[0].message.content if response.choices else None
        result = parse_json_object(text, placeholder_output(tool.id, payload))
        if isinstance(result, Fallback):
            logger.warning(f"Falling back to placeholder output for {tool.id}: {result.error}")
            raise UpstreamGenerationError(result.error, fallback=result.default, code="UNPARSABLE_OUTPUT")
        return result.value
