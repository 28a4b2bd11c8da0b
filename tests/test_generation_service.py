"""
Unit tests for the generation service: placeholders, timeout and upstream parsing
"""
import asyncio
from types import SimpleNamespace

import pytest

from services.generation_service import GenerationService, placeholder_output
from services.prompt_templates import MAX_FIELD_CHARS, TEMPLATES, build_messages
from services.tool_registry import AI_TOOLS, get_tool
from utils.errors import UpstreamGenerationError


class FakeCompletions:
    def __init__(self, content=None, delay: float = 0.0):
        self.content = content
        self.delay = delay
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, delay: float = 0.0):
    completions = FakeCompletions(content, delay)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_every_tool_has_a_prompt_template():
    assert set(TEMPLATES) == set(AI_TOOLS)


def test_prompt_includes_input_and_truncates_long_fields():
    messages = build_messages("blog-writing", "Blog Writing", {"topic": "AI", "notes": "x" * (MAX_FIELD_CHARS + 500)})
    assert messages[0]["role"] == "system"
    user_prompt = messages[-1]["content"]
    assert "AI" in user_prompt
    assert "x" * (MAX_FIELD_CHARS + 1) not in user_prompt


def test_placeholder_outputs_are_deterministic_copies():
    first = placeholder_output("seo-audit", {"url": "https://example.com"})
    first["score"] = 0
    assert placeholder_output("seo-audit", {})["score"] == 78

    generic = placeholder_output("local-seo", {"city": "Austin"})
    assert generic == {"message": "Content generated successfully", "data": {"city": "Austin"}}


@pytest.mark.asyncio
async def test_without_api_key_returns_placeholder():
    service = GenerationService(api_key=None)
    assert service.uses_llm is False
    output = await service.generate(get_tool("social-media"), {"topic": "launch"})
    assert output == placeholder_output("social-media", {"topic": "launch"})


@pytest.mark.asyncio
async def test_llm_json_output_is_returned():
    client, completions = fake_client('{"headlines": ["Buy now"]}')
    service = GenerationService(client=client, model="test-model")

    output = await service.generate(get_tool("ad-copy"), {"product": "Shoes"})

    assert output == {"headlines": ["Buy now"]}
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_unparsable_llm_output_raises_with_fallback():
    client, _ = fake_client("I cannot help with that.")
    service = GenerationService(client=client)

    with pytest.raises(UpstreamGenerationError) as exc_info:
        await service.generate(get_tool("seo-audit"), {"url": "https://example.com"})

    error = exc_info.value
    assert error.code == "UNPARSABLE_OUTPUT"
    assert error.fallback == placeholder_output("seo-audit", {})
    body = error.to_dict()
    assert body["message"] == "AI generation failed"
    assert body["fallback"]["score"] == 78


@pytest.mark.asyncio
async def test_generation_timeout():
    client, _ = fake_client('{"ok": true}', delay=1.0)
    service = GenerationService(client=client, timeout_seconds=0.05)

    with pytest.raises(UpstreamGenerationError) as exc_info:
        await service.generate(get_tool("ad-copy"), {"product": "Shoes"})

    assert exc_info.value.code == "GENERATION_TIMEOUT"
    assert "timed out" in exc_info.value.message
