"""AI content tools.

Caption generation and posting-time suggestions through the configured
LLM provider. Model output that is not valid JSON is replaced by a
default structure; provider failures propagate.
"""

import json
from typing import Any

from shared.logging import EventLogger
from shared.models import PromptMessage, ProviderFamily, ToolParameter
from gateway.registry import OperationRegistry
from providers.base import ProviderContext
from providers.llm import LLMProvider, create_llm_provider

CAPTION_SYSTEM = "You are a creative social media expert. Always respond with valid JSON."
CAPTION_PROMPT = """You are a creative social media expert. Generate three distinct and engaging captions for a social media post based on the following prompt.
Each caption should be tailored for a different tone: one professional, one casual, and one witty.
Return the captions in a JSON object with keys "professional", "casual", and "witty".

Prompt: "{prompt}\""""

SCHEDULE_SYSTEM = "You are a social media analyst. Always respond with valid JSON."
SCHEDULE_PROMPT = """You are a social media analyst. Based on the following post content, provide three optimal posting times to maximize engagement on LinkedIn, Facebook, and Instagram. Consider typical user behavior on each platform.
Return the suggestions as a JSON object with keys "linkedIn", "facebook", and "instagram".

Post Content: "{post_content}\""""

DEFAULT_SCHEDULE = {
    "linkedIn": "Tomorrow at 9:00 AM (Weekday)",
    "facebook": "Today at 8:00 PM (Evening)",
    "instagram": "Tomorrow at 12:00 PM (Lunchtime)",
}


def _is_json(content: str) -> bool:
    try:
        json.loads(content)
    except ValueError:
        return False
    return True


class ContentAssistant:
    """Prompts the LLM and normalises its output to JSON text."""

    def __init__(self, llm: LLMProvider, events: EventLogger) -> None:
        self.llm = llm
        self.events = events

    async def generate_caption(self, prompt: str) -> str:
        response = await self.llm.complete(
            [
                PromptMessage(role="system", content=CAPTION_SYSTEM),
                PromptMessage(role="user", content=CAPTION_PROMPT.format(prompt=prompt)),
            ],
            temperature=0.7,
            max_tokens=500,
        )
        content = response.content or ""
        if _is_json(content):
            return content

        self.events.warning("LLM returned non-JSON caption output", operation="generateCaption")
        return json.dumps({
            "professional": f"Professional caption: {content}",
            "casual": f"Casual caption: {content}",
            "witty": f"Witty caption: {content}",
        })

    async def get_scheduling_suggestion(self, post_content: str) -> str:
        response = await self.llm.complete(
            [
                PromptMessage(role="system", content=SCHEDULE_SYSTEM),
                PromptMessage(role="user", content=SCHEDULE_PROMPT.format(post_content=post_content)),
            ],
            temperature=0.5,
            max_tokens=300,
        )
        content = response.content or ""
        if _is_json(content):
            return content

        self.events.warning("LLM returned non-JSON scheduling output", operation="getSchedulingSuggestion")
        return json.dumps(DEFAULT_SCHEDULE)


def register_ai_provider(registry: OperationRegistry, context: ProviderContext) -> None:
    """Register the LLM-backed content tools."""
    llm = context.llm or create_llm_provider(context.settings.llm)
    assistant = ContentAssistant(llm, context.events)

    async def generate_caption(args: dict[str, Any]) -> str:
        return await assistant.generate_caption(args["prompt"])

    async def get_scheduling_suggestion(args: dict[str, Any]) -> str:
        return await assistant.get_scheduling_suggestion(args["postContent"])

    registry.register_tool(
        "generateCaption",
        "Generates post captions in three tones (professional, casual, witty) using the configured LLM.",
        ProviderFamily.AI,
        [ToolParameter(name="prompt", description="The prompt to use for generating the caption.")],
        generate_caption,
    )
    registry.register_tool(
        "getSchedulingSuggestion",
        "Suggests the best time to post on social media for maximum engagement.",
        ProviderFamily.AI,
        [ToolParameter(name="postContent", description="The content of the post to be scheduled.")],
        get_scheduling_suggestion,
    )
