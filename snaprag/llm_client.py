"""OpenAI chat client: raw completions, JSON completions, and grounded answers."""

import json
import time
from typing import Any

import openai
import structlog
from openai import AsyncOpenAI

from snaprag.cost_tracker import CostRecord
from snaprag.errors import GenerationError, ProviderError
from snaprag.models import SearchResult

logger = structlog.get_logger()

ANSWER_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions about a user's personal "
    "content and activities. Be conversational and insightful."
)


class OpenAIClient:
    """Async OpenAI client shared by tagging, captioning, and answer generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
    ):
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required")

        # Callers own retry policy.
        self.client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.last_cost: CostRecord | None = None

    async def complete(
        self,
        system: str,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int = 300,
        purpose: str = "",
    ) -> str:
        """Run one chat completion and return the generated text."""
        cost = CostRecord(model=self.model, purpose=purpose)
        t_start = time.perf_counter()

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as e:
            raise ProviderError(f"chat completion failed: {e}") from e

        cost.latency = time.perf_counter() - t_start
        if response.usage:
            cost.input_tokens = response.usage.prompt_tokens
            cost.output_tokens = response.usage.completion_tokens
        self.last_cost = cost
        logger.debug("llm_call", **cost.to_dict())

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError("no content returned by provider")
        return content

    async def complete_json(self, system: str, prompt: str, **kwargs: Any) -> dict[str, Any]:
        """Run a completion whose answer must be a JSON object."""
        content = await self.complete(system, prompt, **kwargs)
        return parse_json_object(content)

    def _build_prompt(self, query: str, search_results: list[SearchResult]) -> str:
        """Build the grounded prompt from the query and the retrieved content."""
        context_parts = []

        for i, result in enumerate(search_results, 1):
            context_text = result.user_context or result.caption or "No description"
            tags = ", ".join(result.tags) if result.tags else "No tags"
            context_parts.append(f"{i}. {context_text} (Tags: {tags})")

        context = "\n".join(context_parts)

        prompt = f"""Based on the user's content below, answer their question: "{query}"

User's Content:
{context}

Instructions:
- Answer based only on the provided content
- Be conversational and helpful
- If you can identify patterns or themes, mention them
- If the content doesn't contain relevant information, say so
- Do not speculate about anything that is not in the content
- Keep the response concise but informative
- Reference specific activities or moments when relevant

Response:"""

        return prompt

    async def generate_answer(self, query: str, search_results: list[SearchResult]) -> str:
        """Answer ``query`` strictly from ``search_results``."""
        prompt = self._build_prompt(query, search_results)
        try:
            return await self.complete(
                ANSWER_SYSTEM_PROMPT,
                prompt,
                temperature=0.7,
                max_tokens=300,
                purpose="answer",
            )
        except ProviderError as e:
            raise GenerationError(str(e)) from e


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a model answer as a JSON object, tolerating a ```json fence."""
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProviderError("model returned malformed JSON") from e
    if not isinstance(parsed, dict):
        raise ProviderError("model returned JSON that is not an object")
    return parsed
