"""Caption generation in a selectable tone."""

import structlog

from snaprag.errors import GenerationError, InvalidRequestError, ProviderError
from snaprag.llm_client import OpenAIClient, parse_json_object
from snaprag.models import CaptionResult, CaptionStyle

logger = structlog.get_logger()

STYLE_GUIDES: dict[CaptionStyle, str] = {
    CaptionStyle.CASUAL: (
        "Friendly, relaxed, conversational tone. Use everyday language and relatable expressions."
    ),
    CaptionStyle.PROFESSIONAL: (
        "Polished, informative, and sophisticated. Suitable for business or formal contexts."
    ),
    CaptionStyle.FUNNY: (
        "Humorous, witty, playful. Include puns, jokes, or clever observations where appropriate."
    ),
    CaptionStyle.INSPIRATIONAL: (
        "Motivational, uplifting, positive. Focus on encouragement and meaningful messages."
    ),
}

CAPTION_SYSTEM_PROMPT = (
    "You are a creative social media caption writer. Generate engaging, authentic captions "
    "that match the user's style and interests. Always respond with valid JSON."
)

DEFAULT_CONFIDENCE = 0.8
RAW_TEXT_CONFIDENCE = 0.7


def build_caption_prompt(context: str, style: CaptionStyle, max_length: int) -> str:
    return f"""You are a creative social media caption writer. Your task is to create engaging {style} captions based on the user's description of their photo.

User's Description: "{context}"

Style Guidelines: {STYLE_GUIDES[style]}
Max length: {max_length} characters

IMPORTANT: Create completely fresh, creative captions that capture the essence of what they're sharing while being much more engaging and {style} than their original description.

Requirements:
1. Generate 1 primary caption and 2 alternative suggestions
2. Keep all captions under {max_length} characters
3. Match the {style} tone perfectly
4. Be creative and original - don't just rewrite their description
5. Make it social media ready and engaging
6. Use their description as inspiration for the theme/topic

Format your response as JSON:
{{
  "caption": "main caption here",
  "suggestions": ["alternative 1", "alternative 2"],
  "confidence": 0.85
}}"""


class CaptionSynthesizer:
    def __init__(self, llm_client: OpenAIClient):
        self.llm_client = llm_client

    async def generate_caption(
        self,
        context: str,
        style: CaptionStyle | str = CaptionStyle.CASUAL,
        max_length: int = 100,
    ) -> CaptionResult:
        """Write a caption for ``context``.

        Raises :class:`InvalidRequestError` for a blank context (before any
        provider call) and :class:`GenerationError` when the model cannot be
        reached. A non-JSON answer is used verbatim, truncated to
        ``max_length``.
        """
        if not context or not context.strip():
            raise InvalidRequestError("context is required for caption generation")
        if max_length <= 0:
            raise InvalidRequestError("max_length must be positive")
        try:
            style = CaptionStyle(style)
        except ValueError as e:
            raise InvalidRequestError(f"unknown caption style: {style!r}") from e

        prompt = build_caption_prompt(context, style, max_length)
        try:
            content = await self.llm_client.complete(
                CAPTION_SYSTEM_PROMPT,
                prompt,
                temperature=0.8,
                max_tokens=300,
                purpose="caption",
            )
        except ProviderError as e:
            raise GenerationError(f"failed to generate caption: {e}") from e

        return _parse_caption(content, max_length)


def _parse_caption(content: str, max_length: int) -> CaptionResult:
    try:
        parsed = parse_json_object(content)
    except ProviderError:
        logger.info("caption_raw_text_used")
        return CaptionResult(
            caption=content.strip()[:max_length],
            suggestions=[],
            confidence=RAW_TEXT_CONFIDENCE,
        )

    caption = parsed.get("caption")
    if not isinstance(caption, str) or not caption.strip():
        caption = content
    raw_suggestions = parsed.get("suggestions")
    if not isinstance(raw_suggestions, list):
        raw_suggestions = []
    suggestions = [
        s.strip()[:max_length]
        for s in raw_suggestions
        if isinstance(s, str) and s.strip()
    ]

    confidence = parsed.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = DEFAULT_CONFIDENCE

    return CaptionResult(
        caption=caption.strip()[:max_length],
        suggestions=suggestions,
        confidence=min(1.0, max(0.0, float(confidence))),
    )
