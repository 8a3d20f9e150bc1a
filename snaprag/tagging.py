"""Keyword tag extraction: language-model suggestions with a deterministic fallback."""

import re
from collections.abc import Iterable

import structlog

from snaprag.errors import ProviderError
from snaprag.llm_client import OpenAIClient
from snaprag.models import FileType, TagSuggestion

logger = structlog.get_logger()

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "am", "i", "you", "he", "she",
    "it", "we", "they", "my", "your", "his", "her", "its", "our", "their",
    "this", "that", "these", "those",
})

# Activity keyword -> associated tags. Order is significant: it fixes the
# order in which matched tags are emitted.
ACTIVITY_TAG_MAP: dict[str, tuple[str, ...]] = {
    "coffee": ("coffee", "cafe", "morning", "social"),
    "workout": ("fitness", "gym", "exercise", "health"),
    "beach": ("beach", "ocean", "summer", "vacation"),
    "sunset": ("sunset", "golden-hour", "peaceful", "nature"),
    "friends": ("friends", "social", "gathering", "fun"),
    "food": ("food", "dining", "delicious", "meal"),
    "travel": ("travel", "adventure", "explore", "journey"),
    "work": ("work", "office", "professional", "busy"),
    "family": ("family", "love", "together", "bonding"),
    "music": ("music", "concert", "performance", "entertainment"),
    "nature": ("nature", "outdoors", "peaceful", "fresh-air"),
    "party": ("party", "celebration", "fun", "social"),
    "shopping": ("shopping", "retail", "fashion", "style"),
    "study": ("study", "learning", "education", "focus"),
}

# Closed vocabulary recognised in search queries.
ACTIVITY_KEYWORDS = frozenset({
    "coffee", "food", "dinner", "lunch", "breakfast", "meal",
    "workout", "gym", "exercise", "fitness", "run", "sport",
    "beach", "ocean", "sea", "water", "swim", "vacation",
    "sunset", "sunrise", "morning", "evening", "night",
    "friends", "family", "social", "party", "gathering",
    "work", "office", "meeting", "business", "professional",
    "travel", "trip", "adventure", "explore", "journey",
    "music", "concert", "performance", "art", "creative",
    "nature", "outdoor", "hiking", "park", "garden",
    "shopping", "fashion", "style", "clothes", "retail",
    "study", "learning", "education", "book", "school",
})

MAX_RELATED_TAGS = 2
FALLBACK_CONFIDENCE = 0.5
DEFAULT_MODEL_CONFIDENCE = 0.8

_WORD_RE = re.compile(r"[^\W_][\w'-]*")

TAG_SYSTEM_PROMPT = (
    "You are an expert at generating relevant, specific tags for social media content. "
    "Generate concise, searchable tags that help categorize and discover content. "
    "Always respond with valid JSON."
)


def tokenize(text: str) -> list[str]:
    """Lowercase word tokens, punctuation stripped."""
    return [token.strip("'-") for token in _WORD_RE.findall(text.lower()) if token.strip("'-")]


def normalize_tag(tag: str) -> str:
    """Lowercase, trim, and join inner whitespace with '-'."""
    return "-".join(str(tag).lower().split())


def _dedupe(tags: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(t for t in tags if t))


def fallback_tags(context: str, max_tags: int = 5) -> list[str]:
    """Derive tags from ``context`` without any external call.

    Activity keywords found anywhere in the context contribute up to two
    associated tags each; remaining slots are filled with the context's own
    meaningful words (longer than two characters, not stopwords). The result
    is deterministic and non-empty whenever such a word exists.
    """
    if max_tags <= 0:
        return []

    lowered = context.lower()
    tags: list[str] = []
    for keyword, related in ACTIVITY_TAG_MAP.items():
        if keyword in lowered:
            tags.extend(related[:MAX_RELATED_TAGS])

    tags = _dedupe(tags)
    for word in tokenize(context):
        if len(tags) >= max_tags:
            break
        if len(word) > 2 and word not in STOPWORDS and word not in tags:
            tags.append(word)

    return tags[:max_tags]


def tags_from_query(query: str) -> list[str]:
    """Tags to look up for a search query, from the closed activity vocabulary.

    Each recognised keyword is followed by up to two of its associated tags,
    so "coffee" also matches content tagged "cafe" by :func:`fallback_tags`.
    """
    tags: list[str] = []
    for token in tokenize(query):
        if token in ACTIVITY_KEYWORDS:
            tags.append(token)
            tags.extend(ACTIVITY_TAG_MAP.get(token, ())[:MAX_RELATED_TAGS])
    return _dedupe(tags)


def build_tag_prompt(
    context: str,
    file_type: str,
    user_interests: list[str],
    prior_tags: list[str],
    max_tags: int,
) -> str:
    interests_str = ", ".join(user_interests) if user_interests else "general"
    prior_tags_str = ", ".join(prior_tags[:10]) if prior_tags else "none"

    return f"""Generate relevant tags for a {file_type} based on this context: "{context}"

User Profile:
- Interests: {interests_str}
- Previously used tags: {prior_tags_str}

Requirements:
1. Generate {max_tags} relevant, specific tags
2. Tags should be 1-2 words each, lowercase
3. Focus on: activities, locations, objects, moods, themes
4. Consider user's interests: {interests_str}
5. Be consistent with previously used tags when relevant
6. Avoid generic tags like "photo" or "image"

Examples of good tags:
- For "having coffee with friends": coffee, friends, social, cafe, morning, conversation
- For "sunset at the beach": sunset, beach, golden-hour, ocean, peaceful, nature
- For "working out at gym": fitness, gym, workout, exercise, health, strength

Format your response as JSON:
{{
  "tags": ["tag1", "tag2", "tag3", "tag4", "tag5"],
  "confidence": 0.9
}}"""


class TagExtractor:
    """Suggests tags with the language model, falling back to :func:`fallback_tags`.

    Only :class:`ProviderError` (unreachable model, bad status, malformed
    JSON, or no usable tags) selects the fallback; any other exception is a
    bug and propagates.
    """

    def __init__(self, llm_client: OpenAIClient | None):
        self.llm_client = llm_client

    async def extract_tags(
        self,
        context: str,
        file_type: FileType | str = FileType.IMAGE,
        max_tags: int = 5,
        user_interests: Iterable[str] = (),
        prior_tags: Iterable[str] = (),
    ) -> TagSuggestion:
        if max_tags <= 0:
            raise ValueError("max_tags must be positive")

        if self.llm_client is not None:
            try:
                return await self._extract_with_model(
                    context, str(file_type), max_tags, list(user_interests), list(prior_tags)
                )
            except ProviderError as e:
                logger.warning("tag_fallback_used", error=str(e))

        return TagSuggestion(
            tags=fallback_tags(context, max_tags),
            confidence=FALLBACK_CONFIDENCE,
            source="fallback",
        )

    async def _extract_with_model(
        self,
        context: str,
        file_type: str,
        max_tags: int,
        user_interests: list[str],
        prior_tags: list[str],
    ) -> TagSuggestion:
        prompt = build_tag_prompt(
            context, file_type, user_interests, _dedupe(prior_tags), max_tags
        )
        parsed = await self.llm_client.complete_json(
            TAG_SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=200, purpose="tags"
        )

        raw_tags = parsed.get("tags") or []
        if not isinstance(raw_tags, list):
            raise ProviderError("model returned tags that are not a list")
        tags = _dedupe(normalize_tag(t) for t in raw_tags if isinstance(t, str))[:max_tags]
        if not tags:
            raise ProviderError("model returned no usable tags")

        return TagSuggestion(
            tags=tags,
            confidence=_clamp_confidence(parsed.get("confidence"), DEFAULT_MODEL_CONFIDENCE),
            source="model",
        )


def _clamp_confidence(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return min(1.0, max(0.0, float(value)))
