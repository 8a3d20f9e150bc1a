"""Tests for snaprag.tagging: heuristic fallback, query vocabulary, extractor strategy."""

from unittest.mock import AsyncMock

import pytest

from snaprag.errors import ProviderError
from snaprag.models import FileType
from snaprag.tagging import (
    ACTIVITY_KEYWORDS,
    ACTIVITY_TAG_MAP,
    TagExtractor,
    build_tag_prompt,
    fallback_tags,
    normalize_tag,
    tags_from_query,
    tokenize,
)


class TestFallbackTags:
    def test_coffee_with_friends_includes_both_activities(self):
        tags = fallback_tags("having coffee with friends this morning")
        assert "coffee" in tags
        assert "friends" in tags
        assert tags == ["coffee", "cafe", "friends", "social", "having"]

    def test_is_deterministic(self):
        context = "Sunset hike after work, then dinner with family"
        assert fallback_tags(context, 6) == fallback_tags(context, 6)

    def test_respects_max_tags(self):
        tags = fallback_tags("coffee beach sunset friends food travel", max_tags=3)
        assert len(tags) == 3

    def test_no_duplicates(self):
        tags = fallback_tags("party with friends, coffee and more coffee", max_tags=10)
        assert len(tags) == len(set(tags))

    def test_meaningful_words_only(self):
        tags = fallback_tags("we ate at the zoo it was fun", max_tags=10)
        assert "the" not in tags
        assert "we" not in tags
        assert "ate" in tags
        assert "zoo" in tags

    def test_non_empty_for_single_meaningful_word(self):
        assert fallback_tags("the skateboard") == ["skateboard"]

    def test_empty_when_only_stopwords(self):
        assert fallback_tags("this is my") == []

    def test_empty_context(self):
        assert fallback_tags("") == []

    def test_punctuation_is_stripped(self):
        assert fallback_tags("Skiing!!! (finally)") == ["skiing", "finally"]

    def test_non_ascii_words_kept_whole(self):
        assert fallback_tags("naïve café") == ["naïve", "café"]

    def test_accented_words_not_split(self):
        tags = fallback_tags("déjà vu über naïve", max_tags=10)
        assert tags == ["déjà", "über", "naïve"]
        assert "ber" not in tags

    def test_non_latin_context_has_tags(self):
        assert fallback_tags("東京タワー") == ["東京タワー"]

    def test_keyword_substring_match(self):
        # "workout" also contains "work"
        tags = fallback_tags("workouts", max_tags=10)
        assert tags[:4] == ["fitness", "gym", "work", "office"]


class TestTagsFromQuery:
    def test_coffee_query(self):
        assert tags_from_query("Show me my coffee photos") == ["coffee", "cafe"]

    def test_case_and_punctuation_insensitive(self):
        assert tags_from_query("BEACH?") == ["beach", "ocean"]

    def test_vocabulary_word_without_mapping(self):
        assert tags_from_query("gym sessions") == ["gym"]

    def test_no_vocabulary_words(self):
        assert tags_from_query("what did I do yesterday") == []

    def test_dedupes_across_keywords(self):
        tags = tags_from_query("friends party")
        assert tags == ["friends", "social", "party", "celebration"]

    def test_activity_map_keys_are_in_query_vocabulary(self):
        assert set(ACTIVITY_TAG_MAP) <= ACTIVITY_KEYWORDS


class TestHelpers:
    def test_tokenize(self):
        assert tokenize("Golden-hour at Joe's!") == ["golden-hour", "at", "joe's"]

    def test_tokenize_unicode(self):
        assert tokenize("Café au lait, São Paulo") == ["café", "au", "lait", "são", "paulo"]

    def test_normalize_tag(self):
        assert normalize_tag("  Golden  Hour ") == "golden-hour"

    def test_build_tag_prompt_defaults(self):
        prompt = build_tag_prompt("a hike", "video", [], [], 5)
        assert "Interests: general" in prompt
        assert "Previously used tags: none" in prompt
        assert "for a video" in prompt

    def test_build_tag_prompt_caps_prior_tags(self):
        prior = [f"t{i}" for i in range(15)]
        prompt = build_tag_prompt("a hike", "image", ["hiking"], prior, 5)
        assert "t9" in prompt
        assert "t10" not in prompt
        assert "Interests: hiking" in prompt


class TestTagExtractor:
    async def test_uses_model_tags_when_available(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(
            return_value={"tags": ["Coffee", "Latte Art", "coffee", ""], "confidence": 0.95}
        )
        extractor = TagExtractor(mock_llm_client)

        suggestion = await extractor.extract_tags("espresso", max_tags=5)

        assert suggestion.tags == ["coffee", "latte-art"]
        assert suggestion.confidence == 0.95
        assert suggestion.source == "model"

    async def test_prompt_carries_interests_and_prior_tags(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(return_value={"tags": ["x"]})
        extractor = TagExtractor(mock_llm_client)

        await extractor.extract_tags(
            "espresso",
            file_type=FileType.VIDEO,
            user_interests=["baking"],
            prior_tags=["cafe", "cafe", "brunch"],
        )

        prompt = mock_llm_client.complete_json.call_args.args[1]
        assert "baking" in prompt
        assert "cafe, brunch" in prompt
        assert "for a video" in prompt

    async def test_truncates_model_tags(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(return_value={"tags": ["a1", "b2", "c3", "d4"]})
        suggestion = await TagExtractor(mock_llm_client).extract_tags("x", max_tags=2)
        assert suggestion.tags == ["a1", "b2"]

    async def test_default_confidence(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(return_value={"tags": ["coffee"]})
        suggestion = await TagExtractor(mock_llm_client).extract_tags("x")
        assert suggestion.confidence == 0.8

    async def test_falls_back_on_provider_error(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(side_effect=ProviderError("503"))
        suggestion = await TagExtractor(mock_llm_client).extract_tags(
            "having coffee with friends this morning"
        )
        assert suggestion.source == "fallback"
        assert suggestion.confidence == 0.5
        assert suggestion.tags == fallback_tags("having coffee with friends this morning")

    async def test_falls_back_when_model_gives_no_tags(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(return_value={"tags": []})
        suggestion = await TagExtractor(mock_llm_client).extract_tags("beach day")
        assert suggestion.source == "fallback"
        assert "beach" in suggestion.tags

    async def test_falls_back_when_tags_not_a_list(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(return_value={"tags": "beach, sun"})
        suggestion = await TagExtractor(mock_llm_client).extract_tags("beach day")
        assert suggestion.source == "fallback"

    async def test_unrelated_errors_propagate(self, mock_llm_client):
        mock_llm_client.complete_json = AsyncMock(side_effect=KeyError("bug"))
        with pytest.raises(KeyError):
            await TagExtractor(mock_llm_client).extract_tags("beach day")

    async def test_without_llm_client_uses_fallback(self):
        suggestion = await TagExtractor(None).extract_tags("beach day")
        assert suggestion.source == "fallback"
        assert suggestion.tags[:2] == ["beach", "ocean"]

    async def test_rejects_non_positive_max_tags(self):
        with pytest.raises(ValueError):
            await TagExtractor(None).extract_tags("beach", max_tags=0)
