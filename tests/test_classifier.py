"""Keyword category classifier tests."""
import pytest

from aihub.services.discovery.classifier import (
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    suggest_category,
)


def test_no_keywords_falls_back_to_default():
    suggestion = suggest_category("Widgets for everyone")
    assert suggestion.primary == DEFAULT_CATEGORY
    assert suggestion.confidence == 0.0
    assert suggestion.alternatives == []


def test_confidence_is_share_of_category_keywords():
    suggestion = suggest_category("New AI: chatbot and GPT copilot for conversational chat")
    assert suggestion.primary == "text-generation"
    # gpt, chatbot, chat, conversational, copilot
    assert suggestion.confidence == pytest.approx(5 / len(CATEGORY_KEYWORDS["text-generation"]))


def test_matching_is_case_insensitive():
    assert suggest_category("STABLE DIFFUSION art").primary == "image-generation"


def test_ties_resolve_by_table_order():
    # one keyword each for indie-dev and text-generation; indie-dev is listed first
    suggestion = suggest_category("indie gpt")
    assert suggestion.primary == "indie-dev"
    assert suggestion.alternatives == ["text-generation"]


def test_alternatives_capped_at_three():
    suggestion = suggest_category("gpt speech translation medical quiz dashboard")
    assert len(suggestion.alternatives) == 3
    assert suggestion.primary not in suggestion.alternatives


def test_korean_keywords():
    suggestion = suggest_category("영상 편집과 애니메이션을 위한 비디오 도구")
    assert suggestion.primary == "video"


@pytest.mark.parametrize("base, extra", [
    ("gpt", " llm"),
    ("chatbot", " language model copilot"),
    ("speech", " voice transcription"),
])
def test_adding_matching_keywords_never_lowers_confidence(base, extra):
    before = suggest_category(base)
    after = suggest_category(base + extra)
    assert after.primary == before.primary
    assert after.confidence >= before.confidence


def test_confidence_never_exceeds_one():
    text = " ".join(CATEGORY_KEYWORDS["translation"])
    suggestion = suggest_category(text)
    assert suggestion.primary == "translation"
    assert suggestion.confidence == 1.0
