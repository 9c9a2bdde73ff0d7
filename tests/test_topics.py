"""Tests for keyword-based topic classification."""

from __future__ import annotations

from therapy_assistant.nlu.topics import detect_topic, detect_topic_or_none, score_topics
from therapy_assistant.vocabulary import GENERAL_ASSISTANCE_TOPIC


class TestScoring:
    def test_phrase_outweighs_single_words(self):
        scores = score_topics("How do I write a progress report?")
        # "report" (1) + "progress report" (2 words x 2)
        assert scores["report writing"] == 5

    def test_single_words_match_whole_words_only(self):
        assert score_topics("the reporter called")["report writing"] == 0

    def test_scores_every_topic(self):
        scores = score_topics("anything")
        assert "billing" in scores
        assert all(score == 0 for score in scores.values())


class TestDetectTopic:
    def test_best_topic_wins(self):
        assert detect_topic("Tips for autism spectrum support") == "autism"

    def test_tie_goes_to_first_listed_topic(self):
        assert detect_topic("billing schedule") == "session planning"

    def test_fallback_is_general_assistance(self):
        assert detect_topic("hello there") == GENERAL_ASSISTANCE_TOPIC

    def test_or_none_variant_has_no_fallback(self):
        assert detect_topic_or_none("hello there") is None
        assert detect_topic_or_none("NDIS invoice question") == "billing"

    def test_idempotent(self):
        query = "handwriting and fine motor practice"
        assert detect_topic(query) == detect_topic(query) == "occupational therapy"
