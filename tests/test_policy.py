"""
Tests for the Guess Policy.

KNOWN must be certain, SMART must respect exclusions and names claimed
elsewhere, and RANDOM must always produce some candidate.
"""

import random

import pytest

from conftest import FirstChoice


class TestKnown:
    """Tests for the KNOWN branch."""

    def test_known_name_is_chosen_with_certainty(self, knowledge):
        from facequiz.policy import GuessMethod, choose

        knowledge.record_outcome("q1", ["Alice", "Bob"], "Alice")

        for seed in range(20):
            guess = choose("q1", ["Alice", "Bob"], knowledge, random.Random(seed))
            assert (guess.name, guess.method) == ("Alice", GuessMethod.KNOWN)

    def test_known_name_not_offered_falls_back_to_elimination(self, knowledge):
        """A known key whose name isn't visible is guessed among the rest."""
        from facequiz.policy import GuessMethod, choose

        knowledge.record_outcome("q1", ["Alice", "Bob"], "Alice")

        guess = choose("q1", ["Bob", "Carol"], knowledge, FirstChoice())

        # Bob is excluded for q1, so Carol is the only smart option
        assert (guess.name, guess.method) == ("Carol", GuessMethod.SMART)


class TestSmart:
    """Tests for elimination-based guessing."""

    def test_eliminates_excluded_and_claimed_names(self):
        """excluded[key] = {Bob}, Carol claimed elsewhere -> Dave."""
        import json

        from facequiz.knowledge import KnowledgeBase
        from facequiz.persistence import MemoryKnowledgeStore, encode_document
        from facequiz.policy import GuessMethod, choose

        document = encode_document({
            "assignment": {"q2": "Carol"},
            "excluded": {"q1": ["Bob"]},
        })
        knowledge = KnowledgeBase(MemoryKnowledgeStore(json.dumps(document)))

        for seed in range(20):
            guess = choose("q1", ["Bob", "Carol", "Dave"], knowledge, random.Random(seed))
            assert (guess.name, guess.method) == ("Dave", GuessMethod.SMART)

    def test_uniform_over_remaining(self, knowledge):
        """Every surviving candidate can be chosen."""
        from facequiz.policy import choose

        rng = random.Random(7)
        seen = {choose("q1", ["A", "B", "C"], knowledge, rng).name for _ in range(200)}

        assert seen == {"A", "B", "C"}

    def test_remaining_count_reported(self, knowledge):
        from facequiz.policy import choose

        knowledge.record_outcome("q2", ["A", "Z"], "A")

        guess = choose("q1", ["A", "B", "C"], knowledge, FirstChoice())

        assert guess.remaining == 2
        assert guess.name == "B"


class TestRandomFallback:
    """Tests for the all-eliminated contradiction path."""

    def test_all_eliminated_returns_some_candidate(self, knowledge):
        from facequiz.policy import GuessMethod, choose

        knowledge.record_outcome("q2", ["Alice", "Zed"], "Alice")
        knowledge.record_outcome("q3", ["Bob", "Zed"], "Bob")

        for seed in range(20):
            guess = choose("q1", ["Alice", "Bob"], knowledge, random.Random(seed))
            assert guess.method is GuessMethod.RANDOM
            assert guess.name in ("Alice", "Bob")
            assert guess.remaining == 0

    def test_empty_candidates_raise(self, knowledge):
        from facequiz.policy import choose

        with pytest.raises(ValueError):
            choose("q1", [], knowledge)
