"""
Tests for the Senan retrieval pipeline: relevance scoring, question
classification and token-budgeted context assembly.
Run with: python -m pytest tests/test_rag.py -v
(No API calls are made; the completion client is a fake.)
"""

import asyncio

from conftest import FakeCompletion, make_doc

from senan import rag, topics
from senan.models import Profile


DEATH_DOC = make_doc("a", "Death Penalty", "When you die you drop your corpse...")
FISHING_DOC = make_doc("fishing", "Fishing", "Cast a line at any river to catch fish.")
MOUNT_DOC = make_doc("mounts", "Mounts", "Horses can be bought from stable masters.")


def _profile(**overrides):
    data = {"key": "test", "name": "Test", "systemPrompt": "You are a helpful guide."}
    data.update(overrides)
    return Profile.model_validate(data)


# ─────────────────────────────────────────────────────────────
# score_document / score_documents
# ─────────────────────────────────────────────────────────────

class TestScoring:

    def test_death_penalty_scores_at_least_fifteen(self):
        score = rag.score_document("What is the death penalty system?", DEATH_DOC)
        assert score >= 15

    def test_death_penalty_ranked_first(self):
        ranked = rag.score_documents("What is the death penalty system?", [FISHING_DOC, MOUNT_DOC, DEATH_DOC])
        assert ranked[0].document.id == "a"

    def test_verbatim_question_scores_at_least_ten(self):
        doc = make_doc("q", "Misc", "Players often ask: how do i reset my talents? Visit a trainer.")
        assert rag.score_document("How do I reset my talents?", doc) >= topics.SCORE_FULL_QUESTION

    def test_question_containing_title_counts_as_verbatim(self):
        """The title "Death Penalty" sits inside the question; content never repeats it."""
        score = rag.score_document("What is the death penalty system?", DEATH_DOC)
        assert score >= topics.SCORE_FULL_QUESTION + topics.SCORE_TITLE_MATCH

    def test_short_title_inside_question_ignored(self):
        doc = make_doc("orc", "Orc", "Green and angry.")
        assert rag.score_document("Where is the orc camp?", doc) < topics.SCORE_FULL_QUESTION

    def test_repeated_whitespace_still_verbatim(self):
        doc = make_doc("ws", "Misc", "see: reset  talents here")
        assert rag.score_document("reset  talents", doc) >= topics.SCORE_FULL_QUESTION

    def test_title_match_adds_bonus(self):
        plain = make_doc("p", "Dying", "Details about the death penalty system.")
        titled = make_doc("t", "The death penalty system", "Details about the death penalty system.")
        question = "What is the death penalty system?"
        assert rag.score_document(question, titled) - rag.score_document(question, plain) >= topics.SCORE_TITLE_MATCH

    def test_short_core_phrase_is_not_a_verbatim_hit(self):
        """A core phrase under 4 chars ("xp") is too generic to earn +10."""
        doc = make_doc("x", "Experience", "You gain xp by killing monsters.")
        assert rag.score_document("What is xp?", doc) < topics.SCORE_FULL_QUESTION

    def test_story_question_boosts_lore(self):
        lore = make_doc("gods_lore", "Gods", "The gods of fire.", category="lore", tags=["gods"])
        faq = make_doc("gods_faq", "Gods", "The gods of fire.", category="faq")
        question = "Who are the gods of fire?"
        diff = rag.score_document(question, lore) - rag.score_document(question, faq)
        assert diff == topics.BOOST_LORE_CATEGORY + topics.BOOST_NARRATIVE_TAG

    def test_anchor_documents_get_extra_boost(self):
        anchor = make_doc("six_aspects_overview", "Aspects", "The six aspects.", category="lore")
        other = make_doc("aspects_misc", "Aspects", "The six aspects.", category="lore")
        question = "Tell me the story of the aspects"
        assert rag.score_document(question, anchor) - rag.score_document(question, other) == topics.BOOST_ANCHOR_DOC

    def test_game_question_boosts_philosophy(self):
        doc = make_doc("phil", "Vision", "Meaningful choices.", category="philosophy")
        assert rag.score_document("What kind of game is this?", doc) >= topics.BOOST_GAME_PHILOSOPHY

    def test_zero_scores_dropped(self):
        assert rag.score_documents("quantum entanglement", [FISHING_DOC, MOUNT_DOC]) == []

    def test_ties_keep_input_order(self):
        first = make_doc("first", "Fish", "fish fish")
        second = make_doc("second", "Fish", "fish fish")
        ranked = rag.score_documents("fish", [first, second])
        assert [s.document.id for s in ranked] == ["first", "second"]

    def test_limit(self):
        docs = [make_doc(f"d{i}", "Fish", "fish") for i in range(5)]
        assert len(rag.score_documents("fish", docs, limit=2)) == 2


# ─────────────────────────────────────────────────────────────
# classify_question
# ─────────────────────────────────────────────────────────────

class TestClassifyQuestion:

    def test_story(self):
        assert rag.classify_question("Who are the gods of fire?") == "story"

    def test_gameplay(self):
        assert rag.classify_question("How does crafting work?") == "gameplay"

    def test_philosophy(self):
        assert rag.classify_question("What is the design vision for this?") == "philosophy"

    def test_simple(self):
        assert rag.classify_question("Hello there") == "simple"

    def test_general(self):
        question = "I would really like to know more about what happens when you log off in town"
        assert len(question) >= topics.SIMPLE_QUESTION_MAX_CHARS
        assert rag.classify_question(question) == "general"

    def test_story_wins_over_gameplay(self):
        """Classes are checked in table order."""
        assert rag.classify_question("Which god should my class follow?") == "story"


# ─────────────────────────────────────────────────────────────
# build_context
# ─────────────────────────────────────────────────────────────

class TestBuildContext:

    def _small_docs(self):
        body = "This entry explains one part of the game in a couple of sentences. " * 3
        return [make_doc(f"doc{i}", f"Entry {i}", body.strip()) for i in range(3)]

    def test_three_small_documents_fit(self):
        context = rag.build_context("Where do I start?", self._small_docs(), 20000)
        for i in range(3):
            assert f"[doc{i}]" in context
        assert context.count(topics.BLOCK_SEPARATOR) == 2
        assert topics.TRUNCATION_MARKER not in context

    def test_tiny_budget_gives_empty_context(self):
        assert rag.build_context("Where do I start?", self._small_docs(), 10) == ""

    def test_tail_block_truncated(self):
        docs = [
            make_doc("short", "Short", "A short entry."),
            make_doc("long", "Long", "word " * 1000),
        ]
        context = rag.build_context("Where do I start?", docs, 200)
        assert context.endswith(topics.TRUNCATION_MARKER)
        assert "[short]" in context and "[long]" in context

    def test_length_within_budget(self):
        docs = [make_doc(f"d{i}", f"Doc {i}", "text " * 200) for i in range(20)]
        for budget in (50, 150, 400, 1000):
            assert len(rag.build_context("Where do I start?", docs, budget)) <= budget * topics.CHARS_PER_TOKEN

    def test_duplicates_appear_once(self):
        ordered = rag.rank_for_context("death penalty", [DEATH_DOC, FISHING_DOC])
        context = rag.build_context("death penalty", ordered, 20000)
        assert context.count("[a] Death Penalty") == 1

    def test_story_question_prefers_lore(self):
        docs = [
            make_doc("faq1", "FAQ", "Some faq."),
            make_doc("lore1", "Lore", "Some lore.", category="lore"),
        ]
        context = rag.build_context("Tell me the history of the world", docs, 20000)
        assert context.index("[lore1]") < context.index("[faq1]")

    def test_source_link_rendered(self):
        doc = make_doc("linked", "Linked", "Text.", source_url="https://example.com/x")
        assert "Source: [Linked](https://example.com/x)" in rag.format_document(doc)

    def test_build_all_context_dedupes(self):
        context = rag.build_all_context([DEATH_DOC, DEATH_DOC, FISHING_DOC])
        assert context.count("[a]") == 1
        assert "[fishing]" in context


class TestRankForContext:

    def test_empty_when_nothing_scores(self):
        assert rag.rank_for_context("quantum entanglement", [FISHING_DOC]) == []

    def test_ranked_first_then_corpus(self):
        ordered = rag.rank_for_context("What is the death penalty system?", [FISHING_DOC, MOUNT_DOC, DEATH_DOC])
        assert ordered[0].id == "a"
        assert ordered[-3:] == [FISHING_DOC, MOUNT_DOC, DEATH_DOC]


# ─────────────────────────────────────────────────────────────
# Prompts and the completion call
# ─────────────────────────────────────────────────────────────

class TestPrompts:

    def test_citation_instruction_included(self):
        prompt = rag.build_system_prompt(_profile(citationStyle="faq-id"), "Adrullan")
        assert "[death_penalty]" in prompt

    def test_no_citation_instruction(self):
        prompt = rag.build_system_prompt(_profile(citationStyle="none"), "Adrullan")
        assert "cite" not in prompt.lower()

    def test_speculation_guard(self):
        strict = rag.build_system_prompt(_profile(allowSpeculation=False), "Adrullan")
        loose = rag.build_system_prompt(_profile(allowSpeculation=True), "Adrullan")
        assert "don't know" in strict
        assert "don't know" not in loose

    def test_user_content_includes_previous_answer(self):
        content = rag.build_user_content("Q?", "ctx", previous_answer="Earlier reply")
        assert content.index("ctx") < content.index("Earlier reply") < content.index("Question: Q?")

    def test_answer_question_sends_context(self):
        fake = FakeCompletion(text="You lose experience.")
        answer = asyncio.run(rag.answer_question(
            fake, _profile(), "What happens when I die?", "[a] Death Penalty", "Adrullan", 500,
        ))
        assert answer == "You lose experience."
        assert "[a] Death Penalty" in fake.calls[0]["content"]
        assert fake.calls[0]["max_tokens"] == 500

    def test_answer_from_files_passes_ids(self):
        fake = FakeCompletion()
        asyncio.run(rag.answer_from_files(fake, _profile(), "Q?", ["file_1", "file_2"], "Adrullan", 500))
        assert fake.calls[0]["file_ids"] == ["file_1", "file_2"]
