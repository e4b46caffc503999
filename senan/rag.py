# Retrieval for Senan: keyword relevance scoring over the JSON knowledge base,
# question classification, and token-budgeted context assembly. Also builds
# the system prompt from the active profile and runs the completion call.

import logging

from senan import topics
from senan.models import ScoredDocument
from senan.text import core_phrase, keywords, tokenize

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# RELEVANCE SCORING
# ─────────────────────────────────────────

def _haystack(doc) -> str:
    return f"{doc.title} {doc.content} {' '.join(doc.tags)}".lower()


def _contains_question(text: str, question_lower: str, phrase: str) -> bool:
    if question_lower and question_lower in text:
        return True
    return len(phrase) >= topics.MIN_PHRASE_CHARS and phrase in text


def _title_in_question(title: str, question_lower: str) -> bool:
    # "Death Penalty" answers "what is the death penalty system?"
    title = title.strip()
    return len(title) >= topics.MIN_PHRASE_CHARS and title in question_lower


def score_document(question: str, doc) -> int:
    """
    Score one document against a question.

    Algorithm:
      1. +10 if the document text contains the whole question, or its core
         phrase ("what is the death penalty system?" → "death penalty system"),
         or the question contains the document's title.
      2. +1 per question keyword (3+ chars) found anywhere in title/content/tags.
      3. +5 if the title and the question match either way round.
      4. Story questions: +5 lore documents, +3 narrative tags, +2 the overview
         anchor documents. Questions mentioning "game": +2 philosophy documents.
    """
    question_lower = (question or "").strip().lower()
    phrase = core_phrase(question)
    haystack = _haystack(doc)
    title = doc.title.lower()
    title_hit = _title_in_question(title, question_lower)

    score = 0
    if title_hit or _contains_question(haystack, question_lower, phrase):
        score += topics.SCORE_FULL_QUESTION
    for word in keywords(question):
        if word in haystack:
            score += topics.SCORE_KEYWORD
    if title_hit or _contains_question(title, question_lower, phrase):
        score += topics.SCORE_TITLE_MATCH

    question_words = set(tokenize(question))
    if question_words & topics.NARRATIVE_KEYWORDS:
        if doc.category == "lore":
            score += topics.BOOST_LORE_CATEGORY
        if any(tag.lower() in topics.NARRATIVE_TAGS for tag in doc.tags):
            score += topics.BOOST_NARRATIVE_TAG
        if doc.id in topics.NARRATIVE_ANCHOR_IDS:
            score += topics.BOOST_ANCHOR_DOC
    if "game" in question_words and doc.category == "philosophy":
        score += topics.BOOST_GAME_PHILOSOPHY

    return score


def score_documents(question: str, documents: list, limit: int = None) -> list:
    """
    Rank documents for a question. Returns ScoredDocuments with score > 0,
    highest first; equal scores keep their input order. An empty list means
    "no relevant knowledge", not an error.
    """
    scored = []
    for doc in documents:
        score = score_document(question, doc)
        if score > 0:
            scored.append(ScoredDocument(document=doc, score=score))
    # sorted() is stable, so ties stay in corpus order
    scored = sorted(scored, key=lambda s: -s.score)
    return scored[:limit] if limit else scored


# ─────────────────────────────────────────
# CONTEXT BUILDING
# ─────────────────────────────────────────

def classify_question(question: str) -> str:
    """story | gameplay | philosophy | simple | general"""
    words = set(tokenize(question))
    for name, vocab in topics.QUESTION_CLASSES.items():
        if words & vocab:
            return name
    if len((question or "").strip()) < topics.SIMPLE_QUESTION_MAX_CHARS:
        return "simple"
    return "general"


def _matches(doc, selector) -> bool:
    if selector == "priority:high":
        return doc.priority == "high"
    return doc.category in selector


def select_candidates(question_class: str, documents: list) -> list:
    """Concatenate the class's category slices, then drop repeated ids."""
    candidates = []
    for selector, cap in topics.CANDIDATE_PLANS[question_class]:
        picked = [d for d in documents if _matches(d, selector)]
        candidates.extend(picked[:cap] if cap is not None else picked)
    return dedupe(candidates)


def dedupe(documents: list) -> list:
    seen = set()
    unique = []
    for doc in documents:
        if doc.id in seen:
            continue
        seen.add(doc.id)
        unique.append(doc)
    return unique


def format_document(doc) -> str:
    source = f"[{doc.title}]({doc.source_url})" if doc.source_url else doc.title
    return f"[{doc.id}] {doc.title}\n{doc.content}\nSource: {source}"


def estimate_tokens(text: str) -> int:
    return len(text) // topics.CHARS_PER_TOKEN


def build_context(question: str, documents: list, token_budget: int) -> str:
    """
    Assemble the context string for a question within token_budget.

    Candidates are chosen by question class, de-duplicated by id and appended
    as formatted blocks while the running chars/4 estimate stays within the
    budget. The first block that doesn't fit is cut down and marked
    "... [truncated]" when more than 100 tokens of budget remain; otherwise
    it is dropped. Nothing is added after that block.
    """
    question_class = classify_question(question)
    candidates = select_candidates(question_class, documents)
    max_chars = token_budget * topics.CHARS_PER_TOKEN

    parts = []
    used = 0
    for doc in candidates:
        block = format_document(doc)
        separator = topics.BLOCK_SEPARATOR if parts else ""
        if used + len(separator) + len(block) <= max_chars:
            parts.append(block)
            used += len(separator) + len(block)
            continue

        remaining_chars = max_chars - used - len(separator)
        if remaining_chars // topics.CHARS_PER_TOKEN > topics.MIN_TRUNCATED_TOKENS:
            cut = remaining_chars - len(topics.TRUNCATION_MARKER)
            parts.append(block[:cut].rstrip() + topics.TRUNCATION_MARKER)
        break

    context = topics.BLOCK_SEPARATOR.join(parts)
    logger.debug(
        "Context: class=%s candidates=%d blocks=%d ~%d tokens",
        question_class, len(candidates), len(parts), estimate_tokens(context),
    )
    return context


def build_all_context(documents: list) -> str:
    """Every document, de-duplicated, no budget. Admin "ask all" mode."""
    return topics.BLOCK_SEPARATOR.join(format_document(d) for d in dedupe(documents))


def rank_for_context(question: str, documents: list) -> list:
    """
    Documents ordered for build_context: the top-ranked matches first, then
    the rest of the corpus. Empty when nothing scores above zero.
    """
    ranked = [s.document for s in score_documents(question, documents, limit=topics.RANKED_LIMIT)]
    if not ranked:
        return []
    return ranked + documents


# ─────────────────────────────────────────
# PROMPTS
# ─────────────────────────────────────────

CITATION_INSTRUCTIONS = {
    "faq-id": "Cite the knowledge entries you used by their id in square brackets, e.g. [death_penalty].",
    "clickable-url": "When an entry has a source link, cite it as a markdown link using the entry title.",
    "inline": "Mention the title of the entry you are drawing from in the sentence that uses it.",
    "none": "",
}


def build_system_prompt(profile, game_name: str) -> str:
    lines = [profile.system_prompt.strip()]
    citation = CITATION_INSTRUCTIONS.get(profile.citation_style, "")
    if citation:
        lines.append(citation)
    if not profile.allow_speculation:
        lines.append(
            f"Only state what the provided {game_name} knowledge supports. "
            "If the answer isn't there, say you don't know rather than guessing."
        )
    if not profile.allow_off_topic:
        lines.append(f"Politely decline questions that are not about {game_name}.")
    return "\n\n".join(lines)


def build_user_content(question: str, context: str, previous_answer: str = None) -> str:
    parts = []
    if context:
        parts.append(f"Knowledge base entries:\n\n{context}")
    if previous_answer:
        parts.append(f"Your previous answer to this user:\n{previous_answer}")
    parts.append(f"Question: {question}")
    return "\n\n".join(parts)


async def answer_question(completion_client, profile, question: str, context: str,
                          game_name: str, max_tokens: int, previous_answer: str = None) -> str:
    """Ask the completion endpoint with pre-built context. Raises UpstreamError."""
    system = build_system_prompt(profile, game_name)
    content = build_user_content(question, context, previous_answer)
    result = await completion_client.complete(system, content, max_tokens=max_tokens)
    return result.text


async def answer_from_files(completion_client, profile, question: str, file_ids: list,
                            game_name: str, max_tokens: int, previous_answer: str = None) -> str:
    """Ask with uploaded knowledge files attached instead of inline context."""
    system = build_system_prompt(profile, game_name)
    content = build_user_content(question, "", previous_answer)
    result = await completion_client.complete_with_files(system, content, file_ids, max_tokens=max_tokens)
    return result.text
