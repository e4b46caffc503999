# Small text helpers shared by the scorer, the patch-note assembler and the
# reply path. Nothing here knows about Discord objects.

import re

DISCORD_MESSAGE_LIMIT = 2000

# Surrounding punctuation stripped from question tokens ("system?" → "system")
_TOKEN_STRIP = "\"'`.,!?;:()[]{}<>*_~"

# Leading phrasing removed to get the "core phrase" of a question.
# Ordered longest first so "what is the" wins over "what is".
_QUESTION_LEADS = (
    "can you tell me about", "tell me about", "what do you know about",
    "what is the", "what are the", "what was the", "what were the",
    "how does the", "how do the", "how do i", "how does", "how do",
    "who is the", "who are the", "who is", "who are", "who was",
    "what is", "what are", "what was", "what were", "what's",
    "where is the", "where is", "where are", "when is", "when does",
    "why is", "why does", "why do", "explain the", "explain",
    "is there", "are there", "does the", "can i",
)

_MARKDOWN_RE = re.compile(r"\*\*|__|~~|`+|^#+\s*", re.MULTILINE)


def normalize(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join((text or "").lower().split())


def tokenize(text: str) -> list:
    """Lowercased whitespace tokens with surrounding punctuation stripped."""
    tokens = []
    for raw in (text or "").lower().split():
        token = raw.strip(_TOKEN_STRIP)
        if token:
            tokens.append(token)
    return tokens


def keywords(text: str, min_length: int = 3) -> list:
    """Question keywords: tokens of at least min_length characters, in order."""
    return [t for t in tokenize(text) if len(t) >= min_length]


def core_phrase(question: str) -> str:
    """
    The "exact-ish" phrase of a question used for verbatim matching.

    "What is the death penalty system?" → "death penalty system". Only the
    leading interrogative and trailing punctuation are dropped, so the result
    is always a contiguous piece of the lowercased question.
    """
    phrase = (question or "").strip().lower()
    phrase = phrase.rstrip(_TOKEN_STRIP + " ")
    for lead in _QUESTION_LEADS:
        if phrase.startswith(lead + " "):
            phrase = phrase[len(lead) + 1:]
            break
    return phrase.strip()


def strip_markdown(text: str) -> str:
    """Remove bold/underline/strike/code markers and heading hashes."""
    return _MARKDOWN_RE.sub("", text or "").strip()


def split_message(text: str, max_length: int = DISCORD_MESSAGE_LIMIT) -> list:
    """
    Split text into chunks of at most max_length characters, breaking on line
    boundaries. A single line longer than max_length is hard-split.
    """
    if not text:
        return []
    if len(text) <= max_length:
        return [text]

    chunks = []
    current = ""
    for line in text.split("\n"):
        while len(line) > max_length:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:max_length])
            line = line[max_length:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > max_length:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks
