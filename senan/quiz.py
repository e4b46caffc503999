# Lore quiz questions generated from the knowledge base.
# Each template pairs a question with an extractor that pulls the answer out
# of one document; a template that finds nothing in a document is skipped.

import random
import re
import time
from dataclasses import dataclass, field

QUIZ_TIMEOUT_S = 60
MAX_ATTEMPTS = 50

ASPECT_RE = re.compile(r"(\w+) Aspect - Gods and Champions")
PRIME_GOD_RE = re.compile(r"- (\w+) the \w+ \(Prime God\)")
GOD_TITLE_RE = re.compile(r"- (\w+) the (\w+)")
CHAMPION_RE = re.compile(r"- (\w+) the \w+ - Champion: (\w+)")


@dataclass
class QuizQuestion:
    question: str
    answer: str
    full_answer: str
    category: str = "lore"
    source_id: str = ""

    def is_correct(self, text: str) -> bool:
        return self.answer.lower() in (text or "").lower()


@dataclass
class QuizSession:
    question: QuizQuestion
    channel_id: int
    started: float = field(default_factory=time.time)
    attempts: int = 0


def _prime_god(doc, rng):
    aspect = ASPECT_RE.search(doc.content)
    god = PRIME_GOD_RE.search(doc.content)
    if aspect and god:
        return (f"Who is the Prime God of the {aspect.group(1)} Aspect?", god.group(1), god.group(0).lstrip("- "))
    return None


def _god_title(doc, rng):
    matches = GOD_TITLE_RE.findall(doc.content)
    if not matches:
        return None
    name, title = rng.choice(matches)
    return (f"What is the title of {name}?", title, f"{name} the {title}")


def _champion(doc, rng):
    matches = CHAMPION_RE.findall(doc.content)
    if not matches:
        return None
    god, champion = rng.choice(matches)
    return (f"Who is the Champion of {god}?", champion, f"{champion}, Champion of {god}")


def _heretic(doc, rng):
    if "Ludos" in doc.content:
        return ("What is the name of the heretical wizard trying to create a 7th Aspect?", "Ludos", "Ludos the Unbound")
    return None


def _world_type(doc, rng):
    if "voxel" in doc.content.lower():
        return ("What type of world does the game feature?", "voxel", "A massive, seamless, voxel world")
    return None


# category → extractors (doc, rng) -> (question, answer, full_answer) | None
TEMPLATES = {
    "lore": [_prime_god, _god_title, _champion, _heretic],
    "philosophy": [_world_type],
    "general": [_world_type],
}

ASPECTS = ("fire", "water", "earth", "air", "light", "dark")
OVERVIEW_DOC_ID = "six_aspects_overview"
OVERVIEW_CHANCE = 0.1


@dataclass
class AnyOfQuestion(QuizQuestion):
    """Correct if the reply names any of the accepted words."""

    accepted: tuple = ()

    def is_correct(self, text: str) -> bool:
        words = set(re.findall(r"[a-z]+", (text or "").lower()))
        return bool(words & set(self.accepted))


def generate_question(documents: list, rng: random.Random = None):
    """
    Random question from a random (template, document) pair, or None when
    50 draws find nothing the templates can use.
    """
    rng = rng or random.Random()
    if not documents:
        return None
    candidates = [(cat, fn) for cat, fns in TEMPLATES.items() for fn in fns]
    by_category = {}
    for doc in documents:
        by_category.setdefault(doc.category, []).append(doc)
    overview = [d for d in documents if d.id == OVERVIEW_DOC_ID]

    for _ in range(MAX_ATTEMPTS):
        if overview and rng.random() < OVERVIEW_CHANCE:
            return AnyOfQuestion(
                question="Name one of the six aspects of the world.",
                answer=ASPECTS[0],
                full_answer="Fire, Water, Earth, Air, Light and Dark",
                source_id=overview[0].id,
                accepted=ASPECTS,
            )
        category, extractor = rng.choice(candidates)
        doc = rng.choice(by_category.get(category) or documents)
        result = extractor(doc, rng)
        if result:
            question, answer, full_answer = result
            return QuizQuestion(question, answer, full_answer, category=category, source_id=doc.id)
    return None
