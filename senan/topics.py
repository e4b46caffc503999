# Question topics and retrieval tuning.
# One table drives both the relevance scorer's narrative boost and the context
# builder's question classification, so the two can't drift apart.

# ─────────────────────────────────────────
# QUESTION CLASSES
# ─────────────────────────────────────────

# Checked in this order; the first class with a keyword hit wins.
QUESTION_CLASSES = {
    "story": {
        "story", "lore", "history", "legend", "legends", "myth", "myths",
        "god", "gods", "goddess", "aspect", "aspects", "champion", "champions",
        "world", "narrative", "plot", "character", "characters", "ancient",
        "origin", "origins", "kingdom", "realm", "prophecy", "war",
    },
    "gameplay": {
        "combat", "class", "classes", "skill", "skills", "level", "leveling",
        "craft", "crafting", "quest", "quests", "dungeon", "dungeons", "raid",
        "raids", "guild", "guilds", "death", "penalty", "corpse", "spell",
        "spells", "build", "gear", "item", "items", "loot", "mechanic",
        "mechanics", "alpha", "beta", "test", "testing", "group", "mount",
        "pvp", "experience", "stats", "ability", "abilities",
    },
    "philosophy": {
        "philosophy", "vision", "design", "why", "goal", "goals", "intent",
        "developer", "developers", "dev", "devs", "inspiration", "approach",
        "values", "pillars",
    },
}

# Questions shorter than this with no class keyword are "simple".
SIMPLE_QUESTION_MAX_CHARS = 60

# ─────────────────────────────────────────
# RELEVANCE SCORING
# ─────────────────────────────────────────

# Story questions pull narrative documents up the ranking.
NARRATIVE_KEYWORDS = QUESTION_CLASSES["story"]
NARRATIVE_TAGS = {"lore", "story", "history", "gods", "aspects", "world", "champions", "mythology"}
# Overview documents that anchor most story answers.
NARRATIVE_ANCHOR_IDS = {"six_aspects_overview", "world_overview"}

SCORE_FULL_QUESTION = 10
SCORE_KEYWORD = 1
SCORE_TITLE_MATCH = 5
BOOST_LORE_CATEGORY = 5
BOOST_NARRATIVE_TAG = 3
BOOST_ANCHOR_DOC = 2
BOOST_GAME_PHILOSOPHY = 2

# Core phrases shorter than this are too generic to count as a verbatim hit.
MIN_PHRASE_CHARS = 4

# ─────────────────────────────────────────
# CONTEXT BUILDING
# ─────────────────────────────────────────

# Characters per token for budget estimates.
CHARS_PER_TOKEN = 4
# A truncated tail block is only worth adding with more budget than this left.
MIN_TRUNCATED_TOKENS = 100
TRUNCATION_MARKER = "... [truncated]"
BLOCK_SEPARATOR = "\n\n---\n\n"

# Candidate plan per question class: (selector, cap). A selector is a set of
# categories, or "priority:high". cap=None means take all matches.
CANDIDATE_PLANS = {
    "story": [({"lore"}, None), ({"philosophy"}, None), ({"faq"}, 5)],
    "gameplay": [({"faq", "alpha"}, None), ({"guides"}, None), ({"philosophy"}, None), ({"lore"}, 10)],
    "philosophy": [({"philosophy"}, None), ({"lore"}, 5), ({"faq"}, 5)],
    "simple": [("priority:high", None), ({"faq"}, 10), ({"philosophy"}, 5), ({"lore"}, 5)],
    "general": [({"faq"}, 20), ({"philosophy"}, 10), ({"lore"}, 8), ({"guides"}, 5)],
}

# How many ranked documents the ask path puts in front of the corpus.
RANKED_LIMIT = 10
