# Image association for patch notes: which formatted note does each
# screenshot-bearing raw message illustrate?
#
# Formatting rewrites the text (headline case, brevity, typo fixes), so raw
# messages and formatted notes are matched by word overlap rather than
# equality. Everything here is pure: inputs are never mutated and the same
# inputs always give the same mapping.

from senan.text import normalize

# Words too common to count as evidence
MATCH_STOPWORDS = {"the", "and", "for", "was", "were"}

# Only the first few raw keywords count; long messages shouldn't win on volume
MAX_RAW_KEYWORDS = 6
DISTINCTIVE_WORD_LENGTH = 5  # strictly longer than 4

SCORE_KEYWORD = 1
SCORE_PREFIX_50 = 10
SCORE_PREFIX_30 = 5
SCORE_DISTINCTIVE = 2

# Pass 1 is one-to-one; pass 2 lets several raw messages share a note but
# demands a stronger match.
ONE_TO_ONE_THRESHOLD = 4
MANY_TO_ONE_THRESHOLD = 6
# After an edit, an old note carries its images to the closest new note at
# this (looser) score.
REMAP_THRESHOLD = 3


def _words(text: str) -> list:
    return [w for w in text.split() if len(w) > 2 and w not in MATCH_STOPWORDS]


def _prefix_overlap(raw: str, note: str, length: int) -> bool:
    raw_head, note_head = raw[:length], note[:length]
    return bool(raw_head and raw_head in note) or bool(note_head and note_head in raw)


def score_match(raw_text: str, note_text: str) -> int:
    """
    How well a raw message matches a formatted note.

      +1  per shared keyword among the first 6 raw keywords (3+ chars, no stopwords)
      +10 if the first 50 chars of either text appear in the other
       (else +5 for the first 30 chars)
      +2  per distinctive raw word (5+ chars) found in the note
    """
    raw = normalize(raw_text)
    note = normalize(note_text)
    if not raw or not note:
        return 0

    raw_words = _words(raw)
    score = sum(SCORE_KEYWORD for w in raw_words[:MAX_RAW_KEYWORDS] if w in note)

    if _prefix_overlap(raw, note, 50):
        score += SCORE_PREFIX_50
    elif _prefix_overlap(raw, note, 30):
        score += SCORE_PREFIX_30

    score += sum(SCORE_DISTINCTIVE for w in raw_words if len(w) >= DISTINCTIVE_WORD_LENGTH and w in note)
    return score


def flatten_notes(categories: dict) -> list:
    """Every note text in category order, first occurrence only."""
    seen = set()
    notes = []
    for category_notes in categories.values():
        for note in category_notes:
            if note not in seen:
                seen.add(note)
                notes.append(note)
    return notes


def _best_note(raw_text: str, notes: list, exclude=()):
    """(note, score) of the highest-scoring note; earlier notes win ties."""
    best, best_score = None, 0
    for note in notes:
        if note in exclude:
            continue
        score = score_match(raw_text, note)
        if score > best_score:
            best, best_score = note, score
    return best, best_score


def _add(mapping: dict, note: str, index: int) -> None:
    indices = mapping.setdefault(note, [])
    if index not in indices:
        indices.append(index)
        indices.sort()


def associate_images(raw_notes: list, categories: dict) -> dict:
    """
    Map formatted note text → indices of image-bearing raw notes.

    Pass 1: each raw message with text and images takes its best unused note
            scoring ≥ 4 (one-to-one).
    Pass 2: messages still unmatched may share an already-used note at ≥ 6.
    Pass 3: an image-only message (screenshot posted after its text) inherits
            the note matched by the nearest preceding message with text,
            scored at the pass-1 threshold.
    """
    notes = flatten_notes(categories)
    mapping = {}
    if not notes:
        return mapping

    image_indices = [i for i, raw in enumerate(raw_notes) if raw.images]
    matched = set()
    used_notes = set()

    for i in image_indices:
        text = raw_notes[i].content
        if not text.strip():
            continue
        note, score = _best_note(text, notes, exclude=used_notes)
        if note is not None and score >= ONE_TO_ONE_THRESHOLD:
            _add(mapping, note, i)
            matched.add(i)
            used_notes.add(note)

    for i in image_indices:
        text = raw_notes[i].content
        if i in matched or not text.strip():
            continue
        note, score = _best_note(text, notes)
        if note is not None and score >= MANY_TO_ONE_THRESHOLD:
            _add(mapping, note, i)
            matched.add(i)

    for i in image_indices:
        if i in matched or raw_notes[i].content.strip():
            continue
        j = i - 1
        while j >= 0 and not raw_notes[j].content.strip():
            j -= 1
        if j < 0:
            continue
        note, score = _best_note(raw_notes[j].content, notes)
        if note is not None and score >= ONE_TO_ONE_THRESHOLD:
            _add(mapping, note, i)
            matched.add(i)

    return mapping


def reresolve_associations(old_mapping: dict, raw_notes: list, new_categories: dict) -> dict:
    """
    Carry image associations across an edit of the formatted notes.

    Notes whose text survived keep their images. A note that was reworded
    hands its images to the closest new note (score ≥ 3). Images that can't
    be placed that way fall back to a fresh associate_images() over the new
    notes.
    """
    new_notes = flatten_notes(new_categories)
    new_set = set(new_notes)
    mapping = {}
    unresolved = []

    for old_note, indices in old_mapping.items():
        if old_note in new_set:
            target = old_note
        else:
            target, score = _best_note(old_note, new_notes)
            if score < REMAP_THRESHOLD:
                target = None
        if target is None:
            unresolved.extend(indices)
            continue
        for i in indices:
            _add(mapping, target, i)

    if unresolved:
        placed = {i for indices in mapping.values() for i in indices}
        derived = associate_images(raw_notes, new_categories)
        for note, indices in derived.items():
            for i in indices:
                if i in unresolved and i not in placed:
                    _add(mapping, note, i)
                    placed.add(i)

    # Preserve new category order in the result
    return {note: mapping[note] for note in new_notes if note in mapping}
