# Patch-note assembly from the #patch-notes channel.
#
# Flow (driven by commands/patchnotes.py):
#   find_version_marker → collect_since → to_raw_notes
#   → categorize (rules) or format_with_ai (--ai)
#   → build_draft (ordering, rendering, image association)
#
# Devs post notes as loose chat messages ("Bug Fixes:" headers, "Warrior: ..."
# lines, screenshots) after a version post like "**0.10.43**". The previous
# version post marks where this patch's notes begin.

import html
import json
import logging
import re
from datetime import datetime, timezone

from senan.errors import FormattingError, NoNotesFound, NoVersionMarker, UpstreamError
from senan.matching import associate_images
from senan.models import Attachment, PatchDraft, RawNote
from senan.text import split_message, strip_markdown

logger = logging.getLogger(__name__)

HISTORY_BATCH_SIZE = 100
DISCORD_CHUNK_SIZE = 1900

VERSION_MARKER_RE = re.compile(r"^(patch\s+|version\s+)?\d+\.\d+\.\d+", re.IGNORECASE)
VERSION_RE = re.compile(r"(?:patch\s+|version\s+)?(\d+\.\d+\.\d+)", re.IGNORECASE)
VERSION_ONLY_RE = re.compile(r"^\d+\.\d+\.\d+$")

# ─────────────────────────────────────────
# CATEGORIES
# ─────────────────────────────────────────

CATEGORY_ORDER = ["Content", "Class", "Systems", "Interface", "Crafting", "Guilds", "Bug Fixes"]
DEFAULT_CATEGORY = "Content"

# Lowercased header → canonical category
CATEGORY_ALIASES = {
    "content": "Content",
    "class": "Class",
    "classes": "Class",
    "system": "Systems",
    "systems": "Systems",
    "interface": "Interface",
    "ui": "Interface",
    "chat": "Interface",
    "ui/chat": "Interface",
    "crafting": "Crafting",
    "guild": "Guilds",
    "guilds": "Guilds",
    "bug": "Bug Fixes",
    "bugs": "Bug Fixes",
    "bug fix": "Bug Fixes",
    "bug fixes": "Bug Fixes",
    "bugfixes": "Bug Fixes",
}

# Single-word "Word:" prefixes that are not class names
NOT_CLASS_PREFIXES = {"note", "notes", "edit", "update", "fix", "fixed", "known", "reminder", "also", "ps"}

HEADER_RE = re.compile(r"^([A-Za-z][A-Za-z /]*?)\s*:\s*$")
INLINE_RE = re.compile(r"^([A-Za-z][A-Za-z /]*?)\s*:\s*(.+)$")
CLASS_PREFIX_RE = re.compile(r"^([A-Za-z]+):\s+(.*)$")
BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")

# ─────────────────────────────────────────
# NOTE TEXT
# ─────────────────────────────────────────

MENTION_RE = re.compile(r"<@!?\d+>|<@&\d+>|<#\d+>")
URL_RE = re.compile(r"https?://\S+")

LOWERCASE_WORDS = {
    "a", "an", "the",                                    # articles
    "and", "but", "or", "nor", "for", "so", "yet",       # conjunctions
    "in", "on", "at", "to", "of", "with", "by", "from", "as", "is",
}

BRIEF_PATTERNS = [
    re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE),
    re.compile(r"\s+(?:that|which)\s+(?:was|is|are)\s+", re.IGNORECASE),
]

TYPO_FIXES = [
    (re.compile(r"incomming", re.IGNORECASE), "Incoming"),
    (re.compile(r"\bto high\b", re.IGNORECASE), "Too High"),
    (re.compile(r"\bit's\b", re.IGNORECASE), "It's"),
    (re.compile(r"\bwon't\b", re.IGNORECASE), "Won't"),
    (re.compile(r"\brecieve", re.IGNORECASE), "Receive"),
]


def is_version_post(content: str) -> bool:
    return bool(VERSION_MARKER_RE.match(strip_markdown(content or "")))


def extract_version(content: str):
    match = VERSION_RE.search(strip_markdown(content or ""))
    return match.group(1) if match else None


def valid_version(version: str) -> bool:
    return bool(VERSION_ONLY_RE.match(version or ""))


def normalize_category(name: str):
    """Canonical category for a header, or None if it isn't one."""
    key = " ".join((name or "").lower().split())
    return CATEGORY_ALIASES.get(key)


def capitalize_word(word: str) -> str:
    if len(word) > 1 and word.isupper():
        return word  # acronyms: UI, XP, PvP stays as typed if all caps
    return word[:1].upper() + word[1:].lower()


def headline_case(text: str) -> str:
    words = text.split()
    return " ".join(
        capitalize_word(w) if i == 0 or w.lower() not in LOWERCASE_WORDS else w.lower()
        for i, w in enumerate(words)
    )


def make_brief(text: str) -> str:
    for pattern in BRIEF_PATTERNS:
        text = pattern.sub(" ", text)
    return " ".join(text.split())


def format_note_text(text: str) -> str:
    """
    Clean one note: drop mentions, channel/role refs and URLs, make it brief,
    headline-case it and fix the usual typos. A leading "Class:" prefix is
    kept and headline-cased separately.
    """
    text = URL_RE.sub("", MENTION_RE.sub("", text or ""))
    text = BULLET_RE.sub("", strip_markdown(text)).strip()
    prefix = ""
    match = CLASS_PREFIX_RE.match(text)
    if match:
        prefix = capitalize_word(match.group(1)) + ": "
        text = match.group(2)
    text = headline_case(make_brief(text))
    for pattern, replacement in TYPO_FIXES:
        text = pattern.sub(replacement, text)
    return (prefix + text).strip()


# ─────────────────────────────────────────
# CHANNEL SCAN
# ─────────────────────────────────────────

async def find_version_marker(channel, marker_author_id: int, batch_size: int = HISTORY_BATCH_SIZE):
    """
    Page backward through channel history, newest first, until a message by
    marker_author_id looks like a version post. Raises NoVersionMarker when
    the history runs out.
    """
    before = None
    scanned = 0
    while True:
        batch = [m async for m in channel.history(limit=batch_size, before=before)]
        if not batch:
            raise NoVersionMarker(f"No version marker in {scanned} messages")
        for message in batch:
            if message.author.id == marker_author_id and is_version_post(message.content):
                logger.info("Version marker %s found after %d messages", extract_version(message.content), scanned)
                return message
            scanned += 1
        before = batch[-1]


async def collect_since(channel, marker) -> list:
    """Every message strictly newer than the marker, oldest first."""
    return [m async for m in channel.history(limit=None, after=marker, oldest_first=True)]


def _attachment(a) -> Attachment:
    return Attachment(
        id=str(a.id),
        filename=a.filename,
        url=a.url,
        content_type=getattr(a, "content_type", None),
        size=getattr(a, "size", 0) or 0,
    )


def to_raw_notes(messages: list, bot_user_id: int, command_prefix: str = "!") -> list:
    """
    Keep the messages that are patch notes: not from the bot, not commands,
    not "reserve" placeholders, not version posts, and not empty unless they
    carry attachments.
    """
    notes = []
    for m in messages:
        content = (m.content or "").strip()
        if m.author.id == bot_user_id:
            continue
        if content.startswith(command_prefix):
            continue
        if content.lower() == "reserve" or is_version_post(content):
            continue
        if not content and not m.attachments:
            continue
        created = m.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        notes.append(RawNote(
            author=getattr(m.author, "display_name", None) or m.author.name,
            author_id=str(m.author.id),
            content=content,
            timestamp=int(created.timestamp() * 1000),
            message_id=str(m.id),
            attachments=[_attachment(a) for a in m.attachments],
        ))
    return notes


# ─────────────────────────────────────────
# CATEGORIZATION
# ─────────────────────────────────────────

def parse_notes(raw_notes: list) -> list:
    """
    Split raw messages into (category, text, raw_index) entries.

    Lines are read one at a time: "Category:" alone switches the current
    category; "Category: text" files the text there and switches; "Warrior:
    text" (a single word that isn't a category) is a class change; anything
    else goes to the current category, which starts as Content and carries
    over between messages. A bare "Warrior:" line files the following lines
    of that message under Class with the prefix.
    """
    entries = []
    current = DEFAULT_CATEGORY
    for index, raw in enumerate(raw_notes):
        class_prefix = None
        for line in raw.content.split("\n"):
            # "https://..." would otherwise read as a "Word: text" class line
            line = URL_RE.sub("", MENTION_RE.sub("", line))
            line = BULLET_RE.sub("", strip_markdown(line)).strip()
            if not line:
                continue

            header = HEADER_RE.match(line)
            if header:
                name = header.group(1).strip()
                category = normalize_category(name)
                if category:
                    current, class_prefix = category, None
                elif " " not in name and name.lower() not in NOT_CLASS_PREFIXES:
                    class_prefix = name
                continue

            inline = INLINE_RE.match(line)
            if inline:
                name, text = inline.group(1).strip(), inline.group(2).strip()
                category = normalize_category(name)
                if category:
                    current, class_prefix = category, None
                    entries.append((category, text, index))
                    continue
                if " " not in name and "/" not in name and name.lower() not in NOT_CLASS_PREFIXES:
                    entries.append(("Class", f"{name}: {text}", index))
                    continue

            if class_prefix:
                entries.append(("Class", f"{class_prefix}: {line}", index))
            else:
                entries.append((current, line, index))
    return entries


def _class_name(note: str) -> str:
    match = CLASS_PREFIX_RE.match(note)
    return match.group(1).lower() if match else ""


def order_categories(categories: dict) -> dict:
    """
    Known categories in their fixed order, then any others in the order seen.
    Empty categories are dropped and Class notes are sorted by class name.
    """
    ordered = {}
    names = [c for c in CATEGORY_ORDER if c in categories] + [c for c in categories if c not in CATEGORY_ORDER]
    for name in names:
        notes = list(categories[name])
        if not notes:
            continue
        if name == "Class":
            notes = sorted(notes, key=_class_name)
        ordered[name] = notes
    return ordered


def categorize(raw_notes: list) -> dict:
    """Rule-based formatting: category → formatted notes, ordered."""
    categories = {}
    for category, text, _ in parse_notes(raw_notes):
        note = format_note_text(text)
        if not note:
            continue
        bucket = categories.setdefault(category, [])
        if note not in bucket:
            bucket.append(note)
    return order_categories(categories)


# ─────────────────────────────────────────
# RENDERING
# ─────────────────────────────────────────

def render_discord(categories: dict) -> str:
    sections = []
    for category, notes in order_categories(categories).items():
        lines = [f"**{category}**"] + [f"- {note}" for note in notes]
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def render_html(categories: dict, note_images: dict = None) -> str:
    """note_images (note text → image URLs) adds an <img> under each note."""
    note_images = note_images or {}
    lines = []
    for category, notes in order_categories(categories).items():
        lines.append(f'<div class="patch-header2">{category}</div>')
        lines.append('<div class="spacer-10"></div>')
        for note in notes:
            lines.append(f'<div class="patch-note">- {note}</div>')
            lines.extend(f'<img class="patch-image" src="{html.escape(url)}" alt="">' for url in note_images.get(note, []))
        lines.append('<div class="spacer-30"></div>')
    return "\n".join(lines)


def note_image_urls(draft: PatchDraft) -> dict:
    """Note text → media-manager URLs of its associated screenshots, in raw order."""
    by_index = {}
    for image in draft.downloaded_images:
        if image.media_url:
            by_index.setdefault(image.raw_index, []).append(image.media_url)
    return {
        note: [url for index in indices for url in by_index.get(index, [])]
        for note, indices in draft.image_associations.items()
    }


def render_web_html(draft: PatchDraft) -> str:
    """HTML for the website: the draft's notes with their uploaded screenshots."""
    return render_html(draft.categories, note_image_urls(draft))


def parse_formatted(discord_text: str) -> dict:
    """Inverse of render_discord: "**Category**" headers and "- note" lines."""
    categories = {}
    current = None
    for line in (discord_text or "").split("\n"):
        line = line.strip()
        if not line:
            continue
        header = re.match(r"^\*\*(.+?)\*\*$", line)
        if header:
            current = header.group(1).strip()
            categories.setdefault(current, [])
            continue
        if line.startswith("-") and current:
            note = line[1:].strip()
            if note:
                categories[current].append(note)
    return categories


def split_for_discord(text: str, max_length: int = DISCORD_CHUNK_SIZE) -> list:
    """Pack whole category sections into messages; split oversize sections by line."""
    messages = []
    current = ""
    for section in (text or "").split("\n\n"):
        if not section.strip():
            continue
        candidate = f"{current}\n\n{section}" if current else section
        if len(candidate) <= max_length:
            current = candidate
            continue
        if current:
            messages.append(current)
        if len(section) > max_length:
            pieces = split_message(section, max_length)
            messages.extend(pieces[:-1])
            current = pieces[-1]
        else:
            current = section
    if current:
        messages.append(current)
    return messages


# ─────────────────────────────────────────
# LLM FORMATTING (--ai)
# ─────────────────────────────────────────

FORMATTING_GUIDE = """## Core Rules:
1. Headline Case: capitalize major words, lowercase articles/conjunctions/prepositions
2. Brevity: keep each note concise, 5-15 words when possible
3. Punctuation: only exclamation marks for exciting content, no trailing periods
4. Light humor only, keep it professional
5. Categories in order: Content, Class, Systems, Interface, Crafting, Guilds, Bug Fixes
6. Class changes go under Class as "ClassName: Change", class names alphabetical
7. Each change gets its own line, even if it's the same class
8. Remove author names, timestamps and "reserve" placeholders
9. Fix typos (incomming -> Incoming, to high -> Too High)"""

FORMATTER_SYSTEM_PROMPT = (
    "You are a patch notes formatter. Format Discord patch notes according to the "
    "formatting guide provided. Return ONLY valid JSON with two fields: \"discord\" "
    "(Discord markdown) and \"html\" (HTML div format for the website)."
)


def build_formatter_prompt(raw_notes: list, version: str) -> str:
    numbered = "\n".join(
        f"{i + 1}. [{note.author}] {note.content}" for i, note in enumerate(raw_notes) if note.content
    )
    return (
        f"Format these patch notes for version {version} according to the formatting guide:\n\n"
        f"{FORMATTING_GUIDE}\n\n---\n\nRAW PATCH NOTES:\n{numbered}\n\n---\n\n"
        "Return JSON with this exact structure:\n"
        '{"discord": "**Category**\\n- Note 1\\n- Note 2\\n\\n**Next Category**\\n- Note 3", '
        '"html": "<div class=\\"patch-header2\\">Category</div><div class=\\"spacer-10\\"></div>'
        '<div class=\\"patch-note\\">- Note 1</div><div class=\\"spacer-30\\"></div>"}'
    )


def parse_ai_response(text: str) -> dict:
    """Pull {"discord", "html"} out of a reply that may be wrapped in ``` fences."""
    cleaned = re.sub(r"```(?:json)?\n?", "", text or "").strip()
    match = re.search(r"\{.*\}", cleaned, re.DOTALL)
    if not match:
        raise FormattingError(f"Formatter reply had no JSON object: {cleaned[:200]!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise FormattingError(f"Formatter reply was not valid JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("discord"), str):
        raise FormattingError("Formatter reply is missing the discord field")
    return {"discord": data["discord"], "html": data.get("html") or ""}


async def format_with_ai(completion_client, raw_notes: list, version: str, max_tokens: int = 4000) -> dict:
    """
    Ask the LLM to format the notes. Returns {"categories", "discord", "html"}.
    Any failure, including the completion call itself, is a FormattingError.
    """
    try:
        result = await completion_client.complete(
            FORMATTER_SYSTEM_PROMPT, build_formatter_prompt(raw_notes, version), max_tokens=max_tokens,
        )
    except FormattingError:
        raise
    except UpstreamError as e:
        raise FormattingError(str(e), status=e.status, retryable=e.retryable) from e

    formatted = parse_ai_response(result.text)
    categories = order_categories(parse_formatted(formatted["discord"]))
    if not categories:
        raise FormattingError("Formatter reply contained no categories")
    return {"categories": categories, **formatted}


# ─────────────────────────────────────────
# DRAFT ASSEMBLY
# ─────────────────────────────────────────

def build_draft(version: str, raw_notes: list, categories: dict, discord: str = None, html: str = None,
                with_images: bool = False, formatted_by: str = "rules") -> PatchDraft:
    """
    Wrap formatted categories into a PatchDraft: fixed category order,
    Discord + HTML renderings (unless the LLM already supplied them) and the
    raw-message → note image associations.
    """
    categories = order_categories(categories)
    associations = associate_images(raw_notes, categories) if with_images else {}
    return PatchDraft(
        version=version,
        categories=categories,
        raw_notes=raw_notes,
        image_associations=associations,
        discord=discord or render_discord(categories),
        html=html or render_html(categories),
        generated=datetime.now(timezone.utc).isoformat(),
        message_count=len(raw_notes),
        image_count=sum(len(n.images) for n in raw_notes),
        with_images=with_images,
        formatted_by=formatted_by,
    )


async def assemble(channel, marker_author_id: int, bot_user_id: int, command_prefix: str = "!",
                   with_images: bool = False, completion_client=None, formatter_max_tokens: int = 4000) -> PatchDraft:
    """
    Scan the channel and build a draft for the notes since the last version
    post. With a completion_client the LLM formats the notes; otherwise the
    rule-based categorizer does.
    """
    marker = await find_version_marker(channel, marker_author_id)
    version = extract_version(marker.content)
    messages = await collect_since(channel, marker)
    raw_notes = to_raw_notes(messages, bot_user_id, command_prefix)
    if not raw_notes:
        raise NoNotesFound(f"Nothing after version {version}")
    logger.info("Collected %d patch-note messages after %s", len(raw_notes), version)

    if completion_client is not None:
        formatted = await format_with_ai(completion_client, raw_notes, version, formatter_max_tokens)
        return build_draft(
            version, raw_notes, formatted["categories"], formatted["discord"], formatted["html"],
            with_images=with_images, formatted_by="ai",
        )

    categories = categorize(raw_notes)
    if not categories:
        raise NoNotesFound(f"Messages after {version} contained no note text")
    return build_draft(version, raw_notes, categories, with_images=with_images)
