# Typed records that cross a JSON boundary: knowledge documents, profiles,
# patch-note drafts. Validation happens once, at load time; everything past
# the loaders can rely on the fields being present.

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────
# KNOWLEDGE BASE
# ─────────────────────────────────────────

class Document(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    title: str
    content: str
    category: str = "faq"
    tags: list[str] = Field(default_factory=list)
    source_url: Optional[str] = None
    priority: Literal["high", "medium", "low"] = "medium"
    last_updated: Optional[str] = None


class ScoredDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    document: Document
    score: int = Field(ge=0)


# ─────────────────────────────────────────
# PROFILES
# ─────────────────────────────────────────

CitationStyle = Literal["faq-id", "clickable-url", "inline", "none"]


class Profile(BaseModel):
    """
    A personality profile. Immutable: switching profiles swaps the whole value
    on BotContext, and updates produce a new Profile via model_copy().

    On disk the camelCase names (systemPrompt, maxTokens, ...) are used, so
    existing profile files keep loading; `key` is the file stem.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    key: str
    display_name: str = Field(alias="name")
    description: str = ""
    system_prompt: str = Field(alias="systemPrompt")
    max_tokens: int = Field(default=20000, alias="maxTokens", gt=0)
    response_length: str = Field(default="medium", alias="responseLength")
    personality: str = "professional"
    allow_speculation: bool = Field(default=False, alias="allowSpeculation")
    allow_off_topic: bool = Field(default=False, alias="allowOffTopic")
    include_conversation_context: bool = Field(default=False, alias="includeConversationContext")
    citation_style: CitationStyle = Field(default="faq-id", alias="citationStyle")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"key"})


# ─────────────────────────────────────────
# PATCH NOTES
# ─────────────────────────────────────────

class Attachment(BaseModel):
    id: str = ""
    filename: str
    url: str
    content_type: Optional[str] = None
    size: int = 0

    @property
    def is_image(self) -> bool:
        if self.content_type:
            return self.content_type.startswith("image/")
        return self.filename.lower().endswith((".png", ".jpg", ".jpeg", ".gif", ".webp"))


class RawNote(BaseModel):
    """One collected message from the patch-notes channel."""

    model_config = ConfigDict(populate_by_name=True)

    author: str
    author_id: str = Field(alias="authorId")
    content: str = ""
    timestamp: int  # ms since epoch
    message_id: str = Field(alias="messageId")
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def images(self) -> list[Attachment]:
        return [a for a in self.attachments if a.is_image]


class DownloadedImage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    original_name: str = Field(alias="originalName")
    raw_index: int = Field(alias="rawIndex")
    path: str
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")


class PatchDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    categories: dict[str, list[str]]
    raw_notes: list[RawNote] = Field(default_factory=list, alias="rawNotes")
    image_associations: dict[str, list[int]] = Field(default_factory=dict, alias="imageAssociations")
    downloaded_images: list[DownloadedImage] = Field(default_factory=list, alias="downloadedImages")
    discord: str = ""
    html: str = ""
    generated: str
    updated: Optional[str] = None
    published_at: Optional[str] = Field(default=None, alias="publishedAt")
    status: Literal["draft", "published"] = "draft"
    message_count: int = Field(default=0, alias="messageCount")
    image_count: int = Field(default=0, alias="imageCount")
    with_images: bool = Field(default=False, alias="withImages")
    formatted_by: Literal["rules", "ai"] = Field(default="rules", alias="formattedBy")
    published_to_wix: bool = Field(default=False, alias="publishedToWix")
    wix_item_id: Optional[str] = Field(default=None, alias="wixItemId")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ─────────────────────────────────────────
# RATE LIMITING / COMPLETION
# ─────────────────────────────────────────

class RateLimitDecision(BaseModel):
    allowed: bool
    reason: Optional[Literal["daily_limit", "cooldown"]] = None
    retry_after_ms: Optional[int] = None
    requests_remaining: Optional[int] = None
    estimated_cost: Optional[float] = None
    message: Optional[str] = None


class Completion(BaseModel):
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
