"""
Shared fixtures for the Senan test suite.
Run with: python -m pytest -v
(No Discord or Anthropic connections are made: the fakes below stand in for
the few client objects the handlers touch.)
"""

import asyncio
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

# Add project root to path so senan can be imported without installing it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from senan.config import Settings  # noqa: E402
from senan.context import BotContext  # noqa: E402
from senan.errors import UpstreamError  # noqa: E402
from senan.models import Completion, Document, RawNote  # noqa: E402

BOT_USER_ID = 999
ADMIN_ID = 1
USER_ID = 2
MARKER_AUTHOR_ID = 42


# ─────────────────────────────────────────────────────────────
# Discord fakes
# ─────────────────────────────────────────────────────────────

@dataclass
class FakeRole:
    name: str


@dataclass
class FakePermissions:
    administrator: bool = False


@dataclass
class FakeAuthor:
    id: int
    name: str = "user"
    bot: bool = False
    roles: list = field(default_factory=list)
    guild_permissions: FakePermissions = field(default_factory=FakePermissions)

    @property
    def display_name(self):
        return self.name


@dataclass
class FakeAttachment:
    id: int
    filename: str
    url: str
    content_type: str = "image/png"
    size: int = 1024


class _Typing:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


async def _aiter(items):
    for item in items:
        yield item


class FakeChannel:
    """Holds its messages oldest first, like a real channel's history."""

    def __init__(self, channel_id: int = 100, messages=None):
        self.id = channel_id
        self.messages = list(messages or [])
        self.sent = []

    async def send(self, text):
        self.sent.append(text)

    def typing(self):
        return _Typing()

    def history(self, limit=100, before=None, after=None, oldest_first=None):
        messages = list(self.messages)
        if before is not None:
            messages = [m for m in messages if m.id < before.id]
        if after is not None:
            messages = [m for m in messages if m.id > after.id]
        if oldest_first is None:
            oldest_first = after is not None
        if not oldest_first:
            messages.reverse()
        if limit is not None:
            messages = messages[:limit]
        return _aiter(messages)


class FakeMessage:

    _next_id = 1000

    def __init__(self, content, author=None, channel=None, attachments=None, created_at=None, message_id=None):
        FakeMessage._next_id += 1
        self.id = message_id or FakeMessage._next_id
        self.content = content
        self.author = author or FakeAuthor(USER_ID)
        self.channel = channel or FakeChannel()
        self.attachments = list(attachments or [])
        self.created_at = created_at or datetime(2025, 6, 1, tzinfo=timezone.utc) + timedelta(minutes=self.id)
        self.reference = None
        self.replies = []

    async def reply(self, text):
        self.replies.append(text)


class FakeClientUser:
    id = BOT_USER_ID

    def __str__(self):
        return "Senan#0001"


class FakeClient:

    def __init__(self, channels=None, ready=True):
        self.user = FakeClientUser()
        self.channels = {c.id: c for c in (channels or [])}
        self.guilds = []
        self.latency = 0.05
        self._ready = ready
        self.closed = False
        # Messages wait_for() will offer to its check, in order
        self.incoming = []

    def is_ready(self):
        return self._ready

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        return self.channels[channel_id]

    async def close(self):
        self.closed = True

    async def wait_for(self, event, check=None, timeout=None):
        for candidate in self.incoming:
            if check is None or check(candidate):
                return candidate
        raise asyncio.TimeoutError


# ─────────────────────────────────────────────────────────────
# Completion fake
# ─────────────────────────────────────────────────────────────

class FakeCompletion:
    """Records every call; answers with `text` or raises `error`."""

    def __init__(self, text="An answer.", error=None):
        self.text = text
        self.error = error
        self.calls = []
        self.uploaded = {}
        self.deleted = []

    async def complete(self, system_prompt, content, max_tokens=1500):
        self.calls.append({"system": system_prompt, "content": content, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return Completion(text=self.text, model="fake-model", input_tokens=10, output_tokens=5)

    async def complete_with_files(self, system_prompt, content, file_ids, max_tokens=1500):
        self.calls.append({"system": system_prompt, "content": content, "file_ids": list(file_ids)})
        if self.error is not None:
            raise self.error
        return Completion(text=self.text, model="fake-model")

    async def upload_file(self, filename, data, mime_type="text/plain"):
        file_id = f"file_{len(self.uploaded) + 1}"
        self.uploaded[file_id] = (filename, data)
        return file_id

    async def list_files(self):
        return [{"id": fid, "filename": name} for fid, (name, _) in self.uploaded.items()]

    async def delete_file(self, file_id):
        if file_id not in self.uploaded:
            raise UpstreamError(f"no file {file_id}", status=404)
        self.deleted.append(file_id)
        del self.uploaded[file_id]


# ─────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────

def make_doc(doc_id, title, content, category="faq", tags=None, priority="medium", source_url=None):
    return Document(
        id=doc_id, title=title, content=content, category=category,
        tags=tags or [], priority=priority, source_url=source_url,
    )


def make_raw(content, images=0, index=0):
    attachments = [
        {"id": f"{index}{n}", "filename": f"shot{index}_{n}.png",
         "url": f"https://cdn.discordapp.com/attachments/1/{index}{n}/shot{index}_{n}.png",
         "content_type": "image/png"}
        for n in range(images)
    ]
    return RawNote(
        author="dev", author_id="42", content=content,
        timestamp=1_700_000_000_000 + index, message_id=str(5000 + index),
        attachments=attachments,
    )


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    return Settings(
        discord_token="token",
        anthropic_api_key="key",
        data_dir=str(tmp_path / "data"),
        profiles_dir=str(tmp_path / "profiles"),
        logs_dir=str(tmp_path / "logs"),
        patch_notes_channel_id=200,
        patch_notes_author_id=MARKER_AUTHOR_ID,
        announce_channel_id=300,
        admin_user_ids=[str(ADMIN_ID)],
        admin_role_names=["Admin"],
        dashboard_username="admin",
        dashboard_password="secret",
    )


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def context(settings, completion):
    ctx = BotContext.from_settings(settings, completion=completion)
    ctx.client = FakeClient(channels=[FakeChannel(200), FakeChannel(300)])
    return ctx
