"""
Tests for command parsing and the chat command handlers, driven through the
router with fake Discord messages.
Run with: python -m pytest tests/test_commands.py -v
"""

import asyncio

import pytest
from conftest import (
    ADMIN_ID, MARKER_AUTHOR_ID, FakeAuthor, FakeChannel, FakeMessage, FakeRole, FakePermissions, make_doc,
)

from senan.commands import ask, router
from senan.commands.base import is_admin, parse_command
from senan.commands.forum import index_line, index_messages, thread_document
from senan.errors import UpstreamError

DEATH_DOC = make_doc(
    "a", "Death Penalty",
    "What happens under the death penalty system: when you die you drop your corpse and lose experience.",
)
LUDOS_DOC = make_doc("ludos", "Ludos", "Ludos the Unbound seeks a seventh aspect.", category="lore")

ADMIN = FakeAuthor(ADMIN_ID, name="admin")
USER = FakeAuthor(2, name="player")


def run(context, content, author=USER, channel=None):
    message = FakeMessage(content, author=author, channel=channel or FakeChannel(100))
    handled = asyncio.run(router.dispatch(message, context))
    return handled, message


# ─────────────────────────────────────────────────────────────
# parse_command / is_admin
# ─────────────────────────────────────────────────────────────

class TestParseCommand:

    def test_flags_and_args(self):
        command = parse_command("!patchnotes --with-images -ai")
        assert command.name == "patchnotes"
        assert command.args == []
        assert command.has_flag("with_images") and command.has_flag("ai")

    def test_negative_number_is_an_argument(self):
        assert parse_command("!ask is -5 armor bad?").text == "is -5 armor bad?"

    def test_name_lowercased(self):
        assert parse_command("!ASK hello").name == "ask"

    def test_not_a_command(self):
        assert parse_command("hello") is None
        assert parse_command("!") is None

    def test_custom_prefix(self):
        assert parse_command("?help", prefix="?").name == "help"


class TestIsAdmin:

    def test_admin_id(self, settings):
        assert is_admin(ADMIN, settings)

    def test_admin_role(self, settings):
        assert is_admin(FakeAuthor(5, roles=[FakeRole("Admin")]), settings)

    def test_administrator_permission(self, settings):
        assert is_admin(FakeAuthor(5, guild_permissions=FakePermissions(administrator=True)), settings)

    def test_regular_user(self, settings):
        assert not is_admin(USER, settings)


# ─────────────────────────────────────────────────────────────
# Router
# ─────────────────────────────────────────────────────────────

class TestRouter:

    def test_unknown_command_ignored(self, context):
        handled, message = run(context, "!asking something")
        assert not handled and message.replies == []

    def test_plain_message_ignored(self, context):
        assert run(context, "just chatting")[0] is False

    def test_help_for_users(self, context):
        _, message = run(context, "!help")
        assert "!ask" in message.replies[0]
        assert "Admin" not in message.replies[0]

    def test_help_for_admins(self, context):
        _, message = run(context, "!help", author=ADMIN)
        assert "!patchnotes" in message.replies[0]

    def test_commands_counted(self, context):
        run(context, "!help")
        assert context.monitor.command_counts["help"] == 1

    def test_admin_only(self, context):
        _, message = run(context, "!stats")
        assert message.replies == ["This command is for admins only."]


# ─────────────────────────────────────────────────────────────
# !ask / !askall
# ─────────────────────────────────────────────────────────────

class TestAsk:

    def test_answers_with_context(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        _, message = run(context, "!ask What is the death penalty system?")
        assert message.replies == ["**Question:** What is the death penalty system?\n\nAn answer."]
        assert "[a] Death Penalty" in completion.calls[0]["content"]
        assert "Adrullan" in completion.calls[0]["system"]

    def test_empty_question(self, context):
        _, message = run(context, "!ask")
        assert message.replies == ["Usage: `!ask <your question>`"]

    def test_rate_limited(self, context):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        run(context, "!ask death penalty?")
        _, message = run(context, "!ask death penalty again?")
        assert message.replies[0].startswith("⏳")

    def test_empty_knowledge_base(self, context):
        _, message = run(context, "!ask anything?")
        assert message.replies == [ask.NO_KNOWLEDGE]

    def test_nothing_relevant(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        _, message = run(context, "!ask quantum entanglement")
        assert message.replies == [ask.NO_RELEVANT]
        assert completion.calls == []

    def test_upstream_failure_apologises(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        completion.error = UpstreamError("overloaded", status=529, retryable=True)
        _, message = run(context, "!ask death penalty?")
        assert message.replies == [UpstreamError.user_message]
        assert context.monitor.error_count == 1

    def test_unexpected_failure_is_contained(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        completion.error = RuntimeError("boom")
        _, message = run(context, "!ask death penalty?")
        assert message.replies == [router.GENERIC_ERROR]

    def test_file_mode_uses_uploaded_ids(self, context, completion):
        context.context_passing = False
        context.file_cache.set("faq.json", ["file_9"])
        run(context, "!ask death penalty?")
        assert completion.calls[0]["file_ids"] == ["file_9"]

    def test_file_mode_without_uploads(self, context):
        context.context_passing = False
        _, message = run(context, "!ask death penalty?")
        assert "uploaddata upload" in message.replies[0]

    def test_askall_admin_only(self, context):
        _, message = run(context, "!askall what is everything?")
        assert message.replies == ["This command is for admins only."]

    def test_askall_uses_every_document(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC, LUDOS_DOC])
        run(context, "!askall what is everything?", author=ADMIN)
        content = completion.calls[0]["content"]
        assert "[a]" in content and "[ludos]" in content


# ─────────────────────────────────────────────────────────────
# !profile
# ─────────────────────────────────────────────────────────────

class TestProfileCommand:

    def test_list(self, context):
        _, message = run(context, "!profile list")
        assert "`locked-down`" in message.replies[0]

    def test_switch(self, context):
        run(context, "!profile switch casual", author=ADMIN)
        assert context.active_profile.key == "casual"
        assert context.monitor.profile_switches == 1

    def test_switch_requires_admin(self, context):
        _, message = run(context, "!profile switch casual")
        assert context.active_profile.key == "locked-down"
        assert message.replies == ["This command is for admins only."]

    def test_switch_unknown(self, context):
        _, message = run(context, "!profile switch nope", author=ADMIN)
        assert message.replies == ["Profile `nope` not found."]

    def test_update_active_profile_refreshes(self, context):
        run(context, "!profile update locked-down maxTokens 5000", author=ADMIN)
        assert context.active_profile.max_tokens == 5000

    def test_update_bad_value(self, context):
        _, message = run(context, "!profile update casual maxTokens lots", author=ADMIN)
        assert message.replies == ["maxTokens must be a whole number."]

    def test_delete_active_falls_back(self, context):
        run(context, "!profile switch casual", author=ADMIN)
        run(context, "!profile delete casual", author=ADMIN)
        assert context.active_profile.key == "locked-down"

    def test_context_toggle(self, context):
        run(context, "!profile context on", author=ADMIN)
        assert context.active_profile.include_conversation_context is True


# ─────────────────────────────────────────────────────────────
# !uploaddata
# ─────────────────────────────────────────────────────────────

class TestUploadCommand:

    def test_upload_and_replace(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        run(context, "!uploaddata upload", author=ADMIN)
        assert context.file_cache.get("faq.json") == ["file_1"]
        run(context, "!uploaddata upload faq.json", author=ADMIN)
        assert context.file_cache.get("faq.json") == ["file_2"]
        assert completion.deleted == ["file_1"]
        assert context.monitor.upload_count == 2

    def test_upload_unknown_file(self, context):
        _, message = run(context, "!uploaddata upload nope.json", author=ADMIN)
        assert message.replies[-1] == "No knowledge file named `nope.json`."

    def test_toggle(self, context):
        run(context, "!uploaddata toggle on", author=ADMIN)
        assert context.context_passing is False
        run(context, "!uploaddata toggle off", author=ADMIN)
        assert context.context_passing is True

    def test_deleteall(self, context, completion):
        context.knowledge.save_documents("faq.json", [DEATH_DOC])
        run(context, "!uploaddata upload", author=ADMIN)
        run(context, "!uploaddata deleteall", author=ADMIN)
        assert completion.uploaded == {}
        assert context.file_cache.all_file_ids() == []


# ─────────────────────────────────────────────────────────────
# !quiz
# ─────────────────────────────────────────────────────────────

class TestQuizCommand:

    def test_correct_answer_wins(self, context):
        context.knowledge.save_documents("lore.json", [LUDOS_DOC])
        channel = FakeChannel(100)
        wrong = FakeMessage("Ignar?", author=FakeAuthor(5), channel=channel)
        right = FakeMessage("it's ludos", author=FakeAuthor(6, name="winner"), channel=channel)
        context.client.incoming = [wrong, right]
        _, message = run(context, "!quiz", channel=channel)
        assert "QUIZ TIME" in message.replies[0]
        assert "CORRECT" in right.replies[0]
        assert "Attempts:** 2" in right.replies[0]
        assert context.quizzes == {}

    def test_timeout_reveals_answer(self, context):
        context.knowledge.save_documents("lore.json", [LUDOS_DOC])
        channel = FakeChannel(100)
        run(context, "!quiz", channel=channel)
        assert "Ludos the Unbound" in channel.sent[-1]
        assert context.quizzes == {}

    def test_stop_without_quiz(self, context):
        _, message = run(context, "!quiz stop")
        assert message.replies == ["There's no quiz running here."]


# ─────────────────────────────────────────────────────────────
# !monitor / !stats
# ─────────────────────────────────────────────────────────────

class TestAdminCommands:

    def test_stats(self, context):
        _, message = run(context, "!stats", author=ADMIN)
        assert "Usage Statistics" in message.replies[0]

    def test_monitor_status(self, context):
        _, message = run(context, "!monitor status", author=ADMIN)
        assert "Bot Status" in message.replies[0]

    def test_monitor_restart_closes_client(self, context):
        run(context, "!monitor restart", author=ADMIN)
        assert context.client.closed


# ─────────────────────────────────────────────────────────────
# !patchnotes
# ─────────────────────────────────────────────────────────────

class TestPatchNotesCommand:

    def _seed(self, context):
        dev = FakeAuthor(MARKER_AUTHOR_ID, name="dev")
        notes = context.client.channels[200]
        for i, content in enumerate(["**0.10.43**", "reserve", "Warrior: Fixed a bug with shield block"]):
            notes.messages.append(FakeMessage(content, author=dev, channel=notes, message_id=i + 1))

    def test_draft_then_publish(self, context):
        self._seed(context)
        _, message = run(context, "!patchnotes", author=ADMIN)
        draft = context.drafts.get("0.10.43")
        assert draft.categories == {"Class": ["Warrior: Fixed a Bug with Shield Block"]}
        assert "Draft 0.10.43" in message.replies[-1]

        run(context, "!patchnotes publish 0.10.43", author=ADMIN)
        announcements = context.client.channels[300].sent
        assert announcements[0] == "**0.10.43**"
        assert "Warrior: Fixed a Bug with Shield Block" in announcements[1]
        assert context.drafts.get("0.10.43").status == "published"

    def test_no_marker(self, context):
        _, message = run(context, "!patchnotes", author=ADMIN)
        assert "couldn't find a version post" in message.replies[-1]

    def test_publish_web_without_credentials(self, context):
        self._seed(context)
        run(context, "!patchnotes", author=ADMIN)
        _, message = run(context, "!patchnotes publishweb 0.10.43", author=ADMIN)
        assert "WIX_API_KEY" in message.replies[-1]
        assert not context.drafts.get("0.10.43").published_to_wix

    def test_publish_bad_version(self, context):
        _, message = run(context, "!patchnotes publish latest", author=ADMIN)
        assert message.replies == ["Versions look like `0.10.43`."]


# ─────────────────────────────────────────────────────────────
# Forum helpers
# ─────────────────────────────────────────────────────────────

class FakeThread:

    def __init__(self, thread_id, name, messages):
        self.id = thread_id
        self.name = name
        self.jump_url = f"https://discord.com/channels/1/{thread_id}"
        self._messages = messages

    def history(self, limit=100, oldest_first=True):
        async def gen():
            for m in self._messages:
                yield m
        return gen()


class TestForumHelpers:

    @pytest.mark.parametrize("style,expected", [
        ("markdown", "- [Crafting](u)"),
        ("plain", "Crafting - u"),
        ("numbered", "3. [Crafting](u)"),
        ("discord", "#Crafting"),
    ])
    def test_index_line(self, style, expected):
        assert index_line(style, 3, "Crafting", "u") == expected

    def test_index_messages_fit_discord_limit(self):
        threads = [FakeThread(1, "x" * 2500, []), FakeThread(2, "Crafting", [])]
        chunks = index_messages(threads, "discord")
        assert all(len(c) <= 2000 for c in chunks)
        assert "".join(chunks).replace("\n", "") == "#" + "x" * 2500 + "#Crafting"

    def test_index_messages_empty(self):
        assert index_messages([], "plain") == []

    def test_thread_document(self):
        bot = FakeAuthor(9, bot=True)
        thread = FakeThread(55, "How do I craft?", [
            FakeMessage("Use an anvil.", author=USER),
            FakeMessage("Auto-reply", author=bot),
            FakeMessage("Needs ore too.", author=USER),
        ])
        doc = asyncio.run(thread_document(thread))
        assert doc.id == "forum_55"
        assert doc.content == "Use an anvil.\n\nNeeds ore too."
        assert doc.priority == "high"
        assert doc.source_url == thread.jump_url
