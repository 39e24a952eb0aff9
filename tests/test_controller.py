import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from guardbot.llm.classifier import ClassifyOutcome, ClassifyStatus
from guardbot.moderation.content_filter import ProfanityFilter
from guardbot.moderation.controller import ModerationAction, ModerationController
from guardbot.moderation.logger import ModLogger
from guardbot.moderation.models import ViolationKind
from guardbot.moderation.storage import JsonFileStore
from guardbot.moderation.strikes import StrikeSystem
from guardbot.transport.wppconnect import parse_message_event

from fakes import GROUP_ID, JPEG_THUMBNAIL, USER_ID, USER_NUMBER, FakeTransport, make_message

PRIVATE_CHAT = USER_ID


class ControllerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = JsonFileStore(str(Path(self._tmp.name) / "db.json"))
        self.transport = FakeTransport()
        self.classifier = MagicMock()
        self.classifier.screen = AsyncMock(return_value=ClassifyOutcome(status=ClassifyStatus.SUCCESS, text="SAFE"))
        self.commands = MagicMock()
        self.commands.dispatch = AsyncMock(return_value=None)
        self.strikes = StrikeSystem(self.store, message_threshold=2, sticker_threshold=4)
        self.controller = self.make_controller()

    async def asyncTearDown(self):
        self._tmp.cleanup()

    def make_controller(self):
        return ModerationController(
            transport=self.transport,
            profanity=ProfanityFilter(),
            classifier=self.classifier,
            strikes=self.strikes,
            mod_logger=ModLogger(self.store),
            commands=self.commands,
        )

    def actions(self):
        return self.store.load_actions()


class TestGroupViolations(ControllerTestCase):
    async def test_own_messages_are_ignored(self):
        result = await self.controller.handle_message(make_message("shit", from_me=True))

        self.assertEqual(result.action, ModerationAction.NONE)
        self.assertEqual(self.transport.sent, [])
        self.assertEqual(self.actions(), [])

    async def test_first_profanity_warns(self):
        result = await self.controller.handle_message(make_message("this is shit"))

        self.assertEqual(result.action, ModerationAction.WARN)
        self.assertEqual(result.strikes, 1)
        self.assertEqual(self.transport.deleted, [(GROUP_ID, "msg-1", True)])
        self.assertEqual(
            self.transport.sent,
            [(GROUP_ID, f"Warning @{USER_NUMBER}: message removed. Strike: 1", [USER_ID])],
        )
        self.assertEqual(self.transport.removed, [])
        self.classifier.screen.assert_not_awaited()
        self.commands.dispatch.assert_not_awaited()

        entry = self.actions()[-1]
        self.assertEqual(entry.type, "violation")
        self.assertEqual(entry.message, "this is shit")
        self.assertEqual(entry.chat, "Study Group")
        self.assertEqual(entry.strikes, 1)
        self.assertEqual(entry.number, USER_NUMBER)

    async def test_second_profanity_removes(self):
        await self.controller.handle_message(make_message("shit", message_id="m1"))
        result = await self.controller.handle_message(make_message("shit again", message_id="m2"))

        self.assertEqual(result.action, ModerationAction.REMOVE)
        self.assertTrue(result.removed)
        self.assertEqual(self.transport.removed, [(GROUP_ID, USER_ID)])
        self.assertEqual(self.transport.sent_texts[-1], f"Removed @{USER_NUMBER} for repeated violations.")

    async def test_removal_failure_sends_admin_notice(self):
        self.transport.remove_ok = False
        await self.controller.handle_message(make_message("shit"))
        result = await self.controller.handle_message(make_message("shit"))

        self.assertEqual(result.action, ModerationAction.WARN)
        self.assertFalse(result.removed)
        self.assertEqual(result.strikes, 2)
        self.assertEqual(self.transport.sent_texts[-1], f"Cannot remove @{USER_NUMBER}. Bot must be admin.")

    async def test_delete_failure_keeps_strike_and_audit(self):
        self.transport.delete_ok = False
        result = await self.controller.handle_message(make_message("shit"))

        self.assertEqual(result.strikes, 1)
        self.assertEqual(self.strikes.get_strikes(GROUP_ID, USER_ID), 1)
        self.assertEqual(len(self.actions()), 1)

    async def test_classifier_block_flags_long_clean_text(self):
        self.classifier.screen.return_value = ClassifyOutcome(status=ClassifyStatus.BLOCKED)

        result = await self.controller.handle_message(make_message("you are a terrible person"))

        self.assertEqual(result.action, ModerationAction.WARN)
        self.assertEqual(result.reason, "classifier_blocked")
        self.classifier.screen.assert_awaited_once_with("you are a terrible person")

    async def test_short_text_is_not_screened(self):
        await self.controller.handle_message(make_message("hey!!"))
        self.classifier.screen.assert_not_awaited()

    async def test_classifier_unavailable_is_not_a_flag(self):
        self.classifier.screen.return_value = ClassifyOutcome(status=ClassifyStatus.UNAVAILABLE)

        result = await self.controller.handle_message(make_message("a perfectly normal question"))

        self.assertEqual(result.action, ModerationAction.NONE)
        self.assertEqual(self.strikes.get_strikes(GROUP_ID, USER_ID), 0)

    async def test_chat_name_resolved_from_transport(self):
        self.transport.chat_name = "Resolved Group"
        await self.controller.handle_message(make_message("shit", chat_name=None))
        self.assertEqual(self.actions()[-1].chat, "Resolved Group")


class TestStickers(ControllerTestCase):
    async def test_sticker_strikes_and_removal_on_fourth(self):
        results = []
        for index in range(4):
            results.append(await self.controller.handle_message(make_message("", type="sticker", message_id=f"s{index}")))

        self.assertEqual([result.strikes for result in results], [1, 2, 3, 4])
        self.assertEqual([result.action for result in results[:3]], [ModerationAction.WARN] * 3)
        self.assertEqual(results[3].action, ModerationAction.REMOVE)
        self.assertEqual(len(self.transport.removed), 1)
        self.assertIn(f"Warning @{USER_NUMBER}, stickers are not allowed. Strike: 3", self.transport.sent_texts)
        self.assertEqual(self.transport.sent_texts[-1], f"Removed @{USER_NUMBER} for repeated sticker violations.")

    async def test_sticker_is_not_screened_or_dispatched(self):
        await self.controller.handle_message(make_message("", type="sticker"))
        self.classifier.screen.assert_not_awaited()
        self.commands.dispatch.assert_not_awaited()

    async def test_sticker_counter_is_separate(self):
        await self.controller.handle_message(make_message("", type="sticker"))
        await self.controller.handle_message(make_message("", type="sticker"))
        result = await self.controller.handle_message(make_message("shit"))

        self.assertEqual(result.strikes, 1)
        self.assertEqual(self.strikes.get_strikes(GROUP_ID, USER_ID, ViolationKind.STICKER), 2)

    async def test_sticker_audit_entry(self):
        await self.controller.handle_message(make_message("", type="sticker"))
        entry = self.actions()[-1]
        self.assertEqual(entry.type, "sticker_violation")
        self.assertIsNone(entry.message)
        self.assertEqual(entry.strikes, 1)

    async def test_private_sticker_is_ignored(self):
        result = await self.controller.handle_message(make_message("", chat_id=PRIVATE_CHAT, type="sticker"))
        self.assertEqual(result.action, ModerationAction.NONE)
        self.assertEqual(self.transport.blocked, [])


class TestPrivateChat(ControllerTestCase):
    async def test_profanity_blocks_contact(self):
        result = await self.controller.handle_message(make_message("shit", chat_id=PRIVATE_CHAT, chat_name=None))

        self.assertEqual(result.action, ModerationAction.BLOCK)
        self.assertEqual(self.transport.blocked, [USER_ID])
        self.assertEqual(self.transport.replies, [("msg-1", "Blocked for abusive language.")])
        self.assertEqual(self.transport.sent, [])

        actions = self.actions()
        self.assertEqual(len(actions), 1)
        self.assertEqual(actions[0].type, "blocked")
        self.assertEqual(actions[0].message, "shit")
        self.assertIsNone(actions[0].chat)
        self.assertEqual(self.store.read()["groups"], {})

    async def test_private_photo_thumbnail_is_not_moderated(self):
        message = parse_message_event({
            "event": "onmessage",
            "id": "true_923001234567@c.us_IMG",
            "from": USER_ID,
            "type": "image",
            "body": JPEG_THUMBNAIL,
            "caption": "hello friend",
            "isGroupMsg": False,
        })

        result = await self.controller.handle_message(message)

        self.assertEqual(result.action, ModerationAction.NONE)
        self.assertEqual(self.transport.blocked, [])
        self.classifier.screen.assert_awaited_once_with("hello friend")
        self.assertEqual(self.actions(), [])

    async def test_group_sticker_thumbnail_counts_only_as_sticker(self):
        message = parse_message_event({
            "event": "onmessage",
            "id": "false_120363000000000001@g.us_STK",
            "chatId": GROUP_ID,
            "author": USER_ID,
            "type": "sticker",
            "body": JPEG_THUMBNAIL,
            "isGroupMsg": True,
        })

        result = await self.controller.handle_message(message)

        self.assertEqual(self.strikes.get_strikes(GROUP_ID, USER_ID, ViolationKind.MESSAGE), 0)
        self.assertEqual(self.strikes.get_strikes(GROUP_ID, USER_ID, ViolationKind.STICKER), 1)
        self.assertEqual(result.strikes, 1)
        self.classifier.screen.assert_not_awaited()

    async def test_clean_private_message_does_nothing(self):
        result = await self.controller.handle_message(make_message("hello there friend", chat_id=PRIVATE_CHAT))

        self.assertEqual(result.action, ModerationAction.NONE)
        self.commands.dispatch.assert_not_awaited()
        self.assertEqual(self.transport.replies, [])


class TestCommandsAndErrors(ControllerTestCase):
    async def test_clean_group_message_goes_to_commands(self):
        self.commands.dispatch.return_value = "ping"

        result = await self.controller.handle_message(make_message("!ping"))

        self.assertEqual(result.action, ModerationAction.COMMAND)
        self.assertEqual(result.command, "ping")
        self.commands.dispatch.assert_awaited_once()

    async def test_non_command_group_message(self):
        result = await self.controller.handle_message(make_message("hello all"))
        self.assertEqual(result.action, ModerationAction.NONE)

    async def test_unexpected_error_is_contained(self):
        self.commands.dispatch.side_effect = RuntimeError("boom")

        result = await self.controller.handle_message(make_message("!ping"))

        self.assertEqual(result.action, ModerationAction.ERROR)
        self.assertIn("boom", result.details)

    async def test_works_without_classifier(self):
        self.classifier = None
        controller = self.make_controller()

        result = await controller.handle_message(make_message("a long clean message"))

        self.assertEqual(result.action, ModerationAction.NONE)
