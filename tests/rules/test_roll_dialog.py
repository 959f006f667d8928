import unittest
from unittest.mock import AsyncMock

from srbot.game.exceptions import DialogClosedError, DicePoolTooLargeError, PreconditionViolationError
from srbot.game.models.collaborators import EDGE_VALUE_KEY
from srbot.game.models.roll_models import DialogOptions, EdgeValue, Limit, RollRequest
from srbot.game.rules import modifiers
from srbot.game.rules.formula import MAX_DICE_POOL
from srbot.game.rules.roll_dialog import (
    DialogFields, DialogState, RollDialog, build_dialog_data, open_roll_dialog,
)


class FakeActor:
    def __init__(self, edge=3, edge_max=4, wounds=0):
        self.name = "Street Sam"
        self.img = "sam.png"
        self.token = None
        self.edge = EdgeValue(value=edge, max=edge_max)
        self.wounds = wounds
        self.update = AsyncMock(side_effect=self._apply_update)

    def get_edge(self):
        return self.edge

    def get_wounds(self):
        return self.wounds

    async def _apply_update(self, data):
        self.edge = EdgeValue(value=data[EDGE_VALUE_KEY], max=self.edge.max)


class ConfirmingPresenter:
    def __init__(self, action="confirm", fields=None):
        self.action = action
        self.fields = fields
        self.presented = []

    async def present(self, dialog):
        self.presented.append(dialog)
        if self.action == "cancel":
            dialog.cancel()
        else:
            getattr(dialog, self.action)(self.fields)


class TestRollDialog(unittest.IsolatedAsyncioTestCase):

    def _request(self, **kwargs):
        data = dict(parts={"Agility": 5, "Pistols": 4}, title="Shoot")
        data.update(kwargs)
        return RollRequest(**data)

    async def test_build_dialog_data(self):
        actor = FakeActor(wounds=1)
        request = self._request(actor=actor, limit=Limit(value=4, base=4, label="Accuracy"), extended=True)
        data = build_dialog_data(request)
        self.assertEqual(data.title, "Shoot")
        self.assertEqual(data.dice_pool, 9)
        self.assertEqual(data.limit, 4)
        self.assertEqual(data.wound_value, 1)
        self.assertEqual(data.edge_max, 4)
        self.assertTrue(data.extended)

    async def test_no_actor_means_no_edge(self):
        dialog = RollDialog(build_dialog_data(self._request()))
        self.assertFalse(dialog.edge_available)
        with self.assertRaises(PreconditionViolationError):
            dialog.confirm_with_edge()
        self.assertTrue(dialog.is_open)

    async def test_cancel_leaves_request_untouched(self):
        actor = FakeActor()
        request = self._request(actor=actor)
        before = request.model_dump(exclude={"actor"})
        dialog = RollDialog(build_dialog_data(request))
        dialog.cancel()

        outcome = await dialog.wait()
        self.assertTrue(outcome.cancelled)
        self.assertEqual(dialog.state, DialogState.CANCELLED)
        with self.assertRaises(DialogClosedError):
            await dialog.commit(request)
        self.assertEqual(request.model_dump(exclude={"actor"}), before)
        actor.update.assert_not_awaited()

    async def test_second_action_is_rejected(self):
        dialog = RollDialog(build_dialog_data(self._request()))
        dialog.confirm()
        with self.assertRaises(DialogClosedError):
            dialog.cancel()
        with self.assertRaises(DialogClosedError):
            dialog.confirm()
        self.assertEqual(dialog.state, DialogState.CONFIRMED)

    async def test_confirm_with_defaults_keeps_modifiers(self):
        request = self._request()
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm()
        await dialog.commit(request)
        self.assertEqual(request.parts, {"Agility": 5, "Pistols": 4})
        self.assertFalse(request.explode_sixes)

    async def test_actor_wounds_are_applied_as_negative_modifier(self):
        request = self._request(actor=FakeActor(wounds=2))
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm()
        await dialog.commit(request)
        self.assertEqual(request.parts[modifiers.WOUNDS], -2)

    async def test_wounds_ignored_when_disabled(self):
        request = self._request(wounds=False)
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm(DialogFields(dice_pool="9", wounds="3"))
        await dialog.commit(request)
        self.assertNotIn(modifiers.WOUNDS, request.parts)

    async def test_edge_spends_exactly_one(self):
        actor = FakeActor(edge=3, edge_max=4)
        request = self._request(actor=actor)
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm_with_edge()
        await dialog.commit(request)

        self.assertTrue(request.explode_sixes)
        self.assertEqual(request.parts[modifiers.PUSH_THE_LIMIT], 4)
        actor.update.assert_awaited_once_with({EDGE_VALUE_KEY: 2})
        self.assertEqual(actor.get_edge().value, 2)

    async def test_commit_twice_is_rejected(self):
        actor = FakeActor()
        request = self._request(actor=actor)
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm_with_edge()
        await dialog.commit(request)
        with self.assertRaises(DialogClosedError):
            await dialog.commit(request)
        actor.update.assert_awaited_once()

    async def test_limit_override(self):
        request = self._request(limit=Limit(value=4, base=4, label="Accuracy"))
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm(DialogFields(dice_pool="9", limit="6"))
        await dialog.commit(request)
        self.assertEqual(request.limit, Limit(value=6, base=6, label=modifiers.LIMIT_OVERRIDE))

    async def test_unchanged_limit_keeps_label(self):
        request = self._request(limit=Limit(value=4, base=4, label="Accuracy"))
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm()
        await dialog.commit(request)
        self.assertEqual(request.limit.label, "Accuracy")

    async def test_situational_environmental_and_extended(self):
        request = self._request()
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm(DialogFields(dice_pool="9", dp_mod="+2", environmental="3", extended=True))
        await dialog.commit(request)

        self.assertEqual(request.parts[modifiers.SITUATIONAL_MODIFIER], 2)
        self.assertEqual(request.parts[modifiers.ENVIRONMENT_MODIFIER], -3)
        self.assertTrue(request.dialog_options.environmental)
        self.assertTrue(request.extended)

    async def test_garbage_input_counts_as_zero(self):
        request = self._request()
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm(DialogFields(dice_pool="lots", limit="", wounds="x", dp_mod=None, environmental="?"))
        await dialog.commit(request)
        self.assertEqual(request.parts, {"Agility": 5, "Pistols": 4})
        self.assertIsNone(request.limit)

    async def test_prompt_mode_replaces_modifiers_and_stores_memo(self):
        flag_store = AsyncMock()
        request = RollRequest(parts={modifiers.LAST_ROLL: 2}, dialog_options=DialogOptions(prompt=True), user_id="u1")
        dialog = RollDialog(build_dialog_data(request))
        self.assertEqual(dialog.default_fields().dice_pool, "2")
        dialog.confirm(DialogFields(dice_pool="5"))
        await dialog.commit(request, flag_store)

        self.assertEqual(request.parts, {modifiers.PROMPT_BASE: 5})
        flag_store.set_last_roll_prompt_value.assert_awaited_once_with("u1", 5)

    async def test_prompt_mode_zero_keeps_modifiers(self):
        flag_store = AsyncMock()
        request = RollRequest(parts={modifiers.LAST_ROLL: 2}, dialog_options=DialogOptions(prompt=True), user_id="u1")
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm(DialogFields(dice_pool="0"))
        await dialog.commit(request, flag_store)

        self.assertEqual(request.parts, {modifiers.LAST_ROLL: 2})
        flag_store.set_last_roll_prompt_value.assert_not_awaited()

    async def test_oversized_edge_pool_keeps_the_edge(self):
        actor = FakeActor(edge=3, edge_max=4)
        request = self._request(parts={"Base": MAX_DICE_POOL}, actor=actor)
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm_with_edge()
        with self.assertRaises(DicePoolTooLargeError) as ctx:
            await dialog.commit(request)

        self.assertEqual(ctx.exception.pool_size, MAX_DICE_POOL + 4)
        actor.update.assert_not_awaited()
        self.assertEqual(actor.get_edge().value, 3)
        self.assertNotIn(modifiers.PUSH_THE_LIMIT, request.parts)
        self.assertFalse(request.explode_sixes)

    async def test_oversized_prompt_pool_is_not_memoized(self):
        flag_store = AsyncMock()
        request = RollRequest(parts={modifiers.LAST_ROLL: 2}, dialog_options=DialogOptions(prompt=True), user_id="u1")
        dialog = RollDialog(build_dialog_data(request))
        dialog.confirm(DialogFields(dice_pool="5000"))
        with self.assertRaises(DicePoolTooLargeError):
            await dialog.commit(request, flag_store)

        flag_store.set_last_roll_prompt_value.assert_not_awaited()
        self.assertEqual(request.parts, {modifiers.LAST_ROLL: 2})

    async def test_open_roll_dialog_waits_for_presenter(self):
        presenter = ConfirmingPresenter(action="confirm")
        request = self._request()
        dialog = await open_roll_dialog(presenter, request)
        self.assertEqual(presenter.presented, [dialog])
        self.assertEqual(dialog.state, DialogState.CONFIRMED)


if __name__ == '__main__':
    unittest.main()
