import inspect
import logging
import random
from typing import Optional, Any, Dict, List, TYPE_CHECKING

from srbot.game.models.collaborators import ItemCapability, RollItem
from srbot.game.models.roll_models import (
    DialogOptions, Limit, ModList, RollHeader, RollOutcome, RollRequest, RollResult,
    TemplateData, TEMPLATE_EXTRA_FIELDS,
)
from srbot.game.rules import dice_roller, modifiers
from srbot.game.rules.extended_test import ExtendedTestChain, ExtendedStepListener
from srbot.game.rules.formula import compile_formula, shadowrun_formula
from srbot.game.rules.modifiers import total_mods
from srbot.game.rules.roll_dialog import DialogPresenter, DialogState, open_roll_dialog
from srbot.services.config_service import RollSettings

if TYPE_CHECKING:
    from srbot.database.user_flags_crud import UserFlagStore
    from srbot.services.chat_service import ChatService

logger = logging.getLogger(__name__)


class ShadowrunRoller:
    """
    Runs dice-pool tests.

    basic_roll    rolls a request whose modifiers are final.
    advanced_roll opens the roll dialog first, applies the edits (and edge), then
                  rolls; extended tests keep re-opening the dialog.
    """

    def __init__(self,
                 settings: Optional[RollSettings] = None,
                 chat_service: Optional["ChatService"] = None,
                 dialog_presenter: Optional[DialogPresenter] = None,
                 flag_store: Optional["UserFlagStore"] = None,
                 rng: Optional[random.Random] = None
                ):
        """
        Args:
            settings: Global roll switches (apply limits, default roll card, extended delay).
            chat_service: Output collaborator; when None, nothing is published.
            dialog_presenter: Renders roll dialogs; required for advanced rolls.
            flag_store: Per-user memo for prompt rolls.
            rng: Randomness source handed to the dice roller.
        """
        self.settings = settings or RollSettings()
        self.chat_service = chat_service
        self.dialog_presenter = dialog_presenter
        self.flag_store = flag_store
        self.rng = rng
        self.extended_listeners: List[ExtendedStepListener] = []

    def add_extended_listener(self, listener: ExtendedStepListener) -> None:
        self.extended_listeners.append(listener)

    @staticmethod
    def shadowrun_formula(parts: ModList, limit: Optional[Limit] = None, explode: bool = False) -> str:
        return shadowrun_formula(parts, limit, explode)

    async def basic_roll(self, request: RollRequest) -> Optional[RollOutcome]:
        """
        Rolls `request` as is and publishes the result unless `hide_roll_message` is set.
        Returns None only when there are no modifiers at all.
        """
        parts = request.parts or {}
        if not parts:
            logger.info(f"basic_roll '{request.title}': no modifiers, nothing to roll.")
            return None

        compiled = compile_formula(total_mods(parts), request.limit, request.explode_sixes)
        if compiled.warning and self.chat_service is not None:
            await self.chat_service.notify_error(compiled.warning)

        roll = dice_roller.roll_dice(compiled.formula, self.rng)
        outcome = RollOutcome(
            formula=roll.formula,
            dice=roll.dice,
            total=roll.total,
            template_data=self._build_template_data(request, roll),
        )
        logger.info(f"basic_roll '{request.title}': {outcome.formula} -> {outcome.faces} = {outcome.total} hits")

        if self.chat_service is not None:
            if self.settings.display_default_roll_card:
                await self.chat_service.send_default_roll_card(
                    outcome,
                    speaker=getattr(request.actor, "name", None),
                    flavor=request.title,
                )
            if not request.hide_roll_message:
                await self.chat_service.send_roll(outcome)
        return outcome

    def _build_template_data(self, request: RollRequest, roll: RollResult) -> TemplateData:
        actor = request.actor
        name = request.name if request.name is not None else getattr(actor, "name", None)
        img = request.img if request.img is not None else getattr(actor, "img", None)
        token = getattr(actor, "token", None) if actor is not None else None
        token_id = f"{token.scene_id}.{token.id}" if token is not None else None

        extras: Dict[str, Any] = {}
        for field_name in TEMPLATE_EXTRA_FIELDS:
            value = getattr(request, field_name)
            if value is not None:
                extras[field_name] = value

        return TemplateData(
            actor=actor,
            header=RollHeader(name=name or "", img=img or ""),
            token_id=token_id,
            dice=list(roll.dice),
            limit=request.limit.model_copy() if request.limit is not None else None,
            test_name=request.title,
            dice_pool=total_mods(request.parts),
            parts=dict(request.parts),
            hits=roll.total,
            **extras,
        )

    async def advanced_roll(self, request: RollRequest, chain: Optional[ExtendedTestChain] = None) -> Optional[RollOutcome]:
        """
        Lets the user amend the roll in a dialog, then rolls it.

        Returns None when the dialog is cancelled (or nothing could be rolled).
        A Push the Limit bonus is removed from `request` once its roll is done.
        When the confirmed roll is extended, the next link is scheduled on the
        request's ExtendedTestChain after `after` has received this outcome.
        """
        if self.dialog_presenter is None:
            raise ValueError("ShadowrunRoller: a dialog presenter is required for advanced rolls.")

        if not self.settings.apply_limits and request.limit is not None:
            logger.debug(f"advanced_roll '{request.title}': limits disabled, dropping limit {request.limit.value}.")
            request.limit = None

        dialog = await open_roll_dialog(self.dialog_presenter, request)
        if dialog.state == DialogState.CANCELLED:
            logger.info(f"advanced_roll '{request.title}': dialog cancelled.")
            return None

        explode_before = request.explode_sixes
        await dialog.commit(request, self.flag_store)
        try:
            outcome = await self.basic_roll(request)
        finally:
            if dialog.state == DialogState.CONFIRMED_WITH_EDGE:
                # Edge applies to a single roll.
                request.parts.pop(modifiers.PUSH_THE_LIMIT, None)
                request.explode_sixes = explode_before
        if outcome is None:
            return None

        if request.after is not None:
            result = request.after(outcome)
            if inspect.isawaitable(result):
                await result

        if request.extended:
            if chain is None:
                chain = ExtendedTestChain(self, request, self.settings.extended_test_delay)
            await chain.advance(outcome, self.extended_listeners)
        return outcome

    async def prompt_roll(self, user_id: Optional[str] = None) -> Optional[RollOutcome]:
        """Asks for a bare dice pool, pre-filled with the user's last prompted value."""
        last_roll = 0
        if self.flag_store is not None and user_id:
            last_roll = await self.flag_store.get_last_roll_prompt_value(user_id)
        request = RollRequest(
            parts={modifiers.LAST_ROLL: last_roll},
            dialog_options=DialogOptions(prompt=True),
            user_id=user_id,
        )
        return await self.advanced_roll(request)

    async def item_roll(self, event: Any, item: RollItem, **options: Any) -> Optional[RollOutcome]:
        """Builds a roll from an item's modifiers, limit and chat data, then runs an advanced roll."""
        capabilities = item.capabilities
        data: Dict[str, Any] = dict(options)
        data.update(
            event=event,
            dialog_options=DialogOptions(environmental=True),
            parts=dict(item.get_roll_parts_list() or {}),
            actor=item.actor,
            item=item,
            limit=item.get_limit(),
            title=item.get_roll_name(),
            name=item.name,
            img=item.img,
            preview_template=bool(capabilities & ItemCapability.HAS_TEMPLATE),
            attack=item.get_attack_data(0),
            blast=item.get_blast_data(),
        )
        if capabilities & ItemCapability.HAS_OPPOSED_ROLL:
            data["tests"] = [{"label": item.get_opposed_test_name(), "type": "opposed"}]
        if capabilities & ItemCapability.MELEE_WEAPON:
            data["reach"] = item.get_reach()
        if capabilities & ItemCapability.RANGED_WEAPON:
            fire_mode = item.get_last_fire_mode()
            data["fire_mode"] = fire_mode.get("label") if fire_mode else None
        data["description"] = item.get_chat_data()

        return await self.advanced_roll(RollRequest(**data))
