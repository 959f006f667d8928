"""
Roll amendment dialog.

A RollDialog is opened for one RollRequest, rendered by a DialogPresenter
(discord view, test driver, ...) and resolved by exactly one of three actions:

    OPEN -> CONFIRMED            "Roll"
    OPEN -> CONFIRMED_WITH_EDGE  "Push the Limit", only offered when an actor is present
    OPEN -> CANCELLED            dismissed

Waiting on the dialog has no timeout. Committing a confirmed dialog writes the
edited values back into the request and, on the edge path, spends one edge.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional, Any, Dict, Protocol, TYPE_CHECKING

from pydantic import BaseModel

from srbot.game.exceptions import DialogClosedError, DicePoolTooLargeError, PreconditionViolationError
from srbot.game.models.collaborators import EDGE_VALUE_KEY
from srbot.game.models.roll_models import DialogOptions, ModList, RollRequest
from srbot.game.rules import modifiers
from srbot.game.rules.formula import MAX_DICE_POOL
from srbot.game.rules.modifiers import parse_input_to_number, total_mods

if TYPE_CHECKING:
    from srbot.database.user_flags_crud import UserFlagStore

logger = logging.getLogger(__name__)


class DialogState(str, Enum):
    OPEN = "open"
    CONFIRMED = "confirmed"
    CONFIRMED_WITH_EDGE = "confirmed_with_edge"
    CANCELLED = "cancelled"


class RollDialogData(BaseModel):
    """What the dialog shows when it opens."""
    title: Optional[str] = None
    options: DialogOptions = DialogOptions()
    extended: bool = False
    dice_pool: int = 0
    parts: ModList = {}
    limit: Optional[int] = None
    wounds: bool = True
    wound_value: Optional[int] = None
    edge_max: Optional[int] = None  # None when there is no actor to spend edge


class DialogFields(BaseModel):
    """
    Values read back from the dialog surface. Kept raw: blank or garbage input
    is coerced to 0 when committed.
    """
    dice_pool: Any = None
    limit: Any = None
    wounds: Any = None
    dp_mod: Any = None
    environmental: Any = None
    extended: bool = False


class DialogOutcome(BaseModel):
    state: DialogState
    fields: Optional[DialogFields] = None

    @property
    def cancelled(self) -> bool:
        return self.state == DialogState.CANCELLED

    @property
    def edge(self) -> bool:
        return self.state == DialogState.CONFIRMED_WITH_EDGE


class DialogPresenter(Protocol):
    async def present(self, dialog: "RollDialog") -> None:
        """Render the dialog and wire its actions to confirm/confirm_with_edge/cancel."""
        ...


def build_dialog_data(request: RollRequest) -> RollDialogData:
    actor = request.actor
    return RollDialogData(
        title=request.title,
        options=request.dialog_options or DialogOptions(),
        extended=request.extended,
        dice_pool=total_mods(request.parts),
        parts=dict(request.parts),
        limit=request.limit.value if request.limit is not None else None,
        wounds=request.wounds,
        wound_value=actor.get_wounds() if actor is not None else None,
        edge_max=actor.get_edge().max if actor is not None else None,
    )


class RollDialog:
    def __init__(self, data: RollDialogData):
        self.data = data
        self.state = DialogState.OPEN
        self._future: "asyncio.Future[DialogOutcome]" = asyncio.get_running_loop().create_future()
        self._committed = False

    @property
    def is_open(self) -> bool:
        return self.state == DialogState.OPEN

    @property
    def edge_available(self) -> bool:
        return self.data.edge_max is not None

    def default_fields(self) -> DialogFields:
        data = self.data
        environmental = data.options.environmental
        if isinstance(environmental, bool) or environmental is None:
            environmental = 0
        return DialogFields(
            dice_pool=str(data.dice_pool),
            limit=str(data.limit) if data.limit is not None else "",
            wounds=str(data.wound_value) if data.wounds and data.wound_value else "0",
            dp_mod="0",
            environmental=str(environmental),
            extended=data.extended,
        )

    def confirm(self, fields: Optional[DialogFields] = None) -> None:
        self._resolve(DialogState.CONFIRMED, fields)

    def confirm_with_edge(self, fields: Optional[DialogFields] = None) -> None:
        if not self.edge_available:
            raise PreconditionViolationError("Push the Limit requested on a dialog without an actor.")
        self._resolve(DialogState.CONFIRMED_WITH_EDGE, fields)

    def cancel(self) -> None:
        self._resolve(DialogState.CANCELLED, None)

    def _resolve(self, state: DialogState, fields: Optional[DialogFields]) -> None:
        if not self.is_open:
            raise DialogClosedError(f"Roll dialog '{self.data.title}' is already {self.state.value}.")
        self.state = state
        if state != DialogState.CANCELLED and fields is None:
            fields = self.default_fields()
        logger.debug(f"RollDialog '{self.data.title}': OPEN -> {state.name}")
        self._future.set_result(DialogOutcome(state=state, fields=fields))

    async def wait(self) -> DialogOutcome:
        return await self._future

    async def commit(self, request: RollRequest, flag_store: Optional["UserFlagStore"] = None) -> None:
        """
        Writes the confirmed dialog values into `request`.

        On the edge path the actor's edge is decremented here, before any roll
        is executed, so a later failure never gives the edge back.
        A pool over MAX_DICE_POOL is rejected before edge is spent or the
        prompt memo is written.
        """
        if self.state in (DialogState.OPEN, DialogState.CANCELLED):
            raise DialogClosedError(f"Cannot commit a roll dialog in state {self.state.value}.")
        if self._committed:
            raise DialogClosedError("Roll dialog was already committed.")
        self._committed = True

        outcome = self._future.result()
        fields = outcome.fields or self.default_fields()
        parts = request.parts
        options = request.dialog_options

        dice_pool_value = parse_input_to_number(fields.dice_pool)
        if dice_pool_value > MAX_DICE_POOL:
            raise DicePoolTooLargeError(dice_pool_value, MAX_DICE_POOL)
        if options is not None and options.prompt and dice_pool_value > 0:
            parts.clear()
            if flag_store is not None and request.user_id:
                await flag_store.set_last_roll_prompt_value(request.user_id, dice_pool_value)
            parts[modifiers.PROMPT_BASE] = dice_pool_value

        limit_value = parse_input_to_number(fields.limit)
        limit = request.limit
        if limit is not None and limit.value != limit_value:
            limit.value = limit_value
            limit.base = limit_value
            limit.label = modifiers.LIMIT_OVERRIDE

        wound_value = -parse_input_to_number(fields.wounds)
        situation_mod = parse_input_to_number(fields.dp_mod)
        environment_mod = -parse_input_to_number(fields.environmental)

        if request.wounds and wound_value != 0:
            parts[modifiers.WOUNDS] = wound_value
            request.wounds = True
        if situation_mod:
            parts[modifiers.SITUATIONAL_MODIFIER] = situation_mod
        if environment_mod:
            parts[modifiers.ENVIRONMENT_MODIFIER] = environment_mod
            if request.dialog_options is None:
                request.dialog_options = DialogOptions()
            request.dialog_options.environmental = True

        request.extended = bool(fields.extended)

        if outcome.edge:
            actor = request.actor
            if actor is None:
                raise PreconditionViolationError("Push the Limit confirmed without an actor to spend edge.")
            edge = actor.get_edge()
            pool_size = total_mods(parts) + edge.max
            if pool_size > MAX_DICE_POOL:
                raise DicePoolTooLargeError(pool_size, MAX_DICE_POOL)
            request.explode_sixes = True
            parts[modifiers.PUSH_THE_LIMIT] = edge.max
            await actor.update({EDGE_VALUE_KEY: edge.value - 1})
            logger.info(f"RollDialog '{self.data.title}': {getattr(actor, 'name', 'actor')} pushed the limit (+{edge.max}), edge {edge.value} -> {edge.value - 1}.")

        request.parts = parts


async def open_roll_dialog(presenter: DialogPresenter, request: RollRequest) -> RollDialog:
    """Opens a dialog for `request` and suspends until the user acts on it."""
    dialog = RollDialog(build_dialog_data(request))
    await presenter.present(dialog)
    await dialog.wait()
    return dialog
