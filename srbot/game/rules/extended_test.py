import asyncio
import inspect
import logging
from enum import Enum
from typing import Optional, Callable, Any, List, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from srbot.game.models.roll_models import RollOutcome, RollRequest
from srbot.game.rules import modifiers

if TYPE_CHECKING:
    from srbot.game.rules.shadowrun_roller import ShadowrunRoller

logger = logging.getLogger(__name__)

DEFAULT_EXTENDED_DELAY = 0.4  # seconds between links of an extended test


class ChainState(str, Enum):
    IDLE = "idle"  # waiting for the current link's dialog/roll
    SCHEDULED = "scheduled"  # next link waits out the delay
    RUNNING = "running"  # next link has re-opened the dialog
    STOPPED = "stopped"


class ExtendedStep(BaseModel):
    """Emitted after every roll of an extended test, before the next link is scheduled."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    iteration: int
    outcome: RollOutcome
    extended_value: int  # value of the SR5.Extended modifier for the next link
    chain: Any  # ExtendedTestChain


# Listener returning False stops the chain. May be a coroutine function.
ExtendedStepListener = Callable[[ExtendedStep], Any]


class ExtendedTestChain:
    """
    Drives an extended test: a roll repeated until someone stops it.

    The chain has no built-in end. It stops when a dialog is cancelled, when
    the user unticks "extended", when a listener returns False, or on stop().
    """

    def __init__(self, roller: "ShadowrunRoller", request: RollRequest, delay: float = DEFAULT_EXTENDED_DELAY):
        self.roller = roller
        self.request = request
        self.delay = delay
        self.state = ChainState.IDLE
        self.outcomes: List[RollOutcome] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def iteration(self) -> int:
        return len(self.outcomes)

    @property
    def is_stopped(self) -> bool:
        return self.state == ChainState.STOPPED

    async def advance(self, outcome: RollOutcome, listeners: List[ExtendedStepListener]) -> bool:
        """
        Records a finished link and schedules the next one.
        Returns True if another link was scheduled.
        """
        if self.is_stopped:
            return False

        self.outcomes.append(outcome)
        parts = self.request.parts
        current = parts.get(modifiers.EXTENDED) or 0
        parts[modifiers.EXTENDED] = current - 1

        step = ExtendedStep(
            iteration=self.iteration,
            outcome=outcome,
            extended_value=parts[modifiers.EXTENDED],
            chain=self,
        )
        for listener in list(listeners):
            verdict = listener(step)
            if inspect.isawaitable(verdict):
                verdict = await verdict
            if verdict is False:
                logger.info(f"ExtendedTestChain '{self.request.title}': stopped by listener after iteration {self.iteration}.")
                self.stop()
                return False

        if self.is_stopped:
            return False
        self.state = ChainState.SCHEDULED
        self._task = asyncio.create_task(self._next_link())
        self._task.add_done_callback(self._log_failure)
        return True

    async def _next_link(self) -> None:
        await asyncio.sleep(self.delay)
        if self.is_stopped:
            return
        self.state = ChainState.RUNNING
        await self.roller.advanced_roll(self.request, chain=self)
        if self.state == ChainState.RUNNING:
            # Cancelled dialog or "extended" unticked: nothing further was scheduled.
            logger.info(f"ExtendedTestChain '{self.request.title}': ended after {self.iteration} iteration(s).")
            self.state = ChainState.STOPPED

    def _log_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.state = ChainState.STOPPED
            logger.error(f"ExtendedTestChain '{self.request.title}': link failed: {error}", exc_info=error)

    def stop(self) -> None:
        self.state = ChainState.STOPPED
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        """
        Waits until no link is pending, following the chain as it grows.
        Re-raises the error of a failed link.
        """
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        task = self._task
        if task is not None and not task.cancelled() and task.exception() is not None:
            raise task.exception()
