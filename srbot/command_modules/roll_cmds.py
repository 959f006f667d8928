import logging
from typing import Optional, Any, Dict, TYPE_CHECKING

import discord
from discord import Interaction, app_commands
from discord.ext import commands
from sqlalchemy.exc import SQLAlchemyError

from srbot.game.exceptions import DicePoolTooLargeError, RollEngineError
from srbot.game.models.collaborators import EDGE_VALUE_KEY
from srbot.game.models.roll_models import EdgeValue, Limit, RollRequest
from srbot.game.rules import modifiers
from srbot.game.rules.formula import MAX_DICE_POOL
from srbot.game.rules.shadowrun_roller import ShadowrunRoller
from srbot.services.chat_service import ChatService
from srbot.services.config_service import RollSettings
from srbot.ui.roll_dialog_view import DiscordDialogPresenter
from srbot.utils.i18n_utils import get_localized_string

if TYPE_CHECKING:
    from main import SRBot

logger = logging.getLogger(__name__)

DicePool = app_commands.Range[int, 0, MAX_DICE_POOL]
ROLL_FAILURES = (RollEngineError, SQLAlchemyError, discord.DiscordException)


class MemberActor:
    """
    Minimal actor for slash-command rolls: the invoking member with an edge
    pool given on the command line. Edge spent lives as long as the command.
    """

    def __init__(self, member: Any, edge: int):
        self.name = getattr(member, "display_name", None) or str(member)
        avatar = getattr(member, "display_avatar", None)
        self.img = str(avatar.url) if avatar is not None else ""
        self.token = None
        self._edge = EdgeValue(value=edge, max=edge)

    def get_edge(self) -> EdgeValue:
        return self._edge

    def get_wounds(self) -> int:
        return 0

    async def update(self, data: Dict[str, Any]) -> None:
        if EDGE_VALUE_KEY in data:
            self._edge = EdgeValue(value=data[EDGE_VALUE_KEY], max=self._edge.max)


class RollCog(commands.Cog, name="Roll Commands"):
    def __init__(self, bot: "SRBot"):
        self.bot = bot

    @property
    def settings(self) -> RollSettings:
        return getattr(self.bot, "roll_settings", None) or RollSettings()

    def _make_roller(self, interaction: Interaction) -> ShadowrunRoller:
        language = self.settings.language
        send = interaction.followup.send
        return ShadowrunRoller(
            settings=self.settings,
            chat_service=ChatService(send, language=language),
            dialog_presenter=DiscordDialogPresenter(send, owner_id=interaction.user.id, language=language),
            flag_store=getattr(self.bot, "flag_store", None),
        )

    @staticmethod
    def _make_request(interaction: Interaction, dice: int, limit: Optional[int], explode: bool, title: Optional[str]) -> RollRequest:
        return RollRequest(
            parts={modifiers.PROMPT_BASE: dice},
            limit=Limit(value=limit, base=limit) if limit else None,
            explode_sixes=explode,
            title=title,
            name=interaction.user.display_name,
            user_id=str(interaction.user.id),
        )

    async def _report_failure(self, interaction: Interaction, command: str, error: Exception):
        language = self.settings.language
        if isinstance(error, DicePoolTooLargeError):
            logger.warning(f"/{command}: user {interaction.user.id} asked for {error.pool_size} dice.")
            await interaction.followup.send(
                get_localized_string("SR5.DicePoolTooLarge", language, max_pool=error.max_pool), ephemeral=True)
            return
        logger.error(f"/{command}: roll failed for user {interaction.user.id} in guild {interaction.guild_id}: {error}", exc_info=True)
        await interaction.followup.send(get_localized_string("SR5.RollEngineUnavailable", language), ephemeral=True)

    @app_commands.command(name="roll", description="Roll a dice pool, with a dialog to adjust modifiers first.")
    @app_commands.describe(
        dice="Dice pool size.",
        limit="Limit (keep at most this many hits).",
        explode="Re-roll sixes.",
        edge="Your edge rating, enables Push the Limit.",
        title="What the roll is for.",
    )
    async def cmd_roll(self, interaction: Interaction, dice: DicePool, limit: Optional[int] = None,
                       explode: bool = False, edge: Optional[int] = None, title: Optional[str] = None):
        await interaction.response.defer(ephemeral=False)
        request = self._make_request(interaction, dice, limit, explode, title)
        if edge:
            request.actor = MemberActor(interaction.user, edge)
        try:
            await self._make_roller(interaction).advanced_roll(request)
        except ROLL_FAILURES as e:
            await self._report_failure(interaction, "roll", e)

    @app_commands.command(name="quickroll", description="Roll a dice pool immediately.")
    @app_commands.describe(dice="Dice pool size.", limit="Limit (keep at most this many hits).", explode="Re-roll sixes.")
    async def cmd_quickroll(self, interaction: Interaction, dice: DicePool, limit: Optional[int] = None, explode: bool = False):
        await interaction.response.defer(ephemeral=False)
        request = self._make_request(interaction, dice, limit, explode, None)
        try:
            await self._make_roller(interaction).basic_roll(request)
        except ROLL_FAILURES as e:
            await self._report_failure(interaction, "quickroll", e)

    @app_commands.command(name="prompt", description="Roll a bare dice pool, starting from your last one.")
    async def cmd_prompt(self, interaction: Interaction):
        await interaction.response.defer(ephemeral=False)
        try:
            await self._make_roller(interaction).prompt_roll(str(interaction.user.id))
        except ROLL_FAILURES as e:
            await self._report_failure(interaction, "prompt", e)


async def setup(bot: "SRBot"):
    await bot.add_cog(RollCog(bot))
    logger.info("RollCog loaded.")
