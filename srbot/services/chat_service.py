import logging
from typing import Callable, Awaitable, Any, Dict, List, Optional

import discord

from srbot.game.models.roll_models import DieResult, RollOutcome, TemplateData
from srbot.utils.i18n_utils import get_localized_string

logger = logging.getLogger(__name__)

EMBED_FIELD_LIMIT = 1024


def format_dice(dice: List[DieResult]) -> str:
    """Hits in bold, exploded sixes marked with '!', dice dropped by the limit struck through."""
    rendered = []
    for die in dice:
        text = f"{die.result}!" if die.exploded else str(die.result)
        if die.discarded:
            text = f"~~{text}~~"
        elif die.success:
            text = f"**{text}**"
        rendered.append(text)
    return " ".join(rendered) if rendered else "-"


def format_parts(parts: Dict[str, Any], language: str = "en") -> str:
    lines = []
    for label, value in parts.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        lines.append(f"{get_localized_string(label, language)}: {value:+g}")
    return "\n".join(lines) if lines else "-"


def create_chat_data(template_data: TemplateData, outcome: RollOutcome, language: str = "en") -> Dict[str, Any]:
    """
    Builds the message payload (an embed) for an annotated roll.
    """
    title = template_data.test_name or get_localized_string("SR5.Roll", language)
    embed = discord.Embed(title=title, color=discord.Color.dark_red())
    header = template_data.header
    if header.name:
        embed.set_author(name=header.name, icon_url=header.img or None)

    hits_label = get_localized_string("SR5.Hits", language)
    embed.description = f"**{hits_label}: {outcome.total}**"
    embed.add_field(name=get_localized_string("SR5.DicePool", language), value=str(template_data.dice_pool), inline=True)
    if template_data.limit is not None and template_data.limit.value:
        limit_text = str(template_data.limit.value)
        if template_data.limit.label:
            limit_text += f" ({get_localized_string(template_data.limit.label, language)})"
        embed.add_field(name=get_localized_string("SR5.Limit", language), value=limit_text, inline=True)
    embed.add_field(name="Formula", value=f"`{outcome.formula}`", inline=True)
    embed.add_field(name="Dice", value=format_dice(outcome.dice)[:EMBED_FIELD_LIMIT], inline=False)
    embed.add_field(name="Modifiers", value=format_parts(template_data.parts, language)[:EMBED_FIELD_LIMIT], inline=False)

    extras = template_data.model_extra or {}
    tests = extras.get("tests")
    if tests:
        embed.add_field(name="Tests", value="\n".join(t.get("label", "") for t in tests)[:EMBED_FIELD_LIMIT], inline=False)
    if template_data.token_id:
        embed.set_footer(text=f"Token {template_data.token_id}")
    return {"embed": embed}


class ChatService:
    """
    Publishes roll results and roll warnings to a chat channel.
    """

    def __init__(self, send_callback: Callable[..., Awaitable[Any]], language: str = "en"):
        """
        Args:
            send_callback: An awaitable send function (e.g., a Discord channel's or
                           interaction followup's `send`) accepting `content` and/or `embed`.
            language: Language used for labels.
        """
        self.send_callback = send_callback
        self.language = language

    async def send_roll(self, outcome: RollOutcome) -> None:
        try:
            chat_data = create_chat_data(outcome.template_data, outcome, self.language)
            await self.send_callback(**chat_data)
            logger.info(f"ChatService: sent roll '{outcome.template_data.test_name}' ({outcome.formula} -> {outcome.total} hits).")
        except discord.DiscordException as e:
            logger.error(f"ChatService: Failed to send roll message for {outcome.formula}: {e}", exc_info=True)

    async def send_default_roll_card(self, outcome: RollOutcome, speaker: Optional[str] = None, flavor: Optional[str] = None) -> None:
        """Plain, un-annotated roll message: formula, faces and total."""
        faces = ", ".join(str(face) for face in outcome.faces) or "-"
        lines = []
        if speaker:
            lines.append(f"**{speaker}**")
        if flavor:
            lines.append(f"*{flavor}*")
        lines.append(f"`{outcome.formula}` = {outcome.total} ({faces})")
        try:
            await self.send_callback(content="\n".join(lines))
        except discord.DiscordException as e:
            logger.error(f"ChatService: Failed to send default roll card for {outcome.formula}: {e}", exc_info=True)

    async def notify_error(self, key: str, **kwargs: Any) -> None:
        message = get_localized_string(key, self.language, **kwargs)
        logger.warning(f"ChatService: notifying user: {message}")
        try:
            await self.send_callback(content=f"⚠️ {message}")
        except discord.DiscordException as e:
            logger.error(f"ChatService: Failed to send notification '{key}': {e}", exc_info=True)
