import logging
from typing import Optional, Callable, Awaitable, Any, Dict

import discord
from discord import ButtonStyle, Interaction
from discord.ui import Button, Modal, TextInput, View

from srbot.game.exceptions import DialogClosedError
from srbot.game.rules import modifiers
from srbot.game.rules.roll_dialog import RollDialog, DialogFields
from srbot.utils.i18n_utils import get_localized_string

logger = logging.getLogger(__name__)

MODAL_TITLE_LIMIT = 45


class RollModifiersModal(Modal):
    """Text inputs for the editable dialog values."""

    def __init__(self, roll_view: "RollDialogView"):
        lang = roll_view.language
        super().__init__(title=get_localized_string("SR5.EditModifiers", lang)[:MODAL_TITLE_LIMIT])
        self.roll_view = roll_view
        fields = roll_view.fields

        self.dice_pool_input = TextInput(label=get_localized_string("SR5.DicePool", lang), default=str(fields.dice_pool or ""), required=False, max_length=6)
        self.limit_input = TextInput(label=get_localized_string("SR5.Limit", lang), default=str(fields.limit or ""), required=False, max_length=6)
        self.wounds_input = TextInput(label=get_localized_string(modifiers.WOUNDS, lang), default=str(fields.wounds or ""), required=False, max_length=6)
        self.dp_mod_input = TextInput(label=get_localized_string(modifiers.SITUATIONAL_MODIFIER, lang), default=str(fields.dp_mod or ""), required=False, max_length=6)
        self.environmental_input = TextInput(label=get_localized_string(modifiers.ENVIRONMENT_MODIFIER, lang), default=str(fields.environmental or ""), required=False, max_length=6)
        for text_input in (self.dice_pool_input, self.limit_input, self.wounds_input, self.dp_mod_input, self.environmental_input):
            self.add_item(text_input)

    async def on_submit(self, interaction: Interaction):
        self.roll_view.update_fields({
            "dice_pool": self.dice_pool_input.value,
            "limit": self.limit_input.value,
            "wounds": self.wounds_input.value,
            "dp_mod": self.dp_mod_input.value,
            "environmental": self.environmental_input.value,
        })
        await interaction.response.edit_message(content=self.roll_view.render(), view=self.roll_view)


class RollDialogView(View):
    """
    Discord rendering of a RollDialog: Roll / Push the Limit / Extended / Modifiers / Cancel.
    The dialog waits without a timeout, so the view has none either.
    """

    def __init__(self, dialog: RollDialog, owner_id: Optional[int] = None, language: str = "en"):
        super().__init__(timeout=None)
        self.dialog = dialog
        self.owner_id = owner_id
        self.language = language
        self.fields: DialogFields = dialog.default_fields()

        self.roll_button = Button(label=get_localized_string("SR5.Roll", language), style=ButtonStyle.primary)
        self.roll_button.callback = self.on_roll
        self.add_item(self.roll_button)

        self.edge_button: Optional[Button] = None
        if dialog.edge_available:
            self.edge_button = Button(
                label=get_localized_string("SR5.PushTheLimitButton", language, edge=dialog.data.edge_max),
                style=ButtonStyle.danger,
            )
            self.edge_button.callback = self.on_push_the_limit
            self.add_item(self.edge_button)

        self.extended_button = Button(label=get_localized_string("SR5.ExtendedTest", language), style=self._extended_style())
        self.extended_button.callback = self.on_toggle_extended
        self.add_item(self.extended_button)

        self.modifiers_button = Button(label=get_localized_string("SR5.EditModifiers", language), style=ButtonStyle.secondary)
        self.modifiers_button.callback = self.on_edit_modifiers
        self.add_item(self.modifiers_button)

        self.cancel_button = Button(label=get_localized_string("SR5.Cancel", language), style=ButtonStyle.secondary)
        self.cancel_button.callback = self.on_cancel
        self.add_item(self.cancel_button)

    def _extended_style(self) -> ButtonStyle:
        return ButtonStyle.success if self.fields.extended else ButtonStyle.secondary

    def update_fields(self, values: Dict[str, Any]) -> None:
        for name, value in values.items():
            if hasattr(self.fields, name):
                setattr(self.fields, name, value)

    def render(self) -> str:
        lang = self.language
        data = self.dialog.data
        title = data.title or get_localized_string("SR5.Roll", lang)
        lines = [f"**{get_localized_string('SR5.RollDialogTitle', lang, title=title, dice_pool=data.dice_pool)}**"]
        for label, value in data.parts.items():
            lines.append(f"- {get_localized_string(label, lang)}: {value}")

        fields = self.fields
        lines.append(f"{get_localized_string('SR5.DicePool', lang)}: {fields.dice_pool}")
        if fields.limit not in (None, ""):
            lines.append(f"{get_localized_string('SR5.Limit', lang)}: {fields.limit}")
        if data.wounds:
            lines.append(f"{get_localized_string(modifiers.WOUNDS, lang)}: -{fields.wounds}")
        if fields.dp_mod not in (None, "", "0"):
            lines.append(f"{get_localized_string(modifiers.SITUATIONAL_MODIFIER, lang)}: {fields.dp_mod}")
        if fields.environmental not in (None, "", "0"):
            lines.append(f"{get_localized_string(modifiers.ENVIRONMENT_MODIFIER, lang)}: -{fields.environmental}")
        if fields.extended:
            lines.append(f"*{get_localized_string('SR5.ExtendedTest', lang)}*")
        return "\n".join(lines)

    async def interaction_check(self, interaction: Interaction) -> bool:
        if self.owner_id is not None and interaction.user.id != self.owner_id:
            await interaction.response.send_message(get_localized_string("SR5.NotYourRoll", self.language), ephemeral=True)
            return False
        return True

    async def on_roll(self, interaction: Interaction):
        await self._close(interaction, lambda: self.dialog.confirm(self.fields.model_copy()), "SR5.Rolling")

    async def on_push_the_limit(self, interaction: Interaction):
        await self._close(interaction, lambda: self.dialog.confirm_with_edge(self.fields.model_copy()), "SR5.Rolling")

    async def on_cancel(self, interaction: Interaction):
        await self._close(interaction, self.dialog.cancel, "SR5.RollCancelled")

    async def on_toggle_extended(self, interaction: Interaction):
        self.fields.extended = not self.fields.extended
        self.extended_button.style = self._extended_style()
        await interaction.response.edit_message(content=self.render(), view=self)

    async def on_edit_modifiers(self, interaction: Interaction):
        await interaction.response.send_modal(RollModifiersModal(self))

    async def _close(self, interaction: Interaction, action: Callable[[], None], message_key: str):
        try:
            action()
        except DialogClosedError:
            logger.debug(f"RollDialogView: ignoring action on closed dialog '{self.dialog.data.title}'.")
            await interaction.response.send_message(get_localized_string("SR5.DialogClosed", self.language), ephemeral=True)
            return
        self.stop()
        title = self.dialog.data.title or get_localized_string("SR5.Roll", self.language)
        await interaction.response.edit_message(content=get_localized_string(message_key, self.language, title=title), view=None)


class DiscordDialogPresenter:
    """
    Sends roll dialogs as button views through `send_func` (e.g., `interaction.followup.send`).
    """

    def __init__(self, send_func: Callable[..., Awaitable[Any]], owner_id: Optional[int] = None, language: str = "en"):
        self.send_func = send_func
        self.owner_id = owner_id
        self.language = language

    async def present(self, dialog: RollDialog) -> None:
        view = RollDialogView(dialog, owner_id=self.owner_id, language=self.language)
        try:
            await self.send_func(content=view.render(), view=view)
        except discord.DiscordException as e:
            logger.error(f"DiscordDialogPresenter: could not send roll dialog '{dialog.data.title}': {e}", exc_info=True)
            view.stop()
            dialog.cancel()
