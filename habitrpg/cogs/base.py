"""Shared helpers for cogs."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

import discord
from discord.ext import commands

from ..game import ActionResult, GameStore, UnknownEntityError
from ..models import ModelValidationError
from ..notifications import Notification, Severity
from ..session import Session, SessionRegistry

log = logging.getLogger(__name__)

SEVERITY_PREFIX = {
    Severity.INFO: "•",
    Severity.SUCCESS: "✨",
    Severity.WARNING: "⚠️",
    Severity.ERROR: "❌",
}


def make_embed(title: str, description: str = "", colour: discord.Colour | None = None) -> discord.Embed:
    embed = discord.Embed(title=title, colour=colour or discord.Colour.blurple())
    cleaned = description.strip("\n")
    if cleaned:
        embed.description = cleaned
    return embed


def format_notifications(notifications: Iterable[Notification]) -> str:
    return "\n".join(
        f"{SEVERITY_PREFIX.get(item.severity, '•')} {item.message}" for item in notifications
    )


class HabitCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def sessions(self) -> SessionRegistry:
        return self.bot.sessions  # type: ignore[attr-defined,return-value]

    async def session_for(self, interaction: discord.Interaction) -> Session:
        """Load the caller's session and bring it up to the current game day."""

        user = interaction.user
        session = await self.sessions.get(user.id, user.display_name)
        session.store.run_scheduler()
        return session

    async def respond(
        self,
        interaction: discord.Interaction,
        session: Session | None,
        *,
        content: str | None = None,
        embed: discord.Embed | None = None,
        ephemeral: bool = True,
    ) -> None:
        """Reply, appending anything the store queued for this user."""

        lines = [content] if content else []
        if session is not None:
            queued = format_notifications(session.notifications.drain())
            if queued:
                lines.append(queued)
        payload: dict[str, object] = {}
        if lines:
            payload["content"] = "\n".join(lines)
        if embed is not None:
            payload["embed"] = embed
        if interaction.response.is_done():
            await interaction.followup.send(**payload, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(**payload, ephemeral=ephemeral)

    async def run_action(
        self,
        interaction: discord.Interaction,
        action: Callable[[GameStore], ActionResult],
        *,
        not_found: str = "Nothing matches that id.",
    ) -> ActionResult | None:
        session = await self.session_for(interaction)
        try:
            result = action(session.store)
        except UnknownEntityError as exc:
            log.debug("Rejected command from %s: %s", interaction.user.id, exc)
            await self.respond(interaction, session, content=f"{not_found} ({exc.entity_id})")
            return None
        except ModelValidationError as exc:
            details = exc.errors or [str(exc)]
            bullet_list = "\n".join(f"• {entry}" for entry in details)
            await self.respond(interaction, session, content=f"Unable to save:\n{bullet_list}")
            return None
        await self.respond(interaction, session, content=result.message, ephemeral=not result.success)
        return result


__all__ = ["HabitCog", "format_notifications", "make_embed"]
