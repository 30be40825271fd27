from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..catalog import ARCHETYPES
from ..models import STAT_KEYS
from ..progression import daily_xp_cap
from .base import HabitCog, make_embed

ARCHETYPE_CHOICES = [
    app_commands.Choice(name=archetype.name, value=archetype.id)
    for archetype in ARCHETYPES.values()
]


def _progress_bar(current: int, total: int, width: int = 12) -> str:
    if total <= 0:
        return "▱" * width
    filled = min(width, max(0, round(width * current / total)))
    return "▰" * filled + "▱" * (width - filled)


class CharacterCog(HabitCog):
    @app_commands.command(name="profile", description="Show your character sheet")
    async def profile(self, interaction: discord.Interaction) -> None:
        session = await self.session_for(interaction)
        state = session.store.state
        character = state.character
        archetype = ARCHETYPES.get(character.archetype_id) if character.archetype_id else None
        title = f"{character.name} · Level {character.level}"
        if archetype is not None:
            title += f" {archetype.name}"
        embed = make_embed(
            title,
            (
                f"XP {character.xp}/{character.xp_to_next_level} "
                f"{_progress_bar(character.xp, character.xp_to_next_level)}\n"
                f"Energy {character.energy}/{character.max_energy} · Morale {character.morale}\n"
                f"Daily XP cap {daily_xp_cap(character.level)}"
            ),
        )
        embed.add_field(
            name="Stats",
            value="\n".join(f"{key.value} {character.stats.get(key):g}" for key in STAT_KEYS),
        )
        streak = state.streak
        embed.add_field(
            name="Streak",
            value=(
                f"Current {streak.current_streak} · Best {streak.longest_streak}\n"
                f"Grace tokens {streak.grace_tokens}/{streak.max_grace_tokens}\n"
                f"Shields {streak.streak_shields}"
            ),
        )
        boss = state.boss.current_boss
        if boss is not None:
            status = "defeated" if boss.is_defeated else f"{boss.current_health}/{boss.max_health} HP"
            weakness = f" · weak to {boss.weakness.value}" if boss.weakness else ""
            embed.add_field(
                name=f"Week {state.season.current_week} boss",
                value=f"{boss.name}: {status}{weakness}",
                inline=False,
            )
        embed.set_footer(
            text=f"Gold {state.inventory.gold} · Essence {state.inventory.essence_shards}"
        )
        await self.respond(interaction, session, embed=embed)

    @app_commands.command(name="archetype", description="Choose your archetype (permanent)")
    @app_commands.describe(archetype="Specialisation to adopt")
    @app_commands.choices(archetype=ARCHETYPE_CHOICES)
    async def archetype(
        self, interaction: discord.Interaction, archetype: app_commands.Choice[str]
    ) -> None:
        await self.run_action(interaction, lambda store: store.set_archetype(archetype.value))

    @app_commands.command(name="rename", description="Rename your character")
    async def rename(self, interaction: discord.Interaction, name: str) -> None:
        await self.run_action(interaction, lambda store: store.set_character_name(name))

    @app_commands.command(name="settings", description="Change your timezone, day start or notifications")
    @app_commands.describe(
        timezone="IANA zone name such as Europe/Berlin",
        day_start_hour="Hour (0-23) at which your game day begins",
        notifications="Show reminders and alerts with command replies",
    )
    async def settings(
        self,
        interaction: discord.Interaction,
        timezone: Optional[str] = None,
        day_start_hour: Optional[app_commands.Range[int, 0, 23]] = None,
        notifications: Optional[bool] = None,
    ) -> None:
        await self.run_action(
            interaction,
            lambda store: store.update_settings(
                timezone=timezone,
                day_start_hour=day_start_hour,
                notifications=notifications,
            ),
        )

    @app_commands.command(name="history", description="Show your most recent game events")
    async def history(self, interaction: discord.Interaction, count: app_commands.Range[int, 1, 25] = 10) -> None:
        session = await self.session_for(interaction)
        events = session.store.state.events[-count:]
        if not events:
            await self.respond(interaction, session, content="Nothing has happened yet.")
            return
        lines = [
            f"<t:{int(event.timestamp)}:R> {event.type.replace('_', ' ')}"
            for event in reversed(events)
        ]
        await self.respond(interaction, session, embed=make_embed("Recent events", "\n".join(lines)))

    @app_commands.command(name="reset", description="Erase all progress and start over")
    @app_commands.describe(confirm="Type RESET to confirm")
    async def reset(self, interaction: discord.Interaction, confirm: str) -> None:
        if confirm != "RESET":
            await self.respond(interaction, None, content="Type RESET to confirm the reset.")
            return
        await self.run_action(interaction, lambda store: store.reset())


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(CharacterCog(bot))
