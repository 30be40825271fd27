from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..models import HabitCategory, HabitWindow, QuestStatus, StatKey
from .base import HabitCog, make_embed

STATUS_ICONS = {
    QuestStatus.PENDING: "⬜",
    QuestStatus.COMPLETED: "✅",
    QuestStatus.SKIPPED: "❌",
    QuestStatus.GRACE: "🕊️",
}

CATEGORY_CHOICES = [
    app_commands.Choice(name=category.value.title(), value=category.value)
    for category in HabitCategory
]
WINDOW_CHOICES = [
    app_commands.Choice(name=window.value.title(), value=window.value) for window in HabitWindow
]
STAT_CHOICES = [app_commands.Choice(name=key.value, value=key.value) for key in StatKey]


class QuestsCog(HabitCog):
    async def _pending_quest_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        session = self.sessions.peek(interaction.user.id)
        if session is None:
            return []
        search = current.strip().lower()
        choices: list[app_commands.Choice[str]] = []
        for quest in session.store.state.quests:
            if not quest.is_pending:
                continue
            label = f"{quest.habit_title} ({quest.date})"
            if search and search not in label.lower() and search not in quest.id:
                continue
            choices.append(app_commands.Choice(name=label[:100], value=quest.id))
        return choices[:25]

    async def _habit_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        session = self.sessions.peek(interaction.user.id)
        if session is None:
            return []
        search = current.strip().lower()
        return [
            app_commands.Choice(name=habit.title[:100], value=habit.id)
            for habit in session.store.state.habits
            if not search or search in habit.title.lower()
        ][:25]

    @app_commands.command(name="quests", description="Show today's quests")
    async def quests(self, interaction: discord.Interaction) -> None:
        session = await self.session_for(interaction)
        state = session.store.state
        today = state.season.last_processed_date or ""
        quests = state.quests_for(today)
        if not quests:
            await self.respond(
                interaction,
                session,
                content="No quests today. Add a habit with /habit-add to get started.",
            )
            return
        lines = []
        for quest in sorted(quests, key=lambda item: item.habit_title.lower()):
            icon = STATUS_ICONS.get(quest.status, "•")
            reward = f"{quest.xp_reward} XP · {quest.gold_reward}g"
            lines.append(
                f"{icon} **{quest.habit_title}** · D{quest.difficulty} · "
                f"{quest.effort_minutes}m · {quest.stat_affinity.value} · {reward}"
            )
        streak = state.streak
        embed = make_embed(f"Quests for {today}", "\n".join(lines))
        embed.set_footer(
            text=(
                f"Streak {streak.current_streak} · Grace tokens {streak.grace_tokens} · "
                f"Shields {streak.streak_shields} · Energy {state.character.energy}"
            )
        )
        await self.respond(interaction, session, embed=embed)

    @app_commands.command(name="complete", description="Complete one of today's quests")
    @app_commands.describe(quest="Quest to complete", proof="Optional note or link as proof")
    async def complete(
        self, interaction: discord.Interaction, quest: str, proof: Optional[str] = None
    ) -> None:
        await self.run_action(
            interaction,
            lambda store: store.complete_quest(quest, proof=proof),
            not_found="No such quest.",
        )

    @complete.autocomplete("quest")
    async def complete_quest_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._pending_quest_autocomplete(interaction, current)

    @app_commands.command(name="skip", description="Skip a quest (costs morale)")
    @app_commands.describe(quest="Quest to skip")
    async def skip(self, interaction: discord.Interaction, quest: str) -> None:
        await self.run_action(
            interaction, lambda store: store.skip_quest(quest), not_found="No such quest."
        )

    @skip.autocomplete("quest")
    async def skip_quest_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._pending_quest_autocomplete(interaction, current)

    @app_commands.command(name="grace", description="Spend a grace token on a quest")
    @app_commands.describe(quest="Quest to cover with a grace token")
    async def grace(self, interaction: discord.Interaction, quest: str) -> None:
        await self.run_action(
            interaction, lambda store: store.use_grace_token(quest), not_found="No such quest."
        )

    @grace.autocomplete("quest")
    async def grace_quest_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._pending_quest_autocomplete(interaction, current)

    @app_commands.command(
        name="rest", description="Take a recovery day; today's misses are forgiven"
    )
    async def rest(self, interaction: discord.Interaction) -> None:
        await self.run_action(interaction, lambda store: store.trigger_recovery_day())

    @app_commands.command(name="habits", description="List your habits")
    async def habits(self, interaction: discord.Interaction) -> None:
        session = await self.session_for(interaction)
        habits = session.store.state.habits
        if not habits:
            await self.respond(interaction, session, content="You have no habits yet.")
            return
        lines = []
        for habit in habits:
            paused = "" if habit.is_active else " *(paused)*"
            lines.append(
                f"**{habit.title}**{paused} · {habit.category.value} · D{habit.difficulty} · "
                f"{habit.effort_minutes}m · {habit.stat_affinity.value} · `{habit.id}`"
            )
        await self.respond(interaction, session, embed=make_embed("Habits", "\n".join(lines)))

    @app_commands.command(name="habit-add", description="Create a new daily habit")
    @app_commands.describe(
        title="What you want to do each day",
        category="Kind of habit; sets the default stat",
        difficulty="1 (trivial) to 5 (brutal)",
        minutes="Expected effort in minutes",
        stat="Stat this habit trains",
        window="Preferred time of day",
    )
    @app_commands.choices(category=CATEGORY_CHOICES, window=WINDOW_CHOICES, stat=STAT_CHOICES)
    async def habit_add(
        self,
        interaction: discord.Interaction,
        title: str,
        category: app_commands.Choice[str],
        difficulty: app_commands.Range[int, 1, 5] = 3,
        minutes: app_commands.Range[int, 1, 600] = 15,
        stat: Optional[app_commands.Choice[str]] = None,
        window: Optional[app_commands.Choice[str]] = None,
    ) -> None:
        await self.run_action(
            interaction,
            lambda store: store.add_habit(
                title,
                category=category.value,
                difficulty=difficulty,
                effort_minutes=minutes,
                stat_affinity=stat.value if stat else None,
                window=window.value if window else HabitWindow.ANYTIME.value,
            ),
        )

    @app_commands.command(name="habit-edit", description="Change a habit; today's quest keeps its rewards")
    @app_commands.describe(
        habit="Habit to edit",
        title="New title",
        difficulty="1 (trivial) to 5 (brutal)",
        minutes="Expected effort in minutes",
        stat="Stat this habit trains",
    )
    @app_commands.choices(stat=STAT_CHOICES)
    async def habit_edit(
        self,
        interaction: discord.Interaction,
        habit: str,
        title: Optional[str] = None,
        difficulty: Optional[app_commands.Range[int, 1, 5]] = None,
        minutes: Optional[app_commands.Range[int, 1, 600]] = None,
        stat: Optional[app_commands.Choice[str]] = None,
    ) -> None:
        await self.run_action(
            interaction,
            lambda store: store.update_habit(
                habit,
                title=title,
                difficulty=difficulty,
                effort_minutes=minutes,
                stat_affinity=stat.value if stat else None,
            ),
            not_found="No such habit.",
        )

    @habit_edit.autocomplete("habit")
    async def habit_edit_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._habit_autocomplete(interaction, current)

    @app_commands.command(name="habit-toggle", description="Pause or resume a habit")
    @app_commands.describe(habit="Habit to pause or resume")
    async def habit_toggle(self, interaction: discord.Interaction, habit: str) -> None:
        await self.run_action(
            interaction, lambda store: store.toggle_habit(habit), not_found="No such habit."
        )

    @habit_toggle.autocomplete("habit")
    async def habit_toggle_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._habit_autocomplete(interaction, current)

    @app_commands.command(name="habit-remove", description="Delete a habit")
    @app_commands.describe(habit="Habit to delete")
    async def habit_remove(self, interaction: discord.Interaction, habit: str) -> None:
        await self.run_action(
            interaction, lambda store: store.remove_habit(habit), not_found="No such habit."
        )

    @habit_remove.autocomplete("habit")
    async def habit_remove_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._habit_autocomplete(interaction, current)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(QuestsCog(bot))
