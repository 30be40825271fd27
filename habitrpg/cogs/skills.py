from __future__ import annotations

from itertools import groupby

import discord
from discord import app_commands
from discord.ext import commands

from ..catalog import SKILL_NODES
from .base import HabitCog, make_embed


class SkillsCog(HabitCog):
    @app_commands.command(name="skills", description="Show the skill tree")
    async def skills(self, interaction: discord.Interaction) -> None:
        session = await self.session_for(interaction)
        state = session.store.state
        tree = state.skill_tree
        embed = make_embed(
            "Skill tree", f"Essence shards: {state.inventory.essence_shards}"
        )
        nodes = sorted(SKILL_NODES.values(), key=lambda node: (node.branch, node.tier, node.id))
        for branch, members in groupby(nodes, key=lambda node: node.branch):
            lines = []
            for node in members:
                if tree.is_unlocked(node.id):
                    marker = "✅"
                elif all(tree.is_unlocked(prereq) for prereq in node.prerequisite_ids):
                    marker = "🔓"
                else:
                    marker = "🔒"
                gates = []
                if node.level_required > 1:
                    gates.append(f"lvl {node.level_required}")
                if node.week_unlock > 1:
                    gates.append(f"week {node.week_unlock}")
                gate_text = f" ({', '.join(gates)})" if gates else ""
                lines.append(
                    f"{marker} **{node.name}** · {node.cost} shards{gate_text}\n"
                    f"  {node.effect} · `{node.id}`"
                )
            embed.add_field(name=branch.title(), value="\n".join(lines), inline=False)
        await self.respond(interaction, session, embed=embed)

    @app_commands.command(name="unlock", description="Spend essence shards on a skill")
    @app_commands.describe(skill="Skill to unlock")
    async def unlock(self, interaction: discord.Interaction, skill: str) -> None:
        await self.run_action(
            interaction, lambda store: store.unlock_skill(skill), not_found="No such skill."
        )

    @unlock.autocomplete("skill")
    async def unlock_skill_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        session = self.sessions.peek(interaction.user.id)
        unlocked = set(session.store.state.skill_tree.unlocked_skill_ids) if session else set()
        search = current.strip().lower()
        return [
            app_commands.Choice(name=f"{node.name} ({node.cost} shards)"[:100], value=node.id)
            for node in SKILL_NODES.values()
            if node.id not in unlocked and (not search or search in node.name.lower())
        ][:25]


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(SkillsCog(bot))
