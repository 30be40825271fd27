from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..catalog import (
    CONSUMABLES,
    EQUIPMENT,
    ITEM_ENERGY_POTION,
    ITEM_MORALE_BOOST,
    ITEM_REPAIR_KIT_ADVANCED,
    ITEM_REPAIR_KIT_BASIC,
    RECIPES,
    RELIC_NAMES,
    SHOP_LISTINGS,
    repair_cost,
)
from .base import HabitCog, make_embed

RECIPE_CHOICES = [
    app_commands.Choice(name=f"{recipe.name} ({recipe.gold_cost}g)", value=recipe.id)
    for recipe in RECIPES.values()
]
USABLE_CHOICES = [
    app_commands.Choice(name=CONSUMABLES[item_id].name, value=item_id)
    for item_id in (ITEM_ENERGY_POTION, ITEM_MORALE_BOOST)
]
KIT_CHOICES = [
    app_commands.Choice(name=CONSUMABLES[item_id].name, value=item_id)
    for item_id in (ITEM_REPAIR_KIT_BASIC, ITEM_REPAIR_KIT_ADVANCED)
]


def _item_name(item_id: str) -> str:
    if item_id in EQUIPMENT:
        return EQUIPMENT[item_id].name
    if item_id in CONSUMABLES:
        return CONSUMABLES[item_id].name
    return item_id


class EconomyCog(HabitCog):
    async def _owned_equipment_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        session = self.sessions.peek(interaction.user.id)
        if session is None:
            return []
        search = current.strip().lower()
        choices: list[app_commands.Choice[str]] = []
        for item in session.store.state.inventory.equipment:
            label = f"{_item_name(item.item_id)} ({item.durability:g})"
            if search and search not in label.lower():
                continue
            choices.append(app_commands.Choice(name=label[:100], value=item.id))
        return choices[:25]

    @app_commands.command(name="shop", description="Browse the shop")
    async def shop(self, interaction: discord.Interaction) -> None:
        session = await self.session_for(interaction)
        level = session.store.state.character.level
        lines = []
        for item_id, listing in SHOP_LISTINGS.items():
            locked = "" if level >= listing.level_required else f" 🔒 lvl {listing.level_required}"
            lines.append(
                f"**{_item_name(item_id)}** · {listing.price} {listing.currency}{locked} · `{item_id}`"
            )
        embed = make_embed("Shop", "\n".join(lines))
        inventory = session.store.state.inventory
        embed.set_footer(text=f"Gold {inventory.gold} · Essence {inventory.essence_shards}")
        await self.respond(interaction, session, embed=embed)

    @app_commands.command(name="buy", description="Purchase an item from the shop")
    @app_commands.describe(item="Item to buy", amount="Quantity to purchase")
    async def buy(
        self, interaction: discord.Interaction, item: str, amount: app_commands.Range[int, 1, 10] = 1
    ) -> None:
        await self.run_action(
            interaction, lambda store: store.buy_item(item, amount), not_found="That item does not exist."
        )

    @buy.autocomplete("item")
    async def buy_item_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        search = current.strip().lower()
        return [
            app_commands.Choice(name=f"{_item_name(item_id)} ({listing.price} {listing.currency})"[:100], value=item_id)
            for item_id, listing in SHOP_LISTINGS.items()
            if not search or search in _item_name(item_id).lower()
        ][:25]

    @app_commands.command(name="inventory", description="Show your items")
    async def inventory(self, interaction: discord.Interaction) -> None:
        session = await self.session_for(interaction)
        inventory = session.store.state.inventory
        embed = make_embed(
            "Inventory", f"Gold {inventory.gold} · Essence shards {inventory.essence_shards}"
        )
        if inventory.equipment:
            lines = []
            for item in inventory.equipment:
                definition = EQUIPMENT.get(item.item_id)
                maximum = definition.max_durability if definition else 0
                slot = inventory.slot_of(item.id)
                marker = f" · equipped ({slot})" if slot else ""
                broken = " · **broken**" if item.is_broken else ""
                lines.append(
                    f"{_item_name(item.item_id)} {item.durability:g}/{maximum}{marker}{broken}"
                )
            embed.add_field(name="Equipment", value="\n".join(lines), inline=False)
        if inventory.consumables:
            embed.add_field(
                name="Consumables",
                value="\n".join(
                    f"{_item_name(item_id)} ×{count}"
                    for item_id, count in sorted(inventory.consumables.items())
                ),
                inline=False,
            )
        if inventory.relics:
            embed.add_field(
                name="Relics",
                value="\n".join(RELIC_NAMES.get(relic.id, relic.name) for relic in inventory.relics),
                inline=False,
            )
        await self.respond(interaction, session, embed=embed)

    @app_commands.command(name="equip", description="Equip an item you own")
    @app_commands.describe(item="Equipment to wear")
    async def equip(self, interaction: discord.Interaction, item: str) -> None:
        await self.run_action(
            interaction, lambda store: store.equip_item(item), not_found="You do not own that item."
        )

    @equip.autocomplete("item")
    async def equip_item_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return await self._owned_equipment_autocomplete(interaction, current)

    @app_commands.command(name="repair", description="Repair worn equipment with gold or a kit")
    @app_commands.describe(item="Equipment to repair", kit="Repair kit to use instead of gold")
    @app_commands.choices(kit=KIT_CHOICES)
    async def repair(
        self,
        interaction: discord.Interaction,
        item: str,
        kit: Optional[app_commands.Choice[str]] = None,
    ) -> None:
        await self.run_action(
            interaction,
            lambda store: store.repair_item(item, use_kit=kit.value if kit else None),
            not_found="You do not own that item.",
        )

    @repair.autocomplete("item")
    async def repair_item_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        session = self.sessions.peek(interaction.user.id)
        if session is None:
            return []
        choices = await self._owned_equipment_autocomplete(interaction, current)
        costs = []
        for choice in choices:
            owned = session.store.state.inventory.find_equipment(choice.value)
            definition = EQUIPMENT.get(owned.item_id) if owned else None
            if owned is None or definition is None:
                continue
            cost = repair_cost(definition, owned.durability)
            costs.append(app_commands.Choice(name=f"{choice.name} · {cost}g"[:100], value=choice.value))
        return costs

    @app_commands.command(name="craft", description="Craft a recipe (unlocks in week 6)")
    @app_commands.choices(recipe=RECIPE_CHOICES)
    async def craft(self, interaction: discord.Interaction, recipe: app_commands.Choice[str]) -> None:
        await self.run_action(interaction, lambda store: store.craft_item(recipe.value))

    @app_commands.command(name="use", description="Use a potion or tonic from your inventory")
    @app_commands.choices(item=USABLE_CHOICES)
    async def use(self, interaction: discord.Interaction, item: app_commands.Choice[str]) -> None:
        await self.run_action(interaction, lambda store: store.use_consumable(item.value))


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(EconomyCog(bot))
