"""Habit tracking RPG engine and Discord bot."""

__version__ = "0.1.0"
