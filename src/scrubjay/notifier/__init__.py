"""Notifier implementations."""

from scrubjay.notifier.console import ConsoleNotifier
from scrubjay.notifier.discord import DiscordNotifier

__all__ = ["ConsoleNotifier", "DiscordNotifier"]
