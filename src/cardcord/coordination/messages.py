"""Message bodies posted by the coordination lifecycle."""

from __future__ import annotations

from typing import Optional

from cardcord.datatypes.discord_datatypes import UserID


def kickoff_message(display_name: str, days_until: int) -> str:
    when = "today" if days_until <= 0 else ("tomorrow" if days_until == 1 else f"in **{days_until} days**")
    return (
        "🎉 **Birthday Card Coordination Started!**\n\n"
        f"We're planning a surprise birthday card for **{display_name}**!\n"
        f"🗓️ Their birthday is {when}.\n\n"
        "**What happens next:**\n"
        "1. 🎨 Pick a card design together in this channel\n"
        "2. ✍️ Sign the card once the link is shared here\n"
        "3. 🎂 The card is revealed on their birthday!\n\n"
        f"**Important:** Keep this channel secret from **{display_name}**! 🤫\n"
        "This channel will be automatically deleted after the card is revealed."
    )


def reminder_message(display_name: str, days_left: int) -> str:
    days = "1 day" if days_left == 1 else f"{days_left} days"
    return (
        f"⏰ **Reminder:** {display_name}'s birthday is in **{days}**!\n"
        "If you haven't signed the card yet, now is the time. ✍️"
    )


def celebration_message(subject_id: UserID, card_url: Optional[str] = None) -> str:
    lines = [
        f"🎉 **SURPRISE <@{subject_id}>!** 🎉\n",
        "🎂 **Happy Birthday!!!** 🎂\n",
        "Your friends have been secretly working on a special birthday card for you!",
    ]
    if card_url:
        lines.append(f"[View your birthday card here]({card_url})")
    lines.append("\nHope your day is absolutely wonderful! 🌟")
    return "\n".join(lines)
