"""System prompt construction."""

from datetime import datetime
from typing import Optional


def format_timestamp(now: datetime):
    """Return ("3:45 PM", "Wednesday, April 16, 2025") for ``now``."""
    hour = now.strftime("%I").lstrip("0")
    formatted_time = f"{hour}:{now:%M} {now:%p}"
    formatted_date = f"{now:%A}, {now:%B} {now.day}, {now.year}"
    return formatted_time, formatted_date


def generate_system_prompt(memory: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Build the default system prompt with the current time and optional memory context."""
    formatted_time, formatted_date = format_timestamp(now or datetime.now())

    prompt = (
        f"You are a helpful AI assistant. The current time is {formatted_time} on {formatted_date}."
        " You have access to the internet and can search for current information when needed."
    )

    if memory and memory.strip():
        prompt += (
            "\n\nHere's a summary of our previous conversation that may be relevant "
            f"to this interaction:\n{memory}"
        )

    return prompt
