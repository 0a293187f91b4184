"""
Discord rendering for presentations, public quiz views and the leaderboard.
"""
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, List

import discord

from .models import DisplayMode, LeaderboardEntry, PresentationState, Question, Quiz

logger = logging.getLogger(__name__)

OPTION_MARKERS = ["🇦", "🇧", "🇨", "🇩", "🇪"]
MAX_EMBED_FIELDS = 25
MAX_FIELD_VALUE = 1024


def _truncate(text: str, limit: int = MAX_FIELD_VALUE) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def _timer_colour(remaining: int) -> int:
    return 0x00ff00 if remaining > 3 else 0xff6600 if remaining > 1 else 0xff0000


def format_options(question: Question, reveal: bool) -> str:
    """One line per option; the correct one is marked when ``reveal`` is set."""
    lines = []
    for index, option in enumerate(question.options):
        marker = OPTION_MARKERS[index] if index < len(OPTION_MARKERS) else f"{index + 1}."
        if reveal and index == question.correct_index:
            lines.append(f"✅ {marker} **{option}** (Correct)")
        else:
            lines.append(f"{marker} {option}")
    return "\n".join(lines) or "No options"


def build_presentation_embed(quiz: Quiz, state: PresentationState) -> discord.Embed:
    """Embed for the current question of a live presentation."""
    question = state.question
    reveal = state.mode is DisplayMode.ANSWER

    title = f"{quiz.title}: Question {state.current_index + 1} of {state.total_questions}"
    if question.starred:
        title += " ⭐"

    colour = 0x2ecc71 if reveal else _timer_colour(state.remaining_seconds)
    embed = discord.Embed(title=title, description=question.text, color=colour)
    embed.add_field(name="Options", value=_truncate(format_options(question, reveal)), inline=False)

    timer_emoji = "⏱️" if state.remaining_seconds > 3 else "⚠️" if state.remaining_seconds > 1 else "🚨"
    status = "running" if state.is_running else "paused"
    embed.add_field(name=f"{timer_emoji} Timer", value=f"{state.remaining_seconds}s ({status})", inline=True)
    embed.add_field(name="👁️ Mode", value="Answer Mode" if reveal else "Quiz Mode", inline=True)

    if question.image_url and question.image_url.startswith(("http://", "https://")):
        embed.set_image(url=question.image_url)

    if state.is_last and state.remaining_seconds == 0 and not state.is_running:
        embed.set_footer(text="🎉 That was the final question!")
    return embed


def build_quiz_embed(quiz: Quiz, questions: List[Question]) -> discord.Embed:
    """Read-only view of a published quiz with the answers marked."""
    embed = discord.Embed(title=quiz.title, description=quiz.description or None, color=0x6699ff)
    for number, question in enumerate(questions[:MAX_EMBED_FIELDS], start=1):
        name = f"Question {number}{' ⭐' if question.starred else ''}"
        value = f"{question.text}\n{format_options(question, reveal=True)}"
        embed.add_field(name=_truncate(name, 256), value=_truncate(value), inline=False)
    if len(questions) > MAX_EMBED_FIELDS:
        embed.set_footer(text=f"Showing {MAX_EMBED_FIELDS} of {len(questions)} questions")
    return embed


def format_entry(entry: LeaderboardEntry, show_id: bool = False) -> str:
    line = f"**#{entry.position}** {entry.winner_name}"
    if entry.score:
        line += f" | Score: {entry.score}"
    if show_id and entry.id:
        line += f" `{entry.id}`"
    return line


def build_leaderboard_embed(
    seasons: "OrderedDict[str, List[LeaderboardEntry]]",
    title: str = "🏆 Leaderboard",
    show_ids: bool = False
) -> discord.Embed:
    """Winners grouped by season."""
    embed = discord.Embed(title=title, description="See the champions of each season!", color=0xf1c40f)
    if not seasons:
        embed.description = "No winners found."
        return embed

    for season, entries in list(seasons.items())[:MAX_EMBED_FIELDS]:
        value = "\n".join(format_entry(entry, show_ids) for entry in entries) or "No winners found."
        embed.add_field(name=_truncate(season, 256), value=_truncate(value), inline=False)

    first_photo = next(
        (entry.winner_photo for entries in seasons.values() for entry in entries
         if entry.winner_photo and entry.winner_photo.startswith(("http://", "https://"))),
        None
    )
    if first_photo:
        embed.set_thumbnail(url=first_photo)
    return embed


ControlHandler = Callable[[discord.Interaction, str], Awaitable[None]]


class PresentationView(discord.ui.View):
    """Navigation, timer and mode buttons under a presentation message."""

    def __init__(self, channel_id: int, handler: ControlHandler):
        """
        Args:
            channel_id: Channel the presentation runs in
            handler: Coroutine called with the interaction and the action name
        """
        super().__init__(timeout=None)
        self.channel_id = channel_id
        self.handler = handler

    def sync(self, state: PresentationState) -> "PresentationView":
        """Update labels and disabled flags to match ``state``."""
        self.previous_button.disabled = state.is_first
        self.next_button.disabled = state.is_last
        self.run_button.label = "Pause" if state.is_running else "Start"
        self.run_button.style = discord.ButtonStyle.danger if state.is_running else discord.ButtonStyle.success
        self.quiz_mode_button.style = (
            discord.ButtonStyle.primary if state.mode is DisplayMode.QUIZ else discord.ButtonStyle.secondary
        )
        self.answer_mode_button.style = (
            discord.ButtonStyle.primary if state.mode is DisplayMode.ANSWER else discord.ButtonStyle.secondary
        )
        return self

    @discord.ui.button(label="Previous", style=discord.ButtonStyle.secondary, row=0)
    async def previous_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.handler(interaction, "previous")

    @discord.ui.button(label="Start", style=discord.ButtonStyle.success, row=0)
    async def run_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.handler(interaction, "toggle")

    @discord.ui.button(label="Next", style=discord.ButtonStyle.secondary, row=0)
    async def next_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.handler(interaction, "next")

    @discord.ui.button(label="Quiz Mode", style=discord.ButtonStyle.primary, row=1)
    async def quiz_mode_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.handler(interaction, "mode:quiz")

    @discord.ui.button(label="Answer Mode", style=discord.ButtonStyle.secondary, row=1)
    async def answer_mode_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.handler(interaction, "mode:answer")

    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item) -> None:
        logger.error(f"Presentation control {item} failed in channel {self.channel_id}: {error}", exc_info=error)


def build_option_list(raw: str) -> List[str]:
    """Split a ``|``-separated option string from a slash command."""
    return [part.strip() for part in raw.split("|")] if raw else []


def summarize_quizzes(quizzes: List[Quiz], show_status: bool = False) -> str:
    if not quizzes:
        return "No quizzes found."
    lines = []
    for quiz in quizzes:
        line = f"• **{quiz.title}** `{quiz.id}`"
        if show_status:
            line += f" | Status: {quiz.status.value}"
        lines.append(line)
    return _truncate("\n".join(lines), 4096)

