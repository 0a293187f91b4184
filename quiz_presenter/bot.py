import asyncio
import functools

import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .admin_manager import AdminManager
from .config_manager import ConfigManager, ConfigurationError
from .data_manager import DataAccessError
from .leaderboard_manager import LeaderboardManager
from .models import ImageUpload, LeaderboardEntry, QuestionDraft
from .quiz_controller import PresentationSession, QuizController
from .quiz_manager import QuizManager
from .views import (
    PresentationView,
    build_leaderboard_embed,
    build_option_list,
    build_presentation_embed,
    build_quiz_embed,
    format_entry,
    summarize_quizzes,
)

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_directory: str = "logs") -> logging.Logger:
    """Set up console, file and error-file logging."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),  # File output
        ]
    )

    # Errors also go to their own file
    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


class QuizPresenterBot(commands.Bot):
    """Discord bot for managing and presenting quizzes"""

    def __init__(self, config=None):
        # Slash commands only need the guilds intent
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.quiz_manager: Optional[QuizManager] = None
        self.leaderboard_manager: Optional[LeaderboardManager] = None
        self.admin_manager: Optional[AdminManager] = None
        self.quiz_controller: Optional[QuizController] = None
        self.presentation_views: Dict[int, PresentationView] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")
            self.initialize_components()
            await self.setup_commands()
            logger.info("Bot setup completed successfully")
        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def initialize_components(self):
        """Build the managers from configuration."""
        self.config_manager = ConfigManager()
        for problem in self.config_manager.apply_config(self.app_config):
            logger.warning(f"Configuration value ignored: {problem}")

        requested_backend = (self.app_config.get('backend') or {}).get('type', ConfigManager.DEFAULT_BACKEND_TYPE)
        if requested_backend != self.config_manager.get_backend_type():
            raise ConfigurationError(
                f"Backend '{requested_backend}' is not usable with the current configuration; "
                f"refusing to start on the '{self.config_manager.get_backend_type()}' backend instead"
            )

        store = self.config_manager.create_data_store()
        self.quiz_manager = QuizManager(store, self.config_manager)
        self.leaderboard_manager = LeaderboardManager(store, self.config_manager)
        self.admin_manager = AdminManager(store)
        self.quiz_controller = QuizController(self.quiz_manager, refresh_callback=self.refresh_presentation)

    async def setup_commands(self):
        """Register all slash commands"""
        # Public commands
        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quizzes", description="List published quizzes")
        async def quizzes_command(interaction: discord.Interaction):
            await self.handle_quizzes(interaction)

        @self.tree.command(name="quiz", description="View a published quiz with its answers")
        async def quiz_command(interaction: discord.Interaction, quiz_id: str):
            await self.handle_view_quiz(interaction, quiz_id)

        @self.tree.command(name="leaderboard", description="Show the champions of each season")
        async def leaderboard_command(interaction: discord.Interaction):
            await self.handle_leaderboard(interaction)

        # Presentation commands
        @self.tree.command(name="present", description="Present a published quiz in this channel")
        async def present_command(interaction: discord.Interaction, quiz_id: Optional[str] = None):
            await self.handle_present(interaction, quiz_id)

        @self.tree.command(name="present_goto", description="Jump to a question of the running presentation")
        async def present_goto_command(interaction: discord.Interaction, number: int):
            await self.handle_present_goto(interaction, number)

        @self.tree.command(name="present_status", description="Show the state of the running presentation")
        async def present_status_command(interaction: discord.Interaction):
            await self.handle_present_status(interaction)

        @self.tree.command(name="present_stop", description="End the presentation in this channel")
        async def present_stop_command(interaction: discord.Interaction):
            await self.handle_present_stop(interaction)

        # Quiz management
        @self.tree.command(name="quiz_create", description="Create a new quiz")
        async def quiz_create_command(
            interaction: discord.Interaction, title: str, description: str = "", publish: bool = False
        ):
            await self.handle_quiz_create(interaction, title, description, publish)

        @self.tree.command(name="quiz_edit", description="Change a quiz's title, description or status")
        async def quiz_edit_command(
            interaction: discord.Interaction, quiz_id: str, title: Optional[str] = None,
            description: Optional[str] = None, publish: Optional[bool] = None
        ):
            await self.handle_quiz_edit(interaction, quiz_id, title, description, publish)

        @self.tree.command(name="question_add", description="Add a question to a quiz")
        @app_commands.describe(
            options="2 to 5 answer options separated by |",
            correct="Number of the correct option (1-5)",
            timer="Seconds on the clock (5-300)"
        )
        async def question_add_command(
            interaction: discord.Interaction, quiz_id: str, text: str, options: str, correct: int,
            timer: Optional[int] = None, starred: bool = False, image: Optional[discord.Attachment] = None
        ):
            await self.handle_question_add(interaction, quiz_id, text, options, correct, timer, starred, image)

        @self.tree.command(name="question_remove", description="Remove a question from its quiz")
        async def question_remove_command(interaction: discord.Interaction, question_id: str):
            await self.handle_question_remove(interaction, question_id)

        @self.tree.command(name="quiz_publish", description="Publish a quiz or move it back to draft")
        async def quiz_publish_command(interaction: discord.Interaction, quiz_id: str, publish: bool = True):
            await self.handle_quiz_publish(interaction, quiz_id, publish)

        @self.tree.command(name="quiz_delete", description="Delete a quiz and its questions")
        async def quiz_delete_command(interaction: discord.Interaction, quiz_id: str):
            await self.handle_quiz_delete(interaction, quiz_id)

        @self.tree.command(name="my_quizzes", description="List the quizzes you created")
        async def my_quizzes_command(interaction: discord.Interaction):
            await self.handle_my_quizzes(interaction)

        # Leaderboard management
        @self.tree.command(name="seasons", description="List leaderboard seasons")
        async def seasons_command(interaction: discord.Interaction):
            await self.handle_seasons(interaction)

        @self.tree.command(name="season_create", description="Create a leaderboard season")
        async def season_create_command(interaction: discord.Interaction, name: str):
            await self.handle_season_create(interaction, name)

        @self.tree.command(name="winners", description="List a season's winners with their ids")
        async def winners_command(interaction: discord.Interaction, season: str):
            await self.handle_winners(interaction, season)

        @self.tree.command(name="winner_add", description="Add a winner to a season")
        async def winner_add_command(
            interaction: discord.Interaction, season: str, name: str, position: int,
            score: Optional[str] = None, photo: Optional[discord.Attachment] = None
        ):
            await self.handle_winner_add(interaction, season, name, position, score, photo)

        @self.tree.command(name="winner_edit", description="Edit a season winner")
        async def winner_edit_command(
            interaction: discord.Interaction, season: str, entry_id: str, name: Optional[str] = None,
            position: Optional[int] = None, score: Optional[str] = None,
            photo: Optional[discord.Attachment] = None
        ):
            await self.handle_winner_edit(interaction, season, entry_id, name, position, score, photo)

        @self.tree.command(name="winner_remove", description="Remove a season winner")
        async def winner_remove_command(interaction: discord.Interaction, entry_id: str):
            await self.handle_winner_remove(interaction, entry_id)

        # Admin accounts
        @self.tree.command(name="admins", description="List admin accounts")
        async def admins_command(interaction: discord.Interaction):
            await self.handle_admins(interaction)

        @self.tree.command(name="admin_add", description="Grant admin access to an email address")
        async def admin_add_command(interaction: discord.Interaction, email: str):
            await self.handle_admin_add(interaction, email)

        @self.tree.command(name="admin_remove", description="Revoke an admin account")
        async def admin_remove_command(interaction: discord.Interaction, admin_id: str):
            await self.handle_admin_remove(interaction, admin_id)

        @self.tree.command(name="settings", description="Show the bot configuration and its health")
        async def settings_command(interaction: discord.Interaction):
            await self.handle_settings(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            closed = self.quiz_controller.shutdown()
            if closed:
                logger.info(f"Closed {closed} running presentations")
        for view in self.presentation_views.values():
            view.stop()
        self.presentation_views.clear()
        await super().close()

    async def run_blocking(self, func, *args, **kwargs):
        """Run a data-store call in the default executor, off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def require_admin(self, interaction: discord.Interaction) -> Optional[str]:
        """
        Resolve the caller's email and check it against the admin accounts.

        Returns:
            The admin's email, or None after telling the user access is denied
        """
        email = self.config_manager.get_linked_email(interaction.user.id)
        if email and await self.run_blocking(self.admin_manager.is_admin, email):
            return email

        logger.info(f"Access denied for user {interaction.user.id} ({email or 'no linked email'})")
        await self.send_error_response(
            interaction,
            "You are not authorized to use this command.\n"
            "Please contact an administrator if you believe this is an error.",
            "🚫 Access Denied"
        )
        return None

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        embed = discord.Embed(
            title="📖 Quiz Presenter Commands",
            description="Create quizzes, present them live and keep the seasonal leaderboard.",
            color=0x6699ff
        )
        embed.add_field(
            name="🌍 Everyone",
            value="`/quizzes` `/quiz` `/leaderboard` `/present_status`",
            inline=False
        )
        embed.add_field(
            name="🎬 Presenting (admins)",
            value="`/present` `/present_goto` `/present_stop`\nUse the buttons under the question to navigate, "
                  "start or pause the timer and reveal answers.",
            inline=False
        )
        embed.add_field(
            name="📝 Quizzes (admins)",
            value="`/quiz_create` `/quiz_edit` `/question_add` `/question_remove` `/quiz_publish` "
                  "`/quiz_delete` `/my_quizzes`",
            inline=False
        )
        embed.add_field(
            name="🏆 Leaderboard & admins (admins)",
            value="`/seasons` `/season_create` `/winners` `/winner_add` `/winner_edit` `/winner_remove` "
                  "`/admins` `/admin_add` `/admin_remove` `/settings`",
            inline=False
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def handle_quizzes(self, interaction: discord.Interaction):
        """Handle /quizzes command"""
        try:
            quizzes = await self.run_blocking(self.quiz_manager.list_published_quizzes)
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return
        await self.send_info_response(interaction, summarize_quizzes(quizzes), "📚 Published Quizzes", ephemeral=False)

    async def handle_view_quiz(self, interaction: discord.Interaction, quiz_id: str):
        """Handle /quiz command: the public, read-only quiz view"""
        try:
            quiz = await self.run_blocking(self.quiz_manager.get_published_quiz, quiz_id)
            if quiz is None:
                await self.send_error_response(interaction, "Quiz not found or not published.")
                return
            questions = await self.run_blocking(self.quiz_manager.get_questions, quiz.id)
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return

        if not questions:
            await self.send_info_response(interaction, "No questions found.", quiz.title)
            return
        await interaction.response.send_message(embed=build_quiz_embed(quiz, questions))

    async def handle_leaderboard(self, interaction: discord.Interaction):
        """Handle /leaderboard command"""
        try:
            seasons = await self.run_blocking(self.leaderboard_manager.get_public_leaderboard)
        except DataAccessError as e:
            logger.error(f"Error fetching leaderboard: {e}")
            await self.send_error_response(interaction, "Failed to load leaderboard.")
            return
        await interaction.response.send_message(embed=build_leaderboard_embed(seasons))

    async def handle_present(self, interaction: discord.Interaction, quiz_id: Optional[str] = None):
        """Handle /present command"""
        email = await self.require_admin(interaction)
        if email is None:
            return

        channel_id = interaction.channel_id
        result = await self.run_blocking(self.quiz_controller.load_quiz, channel_id, quiz_id)
        if result['success']:
            result = self.quiz_controller.open_presentation(
                channel_id, result['quiz'], result['questions'], started_by=email
            )
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Cannot Present")
            return

        session = result['session']
        state = result['state']
        view = PresentationView(channel_id, self.handle_presentation_control).sync(state)
        self.presentation_views[channel_id] = view

        try:
            await interaction.response.send_message(embed=build_presentation_embed(session.quiz, state), view=view)
            original = await interaction.original_response()
            # Interaction tokens expire after 15 minutes; edit through the channel instead
            message = await interaction.channel.fetch_message(original.id)
        except discord.HTTPException as e:
            logger.error(f"Failed to post presentation in channel {channel_id}: {e}")
            self.quiz_controller.stop_presentation(channel_id)
            self.presentation_views.pop(channel_id, None)
            view.stop()
            return
        self.quiz_controller.attach_message(channel_id, message)

    async def handle_presentation_control(self, interaction: discord.Interaction, action: str):
        """Handle the buttons under a presentation message"""
        if await self.require_admin(interaction) is None:
            return

        channel_id = interaction.channel_id
        if action == "previous":
            result = self.quiz_controller.previous_question(channel_id)
        elif action == "next":
            result = self.quiz_controller.next_question(channel_id)
        elif action == "toggle":
            result = self.quiz_controller.toggle_run(channel_id)
        elif action.startswith("mode:"):
            result = self.quiz_controller.set_mode(channel_id, action.split(":", 1)[1])
        else:
            logger.warning(f"Unknown presentation action {action!r}")
            return

        if not result['success']:
            await self.send_error_response(interaction, result['user_message'])
            return

        session = self.quiz_controller.get_session(channel_id)
        state = result['state']
        view = self.presentation_views.get(channel_id)
        try:
            await interaction.response.edit_message(
                embed=build_presentation_embed(session.quiz, state),
                view=view.sync(state) if view else None
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to update presentation in channel {channel_id}: {e}")

    async def refresh_presentation(self, session: PresentationSession):
        """Redraw a presentation after a countdown tick."""
        if session.message is None:
            return
        state = session.controller.snapshot()
        view = self.presentation_views.get(session.channel_id)
        await session.message.edit(
            embed=build_presentation_embed(session.quiz, state),
            view=view.sync(state) if view else None
        )

    async def handle_present_goto(self, interaction: discord.Interaction, number: int):
        """Handle /present_goto command"""
        if await self.require_admin(interaction) is None:
            return

        channel_id = interaction.channel_id
        result = self.quiz_controller.select_question(channel_id, number)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'])
            return

        session = self.quiz_controller.get_session(channel_id)
        if session.message is not None:
            try:
                await self.refresh_presentation(session)
            except discord.HTTPException as e:
                logger.error(f"Failed to update presentation in channel {channel_id}: {e}")
        await self.send_info_response(interaction, f"Jumped to question {number}.", "⏭️ Presentation")

    async def handle_present_status(self, interaction: discord.Interaction):
        """Handle /present_status command"""
        summary = self.quiz_controller.get_session_status_summary(interaction.channel_id)
        await self.send_info_response(interaction, summary, "📊 Presentation Status")

    async def handle_present_stop(self, interaction: discord.Interaction):
        """Handle /present_stop command"""
        if await self.require_admin(interaction) is None:
            return

        channel_id = interaction.channel_id
        result = self.quiz_controller.stop_presentation(channel_id)
        view = self.presentation_views.pop(channel_id, None)
        if view is not None:
            view.stop()

        if not result['success']:
            await self.send_info_response(interaction, result['user_message'])
            return

        session = result['session']
        if session.message is not None:
            try:
                await session.message.edit(view=None)
            except discord.HTTPException as e:
                logger.warning(f"Could not remove presentation controls in channel {channel_id}: {e}")
        await self.send_info_response(interaction, result['user_message'], "⏹️ Presentation Ended", ephemeral=False)

    async def handle_quiz_create(self, interaction: discord.Interaction, title: str, description: str = "", publish: bool = False):
        """Handle /quiz_create command"""
        if await self.require_admin(interaction) is None:
            return

        result = await self.run_blocking(
            self.quiz_manager.create_quiz, title, description, str(interaction.user.id), [], publish
        )
        await self.send_result(interaction, result)

    async def handle_quiz_edit(
        self,
        interaction: discord.Interaction,
        quiz_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        publish: Optional[bool] = None
    ):
        """Handle /quiz_edit command"""
        if await self.require_admin(interaction) is None:
            return

        try:
            quiz = await self.run_blocking(self.quiz_manager.get_quiz, quiz_id)
            if quiz is None:
                await self.send_error_response(interaction, "Quiz not found.")
                return
            questions = await self.run_blocking(self.quiz_manager.get_questions, quiz_id)
            drafts = [
                QuestionDraft(
                    id=question.id,
                    text=question.text,
                    options=list(question.options),
                    correct_index=question.correct_index,
                    timer_seconds=question.timer_seconds,
                    starred=question.starred,
                    image_url=question.image_url
                )
                for question in questions
            ]
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return

        result = await self.run_blocking(
            self.quiz_manager.update_quiz,
            quiz_id,
            title if title is not None else quiz.title,
            description if description is not None else quiz.description,
            drafts,
            publish=quiz.is_published if publish is None else publish,
            editor_id=str(interaction.user.id)
        )
        await self.send_result(interaction, result)

    async def handle_question_add(
        self,
        interaction: discord.Interaction,
        quiz_id: str,
        text: str,
        options: str,
        correct: int,
        timer: Optional[int] = None,
        starred: bool = False,
        image: Optional[discord.Attachment] = None
    ):
        """Handle /question_add command"""
        if await self.require_admin(interaction) is None:
            return

        draft = self.quiz_manager.new_draft(
            text,
            build_option_list(options),
            correct_index=correct - 1,
            starred=starred
        )
        if timer is not None:
            draft.timer_seconds = timer
        if image is not None:
            draft.image = await self.read_attachment(image)

        result = await self.run_blocking(
            self.quiz_manager.add_question, quiz_id, draft, editor_id=str(interaction.user.id)
        )
        await self.send_result(interaction, result)

    async def handle_question_remove(self, interaction: discord.Interaction, question_id: str):
        """Handle /question_remove command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(self.quiz_manager.remove_question, question_id)
        await self.send_result(interaction, result)

    async def handle_quiz_publish(self, interaction: discord.Interaction, quiz_id: str, publish: bool = True):
        """Handle /quiz_publish command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(
            self.quiz_manager.set_status, quiz_id, publish, editor_id=str(interaction.user.id)
        )
        await self.send_result(interaction, result)

    async def handle_quiz_delete(self, interaction: discord.Interaction, quiz_id: str):
        """Handle /quiz_delete command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(self.quiz_manager.delete_quiz, quiz_id, editor_id=str(interaction.user.id))
        await self.send_result(interaction, result)

    async def handle_my_quizzes(self, interaction: discord.Interaction):
        """Handle /my_quizzes command"""
        if await self.require_admin(interaction) is None:
            return
        try:
            quizzes = await self.run_blocking(self.quiz_manager.list_quizzes_for_owner, str(interaction.user.id))
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return
        await self.send_info_response(interaction, summarize_quizzes(quizzes, show_status=True), "📝 Your Quizzes")

    async def handle_seasons(self, interaction: discord.Interaction):
        """Handle /seasons command"""
        if await self.require_admin(interaction) is None:
            return
        try:
            seasons = await self.run_blocking(self.leaderboard_manager.list_seasons)
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return
        text = "\n".join(f"• {season.name}" for season in seasons) or "No seasons yet."
        await self.send_info_response(interaction, text, "🗓️ Seasons")

    async def handle_season_create(self, interaction: discord.Interaction, name: str):
        """Handle /season_create command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(self.leaderboard_manager.create_season, name)
        await self.send_result(interaction, result)

    async def handle_winners(self, interaction: discord.Interaction, season: str):
        """Handle /winners command"""
        if await self.require_admin(interaction) is None:
            return
        try:
            entries = await self.run_blocking(self.leaderboard_manager.get_entries, season)
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return
        text = "\n".join(format_entry(entry, show_id=True) for entry in entries) or "No winners found."
        await self.send_info_response(interaction, text, f"🏆 {season}")

    async def handle_winner_add(
        self,
        interaction: discord.Interaction,
        season: str,
        name: str,
        position: int,
        score: Optional[str] = None,
        photo: Optional[discord.Attachment] = None
    ):
        """Handle /winner_add command"""
        if await self.require_admin(interaction) is None:
            return

        try:
            seasons = await self.run_blocking(self.leaderboard_manager.list_seasons)
            if not any(existing.name == season for existing in seasons):
                await self.send_error_response(interaction, f"Season '{season}' does not exist.")
                return
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return

        entry = LeaderboardEntry(season=season, winner_name=name, position=position, score=score)
        if photo is not None:
            entry.photo = await self.read_attachment(photo)
        result = await self.run_blocking(self.leaderboard_manager.add_entry, entry)
        await self.send_result(interaction, result)

    async def handle_winner_edit(
        self,
        interaction: discord.Interaction,
        season: str,
        entry_id: str,
        name: Optional[str] = None,
        position: Optional[int] = None,
        score: Optional[str] = None,
        photo: Optional[discord.Attachment] = None
    ):
        """Handle /winner_edit command"""
        if await self.require_admin(interaction) is None:
            return

        try:
            entries = await self.run_blocking(self.leaderboard_manager.get_entries, season)
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return
        entry = next((existing for existing in entries if existing.id == entry_id), None)
        if entry is None:
            await self.send_error_response(interaction, "Winner not found.")
            return

        if name is not None:
            entry.winner_name = name
        if position is not None:
            entry.position = position
        if score is not None:
            entry.score = score
        if photo is not None:
            entry.photo = await self.read_attachment(photo)

        result = await self.run_blocking(self.leaderboard_manager.save_entries, season, [entry])
        await self.send_result(interaction, result)

    async def handle_winner_remove(self, interaction: discord.Interaction, entry_id: str):
        """Handle /winner_remove command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(self.leaderboard_manager.remove_entry, entry_id)
        await self.send_result(interaction, result)

    async def handle_admins(self, interaction: discord.Interaction):
        """Handle /admins command"""
        if await self.require_admin(interaction) is None:
            return
        try:
            admins = await self.run_blocking(self.admin_manager.list_admins)
        except DataAccessError as e:
            await self.send_error_response(interaction, str(e))
            return
        text = "\n".join(f"• {admin.email} `{admin.id}`" for admin in admins) or "No admins found."
        await self.send_info_response(interaction, text, "🛡️ Admins")

    async def handle_admin_add(self, interaction: discord.Interaction, email: str):
        """Handle /admin_add command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(self.admin_manager.add_admin, email)
        await self.send_result(interaction, result)

    async def handle_admin_remove(self, interaction: discord.Interaction, admin_id: str):
        """Handle /admin_remove command"""
        if await self.require_admin(interaction) is None:
            return
        result = await self.run_blocking(self.admin_manager.remove_admin, admin_id)
        await self.send_result(interaction, result)

    async def handle_settings(self, interaction: discord.Interaction):
        """Handle /settings command"""
        if await self.require_admin(interaction) is None:
            return

        health = self.config_manager.get_configuration_health_check()
        embed = discord.Embed(
            title="⚙️ Settings",
            description=self.config_manager.get_settings_summary(),
            color=0x00ff00 if health['healthy'] else 0xff0000
        )
        if health['errors']:
            embed.add_field(name="Errors", value="\n".join(health['errors'])[:1024], inline=False)
        if health['warnings']:
            embed.add_field(name="Warnings", value="\n".join(health['warnings'])[:1024], inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def read_attachment(self, attachment: discord.Attachment) -> ImageUpload:
        """Download a slash-command attachment for upload."""
        return ImageUpload(
            filename=attachment.filename,
            content_type=attachment.content_type,
            data=await attachment.read()
        )

    async def send_result(self, interaction: discord.Interaction, result: Dict[str, Any]):
        """Reply with a manager result: success as info, failure verbatim as an error."""
        if result['success']:
            await self.send_info_response(interaction, result['user_message'], f"✅ {result.get('message', 'Done')}")
        else:
            title = result.get('title', 'Error')
            await self.send_error_response(interaction, result['error'], f"❌ {title}")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(
        self,
        interaction: discord.Interaction,
        message: str,
        title: str = "ℹ️ Information",
        ephemeral: bool = True
    ):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=ephemeral)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=ephemeral)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizPresenterBot(config)

    try:
        logger.info("Starting Quiz Presenter bot...")
        await bot.start(token)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
