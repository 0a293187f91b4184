"""
Test fixtures and sample data for Quiz Presenter tests.
"""
import asyncio
from typing import Any, Callable, List, Optional
from unittest.mock import AsyncMock, Mock

import discord

from quiz_presenter.config_manager import ConfigManager
from quiz_presenter.data_manager import QUESTIONS, QUIZZES, JsonDataStore
from quiz_presenter.models import ImageUpload, Question, QuestionDraft
from quiz_presenter.quiz_engine import TickHandle, TickScheduler

# Smallest valid PNG header; enough for content-type checks
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class TestFixtures:
    """Centralized test fixtures for all test modules."""

    @staticmethod
    def create_sample_questions(timers: Optional[List[int]] = None) -> List[Question]:
        """Create ordered questions, one per timer value."""
        timers = timers or [5, 10, 5]
        subjects = ["2+2", "the capital of France", "the colour of the sky", "5*5", "the largest planet"]
        return [
            Question(
                text=f"What is {subjects[index % len(subjects)]}?",
                options=["A", "B", "C", "D"],
                correct_index=index % 4,
                timer_seconds=timer,
                order_number=index + 1,
                id=f"q{index + 1}",
                quiz_id="quiz-1"
            )
            for index, timer in enumerate(timers)
        ]

    @staticmethod
    def create_sample_drafts(count: int = 3) -> List[QuestionDraft]:
        return [
            QuestionDraft(
                text=f"Question number {number}?",
                options=["Yes", "No", "Maybe"],
                correct_index=number % 3,
                timer_seconds=10 * number
            )
            for number in range(1, count + 1)
        ]

    @staticmethod
    def create_image_upload(filename: str = "photo.png", content_type: Optional[str] = "image/png",
                            size: Optional[int] = None) -> ImageUpload:
        data = PNG_BYTES if size is None else b"\x00" * size
        return ImageUpload(filename=filename, content_type=content_type, data=data)

    @staticmethod
    def create_config_manager(data_directory: str, **overrides) -> ConfigManager:
        """ConfigManager on the JSON backend rooted at ``data_directory``."""
        config = {
            "backend": {"type": "json", "data_directory": data_directory},
            "auth": {"linked_accounts": {"67890": "admin@example.com"}},
        }
        config.update(overrides)
        manager = ConfigManager()
        manager.apply_config(config)
        return manager

    @staticmethod
    def seed_published_quiz(store: JsonDataStore, title: str = "General Knowledge",
                            timers: Optional[List[int]] = None, status: str = "published") -> str:
        """Insert a quiz and its questions directly into the store; returns the quiz id."""
        quiz = store.insert(QUIZZES, {
            "title": title,
            "description": "Seeded for tests",
            "status": status,
            "created_by": "67890"
        })
        for question in TestFixtures.create_sample_questions(timers):
            store.insert(QUESTIONS, {
                "quiz_id": quiz["id"],
                "question_text": question.text,
                "options": question.options,
                "correct_index": question.correct_index,
                "timer_seconds": question.timer_seconds,
                "order_number": question.order_number,
                "starred": False,
                "image_url": None
            })
        return quiz["id"]


class FakeTickScheduler(TickScheduler):
    """Records scheduled tick sources and fires them on demand."""

    def __init__(self):
        self.handles: List[TickHandle] = []
        self.callbacks: List[Callable[[], Any]] = []
        self.cancelled: List[TickHandle] = []

    def schedule(self, callback: Callable[[], Any], owner: str = "presentation") -> TickHandle:
        handle = TickHandle(owner, 1.0)
        self.handles.append(handle)
        self.callbacks.append(callback)
        return handle

    def cancel(self, handle: TickHandle) -> None:
        handle.active = False
        self.cancelled.append(handle)

    @property
    def latest(self) -> Optional[TickHandle]:
        return self.handles[-1] if self.handles else None

    def fire(self, handle: Optional[TickHandle] = None, times: int = 1) -> List[Any]:
        """Deliver ``times`` ticks from ``handle`` (the latest by default) while it stays active."""
        handle = handle or self.latest
        callback = self.callbacks[self.handles.index(handle)]
        results = []
        for _ in range(times):
            if not handle.active:
                break
            handle.ticks_delivered += 1
            results.append(callback())
        return results

    def fire_unchecked(self, handle: TickHandle) -> Any:
        """Deliver a tick even if the handle was cancelled, like a late timer callback."""
        return self.callbacks[self.handles.index(handle)]()


class MockDiscordObjects:
    """Mock Discord objects for testing bot functionality."""

    @staticmethod
    def create_mock_interaction(channel_id: int = 12345, user_id: int = 67890) -> Mock:
        """Create mock Discord interaction."""
        interaction = Mock(spec=discord.Interaction)
        interaction.channel_id = channel_id
        interaction.user = Mock()
        interaction.user.id = user_id
        interaction.response = Mock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()
        interaction.response.edit_message = AsyncMock()
        interaction.followup = Mock()
        interaction.followup.send = AsyncMock()
        interaction.original_response = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        interaction.channel = Mock()
        interaction.channel.fetch_message = AsyncMock(return_value=MockDiscordObjects.create_mock_message())
        return interaction

    @staticmethod
    def create_mock_message(message_id: int = 11111) -> Mock:
        """Create mock Discord message."""
        message = Mock(spec=discord.Message)
        message.id = message_id
        message.edit = AsyncMock()
        message.delete = AsyncMock()
        return message

    @staticmethod
    def create_mock_attachment(filename: str = "photo.png", content_type: str = "image/png",
                               data: bytes = PNG_BYTES) -> Mock:
        attachment = Mock(spec=discord.Attachment)
        attachment.filename = filename
        attachment.content_type = content_type
        attachment.size = len(data)
        attachment.read = AsyncMock(return_value=data)
        return attachment


def sent_embed(send_mock: AsyncMock) -> discord.Embed:
    """The embed passed to the last call of a send/edit mock."""
    call_args = send_mock.call_args
    return call_args.kwargs.get('embed') if call_args.kwargs.get('embed') is not None else call_args.args[0]


def async_test(coro):
    """Decorator to run async test methods."""
    def wrapper(self):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(coro(self))
        finally:
            loop.run_until_complete(loop.shutdown_default_executor())
            loop.close()
            asyncio.set_event_loop(None)
    wrapper.__name__ = coro.__name__
    wrapper.__doc__ = coro.__doc__
    return wrapper
