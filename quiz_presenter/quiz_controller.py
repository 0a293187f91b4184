"""
Presentation session controller for the Quiz Presenter bot.
Manages live quiz presentations, one per Discord channel.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .data_manager import DataAccessError
from .models import DisplayMode, Question, Quiz
from .quiz_engine import (
    AsyncioTickScheduler,
    EmptyPresentationError,
    PresentationController,
    TickScheduler,
)
from .quiz_manager import QuizManager


class SessionState(Enum):
    """Enumeration of possible presentation states."""
    INACTIVE = "inactive"
    READY = "ready"
    RUNNING = "running"
    FINISHED = "finished"


class QuizControllerError(Exception):
    """Base exception for presentation controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when a channel already has a presentation."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when operating on a channel without a presentation."""
    pass


class QuizNotAvailableError(QuizControllerError):
    """Raised when the requested quiz is missing or not published."""
    pass


@dataclass
class PresentationSession:
    """A live presentation in a Discord channel."""
    channel_id: int
    quiz: Quiz
    controller: PresentationController
    started_by: Optional[str] = None
    start_time: datetime = field(default_factory=datetime.now)
    message: Any = None


RefreshCallback = Callable[[PresentationSession], Awaitable[None]]


class QuizController:
    """
    Orchestrates presentation sessions across Discord channels.

    Questions are read once when a presentation starts; after that the
    session's PresentationController is the only source of truth. Each
    channel can have at most one presentation at a time.
    """

    def __init__(
        self,
        quiz_manager: QuizManager,
        scheduler: Optional[TickScheduler] = None,
        refresh_callback: Optional[RefreshCallback] = None
    ):
        """
        Initialize the controller.

        Args:
            quiz_manager: Source of published quizzes and their questions
            scheduler: Tick facility shared by all sessions
            refresh_callback: Awaited after every countdown tick to redraw the session
        """
        self.logger = logging.getLogger(__name__)
        self.quiz_manager = quiz_manager
        self.scheduler = scheduler or AsyncioTickScheduler()
        self.refresh_callback = refresh_callback
        self._sessions: Dict[int, PresentationSession] = {}

        self.logger.info("QuizController initialized")

    def start_presentation(
        self,
        channel_id: int,
        quiz_id: Optional[str] = None,
        started_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Load a published quiz and open a presentation in a channel.

        Args:
            channel_id: Discord channel identifier
            quiz_id: Quiz to present; the first published quiz when omitted
            started_by: Email of the admin starting the presentation

        Returns:
            Dictionary with operation results and the initial state
        """
        if self.has_session(channel_id):
            return self._handle_session_error(
                channel_id,
                SessionConflictError(f"Presentation already running in channel {channel_id}"),
                "start_presentation"
            )

        loaded = self.load_quiz(channel_id, quiz_id)
        if not loaded['success']:
            return loaded
        return self.open_presentation(channel_id, loaded['quiz'], loaded['questions'], started_by)

    def load_quiz(self, channel_id: int, quiz_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Read a published quiz and its questions from the store.

        Only touches the store, so it can run outside the event loop.

        Returns:
            Dictionary with the quiz and its questions, or the error result
        """
        try:
            if quiz_id:
                quiz = self.quiz_manager.get_published_quiz(quiz_id)
            else:
                quiz = self.quiz_manager.get_first_published_quiz()
            if quiz is None:
                raise QuizNotAvailableError("Quiz not found or not published.")

            return {
                'success': True,
                'quiz': quiz,
                'questions': self.quiz_manager.get_questions(quiz.id)
            }
        except Exception as e:
            return self._handle_session_error(channel_id, e, "start_presentation")

    def open_presentation(
        self,
        channel_id: int,
        quiz: Quiz,
        questions: List[Question],
        started_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Open a presentation of already loaded questions. Must run on the event loop."""
        try:
            if self.has_session(channel_id):
                raise SessionConflictError(f"Presentation already running in channel {channel_id}")

            controller = PresentationController(
                questions,
                scheduler=self.scheduler,
                on_tick=lambda state: self._refresh(channel_id),
                name=f"channel {channel_id}"
            )

            session = PresentationSession(
                channel_id=channel_id,
                quiz=quiz,
                controller=controller,
                started_by=started_by
            )
            self._sessions[channel_id] = session

            self.logger.info(
                f"Presentation started in channel {channel_id}: quiz='{quiz.title}', questions={len(questions)}"
            )
            return {
                'success': True,
                'message': f"Presenting '{quiz.title}'",
                'session': session,
                'state': controller.snapshot()
            }

        except Exception as e:
            return self._handle_session_error(channel_id, e, "start_presentation")

    def get_session(self, channel_id: int) -> Optional[PresentationSession]:
        return self._sessions.get(channel_id)

    def has_session(self, channel_id: int) -> bool:
        return channel_id in self._sessions

    def get_session_state(self, channel_id: int) -> SessionState:
        session = self._sessions.get(channel_id)
        if session is None:
            return SessionState.INACTIVE

        controller = session.controller
        if controller.is_running:
            return SessionState.RUNNING
        if controller.remaining_seconds == 0 and controller.current_index == len(controller.questions) - 1:
            return SessionState.FINISHED
        return SessionState.READY

    def attach_message(self, channel_id: int, message: Any) -> None:
        """Remember the message that displays a session."""
        session = self._sessions.get(channel_id)
        if session is not None:
            session.message = message

    def select_question(self, channel_id: int, number: int) -> Dict[str, Any]:
        """Jump to question ``number`` (1-based)."""
        return self._apply(channel_id, "select_question", lambda c: c.select_question(number - 1))

    def next_question(self, channel_id: int) -> Dict[str, Any]:
        return self._apply(channel_id, "next_question", lambda c: c.next())

    def previous_question(self, channel_id: int) -> Dict[str, Any]:
        return self._apply(channel_id, "previous_question", lambda c: c.previous())

    def toggle_run(self, channel_id: int) -> Dict[str, Any]:
        return self._apply(channel_id, "toggle_run", lambda c: c.toggle_run())

    def set_mode(self, channel_id: int, mode: Any) -> Dict[str, Any]:
        return self._apply(channel_id, "set_mode", lambda c: c.set_mode(mode))

    def stop_presentation(self, channel_id: int) -> Dict[str, Any]:
        """
        Close the presentation in a channel and cancel its countdown.

        Returns:
            Dictionary with operation results
        """
        session = self._sessions.pop(channel_id, None)
        if session is None:
            return {
                'success': False,
                'message': "No presentation to stop in this channel",
                'user_message': "ℹ️ No presentation is running in this channel"
            }

        session.controller.close()
        self.logger.info(f"Presentation stopped in channel {channel_id}")
        return {
            'success': True,
            'message': "Presentation stopped",
            'session': session,
            'user_message': f"⏹️ Presentation of **{session.quiz.title}** ended"
        }

    def shutdown(self) -> int:
        """Stop every presentation. Returns the number of sessions closed."""
        channel_ids = list(self._sessions.keys())
        for channel_id in channel_ids:
            self.stop_presentation(channel_id)
        return len(channel_ids)

    def get_session_status_summary(self, channel_id: int) -> str:
        session = self._sessions.get(channel_id)
        if session is None:
            return "No presentation is running in this channel."

        state = session.controller.snapshot()
        run_state = "running" if state.is_running else "stopped"
        return (
            f"**{session.quiz.title}** | question {state.current_index + 1}/{state.total_questions}, "
            f"{state.remaining_seconds}s left ({run_state}, {state.mode.value} mode)"
        )

    def _apply(self, channel_id: int, operation: str, action: Callable[[PresentationController], Any]) -> Dict[str, Any]:
        try:
            session = self._sessions.get(channel_id)
            if session is None:
                raise SessionNotFoundError(f"No presentation in channel {channel_id}")

            result = action(session.controller)
            return {
                'success': True,
                'result': result,
                'state': session.controller.snapshot()
            }
        except Exception as e:
            return self._handle_session_error(channel_id, e, operation)

    async def _refresh(self, channel_id: int) -> None:
        session = self._sessions.get(channel_id)
        if session is None or self.refresh_callback is None:
            return
        try:
            await self.refresh_callback(session)
        except Exception as e:
            # A failed redraw must not stop the countdown
            self.logger.error(f"Failed to refresh presentation in channel {channel_id}: {e}")

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a failed operation and build the error result.

        Args:
            channel_id: Discord channel identifier
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            Dictionary with error handling results
        """
        if isinstance(error, (QuizControllerError, DataAccessError, EmptyPresentationError, IndexError, ValueError)):
            self.logger.warning(f"Error in {operation} for channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A presentation is already running in this channel. Stop it first with `/present_stop`."

        if isinstance(error, SessionNotFoundError):
            return "❌ No presentation is running in this channel. Start one with `/present`."

        if isinstance(error, QuizNotAvailableError):
            return f"❌ {error}"

        if isinstance(error, EmptyPresentationError):
            return "❌ No questions found."

        if isinstance(error, DataAccessError):
            # Backend errors are shown as reported
            return f"❌ {error}"

        if isinstance(error, IndexError):
            return "❌ That question number does not exist in this quiz."

        if isinstance(error, ValueError) and operation == "set_mode":
            return f"❌ Unknown display mode. Use {' or '.join(m.value for m in DisplayMode)}."

        return f"❌ An unexpected error occurred during {operation}. Please try again."

