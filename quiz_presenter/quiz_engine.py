"""
Presentation engine for live quiz delivery.
Handles question sequencing, the display mode and the per-question countdown.
"""
import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence, Tuple, Union

from .models import DisplayMode, PresentationState, Question

# Set up logger for timer operations
logger = logging.getLogger(__name__)

TICK_INTERVAL = 1.0


class TimerLifecycleLogger:
    """Structured logging for countdown lifecycle events."""

    @staticmethod
    def log_tick_source_scheduled(owner: str, remaining: int) -> None:
        logger.info(
            f"Timer lifecycle: SCHEDULED - {owner}, Remaining {remaining}s",
            extra={
                'event_type': 'tick_source_scheduled',
                'owner': owner,
                'remaining_time': remaining,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_tick_source_cancelled(owner: str, reason: str) -> None:
        logger.info(
            f"Timer lifecycle: CANCELLED - {owner} ({reason})",
            extra={
                'event_type': 'tick_source_cancelled',
                'owner': owner,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_tick(owner: str, question_number: int, remaining: int) -> None:
        """Log countdown ticks (throttled to avoid spam)."""
        if remaining % 10 == 0 or remaining <= 5:
            logger.debug(
                f"Timer lifecycle: TICK - {owner}, Question {question_number}, Remaining {remaining}s",
                extra={
                    'event_type': 'timer_tick',
                    'owner': owner,
                    'question_number': question_number,
                    'remaining_time': remaining,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_state_transition(owner: str, from_state: str, to_state: str, reason: str = None) -> None:
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - {owner}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'owner': owner,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_tick(owner: str, details: str) -> None:
        logger.warning(
            f"Timer lifecycle: STALE_TICK - {owner}: {details}",
            extra={
                'event_type': 'timer_stale_tick',
                'owner': owner,
                'details': details,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(owner: str, error_type: str, error_message: str, operation: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - {owner}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'owner': owner,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )


class TickHandle:
    """A scheduled periodic tick source. Inactive handles never tick again."""

    def __init__(self, owner: str, interval: float):
        self.owner = owner
        self.interval = interval
        self.active = True
        self.ticks_delivered = 0
        self._task: Optional[asyncio.Task] = None


class TickScheduler(ABC):
    """Schedule/cancel pair for one-second countdown ticks."""

    @abstractmethod
    def schedule(self, callback: Callable[[], Any], owner: str = "presentation") -> TickHandle:
        """Start calling ``callback`` once per interval until cancelled."""

    @abstractmethod
    def cancel(self, handle: TickHandle) -> None:
        """Stop a tick source. Takes effect before this call returns."""


class AsyncioTickScheduler(TickScheduler):
    """Runs each tick source as an asyncio task on the running loop."""

    def __init__(self, interval: float = TICK_INTERVAL):
        self.interval = interval

    def schedule(self, callback: Callable[[], Any], owner: str = "presentation") -> TickHandle:
        handle = TickHandle(owner, self.interval)
        handle._task = asyncio.get_running_loop().create_task(self._run(handle, callback))
        return handle

    def cancel(self, handle: TickHandle) -> None:
        handle.active = False
        task = handle._task
        if task is None or task.done():
            return

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        # A tick source cancelling itself just stops at the next check
        if task is not current:
            task.cancel()

    async def _run(self, handle: TickHandle, callback: Callable[[], Any]) -> None:
        try:
            while handle.active:
                await asyncio.sleep(handle.interval)
                if not handle.active:
                    break
                handle.ticks_delivered += 1
                result = callback()
                if inspect.isawaitable(result):
                    await result
        except asyncio.CancelledError:
            logger.debug(f"Tick task for {handle.owner} cancelled after {handle.ticks_delivered} ticks")
            raise
        except Exception as e:
            handle.active = False
            TimerLifecycleLogger.log_timer_error(handle.owner, type(e).__name__, str(e), "tick")
            logger.error(f"Tick source for {handle.owner} stopped after an error", exc_info=True)


class EmptyPresentationError(ValueError):
    """Raised when a presentation is started without questions."""
    pass


class PresentationController:
    """
    Sequences questions and runs the countdown during a live quiz.

    The controller owns the only mutable presentation state. Every operation
    that makes the current countdown meaningless (selecting or navigating to a
    question, pausing, finishing the last question, closing) cancels the tick
    source before returning, so ticks never overlap or reach a stale question.
    """

    def __init__(
        self,
        questions: Sequence[Question],
        scheduler: Optional[TickScheduler] = None,
        on_tick: Optional[Callable[[PresentationState], Any]] = None,
        name: str = "presentation"
    ):
        """
        Initialize the controller at the first question, stopped, in quiz mode.

        Args:
            questions: Ordered questions, fixed for the session
            scheduler: Tick facility; without one, ticks must be driven by calling ``tick``
            on_tick: Called with the new state after every delivered tick
            name: Label used in log records

        Raises:
            EmptyPresentationError: If ``questions`` is empty
        """
        if not questions:
            raise EmptyPresentationError("Cannot present a quiz without questions")

        self.name = name
        self._questions: Tuple[Question, ...] = tuple(questions)
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._tick_handle: Optional[TickHandle] = None
        self._tick_generation = 0

        self._current_index = 0
        self._mode = DisplayMode.QUIZ
        self._remaining_seconds = self._questions[0].timer_seconds
        self._is_running = False

    @property
    def questions(self) -> Tuple[Question, ...]:
        return self._questions

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question:
        return self._questions[self._current_index]

    @property
    def mode(self) -> DisplayMode:
        return self._mode

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def has_active_tick_source(self) -> bool:
        return self._tick_handle is not None and self._tick_handle.active

    def snapshot(self) -> PresentationState:
        return PresentationState(
            current_index=self._current_index,
            total_questions=len(self._questions),
            question=self.current_question,
            mode=self._mode,
            remaining_seconds=self._remaining_seconds,
            is_running=self._is_running
        )

    def select_question(self, index: int) -> None:
        """
        Jump to a question, reset its timer and stop the countdown.

        Raises:
            IndexError: If ``index`` is outside the question list
        """
        if not isinstance(index, int) or isinstance(index, bool) or not (0 <= index < len(self._questions)):
            raise IndexError(f"Question index {index} out of range 0..{len(self._questions) - 1}")

        self._cancel_tick_source("question selected")
        self._current_index = index
        self._remaining_seconds = self._questions[index].timer_seconds
        self._is_running = False
        logger.debug(f"{self.name}: selected question {index + 1}/{len(self._questions)}")

    def next(self) -> bool:
        """Move to the next question. Returns False when already on the last one."""
        if self._current_index >= len(self._questions) - 1:
            return False
        self.select_question(self._current_index + 1)
        return True

    def previous(self) -> bool:
        """Move to the previous question. Returns False when already on the first one."""
        if self._current_index <= 0:
            return False
        self.select_question(self._current_index - 1)
        return True

    def toggle_run(self) -> bool:
        """
        Start or pause the countdown.

        Starting with no time left marks the presentation as running but
        schedules nothing until another question is selected.

        Returns:
            The new running state
        """
        if self._is_running:
            self._is_running = False
            self._cancel_tick_source("paused")
            TimerLifecycleLogger.log_state_transition(self.name, "running", "paused", "toggle")
        else:
            self._is_running = True
            TimerLifecycleLogger.log_state_transition(self.name, "paused", "running", "toggle")
            if self._remaining_seconds > 0:
                self._schedule_tick_source()
            else:
                logger.debug(f"{self.name}: no time left on question {self._current_index + 1}, nothing to count down")
        return self._is_running

    def tick(self) -> bool:
        """
        Advance the countdown by one second.

        When the timer reaches zero, the next question starts counting down
        immediately; after the last question the countdown stops.

        Returns:
            True if the tick changed the state
        """
        if not self._is_running:
            TimerLifecycleLogger.log_stale_tick(self.name, "tick delivered while stopped")
            return False
        if self._remaining_seconds <= 0:
            return False

        self._remaining_seconds -= 1
        TimerLifecycleLogger.log_tick(self.name, self._current_index + 1, self._remaining_seconds)

        if self._remaining_seconds == 0:
            if self._current_index < len(self._questions) - 1:
                self._current_index += 1
                self._remaining_seconds = self._questions[self._current_index].timer_seconds
                TimerLifecycleLogger.log_state_transition(
                    self.name,
                    f"question {self._current_index}",
                    f"question {self._current_index + 1}",
                    "timer expired, auto-advance"
                )
                if self._remaining_seconds <= 0:
                    self._is_running = False
                    self._cancel_tick_source("next question has no timer")
            else:
                self._is_running = False
                self._cancel_tick_source("final question expired")
                TimerLifecycleLogger.log_state_transition(self.name, "running", "finished", "last question expired")
        return True

    def set_mode(self, mode: Union[DisplayMode, str]) -> DisplayMode:
        """
        Switch between question-only and answer-revealed display.

        Raises:
            ValueError: If ``mode`` is not a known display mode
        """
        self._mode = mode if isinstance(mode, DisplayMode) else DisplayMode(mode)
        return self._mode

    def close(self) -> None:
        """Stop the countdown for good; used when the presentation is torn down."""
        self._is_running = False
        self._cancel_tick_source("presentation closed")

    def _deliver_tick(self, generation: int) -> Any:
        if generation != self._tick_generation or not self.has_active_tick_source:
            TimerLifecycleLogger.log_stale_tick(self.name, f"tick from cancelled source {generation}")
            return None
        if not self.tick():
            return None
        if self._on_tick is not None:
            return self._on_tick(self.snapshot())
        return None

    def _schedule_tick_source(self) -> None:
        if self._scheduler is None:
            return
        self._cancel_tick_source("rescheduling")
        self._tick_generation += 1
        generation = self._tick_generation
        self._tick_handle = self._scheduler.schedule(lambda: self._deliver_tick(generation), owner=self.name)
        TimerLifecycleLogger.log_tick_source_scheduled(self.name, self._remaining_seconds)

    def _cancel_tick_source(self, reason: str) -> None:
        handle = self._tick_handle
        if handle is None:
            return
        self._tick_handle = None
        if self._scheduler is not None:
            self._scheduler.cancel(handle)
        handle.active = False
        TimerLifecycleLogger.log_tick_source_cancelled(self.name, reason)
