"""
Quiz and question management for admins.
"""
import logging
from typing import Any, Dict, List, Optional

from .config_manager import ConfigManager
from .data_manager import (
    QUESTIONS,
    QUIZZES,
    DataAccessError,
    DataStore,
    parse_question,
    parse_quiz,
)
from .models import Question, QuestionDraft, Quiz, QuizStatus
from .uploads import UploadValidationError, upload_image

MIN_OPTIONS = 2
MAX_OPTIONS = 5
QUIZ_IMAGE_PREFIX = "quiz-images"


class QuizManager:
    """Creates, edits, publishes and reads quizzes through a DataStore."""

    def __init__(self, store: DataStore, config_manager: ConfigManager):
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.config_manager = config_manager

    def validate_draft(self, draft: QuestionDraft, position: int) -> Optional[str]:
        """
        Check a question draft against the form rules.

        Args:
            draft: Question to check
            position: 1-based position used in the message

        Returns:
            Error message, or None if the draft is valid
        """
        label = f"Question {position}"
        if not draft.text or not draft.text.strip():
            return f"{label}: question text is required."

        if not (MIN_OPTIONS <= len(draft.options) <= MAX_OPTIONS):
            return f"{label}: must have between {MIN_OPTIONS} and {MAX_OPTIONS} options."

        for option_number, option in enumerate(draft.options, start=1):
            if not isinstance(option, str) or not option.strip():
                return f"{label}: option {option_number} is empty."

        if not isinstance(draft.correct_index, int) or not (0 <= draft.correct_index < len(draft.options)):
            return f"{label}: the correct answer must be one of the options."

        min_timer = self.config_manager.MIN_TIMER_DURATION
        max_timer = self.config_manager.MAX_TIMER_DURATION
        if not isinstance(draft.timer_seconds, int) or not (min_timer <= draft.timer_seconds <= max_timer):
            return f"{label}: timer must be between {min_timer} and {max_timer} seconds."

        return None

    def new_draft(self, text: str, options: List[str], correct_index: int = 0, **kwargs) -> QuestionDraft:
        """Create a draft using the configured default timer."""
        kwargs.setdefault("timer_seconds", self.config_manager.get_timer_duration())
        return QuestionDraft(text=text, options=list(options), correct_index=correct_index, **kwargs)

    def create_quiz(
        self,
        title: str,
        description: str,
        created_by: Optional[str],
        drafts: List[QuestionDraft],
        publish: bool = False
    ) -> Dict[str, Any]:
        """
        Create a quiz and its questions.

        Questions are stored in the given order with ``order_number`` 1..n.
        The first failure stops the save and is reported verbatim.

        Returns:
            Dictionary with success status, the created quiz, and user-facing message
        """
        if not created_by:
            return self._failure("create_quiz", "User not authenticated.")

        problem = self._validate_quiz_form(title, drafts)
        if problem:
            return self._failure("create_quiz", problem)

        status = QuizStatus.PUBLISHED if publish else QuizStatus.DRAFT
        try:
            quiz_record = self.store.insert(QUIZZES, {
                "title": title.strip(),
                "description": description or "",
                "created_by": created_by,
                "status": status.value
            })
            quiz = parse_quiz(quiz_record)

            for order_number, draft in enumerate(drafts, start=1):
                self._save_question(quiz.id, draft, order_number)

        except UploadValidationError as e:
            return self._failure("create_quiz", str(e), title="Image Upload Error")
        except DataAccessError as e:
            return self._failure("create_quiz", str(e))

        message = "Quiz Published" if publish else "Quiz Saved as Draft"
        self.logger.info(f"{message}: '{quiz.title}' ({quiz.id}) with {len(drafts)} questions")
        return {
            'success': True,
            'quiz': quiz,
            'message': message,
            'user_message': f"✅ {message}: **{quiz.title}** ({len(drafts)} questions)"
        }

    def update_quiz(
        self,
        quiz_id: str,
        title: str,
        description: str,
        drafts: List[QuestionDraft],
        publish: bool = False,
        editor_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Save an edited quiz.

        ``drafts`` is the full, ordered question list: drafts with an id update
        the stored question, drafts without one are inserted, and stored
        questions missing from the list are removed. ``order_number`` is
        rewritten as 1..n.
        """
        problem = self._validate_quiz_form(title, drafts)
        if problem:
            return self._failure("update_quiz", problem)

        try:
            quiz = self.get_quiz(quiz_id)
            if quiz is None:
                return self._failure("update_quiz", "Quiz not found.")
            self._warn_if_not_owner(quiz, editor_id)

            status = QuizStatus.PUBLISHED if publish else QuizStatus.DRAFT
            self.store.update(QUIZZES, quiz_id, {
                "title": title.strip(),
                "description": description or "",
                "status": status.value
            })

            kept_ids = {draft.id for draft in drafts if draft.id}
            for existing in self.get_questions(quiz_id):
                if existing.id not in kept_ids:
                    self.store.delete(QUESTIONS, existing.id)

            for order_number, draft in enumerate(drafts, start=1):
                self._save_question(quiz_id, draft, order_number)

        except UploadValidationError as e:
            return self._failure("update_quiz", str(e), title="Image Upload Error")
        except DataAccessError as e:
            return self._failure("update_quiz", str(e))

        message = "Quiz Published" if publish else "Quiz Saved as Draft"
        self.logger.info(f"Quiz {quiz_id} updated ({message})")
        return {
            'success': True,
            'message': message,
            'user_message': f"✅ {message}: quiz updated."
        }

    def add_question(self, quiz_id: str, draft: QuestionDraft, editor_id: Optional[str] = None) -> Dict[str, Any]:
        """Append a question to the end of a quiz."""
        try:
            quiz = self.get_quiz(quiz_id)
            if quiz is None:
                return self._failure("add_question", "Quiz not found.")
            self._warn_if_not_owner(quiz, editor_id)

            existing = self.get_questions(quiz_id)
            position = len(existing) + 1
            problem = self.validate_draft(draft, position)
            if problem:
                return self._failure("add_question", problem)

            question = self._save_question(quiz_id, draft, position)

        except UploadValidationError as e:
            return self._failure("add_question", str(e), title="Image Upload Error")
        except DataAccessError as e:
            return self._failure("add_question", str(e))

        return {
            'success': True,
            'question': question,
            'message': f"Question {position} added to quiz {quiz_id}",
            'user_message': f"✅ Added question {position} to **{quiz.title}**"
        }

    def remove_question(self, question_id: str) -> Dict[str, Any]:
        """Delete a question and close the gap in its quiz's ordering."""
        try:
            records = self.store.read(QUESTIONS, filters={"id": question_id}, limit=1)
            if not records:
                return self._failure("remove_question", "Question not found.")
            quiz_id = records[0].get("quiz_id")

            self.store.delete(QUESTIONS, question_id)
            self._renumber(quiz_id)

        except DataAccessError as e:
            return self._failure("remove_question", str(e))

        return {
            'success': True,
            'message': f"Question {question_id} removed",
            'user_message': "✅ Question removed"
        }

    def set_status(self, quiz_id: str, publish: bool, editor_id: Optional[str] = None) -> Dict[str, Any]:
        """Publish a quiz or move it back to draft."""
        status = QuizStatus.PUBLISHED if publish else QuizStatus.DRAFT
        try:
            quiz = self.get_quiz(quiz_id)
            if quiz is None:
                return self._failure("set_status", "Quiz not found.")
            self._warn_if_not_owner(quiz, editor_id)
            self.store.update(QUIZZES, quiz_id, {"status": status.value})
        except DataAccessError as e:
            return self._failure("set_status", str(e))

        message = "Quiz Published" if publish else "Quiz Saved as Draft"
        return {
            'success': True,
            'message': message,
            'user_message': f"✅ {message}: **{quiz.title}**"
        }

    def delete_quiz(self, quiz_id: str, editor_id: Optional[str] = None) -> Dict[str, Any]:
        """Delete a quiz together with its questions."""
        try:
            quiz = self.get_quiz(quiz_id)
            if quiz is None:
                return self._failure("delete_quiz", "Quiz not found.")
            self._warn_if_not_owner(quiz, editor_id)

            for question in self.get_questions(quiz_id):
                self.store.delete(QUESTIONS, question.id)
            self.store.delete(QUIZZES, quiz_id)
        except DataAccessError as e:
            return self._failure("delete_quiz", str(e))

        self.logger.info(f"Quiz {quiz_id} deleted")
        return {
            'success': True,
            'message': "Quiz Deleted",
            'user_message': f"✅ Quiz Deleted: **{quiz.title}**"
        }

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        records = self.store.read(QUIZZES, filters={"id": quiz_id}, limit=1)
        return parse_quiz(records[0]) if records else None

    def get_published_quiz(self, quiz_id: str) -> Optional[Quiz]:
        """Return the quiz only if it is published."""
        records = self.store.read(
            QUIZZES,
            filters={"id": quiz_id, "status": QuizStatus.PUBLISHED.value},
            limit=1
        )
        return parse_quiz(records[0]) if records else None

    def get_first_published_quiz(self) -> Optional[Quiz]:
        records = self.store.read(
            QUIZZES,
            filters={"status": QuizStatus.PUBLISHED.value},
            order=[("created_at", True)],
            limit=1
        )
        return parse_quiz(records[0]) if records else None

    def list_published_quizzes(self) -> List[Quiz]:
        records = self.store.read(
            QUIZZES,
            filters={"status": QuizStatus.PUBLISHED.value},
            order=[("created_at", False)]
        )
        return [parse_quiz(record) for record in records]

    def list_quizzes_for_owner(self, user_id: str) -> List[Quiz]:
        """Quizzes created by ``user_id``, newest first."""
        records = self.store.read(QUIZZES, filters={"created_by": user_id}, order=[("created_at", False)])
        return [parse_quiz(record) for record in records]

    def get_questions(self, quiz_id: str) -> List[Question]:
        """Questions of a quiz in presentation order."""
        records = self.store.read(QUESTIONS, filters={"quiz_id": quiz_id}, order=[("order_number", True)])
        return [parse_question(record, self.config_manager.get_timer_duration()) for record in records]

    def _validate_quiz_form(self, title: str, drafts: List[QuestionDraft]) -> Optional[str]:
        if not title or not title.strip():
            return "Quiz title is required."
        for position, draft in enumerate(drafts, start=1):
            problem = self.validate_draft(draft, position)
            if problem:
                return problem
        return None

    def _save_question(self, quiz_id: str, draft: QuestionDraft, order_number: int) -> Question:
        image_url = draft.image_url
        if draft.image is not None:
            image_url = upload_image(
                self.store,
                self.config_manager.get_image_bucket(),
                QUIZ_IMAGE_PREFIX,
                quiz_id,
                draft.image,
                self.config_manager.get_max_upload_bytes()
            )

        record = {
            "question_text": draft.text.strip(),
            "image_url": image_url,
            "options": [option.strip() for option in draft.options],
            "correct_index": draft.correct_index,
            "timer_seconds": draft.timer_seconds,
            "order_number": order_number,
            "starred": bool(draft.starred)
        }
        if draft.id:
            stored = self.store.update(QUESTIONS, draft.id, record)
        else:
            stored = self.store.insert(QUESTIONS, {"quiz_id": quiz_id, **record})
        return parse_question(stored, self.config_manager.get_timer_duration())

    def _renumber(self, quiz_id: str) -> None:
        for order_number, question in enumerate(self.get_questions(quiz_id), start=1):
            if question.order_number != order_number:
                self.store.update(QUESTIONS, question.id, {"order_number": order_number})

    def _warn_if_not_owner(self, quiz: Quiz, editor_id: Optional[str]) -> None:
        # Any admin may edit any quiz; only record it
        if editor_id and quiz.created_by and editor_id != quiz.created_by:
            self.logger.warning(
                f"Quiz {quiz.id} owned by {quiz.created_by} modified by {editor_id}"
            )

    def _failure(self, operation: str, error: str, title: str = "Error") -> Dict[str, Any]:
        self.logger.error(f"{operation} failed: {error}")
        return {
            'success': False,
            'error': error,
            'title': title,
            'user_message': f"❌ {error}"
        }
