"""
Unit tests for quiz authoring and reading through QuizManager.
"""
import shutil
import tempfile
import unittest
from unittest.mock import Mock

from quiz_presenter.data_manager import QUESTIONS, JsonDataStore, TransportError
from quiz_presenter.models import QuestionDraft, QuizStatus
from quiz_presenter.quiz_manager import QuizManager
from tests.test_fixtures import TestFixtures


class TestQuizManagerBase(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_manager = TestFixtures.create_config_manager(self.temp_dir)
        self.store = JsonDataStore(self.temp_dir)
        self.manager = QuizManager(self.store, self.config_manager)

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestDraftValidation(TestQuizManagerBase):
    """Test cases for the question form rules."""

    def test_valid_draft(self):
        self.assertIsNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], 1, 30), 1))

    def test_missing_text(self):
        problem = self.manager.validate_draft(QuestionDraft("  ", ["a", "b"], 0, 30), 2)
        self.assertEqual(problem, "Question 2: question text is required.")

    def test_option_count_limits(self):
        self.assertIsNotNone(self.manager.validate_draft(QuestionDraft("Q?", ["a"], 0, 30), 1))
        self.assertIsNotNone(self.manager.validate_draft(QuestionDraft("Q?", list("abcdef"), 0, 30), 1))
        self.assertIsNone(self.manager.validate_draft(QuestionDraft("Q?", list("abcde"), 4, 30), 1))

    def test_empty_option(self):
        problem = self.manager.validate_draft(QuestionDraft("Q?", ["a", " "], 0, 30), 1)
        self.assertEqual(problem, "Question 1: option 2 is empty.")

    def test_correct_index_must_reference_option(self):
        self.assertIsNotNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], 2, 30), 1))
        self.assertIsNotNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], -1, 30), 1))

    def test_timer_bounds(self):
        self.assertIsNotNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], 0, 4), 1))
        self.assertIsNotNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], 0, 301), 1))
        self.assertIsNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], 0, 5), 1))
        self.assertIsNone(self.manager.validate_draft(QuestionDraft("Q?", ["a", "b"], 0, 300), 1))

    def test_new_draft_uses_configured_timer(self):
        self.config_manager.set_timer_duration(45)
        draft = self.manager.new_draft("Q?", ["a", "b"])
        self.assertEqual(draft.timer_seconds, 45)
        self.assertEqual(draft.correct_index, 0)


class TestQuizAuthoring(TestQuizManagerBase):
    """Test cases for creating and editing quizzes."""

    def test_create_quiz_requires_user(self):
        result = self.manager.create_quiz("Title", "", None, TestFixtures.create_sample_drafts())
        self.assertFalse(result['success'])
        self.assertEqual(result['error'], "User not authenticated.")

    def test_create_quiz_requires_title(self):
        result = self.manager.create_quiz("  ", "", "u1", [])
        self.assertFalse(result['success'])
        self.assertEqual(result['error'], "Quiz title is required.")

    def test_create_draft_quiz_with_ordered_questions(self):
        result = self.manager.create_quiz("Trivia", "Fun", "u1", TestFixtures.create_sample_drafts(3))

        self.assertTrue(result['success'])
        self.assertEqual(result['message'], "Quiz Saved as Draft")
        quiz = result['quiz']
        self.assertEqual(quiz.status, QuizStatus.DRAFT)

        questions = self.manager.get_questions(quiz.id)
        self.assertEqual([q.order_number for q in questions], [1, 2, 3])
        self.assertEqual([q.text for q in questions], ["Question number 1?", "Question number 2?", "Question number 3?"])

    def test_create_published_quiz(self):
        result = self.manager.create_quiz("Trivia", "", "u1", TestFixtures.create_sample_drafts(1), publish=True)
        self.assertEqual(result['message'], "Quiz Published")
        self.assertTrue(self.manager.get_quiz(result['quiz'].id).is_published)

    def test_invalid_draft_stops_create(self):
        drafts = TestFixtures.create_sample_drafts(2)
        drafts[1].options = ["only one"]
        result = self.manager.create_quiz("Trivia", "", "u1", drafts)

        self.assertFalse(result['success'])
        self.assertTrue(result['error'].startswith("Question 2:"))
        self.assertEqual(self.manager.list_quizzes_for_owner("u1"), [])

    def test_create_with_image_uploads_first(self):
        drafts = TestFixtures.create_sample_drafts(1)
        drafts[0].image = TestFixtures.create_image_upload("cat.png")
        result = self.manager.create_quiz("Pictures", "", "u1", drafts)

        self.assertTrue(result['success'])
        question = self.manager.get_questions(result['quiz'].id)[0]
        self.assertIn(f"/images/quiz-images/{result['quiz'].id}/", question.image_url)
        self.assertTrue(question.image_url.endswith("-cat.png"))

    def test_invalid_image_reported_as_upload_error(self):
        drafts = TestFixtures.create_sample_drafts(1)
        drafts[0].image = TestFixtures.create_image_upload("cat.gifx", "text/plain")
        result = self.manager.create_quiz("Pictures", "", "u1", drafts)

        self.assertFalse(result['success'])
        self.assertEqual(result['title'], "Image Upload Error")
        self.assertEqual(result['error'], "Please select a valid image file.")

    def test_update_quiz_edits_inserts_and_removes(self):
        quiz = self.manager.create_quiz("Trivia", "", "u1", TestFixtures.create_sample_drafts(3))['quiz']
        stored = self.manager.get_questions(quiz.id)

        drafts = [
            QuestionDraft(id=stored[2].id, text="Moved to front?", options=["x", "y"], correct_index=1, timer_seconds=15),
            QuestionDraft(text="Brand new?", options=["p", "q", "r"], correct_index=2, timer_seconds=20),
        ]
        result = self.manager.update_quiz(quiz.id, "Trivia 2", "Edited", drafts, publish=True, editor_id="u1")
        self.assertTrue(result['success'])

        updated = self.manager.get_quiz(quiz.id)
        self.assertEqual(updated.title, "Trivia 2")
        self.assertTrue(updated.is_published)

        questions = self.manager.get_questions(quiz.id)
        self.assertEqual([q.text for q in questions], ["Moved to front?", "Brand new?"])
        self.assertEqual([q.order_number for q in questions], [1, 2])
        self.assertEqual(questions[0].id, stored[2].id)

    def test_update_missing_quiz(self):
        result = self.manager.update_quiz("missing", "T", "", [])
        self.assertFalse(result['success'])
        self.assertEqual(result['error'], "Quiz not found.")

    def test_edit_by_other_admin_is_logged(self):
        quiz = self.manager.create_quiz("Trivia", "", "owner", [])['quiz']
        with self.assertLogs('quiz_presenter.quiz_manager', level='WARNING') as logs:
            result = self.manager.set_status(quiz.id, True, editor_id="someone-else")
        self.assertTrue(result['success'])
        self.assertIn("someone-else", logs.output[0])

    def test_add_question_appends(self):
        quiz = self.manager.create_quiz("Trivia", "", "u1", TestFixtures.create_sample_drafts(2))['quiz']
        result = self.manager.add_question(quiz.id, self.manager.new_draft("Third?", ["a", "b"], 1))

        self.assertTrue(result['success'])
        self.assertEqual(result['question'].order_number, 3)
        self.assertEqual(len(self.manager.get_questions(quiz.id)), 3)

    def test_add_invalid_question(self):
        quiz = self.manager.create_quiz("Trivia", "", "u1", [])['quiz']
        result = self.manager.add_question(quiz.id, self.manager.new_draft("Q?", ["a", "b"], 5))
        self.assertFalse(result['success'])
        self.assertEqual(self.manager.get_questions(quiz.id), [])

    def test_remove_question_renumbers(self):
        quiz = self.manager.create_quiz("Trivia", "", "u1", TestFixtures.create_sample_drafts(3))['quiz']
        first = self.manager.get_questions(quiz.id)[0]

        result = self.manager.remove_question(first.id)
        self.assertTrue(result['success'])
        self.assertEqual([q.order_number for q in self.manager.get_questions(quiz.id)], [1, 2])

    def test_remove_missing_question(self):
        self.assertFalse(self.manager.remove_question("nope")['success'])

    def test_delete_quiz_removes_questions(self):
        quiz = self.manager.create_quiz("Trivia", "", "u1", TestFixtures.create_sample_drafts(2))['quiz']
        result = self.manager.delete_quiz(quiz.id)

        self.assertTrue(result['success'])
        self.assertEqual(result['message'], "Quiz Deleted")
        self.assertIsNone(self.manager.get_quiz(quiz.id))
        self.assertEqual(self.store.read(QUESTIONS, filters={"quiz_id": quiz.id}), [])

    def test_backend_error_surfaces_verbatim(self):
        store = Mock()
        store.insert.side_effect = TransportError("connection reset by peer")
        manager = QuizManager(store, self.config_manager)

        result = manager.create_quiz("Trivia", "", "u1", [])
        self.assertFalse(result['success'])
        self.assertEqual(result['error'], "connection reset by peer")
        self.assertEqual(result['user_message'], "❌ connection reset by peer")


class TestQuizReading(TestQuizManagerBase):
    """Test cases for the published-quiz gate and listings."""

    def test_draft_hidden_from_public_reads(self):
        quiz_id = TestFixtures.seed_published_quiz(self.store, status="draft")
        self.assertIsNone(self.manager.get_published_quiz(quiz_id))
        self.assertEqual(self.manager.list_published_quizzes(), [])
        self.assertIsNotNone(self.manager.get_quiz(quiz_id))

    def test_published_listing_newest_first(self):
        TestFixtures.seed_published_quiz(self.store, title="Old")
        TestFixtures.seed_published_quiz(self.store, title="New")
        self.assertEqual([q.title for q in self.manager.list_published_quizzes()], ["New", "Old"])

    def test_first_published_quiz_is_oldest(self):
        TestFixtures.seed_published_quiz(self.store, title="Draft", status="draft")
        TestFixtures.seed_published_quiz(self.store, title="First")
        TestFixtures.seed_published_quiz(self.store, title="Second")
        self.assertEqual(self.manager.get_first_published_quiz().title, "First")

    def test_questions_in_order(self):
        quiz_id = TestFixtures.seed_published_quiz(self.store, timers=[5, 10, 5])
        self.assertEqual([q.timer_seconds for q in self.manager.get_questions(quiz_id)], [5, 10, 5])

    def test_question_without_timer_gets_configured_default(self):
        config_manager = TestFixtures.create_config_manager(self.temp_dir, quiz={"default_timer_duration": 45})
        manager = QuizManager(self.store, config_manager)
        quiz_id = TestFixtures.seed_published_quiz(self.store, timers=[5])
        self.store.insert(QUESTIONS, {"quiz_id": quiz_id, "question_text": "Untimed?", "options": ["a", "b"],
                                      "correct_index": 0, "timer_seconds": 0, "order_number": 2})

        self.assertEqual([q.timer_seconds for q in manager.get_questions(quiz_id)], [5, 45])

    def test_owner_listing(self):
        self.manager.create_quiz("Mine", "", "u1", [])
        self.manager.create_quiz("Theirs", "", "u2", [])
        self.assertEqual([q.title for q in self.manager.list_quizzes_for_owner("u1")], ["Mine"])


if __name__ == '__main__':
    unittest.main()
