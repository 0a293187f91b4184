"""
Unit tests for presentation embeds and the control view.
"""
import unittest
from collections import OrderedDict
from unittest.mock import AsyncMock, Mock

from quiz_presenter.models import DisplayMode, LeaderboardEntry, PresentationState, Quiz, QuizStatus
from quiz_presenter.views import (
    PresentationView,
    build_leaderboard_embed,
    build_option_list,
    build_presentation_embed,
    format_options,
    summarize_quizzes,
)
from tests.test_fixtures import TestFixtures, async_test


def make_state(index=0, mode=DisplayMode.QUIZ, remaining=5, running=False, timers=(5, 10, 5)):
    questions = TestFixtures.create_sample_questions(list(timers))
    return PresentationState(
        current_index=index,
        total_questions=len(questions),
        question=questions[index],
        mode=mode,
        remaining_seconds=remaining,
        is_running=running
    )


class TestPresentationEmbed(unittest.TestCase):
    """Test cases for the live question embed."""

    def setUp(self):
        """Set up test fixtures."""
        self.quiz = Quiz(id="quiz-1", title="General Knowledge", status=QuizStatus.PUBLISHED)

    def test_quiz_mode_hides_answer(self):
        embed = build_presentation_embed(self.quiz, make_state())
        self.assertEqual(embed.title, "General Knowledge: Question 1 of 3")
        self.assertNotIn("(Correct)", embed.fields[0].value)
        self.assertEqual(embed.fields[2].value, "Quiz Mode")

    def test_answer_mode_marks_correct_option(self):
        state = make_state(index=1, mode=DisplayMode.ANSWER)
        embed = build_presentation_embed(self.quiz, state)
        self.assertIn("✅", embed.fields[0].value)
        self.assertIn(f"**{state.question.correct_option}** (Correct)", embed.fields[0].value)

    def test_timer_field(self):
        embed = build_presentation_embed(self.quiz, make_state(remaining=2, running=True))
        self.assertEqual(embed.fields[1].value, "2s (running)")
        self.assertIn("⚠️", embed.fields[1].name)

    def test_starred_question_and_image(self):
        state = make_state()
        state.question.starred = True
        state.question.image_url = "https://cdn.example.com/images/cat.png"
        embed = build_presentation_embed(self.quiz, state)
        self.assertTrue(embed.title.endswith("⭐"))
        self.assertEqual(embed.image.url, "https://cdn.example.com/images/cat.png")

    def test_final_question_footer(self):
        embed = build_presentation_embed(self.quiz, make_state(index=2, remaining=0))
        self.assertIn("final question", embed.footer.text)

    def test_format_options_uses_letters(self):
        question = TestFixtures.create_sample_questions([5])[0]
        lines = format_options(question, reveal=False).split("\n")
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[0].startswith("🇦"))


class TestLeaderboardEmbed(unittest.TestCase):

    def test_grouped_fields(self):
        seasons = OrderedDict([
            ("Season 2", [LeaderboardEntry("Season 2", "Bo", 1, score="10")]),
            ("Season 1", [LeaderboardEntry("Season 1", "Ann", 1), LeaderboardEntry("Season 1", "Cy", 2)]),
        ])
        embed = build_leaderboard_embed(seasons)
        self.assertEqual([field.name for field in embed.fields], ["Season 2", "Season 1"])
        self.assertEqual(embed.fields[0].value, "**#1** Bo | Score: 10")
        self.assertEqual(embed.fields[1].value.count("\n"), 1)

    def test_empty(self):
        self.assertEqual(build_leaderboard_embed(OrderedDict()).description, "No winners found.")


class TestHelpers(unittest.TestCase):

    def test_build_option_list(self):
        self.assertEqual(build_option_list(" Red |Blue| Green "), ["Red", "Blue", "Green"])
        self.assertEqual(build_option_list(""), [])

    def test_summarize_quizzes(self):
        quizzes = [Quiz(id="a", title="One"), Quiz(id="b", title="Two", status=QuizStatus.PUBLISHED)]
        self.assertEqual(summarize_quizzes([]), "No quizzes found.")
        summary = summarize_quizzes(quizzes, show_status=True)
        self.assertIn("**One** `a` | Status: draft", summary)
        self.assertIn("Status: published", summary)


class TestPresentationView(unittest.TestCase):
    """Button state and dispatch. Views need a running event loop."""

    @async_test
    async def test_sync_first_question(self):
        view = PresentationView(1, AsyncMock()).sync(make_state())
        self.assertTrue(view.previous_button.disabled)
        self.assertFalse(view.next_button.disabled)
        self.assertEqual(view.run_button.label, "Start")

    @async_test
    async def test_sync_running_last_question_in_answer_mode(self):
        view = PresentationView(1, AsyncMock()).sync(
            make_state(index=2, mode=DisplayMode.ANSWER, running=True)
        )
        self.assertTrue(view.next_button.disabled)
        self.assertFalse(view.previous_button.disabled)
        self.assertEqual(view.run_button.label, "Pause")

    @async_test
    async def test_buttons_dispatch_actions(self):
        handler = AsyncMock()
        view = PresentationView(1, handler)
        interaction = Mock()

        await view.next_button.callback(interaction)
        await view.run_button.callback(interaction)
        await view.answer_mode_button.callback(interaction)

        actions = [call.args[1] for call in handler.await_args_list]
        self.assertEqual(actions, ["next", "toggle", "mode:answer"])


if __name__ == '__main__':
    unittest.main()
