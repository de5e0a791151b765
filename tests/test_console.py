import unittest
from unittest.mock import AsyncMock

from conftest import KeepOrder, make_question
from core.exceptions import LoadError
from handlers.console import ConsolePlayer
from services.quiz_engine import QuizSessionEngine, SessionOutcome
from services.task_manager import TaskManager


class TestConsolePlayer(unittest.IsolatedAsyncioTestCase):
    def make_player(self, answers, questions=None):
        self.repository = AsyncMock()
        self.repository.fetch_questions_for_player.return_value = (
            [make_question(1, correct=0), make_question(2, correct=2)] if questions is None else questions
        )
        self.recorder = AsyncMock()
        self.engine = QuizSessionEngine(self.repository, self.recorder, user_id=5, rng=KeepOrder())
        self.output = []
        pending = list(answers)

        async def read(prompt):
            if not pending:
                raise EOFError
            return pending.pop(0)

        return ConsolePlayer(self.engine, TaskManager(), read=read, write=self.output.append)

    async def test_plays_to_completion_and_reports_score(self):
        player = self.make_player(["", "1", "2"])

        result = await player.play()

        self.assertEqual((result.score, result.total), (1, 2))
        self.assertIn("Please select an option", self.output)
        self.assertEqual(self.output.count("Correct!"), 1)
        self.assertEqual(self.output.count("Wrong."), 1)
        self.assertEqual(self.output[-1], "Quiz Finished! Your Score: 1 / 2")
        self.recorder.save.assert_awaited_once()

    async def test_out_of_range_choice_asks_again(self):
        player = self.make_player(["9", "abc", "1", "3"])

        result = await player.play()

        self.assertEqual(self.output.count("Please select an option"), 2)
        self.assertEqual((result.score, result.total), (2, 2))

    async def test_quit_abandons_without_saving(self):
        player = self.make_player(["1", "q"])

        self.assertIsNone(await player.play())
        self.assertIs(self.engine.outcome, SessionOutcome.ABANDONED)
        self.assertIn("Quiz abandoned.", self.output)
        self.recorder.save.assert_not_awaited()

    async def test_end_of_input_quits(self):
        player = self.make_player(["1"])

        self.assertIsNone(await player.play())
        self.assertIs(self.engine.outcome, SessionOutcome.ABANDONED)
        self.assertIn("Quiz abandoned.", self.output)
        self.recorder.save.assert_not_awaited()

    async def test_score_shown_when_save_fails_unexpectedly(self):
        player = self.make_player(["1", "3"])
        self.recorder.save.side_effect = ConnectionResetError(104, "Connection reset by peer")

        result = await player.play()

        self.assertEqual((result.score, result.total, result.saved), (2, 2, False))
        self.assertIn("Quiz Finished! Your Score: 2 / 2", self.output)
        self.assertEqual(self.output[-1], "(Your score could not be saved.)")

    async def test_empty_selection_message(self):
        player = self.make_player([], questions=[])

        self.assertIsNone(await player.play())
        self.assertIn("No questions available for this selection.", self.output)

    async def test_load_failure_message(self):
        player = self.make_player([])
        self.repository.fetch_questions_for_player.side_effect = LoadError("down")

        self.assertIsNone(await player.play())
        self.assertIn("Could not load questions. Please try again later.", self.output)

    async def test_unexpected_load_failure_message(self):
        player = self.make_player([])
        self.repository.fetch_questions_for_player.side_effect = ConnectionRefusedError(111, "Connect call failed")

        self.assertIsNone(await player.play())
        self.assertIn("Could not load questions. Please try again later.", self.output)
