from unittest.mock import patch

from conftest import DatabaseTestCase
from main import build_parser, run
from models.user import User


class TestCommandLine(DatabaseTestCase):
    async def test_end_of_input_at_password_prompt_aborts(self):
        for argv in (["create-user", "bob"], ["play", "bob"]):
            with self.subTest(argv[0]):
                with patch("main.getpass.getpass", side_effect=EOFError), patch("builtins.print") as printed:
                    self.assertEqual(await run(build_parser().parse_args(argv), self.settings), 1)
                printed.assert_called_with("\nAborted.")

        self.assertEqual(await self.count_rows(User), 0)

    async def test_quiz_error_is_reported_not_raised(self):
        with patch("builtins.print") as printed:
            self.assertEqual(await run(build_parser().parse_args(["delete-question", "7"]), self.settings), 1)
        printed.assert_called_with("Error: Question 7 not found")
