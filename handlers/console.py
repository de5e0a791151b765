import asyncio
from typing import Awaitable, Callable, Optional

from core.exceptions import EmptyQuestionSetError, InvalidInputError, LoadError
from services.quiz_engine import QuizSessionEngine, SessionState
from services.task_manager import TaskManager
from schemas.quiz import QuestionView, QuizFilter, SessionResult

QUIT_COMMANDS = ("q", "quit", "exit")


async def read_line(prompt: str) -> str:
    # input() blocks, keep it off the event loop
    return await asyncio.to_thread(input, prompt)


class ConsolePlayer:
    """Terminal front end for a quiz session."""

    VIEW_KEY = "player"

    def __init__(
        self,
        engine: QuizSessionEngine,
        tasks: TaskManager,
        read: Callable[[str], Awaitable[str]] = read_line,
        write: Callable[[str], None] = print,
    ):
        self.engine = engine
        self.tasks = tasks
        self.read = read
        self.write = write

    async def play(self, quiz_filter: Optional[QuizFilter] = None) -> Optional[SessionResult]:
        self.write("Loading questions...")
        try:
            await self.tasks.dispatch(self.VIEW_KEY, self.engine.start(quiz_filter))
        except EmptyQuestionSetError:
            self.write("No questions available for this selection.")
            return None
        except LoadError:
            self.write("Could not load questions. Please try again later.")
            return None

        while self.engine.state is SessionState.IN_PROGRESS:
            view = self.engine.current_view()
            self._render(view)

            try:
                answer = (await self.read("Your answer (1-4, q to quit): ")).strip().lower()
            except EOFError:
                # Ctrl-D at the prompt
                answer = QUIT_COMMANDS[0]
            if answer in QUIT_COMMANDS:
                self.engine.abandon()
                self.write("Quiz abandoned.")
                return None
            view.selected_index = self._parse_choice(answer, len(view.options))

            try:
                correct = await self.tasks.dispatch(
                    self.VIEW_KEY,
                    self.engine.submit_answer(view.selected_index, question_index=view.index),
                )
            except InvalidInputError as e:
                self.write(str(e))
                continue
            self.write("Correct!" if correct else "Wrong.")

        result = self.engine.result
        self.write(f"Quiz Finished! Your Score: {result.score} / {result.total}")
        if not result.saved:
            self.write("(Your score could not be saved.)")
        return result

    def _render(self, view: QuestionView):
        self.write("")
        self.write(f"Question {view.index + 1}/{view.total}: {view.text}")
        for number, option in enumerate(view.options, 1):
            self.write(f"  {number}. {option}")

    @staticmethod
    def _parse_choice(answer: str, option_count: int) -> Optional[int]:
        if not answer.isdigit():
            return None
        index = int(answer) - 1
        return index if 0 <= index < option_count else None
