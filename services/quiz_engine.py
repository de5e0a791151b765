import random
from enum import Enum
from typing import Optional, Sequence

from core.exceptions import (
    EmptyQuestionSetError,
    InvalidInputError,
    LoadError,
    PersistError,
    SessionStateError,
)
from core.logger import logger
from models.question import Question
from schemas.quiz import QuestionView, QuizFilter, ScoreRecord, SessionResult


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SessionOutcome(str, Enum):
    FINISHED = "finished"
    EMPTY = "empty"
    LOAD_ERROR = "load_error"
    ABANDONED = "abandoned"


class QuizSessionEngine:
    """
    One player's run through a shuffled question set.

    NOT_STARTED -> LOADING -> IN_PROGRESS -> COMPLETED. Only a run that answers every
    question is scored and handed to the ResultRecorder, exactly once.
    """

    def __init__(self, repository, recorder, user_id: int, rng: Optional[random.Random] = None):
        self.repository = repository
        self.recorder = recorder
        self.user_id = user_id
        # SystemRandom cannot be seeded, so no two sessions share an order
        self._random = rng or random.SystemRandom()

        self.state = SessionState.NOT_STARTED
        self.outcome: Optional[SessionOutcome] = None
        self.quiz_filter = QuizFilter()
        self.questions: Sequence[Question] = ()
        self.current_index = 0
        self.score = 0
        self.result: Optional[SessionResult] = None

    @property
    def total(self) -> int:
        return len(self.questions)

    async def start(self, quiz_filter: Optional[QuizFilter] = None) -> int:
        """Load and shuffle the questions. Returns how many will be asked."""
        if self.state is not SessionState.NOT_STARTED:
            raise SessionStateError(f"Session already {self.state.value}")

        self.quiz_filter = quiz_filter or QuizFilter()
        self.state = SessionState.LOADING

        try:
            questions = list(await self.repository.fetch_questions_for_player(self.quiz_filter))
        except LoadError:
            self._complete(SessionOutcome.LOAD_ERROR)
            logger.error("Quiz questions could not be loaded", user_id=self.user_id, exc_info=True)
            raise
        except Exception as e:
            self._complete(SessionOutcome.LOAD_ERROR)
            logger.error("Unexpected error while loading quiz questions", user_id=self.user_id, exc_info=True)
            raise LoadError("Questions could not be loaded") from e

        if not questions:
            self._complete(SessionOutcome.EMPTY)
            raise EmptyQuestionSetError("No questions match this selection")

        self._random.shuffle(questions)
        self.questions = tuple(questions)
        self.current_index = 0
        self.score = 0
        self.state = SessionState.IN_PROGRESS
        logger.info("Quiz session started", user_id=self.user_id, total=self.total)
        return self.total

    def _require_in_progress(self):
        if self.state is not SessionState.IN_PROGRESS:
            raise SessionStateError(f"Session is {self.state.value}, not in progress")

    @property
    def current_question(self) -> Question:
        self._require_in_progress()
        return self.questions[self.current_index]

    def current_view(self) -> QuestionView:
        question = self.current_question
        return QuestionView(
            index=self.current_index,
            total=self.total,
            question_id=question.id,
            text=question.text,
            options=[o.text for o in question.options],
        )

    async def submit_answer(self, selected_option_index: Optional[int], question_index: Optional[int] = None) -> bool:
        """
        Score the current question and move past it. Returns whether the answer was correct.

        `question_index` is the index of the question the caller rendered; if the engine
        has already moved past it, the answer was submitted twice.
        """
        self._require_in_progress()
        if question_index is not None and question_index != self.current_index:
            raise SessionStateError(f"Question {question_index} was already answered")

        question = self.questions[self.current_index]
        if selected_option_index is None:
            raise InvalidInputError("Please select an option")
        if not 0 <= selected_option_index < len(question.options):
            raise InvalidInputError(f"Option {selected_option_index} does not exist")

        is_correct = bool(question.options[selected_option_index].is_correct)
        if is_correct:
            self.score += 1
        self.current_index += 1

        if self.current_index == self.total:
            self._complete(SessionOutcome.FINISHED)
            await self._record_result()
        return is_correct

    def abandon(self) -> None:
        """Drop an unfinished session. Nothing is persisted."""
        if self.state is SessionState.COMPLETED:
            return
        logger.info("Quiz session abandoned", user_id=self.user_id, answered=self.current_index, total=self.total)
        self._complete(SessionOutcome.ABANDONED)

    def _complete(self, outcome: SessionOutcome):
        self.state = SessionState.COMPLETED
        self.outcome = outcome

    async def _record_result(self):
        record = ScoreRecord(
            user_id=self.user_id,
            score=self.score,
            total=self.total,
            category_id=self.quiz_filter.category_id,
            difficulty=self.quiz_filter.difficulty,
        )
        saved = False
        try:
            await self.recorder.save(record)
            saved = True
        except PersistError:
            # The player still sees the score; the lost row is only logged
            logger.error("Failed to save score", user_id=self.user_id, score=self.score, total=self.total, exc_info=True)
        except Exception:
            logger.error(
                "Unexpected error while saving score",
                user_id=self.user_id, score=self.score, total=self.total, exc_info=True,
            )

        self.result = SessionResult(score=self.score, total=self.total, saved=saved)
        logger.info("Quiz session completed", user_id=self.user_id, score=self.score, total=self.total, saved=saved)
