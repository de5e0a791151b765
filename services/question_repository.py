import asyncio
from contextlib import asynccontextmanager
from typing import Any, List, Optional, Sequence, Tuple, Type

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select, update, delete, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import contains_eager

from core.exceptions import (
    DuplicateUsernameError,
    LoadError,
    NotFoundError,
    PersistError,
    QuizError,
    ReferentialError,
    ValidationError,
)
from core.logger import logger
from core.security import PasswordHasher
from models.category import Category
from models.question import Question, Option
from models.score import Score
from models.user import User
from schemas.quiz import Difficulty, OptionIn, QuizFilter, ScoreRecord, OPTIONS_PER_QUESTION

# bcrypt only looks at the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72
NOT_AVAILABLE = "N/A"


class QuestionRepository:
    """
    All persistence for the quiz bank: categories, questions with their options, users and scores.

    Every public method runs inside exactly one transaction that is committed or rolled back
    before the method returns. SQLAlchemy, connection and timeout errors are translated into ``core.exceptions``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], hasher: PasswordHasher):
        self.session_factory = session_factory
        self.hasher = hasher

    @asynccontextmanager
    async def _transaction(self, failure: Type[QuizError] = PersistError, on_conflict: Optional[QuizError] = None):
        async with self.session_factory() as db:
            try:
                async with db.begin():
                    yield db
            except IntegrityError as e:
                if on_conflict is not None:
                    raise on_conflict from e
                logger.error("Integrity violation", error=str(e.orig), exc_info=True)
                raise failure("Database rejected the write") from e
            except SQLAlchemyError as e:
                logger.error("Database operation failed", error=str(e), exc_info=True)
                raise failure("Database operation failed") from e
            except (OSError, asyncio.TimeoutError) as e:
                # Driver-level connect failures and timeouts are not wrapped by SQLAlchemy
                logger.error("Database unavailable", error=repr(e), exc_info=True)
                raise failure("Database unavailable") from e

    def _read(self):
        return self._transaction(failure=LoadError)

    # --- Categories ---

    async def list_categories(self) -> List[str]:
        async with self._read() as db:
            result = await db.execute(select(Category.name).order_by(Category.name))
            return list(result.scalars().all())

    async def get_category_id(self, name: str) -> int:
        async with self._read() as db:
            return await self._resolve_category(db, name)

    async def add_category(self, name: str) -> int:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")

        conflict = ValidationError(f"Category already exists: {name}")
        async with self._transaction(on_conflict=conflict) as db:
            category = Category(name=name)
            db.add(category)
            await db.flush()
            category_id = category.id

        logger.info("Category added", category_id=category_id, name=name)
        return category_id

    async def _resolve_category(self, db: AsyncSession, name: Optional[str]) -> int:
        name = (name or "").strip()
        result = await db.execute(select(Category.id).where(Category.name == name))
        category_id = result.scalar_one_or_none()
        if category_id is None:
            raise ReferentialError(f"Invalid category name: {name}")
        return category_id

    # --- Admin panel ---

    def _meta_query(self):
        return (
            select(
                Question.id.label("id"),
                Question.text.label("text"),
                Category.name.label("category_name"),
                Question.difficulty.label("difficulty"),
            )
            .outerjoin(Category, Question.category_id == Category.id)
        )

    async def list_questions_for_admin(self) -> List[dict]:
        async with self._read() as db:
            result = await db.execute(self._meta_query().order_by(Question.id))
            rows = result.all()

        return [{
            "id": row.id,
            "text": row.text,
            "category": row.category_name or NOT_AVAILABLE,
            "difficulty": row.difficulty or NOT_AVAILABLE,
        } for row in rows]

    async def get_question_meta(self, question_id: int) -> dict:
        """Text, category and difficulty of one question. Options are fetched separately."""
        async with self._read() as db:
            result = await db.execute(self._meta_query().where(Question.id == question_id))
            row = result.one_or_none()

        if row is None:
            raise NotFoundError(f"Question {question_id} not found")
        return {
            "id": row.id,
            "text": row.text,
            "category": row.category_name,
            "difficulty": row.difficulty,
        }

    async def get_options(self, question_id: int) -> List[Option]:
        async with self._read() as db:
            result = await db.execute(
                select(Option).where(Option.question_id == question_id).order_by(Option.id)
            )
            return list(result.scalars().all())

    # --- Player ---

    async def fetch_questions_for_player(self, quiz_filter: Optional[QuizFilter] = None) -> List[Question]:
        """
        Questions with their options populated, loaded with one joined SELECT.
        Filters are ANDed; an unset filter field adds no constraint.
        """
        quiz_filter = quiz_filter or QuizFilter()
        query = (
            select(Question)
            .join(Question.options)
            .options(contains_eager(Question.options))
            .order_by(Question.id, Option.id)
        )
        if quiz_filter.category_id is not None:
            query = query.where(Question.category_id == quiz_filter.category_id)
        if quiz_filter.difficulty is not None:
            query = query.where(Question.difficulty == quiz_filter.difficulty.value)

        async with self._read() as db:
            result = await db.execute(query)
            questions = list(result.unique().scalars().all())

        logger.debug("Questions fetched", count=len(questions), **quiz_filter.model_dump(mode="json"))
        return questions

    async def save_score(self, record: ScoreRecord) -> int:
        async with self._transaction() as db:
            score = Score(
                user_id=record.user_id,
                score=record.score,
                total=record.total,
                category_id=record.category_id,
                difficulty=record.difficulty.value if record.difficulty else None,
            )
            db.add(score)
            await db.flush()
            return score.id

    # --- Question management ---

    def _validate_question(
        self, text: str, options: Sequence[Any], difficulty: Optional[str]
    ) -> Tuple[str, List[OptionIn], Optional[str]]:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Question text cannot be empty")

        if len(options) != OPTIONS_PER_QUESTION:
            raise ValidationError(f"A question needs exactly {OPTIONS_PER_QUESTION} options, got {len(options)}")
        try:
            parsed = [o if isinstance(o, OptionIn) else OptionIn.model_validate(o) for o in options]
        except SchemaValidationError as e:
            raise ValidationError(f"Malformed option: {e}") from e

        if any(not o.text for o in parsed):
            raise ValidationError("Option text cannot be empty")
        correct = sum(1 for o in parsed if o.is_correct)
        if correct != 1:
            raise ValidationError(f"Exactly one option must be correct, got {correct}")

        if difficulty is not None and not isinstance(difficulty, Difficulty):
            try:
                difficulty = Difficulty(str(difficulty).strip().lower())
            except ValueError as e:
                raise ValidationError(f"Unknown difficulty: {difficulty}") from e
        return text, parsed, difficulty.value if difficulty else None

    async def add_question(
        self, text: str, options: Sequence[Any], category_name: str, difficulty: Optional[str]
    ) -> int:
        text, options, difficulty = self._validate_question(text, options, difficulty)

        async with self._transaction() as db:
            category_id = await self._resolve_category(db, category_name)
            question = Question(
                text=text,
                category_id=category_id,
                difficulty=difficulty,
                options=[Option(text=o.text, is_correct=o.is_correct) for o in options],
            )
            db.add(question)
            await db.flush()
            question_id = question.id

        logger.info("Question added", question_id=question_id, category=category_name, difficulty=difficulty)
        return question_id

    async def update_question(
        self, question_id: int, text: str, options: Sequence[Any], category_name: str, difficulty: Optional[str]
    ) -> None:
        """Replace text, category, difficulty and all four options in one transaction."""
        text, options, difficulty = self._validate_question(text, options, difficulty)

        async with self._transaction() as db:
            # A missing question wins over an unknown category
            existing = await db.execute(select(Question.id).where(Question.id == question_id))
            if existing.scalar_one_or_none() is None:
                raise NotFoundError(f"Question {question_id} not found")
            category_id = await self._resolve_category(db, category_name)

            result = await db.execute(
                update(Question)
                .where(Question.id == question_id)
                .values(text=text, category_id=category_id, difficulty=difficulty)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Question {question_id} not found")

            await db.execute(
                delete(Option).where(Option.question_id == question_id).execution_options(synchronize_session=False)
            )
            await db.execute(
                insert(Option),
                [{"question_id": question_id, "text": o.text, "is_correct": o.is_correct} for o in options],
            )

        logger.info("Question updated", question_id=question_id)

    async def delete_question(self, question_id: int) -> None:
        async with self._transaction() as db:
            # Explicit so the guarantee holds even where the FK cascade is not enforced
            await db.execute(
                delete(Option).where(Option.question_id == question_id).execution_options(synchronize_session=False)
            )
            result = await db.execute(
                delete(Question).where(Question.id == question_id).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Question {question_id} not found")

        logger.info("Question deleted", question_id=question_id)

    # --- Users ---

    async def create_user(self, username: str, password: str, is_admin: bool = False) -> User:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username cannot be empty")
        if not password:
            raise ValidationError("Password cannot be empty")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")

        password_hash = await self.hasher.hash(password)

        conflict = DuplicateUsernameError(f"Username already taken: {username}")
        async with self._transaction(on_conflict=conflict) as db:
            user = User(username=username, password_hash=password_hash, is_admin=is_admin)
            db.add(user)
            await db.flush()

        logger.info("New user created", user_id=user.id, username=username, is_admin=is_admin)
        return user

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """The matching user, or None for an unknown username or a wrong password."""
        async with self._read() as db:
            result = await db.execute(select(User).where(User.username == (username or "").strip()))
            user = result.scalar_one_or_none()

        if user is None or not password:
            return None
        if not await self.hasher.verify(password, user.password_hash):
            logger.info("Authentication failed", username=user.username)
            return None
        return user
