"""
Shared helpers for quiz bank tests.
"""
import sys
import os
import random
import tempfile
import unittest
from types import SimpleNamespace

from sqlalchemy import func, select

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings
from core.security import PasswordHasher
from db.session import create_engine, create_session_factory, init_models
from schemas.quiz import OptionIn
from services.question_repository import QuestionRepository


def make_settings(database_dir: str, **overrides) -> Settings:
    """Throwaway SQLite database, cheap bcrypt cost"""
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{os.path.join(database_dir, 'quiz.db')}",
        "BCRYPT_ROUNDS": 4,
    }
    values.update(overrides)
    return Settings(**values)


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh SQLite database with all tables for every test."""

    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

        self.settings = make_settings(self._tmp.name)
        self.engine = create_engine(self.settings)
        await init_models(self.engine)
        self.session_factory = create_session_factory(self.engine)
        self.repository = QuestionRepository(self.session_factory, PasswordHasher(self.settings.BCRYPT_ROUNDS))

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def add_categories(self):
        """Category name -> id"""
        self.categories = {name: await self.repository.add_category(name) for name in ("Science", "History")}
        return self.categories

    async def count_rows(self, model, *criteria) -> int:
        async with self.engine.connect() as conn:
            query = select(func.count()).select_from(model)
            if criteria:
                query = query.where(*criteria)
            return (await conn.execute(query)).scalar()


def make_options(correct: int = 0, prefix: str = "Option"):
    return [OptionIn(text=f"{prefix} {i}", is_correct=(i == correct)) for i in range(4)]


class KeepOrder(random.Random):
    """Shuffle that leaves the fetched order alone"""
    def shuffle(self, x):
        pass


def make_question(question_id: int, correct: int):
    """In-memory stand-in for a loaded Question with four options"""
    return SimpleNamespace(
        id=question_id,
        text=f"Question {question_id}",
        options=[SimpleNamespace(text=f"Answer {i}", is_correct=(i == correct)) for i in range(4)],
    )
