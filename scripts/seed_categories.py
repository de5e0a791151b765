import asyncio
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings
from core.exceptions import ValidationError
from core.logger import setup_logging, logger
from core.security import PasswordHasher
from db.session import create_engine, create_session_factory
from services.question_repository import QuestionRepository

DEFAULT_CATEGORIES = ["General Knowledge", "Science", "History", "Geography", "Programming"]

async def seed_categories(names):
    settings = Settings()
    engine = create_engine(settings)
    repository = QuestionRepository(create_session_factory(engine), PasswordHasher(settings.BCRYPT_ROUNDS))

    try:
        existing = set(await repository.list_categories())
        for name in names:
            if name in existing:
                print(f"Skipping existing category: {name}")
                continue
            try:
                await repository.add_category(name)
                print(f"✅ Added category: {name}")
            except ValidationError as e:
                logger.warning("Category not added", name=name, error=str(e))
    finally:
        await engine.dispose()

if __name__ == "__main__":
    setup_logging()
    if os.name == 'nt':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(seed_categories(sys.argv[1:] or DEFAULT_CATEGORIES))
