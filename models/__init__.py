from models.base import Base
from models.category import Category
from models.question import Question, Option
from models.user import User
from models.score import Score

__all__ = ["Base", "Category", "Question", "Option", "User", "Score"]
