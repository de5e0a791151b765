from sqlalchemy import Column, Integer, String, ForeignKey
from models.base import Base, CreatedAtMixin

class Score(Base, CreatedAtMixin):
    """One row per completed session. Rows are only ever inserted."""
    __tablename__ = "scores"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    score = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    difficulty = Column(String(10), nullable=True)
