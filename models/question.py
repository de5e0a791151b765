from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from models.base import Base, TimestampMixin

class Question(Base, TimestampMixin):
    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint("difficulty IN ('easy', 'medium', 'hard')", name="ck_questions_difficulty"),
    )

    id = Column(Integer, primary_key=True, index=True)
    text = Column("question_text", Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), index=True, nullable=True)
    difficulty = Column(String(10), nullable=True)

    # Insertion order is the display order; the admin editor round-trips it
    options = relationship(
        "Option",
        back_populates="question",
        order_by="Option.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

class Option(Base):
    __tablename__ = "options"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    text = Column("option_text", Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)

    question = relationship("Question", back_populates="options")
