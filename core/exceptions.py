"""
Error taxonomy shared by the repository, the session engine and the presentation layer.

Repository code never lets a raw driver/SQLAlchemy exception escape: it is translated
into one of the classes below and chained with ``raise ... from``.
"""


class QuizError(Exception):
    """Base class for every recoverable quiz-bank failure."""


class ValidationError(QuizError):
    """Malformed input the caller can correct (wrong option count, blank text, ...)."""


class ReferentialError(QuizError):
    """A foreign key does not resolve, e.g. an unknown category name."""


class NotFoundError(QuizError):
    """An id does not resolve to a row."""


class DuplicateUsernameError(QuizError):
    """The username is already taken."""


class PersistError(QuizError):
    """Infrastructure failure while writing."""


class LoadError(QuizError):
    """Infrastructure failure while reading."""


class EmptyQuestionSetError(QuizError):
    """The filter matched no questions, so there is nothing to play."""


class InvalidInputError(QuizError):
    """The player submitted without choosing an option, or chose one out of range."""


class SessionStateError(RuntimeError):
    """The engine was driven out of order (double submit, restart, submit after completion).

    This is a programming error in the caller, not a runtime condition to recover from.
    """
