import argparse
import asyncio
import getpass
import sys

from core.config import Settings
from core.exceptions import QuizError
from core.logger import setup_logging, logger
from core.security import PasswordHasher
from db.session import create_engine, create_session_factory, init_models
from handlers.console import ConsolePlayer
from schemas.quiz import Difficulty, OptionIn, QuizFilter
from services.question_repository import QuestionRepository
from services.quiz_engine import QuizSessionEngine
from services.result_recorder import ResultRecorder
from services.task_manager import TaskManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Quiz bank administration and console player")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create missing tables")

    p = sub.add_parser("add-category", help="Add a question category")
    p.add_argument("name")

    p = sub.add_parser("create-user", help="Create a user (password is prompted)")
    p.add_argument("username")
    p.add_argument("--admin", action="store_true")

    sub.add_parser("list-questions", help="List the question bank")

    p = sub.add_parser("add-question", help="Add a question with four options")
    p.add_argument("text")
    p.add_argument("--option", action="append", required=True, help="Repeat four times")
    p.add_argument("--correct", type=int, required=True, help="1-based number of the correct option")
    p.add_argument("--category", required=True)
    p.add_argument("--difficulty", choices=[d.value for d in Difficulty])

    p = sub.add_parser("delete-question", help="Delete a question and its options")
    p.add_argument("question_id", type=int)

    p = sub.add_parser("play", help="Play a quiz in the terminal")
    p.add_argument("username")
    p.add_argument("--category")
    p.add_argument("--difficulty", choices=[d.value for d in Difficulty])

    return parser


async def play(repository: QuestionRepository, args) -> int:
    password = getpass.getpass("Password: ")
    user = await repository.authenticate(args.username, password)
    if user is None:
        print("Invalid username or password.")
        return 1

    category_id = await repository.get_category_id(args.category) if args.category else None
    quiz_filter = QuizFilter(category_id=category_id, difficulty=args.difficulty)

    engine = QuizSessionEngine(repository, ResultRecorder(repository), user.id)
    player = ConsolePlayer(engine, TaskManager())
    await player.play(quiz_filter)
    return 0


async def run(args, settings: Settings) -> int:
    engine = create_engine(settings)
    repository = QuestionRepository(create_session_factory(engine), PasswordHasher(settings.BCRYPT_ROUNDS))

    try:
        if args.command == "init-db":
            await init_models(engine)
            print("Database schema is up to date.")

        elif args.command == "add-category":
            category_id = await repository.add_category(args.name)
            print(f"Category {args.name!r} added (id {category_id}).")

        elif args.command == "create-user":
            password = getpass.getpass("Password: ")
            user = await repository.create_user(args.username, password, args.admin)
            print(f"User {user.username!r} created (id {user.id}).")

        elif args.command == "list-questions":
            for row in await repository.list_questions_for_admin():
                print(f"{row['id']:>5}  {row['category']:<20} {row['difficulty']:<7} {row['text']}")

        elif args.command == "add-question":
            options = [OptionIn(text=text, is_correct=(i == args.correct)) for i, text in enumerate(args.option, 1)]
            question_id = await repository.add_question(args.text, options, args.category, args.difficulty)
            print(f"Question added (id {question_id}).")

        elif args.command == "delete-question":
            await repository.delete_question(args.question_id)
            print(f"Question {args.question_id} deleted.")

        elif args.command == "play":
            return await play(repository, args)

    except QuizError as e:
        print(f"Error: {e}")
        return 1
    except EOFError:
        # Ctrl-D at the password prompt
        print("\nAborted.")
        return 1
    finally:
        await engine.dispose()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()

    # Setup structured logging
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    try:
        return asyncio.run(run(args, settings))
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
