from core.logger import logger
from schemas.quiz import ScoreRecord


class ResultRecorder:
    """Persists the score of a finished session. One attempt per call, no retry."""

    def __init__(self, repository):
        self.repository = repository

    async def save(self, record: ScoreRecord) -> int:
        # PersistError propagates; the engine decides it is non-fatal
        score_id = await self.repository.save_score(record)
        logger.info("Score saved", score_id=score_id, user_id=record.user_id, score=record.score, total=record.total)
        return score_id
