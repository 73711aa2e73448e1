# progress.py
import logging

from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)

class ProgressError(Exception):
    pass

def is_day_completed(db: Session, user_id: str, lab_id: int, day_number: int) -> bool:
    return (
        db.query(models.Progress)
        .filter(
            models.Progress.user_id == user_id,
            models.Progress.lab_id == lab_id,
            models.Progress.day_number == day_number,
        )
        .first()
        is not None
    )

def complete_day(db: Session, user_id: str, lab_id: int, day_number: int) -> bool:
    """
    Mark a day as completed for a learner.
    Days are completed in order: day N needs day N-1 first (ProgressError otherwise).
    Returns True when the day was already completed.
    """
    if is_day_completed(db, user_id, lab_id, day_number):
        return True

    if day_number > 1 and not is_day_completed(db, user_id, lab_id, day_number - 1):
        raise ProgressError("Complete the previous day first")

    db.add(models.Progress(user_id=user_id, lab_id=lab_id, day_number=day_number))
    db.commit()
    logger.info("User %s completed lab %s day %s", user_id, lab_id, day_number)
    return False
