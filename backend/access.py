# access.py
import logging

from sqlalchemy.orm import Session

import models
from config import ADMIN_USER_IDS

logger = logging.getLogger(__name__)

ENTITLEMENT_STATUSES = ("active", "revoked")

class AccessError(Exception):
    pass

def is_admin(user_id: str) -> bool:
    return user_id in ADMIN_USER_IDS

def _find_entitlement(db: Session, user_id: str, lab_id: int):
    return (
        db.query(models.Entitlement)
        .filter(models.Entitlement.user_id == user_id, models.Entitlement.lab_id == lab_id)
        .first()
    )

def has_active_entitlement(db: Session, user_id: str, lab_id: int) -> bool:
    entitlement = _find_entitlement(db, user_id, lab_id)
    return entitlement is not None and entitlement.status == "active"

def require_admin(user_id: str) -> None:
    if not is_admin(user_id):
        raise AccessError("Admin access required")

def require_lab_access(db: Session, user_id: str, lab_id: int) -> None:
    """Learner features need an admin or an active entitlement for the lab."""
    if is_admin(user_id) or has_active_entitlement(db, user_id, lab_id):
        return
    raise AccessError("You do not have full access to this lab")

def set_entitlement(db: Session, user_id: str, lab_id: int, grant: bool) -> models.Entitlement:
    """Grant or revoke a learner's access. The row is kept on revoke so the history stays visible."""
    entitlement = _find_entitlement(db, user_id, lab_id)
    if not entitlement:
        entitlement = models.Entitlement(user_id=user_id, lab_id=lab_id)
        db.add(entitlement)
    entitlement.status = "active" if grant else "revoked"
    db.commit()
    db.refresh(entitlement)
    logger.info("Entitlement for user %s on lab %s is now %s", user_id, lab_id, entitlement.status)
    return entitlement
