# main.py
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from config import CORS_ORIGINS, LOG_LEVEL, MAX_COMMENT_LENGTH
from db import Base, engine, get_db
import models, schemas
from access import AccessError, require_admin, require_lab_access, set_entitlement
from day_content import (
    ContentError,
    extract_discussion_prompt,
    parse_day_blocks,
    prepare_blocks_for_save,
    serialize_day_blocks,
)
from progress import ProgressError, complete_day
from resources import primary_video_url, resolve_primary_resource, summarize_day
from utils import (
    grade_quiz_answers,
    normalize_accent_color,
    normalize_checklist_selections,
    normalize_comment_content,
    normalize_lab_slug,
    normalize_notes,
    normalize_optional_url,
    normalize_quiz_answers,
)

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# App & CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="Labs – day content API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create tables at startup
Base.metadata.create_all(bind=engine)

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _get_lab(db: Session, lab_id: int) -> models.Lab:
    lab = db.get(models.Lab, lab_id)
    if not lab:
        raise HTTPException(status_code=404, detail="Lab not found")
    return lab

def _find_day(db: Session, lab_id: int, day_number: int):
    return (
        db.query(models.Day)
        .filter(models.Day.lab_id == lab_id, models.Day.day_number == day_number)
        .first()
    )

def _get_day(db: Session, lab_id: int, day_number: int) -> models.Day:
    day = _find_day(db, lab_id, day_number)
    if not day:
        raise HTTPException(status_code=404, detail="Day not found in this lab")
    return day

def _lab_out(lab: models.Lab) -> dict:
    return {
        "id": lab.id,
        "title": lab.title,
        "description": lab.description,
        "slug": lab.slug,
        "cover_image_url": lab.cover_image_url,
        "accent_color": lab.accent_color,
        "created_at": lab.created_at.isoformat(),
    }

def _day_out(day: models.Day) -> dict:
    # Read contract: the stored (content, video_url) pair goes through the parser
    blocks = parse_day_blocks(day.content, day.video_url)
    primary = resolve_primary_resource(blocks)
    return {
        "lab_id": day.lab_id,
        "day_number": day.day_number,
        "title": day.title,
        "video_url": day.video_url,
        "blocks": blocks,
        "discussion_prompt": extract_discussion_prompt(day.content),
        "primary": {
            "block_id": primary.block.id if primary.block else None,
            "type": primary.block.type if primary.block else None,
            "video_id": primary.video_id,
            "is_gating_video": primary.is_gating_video,
        },
    }

# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------
@app.get("/api/health")
def health():
    return {"status": "ok"}

# -----------------------------------------------------------------------------
# Labs
# -----------------------------------------------------------------------------
@app.post("/api/labs", response_model=schemas.LabOut, status_code=201)
def create_lab(payload: schemas.LabIn, db: Session = Depends(get_db)):
    slug = normalize_lab_slug(payload.slug or payload.title) or None
    if slug and db.query(models.Lab).filter(models.Lab.slug == slug).first():
        raise HTTPException(status_code=409, detail=f"Slug '{slug}' is already in use")

    lab = models.Lab(
        title=payload.title.strip(),
        description=(payload.description or "").strip() or None,
        slug=slug,
        cover_image_url=normalize_optional_url(payload.cover_image_url),
        accent_color=normalize_accent_color(payload.accent_color),
    )
    db.add(lab)
    db.commit()
    db.refresh(lab)
    logger.info("Created lab %s (%s)", lab.id, lab.slug)
    return _lab_out(lab)

@app.get("/api/labs", response_model=list[schemas.LabOut])
def list_labs(db: Session = Depends(get_db)):
    rows = db.query(models.Lab).order_by(models.Lab.created_at.desc()).all()
    return [_lab_out(r) for r in rows]

@app.post("/api/labs/{lab_id}/duplicate", response_model=schemas.LabOut, status_code=201)
def duplicate_lab(lab_id: int, db: Session = Depends(get_db)):
    source = _get_lab(db, lab_id)

    copy = models.Lab(
        title=f"{source.title} (Copy)",
        description=source.description,
        cover_image_url=source.cover_image_url,
        accent_color=source.accent_color,
    )
    db.add(copy)
    db.flush()

    # Content is copied verbatim; block ids stay stable in the copy
    for day in source.days:
        db.add(models.Day(
            lab_id=copy.id,
            day_number=day.day_number,
            title=day.title,
            video_url=day.video_url,
            content=day.content,
        ))

    db.commit()
    db.refresh(copy)
    logger.info("Duplicated lab %s into %s", source.id, copy.id)
    return _lab_out(copy)

# -----------------------------------------------------------------------------
# Days
# -----------------------------------------------------------------------------
@app.get("/api/labs/{lab_id}/days", response_model=schemas.DayListOut)
def list_days(lab_id: int, db: Session = Depends(get_db)):
    lab = _get_lab(db, lab_id)
    items = []
    for day in lab.days:
        blocks = parse_day_blocks(day.content, day.video_url)
        summary = summarize_day(blocks, extract_discussion_prompt(day.content))
        items.append({"day_number": day.day_number, "title": day.title, **vars(summary)})
    return {"items": items}

@app.get("/api/labs/{lab_id}/days/{day_number}", response_model=schemas.DayOut)
def get_day(lab_id: int, day_number: int, db: Session = Depends(get_db)):
    return _day_out(_get_day(db, lab_id, day_number))

@app.put("/api/labs/{lab_id}/days/{day_number}", response_model=schemas.DayOut)
def save_day(lab_id: int, day_number: int, payload: schemas.DayIn, db: Session = Depends(get_db)):
    _get_lab(db, lab_id)
    if day_number < 1:
        raise HTTPException(status_code=400, detail="day_number must be 1 or greater")

    try:
        blocks = prepare_blocks_for_save(payload.blocks)
    except ContentError as e:
        raise HTTPException(status_code=422, detail=str(e))

    # Write contract: serialized payload in `content`, primary video mirrored in `video_url`
    day = _find_day(db, lab_id, day_number)
    if not day:
        day = models.Day(lab_id=lab_id, day_number=day_number)
        db.add(day)
    day.title = payload.title.strip()
    day.content = serialize_day_blocks(blocks, payload.discussion_prompt)
    day.video_url = primary_video_url(blocks)

    db.commit()
    db.refresh(day)
    logger.info("Saved lab %s day %s with %d block(s)", lab_id, day_number, len(blocks))
    return _day_out(day)

@app.delete("/api/labs/{lab_id}/days/{day_number}", status_code=204)
def delete_day(lab_id: int, day_number: int, db: Session = Depends(get_db)):
    day = _get_day(db, lab_id, day_number)
    db.delete(day)
    db.commit()
    logger.info("Deleted lab %s day %s", lab_id, day_number)

# -----------------------------------------------------------------------------
# Learner state & progress (user_id comes from the identity provider)
# -----------------------------------------------------------------------------
def _find_state(db: Session, user_id: str, lab_id: int, day_number: int):
    return (
        db.query(models.DayLearningState)
        .filter(
            models.DayLearningState.user_id == user_id,
            models.DayLearningState.lab_id == lab_id,
            models.DayLearningState.day_number == day_number,
        )
        .first()
    )

def _require_access(db: Session, user_id: str, lab_id: int):
    try:
        require_lab_access(db, user_id, lab_id)
    except AccessError as e:
        raise HTTPException(status_code=403, detail=str(e))

def _state_out(day: models.Day, state) -> dict:
    quiz_answers = normalize_quiz_answers(state.quiz_answers) if state else {}
    blocks = parse_day_blocks(day.content, day.video_url)
    return {
        "notes": normalize_notes(state.notes) if state else "",
        "checklist_selections": normalize_checklist_selections(state.checklist_selections) if state else {},
        "quiz_answers": quiz_answers,
        "quiz_grades": grade_quiz_answers(blocks, quiz_answers),
        "updated_at": state.updated_at.isoformat() if state and state.updated_at else None,
    }

@app.get("/api/labs/{lab_id}/days/{day_number}/state", response_model=schemas.DayStateOut)
def get_day_state(lab_id: int, day_number: int, user_id: str = Query(min_length=1), db: Session = Depends(get_db)):
    day = _get_day(db, lab_id, day_number)
    _require_access(db, user_id, lab_id)
    return _state_out(day, _find_state(db, user_id, lab_id, day_number))

@app.put("/api/labs/{lab_id}/days/{day_number}/state", response_model=schemas.DayStateOut)
def save_day_state(
    lab_id: int,
    day_number: int,
    payload: schemas.DayStateIn,
    user_id: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    day = _get_day(db, lab_id, day_number)
    _require_access(db, user_id, lab_id)

    state = _find_state(db, user_id, lab_id, day_number)
    if not state:
        state = models.DayLearningState(user_id=user_id, lab_id=lab_id, day_number=day_number)
        db.add(state)
    state.notes = normalize_notes(payload.notes)
    state.checklist_selections = normalize_checklist_selections(payload.checklist_selections)
    state.quiz_answers = normalize_quiz_answers(payload.quiz_answers)

    db.commit()
    db.refresh(state)
    return _state_out(day, state)

@app.post("/api/labs/{lab_id}/days/{day_number}/complete", response_model=schemas.ProgressOut)
def complete(lab_id: int, day_number: int, user_id: str = Query(min_length=1), db: Session = Depends(get_db)):
    _get_day(db, lab_id, day_number)
    _require_access(db, user_id, lab_id)
    try:
        already = complete_day(db, user_id, lab_id, day_number)
    except ProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "already_completed": already}

# -----------------------------------------------------------------------------
# Forum (one thread per day, answering the day's discussion prompt)
# -----------------------------------------------------------------------------
def _comment_out(comment: models.Comment) -> dict:
    return {
        "id": comment.id,
        "day_number": comment.day_number,
        "user_email": comment.user_email,
        "content": comment.content,
        "created_at": comment.created_at.isoformat(),
    }

def _comments_query(db: Session, lab_id: int):
    return (
        db.query(models.Comment)
        .filter(models.Comment.lab_id == lab_id)
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
    )

def _require_admin(user_id: str):
    try:
        require_admin(user_id)
    except AccessError as e:
        raise HTTPException(status_code=403, detail=str(e))

@app.get("/api/labs/{lab_id}/days/{day_number}/comments", response_model=list[schemas.CommentOut])
def list_comments(lab_id: int, day_number: int, db: Session = Depends(get_db)):
    _get_day(db, lab_id, day_number)
    rows = _comments_query(db, lab_id).filter(models.Comment.day_number == day_number).all()
    return [_comment_out(r) for r in rows]

@app.post("/api/labs/{lab_id}/days/{day_number}/comments", response_model=schemas.CommentOut, status_code=201)
def post_comment(
    lab_id: int,
    day_number: int,
    payload: schemas.CommentIn,
    user_id: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    _get_day(db, lab_id, day_number)
    content = normalize_comment_content(payload.content)
    if not content:
        raise HTTPException(
            status_code=422,
            detail=f"Comment must contain between 1 and {MAX_COMMENT_LENGTH} characters",
        )

    comment = models.Comment(
        lab_id=lab_id,
        day_number=day_number,
        user_id=user_id,
        user_email=(payload.user_email or "").strip() or None,
        content=content,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    logger.info("User %s commented on lab %s day %s", user_id, lab_id, day_number)
    return _comment_out(comment)

# -----------------------------------------------------------------------------
# Admin: moderation & entitlements (`user_id` must be an admin)
# -----------------------------------------------------------------------------
@app.get("/api/labs/{lab_id}/comments", response_model=list[schemas.CommentOut])
def admin_list_comments(
    lab_id: int,
    user_id: str = Query(min_length=1),
    day_number: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    _require_admin(user_id)
    _get_lab(db, lab_id)
    query = _comments_query(db, lab_id)
    if day_number is not None:
        query = query.filter(models.Comment.day_number == day_number)
    return [_comment_out(r) for r in query.limit(100).all()]

@app.delete("/api/labs/{lab_id}/comments/{comment_id}", status_code=204)
def delete_comment(lab_id: int, comment_id: int, user_id: str = Query(min_length=1), db: Session = Depends(get_db)):
    _require_admin(user_id)
    comment = db.get(models.Comment, comment_id)
    if not comment or comment.lab_id != lab_id:
        raise HTTPException(status_code=404, detail="Comment not found in this lab")
    db.delete(comment)
    db.commit()
    logger.info("Admin %s deleted comment %s", user_id, comment_id)

@app.put("/api/labs/{lab_id}/entitlements/{member_id}", response_model=schemas.EntitlementOut)
def update_entitlement(
    lab_id: int,
    member_id: str,
    payload: schemas.EntitlementIn,
    user_id: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    _require_admin(user_id)
    _get_lab(db, lab_id)
    entitlement = set_entitlement(db, member_id, lab_id, payload.grant)
    return {
        "user_id": entitlement.user_id,
        "lab_id": entitlement.lab_id,
        "status": entitlement.status,
        "has_access": entitlement.status == "active",
    }
