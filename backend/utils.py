# utils.py
import re
import unicodedata

from config import MAX_COMMENT_LENGTH, MAX_NOTES_LENGTH

MAX_CHECKLIST_SELECTIONS = 200
MAX_QUIZ_ANSWER = 20


# --- Learner day state --------------------------------------------------------
def normalize_notes(raw) -> str:
    if not isinstance(raw, str):
        return ""
    return raw[:MAX_NOTES_LENGTH]


def normalize_checklist_selections(raw) -> dict:
    """{block_id: [item_id, ...]} with non-string entries removed."""
    if not isinstance(raw, dict):
        return {}
    out = {}
    for block_id, value in raw.items():
        if not isinstance(block_id, str) or not isinstance(value, list):
            continue
        out[block_id] = [v for v in value if isinstance(v, str)][:MAX_CHECKLIST_SELECTIONS]
    return out


def normalize_quiz_answers(raw) -> dict:
    """{block_id: {question_id: option_index}}"""
    if not isinstance(raw, dict):
        return {}
    out = {}
    for block_id, value in raw.items():
        if not isinstance(block_id, str) or not isinstance(value, dict):
            continue
        out[block_id] = {
            question_id: answer
            for question_id, answer in value.items()
            if isinstance(question_id, str)
            and isinstance(answer, int)
            and not isinstance(answer, bool)
            and 0 <= answer <= MAX_QUIZ_ANSWER
        }
    return out


def grade_quiz_answers(blocks, quiz_answers: dict) -> dict:
    grades = {}
    for block in blocks:
        if block.type != "quiz":
            continue
        answers = quiz_answers.get(block.id, {})
        gradable = [q for q in block.questions if q.correct_index is not None]
        grades[block.id] = {
            "correct": sum(1 for q in gradable if answers.get(q.id) == q.correct_index),
            "total": len(gradable),
        }
    return grades


# --- Lab metadata ---------------------------------------------------------------
def normalize_lab_slug(raw: str) -> str:
    value = unicodedata.normalize("NFD", (raw or "").strip().lower())
    value = "".join(c for c in value if not unicodedata.combining(c))
    value = re.sub(r"[^a-z0-9]+", "-", value).strip("-")
    return value[:80]


def normalize_optional_url(raw):
    value = (raw or "").strip()
    if not value or len(value) > 1024:
        return None
    return value


def normalize_accent_color(raw):
    value = (raw or "").strip()
    short = re.fullmatch(r"#([0-9a-fA-F]{3})", value)
    if short:
        r, g, b = short.group(1)
        return f"#{r}{r}{g}{g}{b}{b}".upper()
    full = re.fullmatch(r"#([0-9a-fA-F]{6})", value)
    if full:
        return f"#{full.group(1).upper()}"
    return None


# --- Forum ----------------------------------------------------------------------
def normalize_comment_content(raw) -> str:
    """Trimmed comment text; "" when empty or longer than MAX_COMMENT_LENGTH."""
    value = raw.strip() if isinstance(raw, str) else ""
    if len(value) > MAX_COMMENT_LENGTH:
        return ""
    return value
