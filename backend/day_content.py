# day_content.py
"""
Storage encoding for a day's blocks.

`Day.content` holds a JSON document `{"version": 2, "blocks": [...],
"discussionPrompt": "..."}`. Older rows may contain a version 1 document, a
bare JSON array of blocks, or plain text paired with a separate `video_url`
column. Reading is lenient and never raises; saving goes through
`prepare_blocks_for_save`, which is strict.
"""
import json
import logging
from typing import Any, Iterable, List, Optional

from blocks import (
    BLOCK_MODELS,
    BLOCK_TYPES,
    MEDIA_BLOCK_TYPES,
    ChallengeStep,
    ChecklistItem,
    DayBlock,
    QuizQuestion,
    TextBlock,
    VideoBlock,
    new_block_id,
    normalize_placement,
    step_label,
)
from rich_text import has_rich_text_content, normalize_rich_text_input

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 2

LEGACY_VIDEO_ID = "legacy_video"
LEGACY_TEXT_ID = "legacy_text"

_UNDECODABLE = object()


class ContentError(Exception):
    pass


# -----------------------------------------------------------------------------
# Serializer
# -----------------------------------------------------------------------------
def _dump_block(block: DayBlock) -> dict:
    data = block.model_dump(mode="json", by_alias=True)
    for key in ("title", "resourceSlot"):
        if data.get(key) is None:
            data.pop(key, None)
    for question in data.get("questions", []):
        if question.get("explanation") is None:
            question.pop("explanation", None)
    return data


def serialize_day_blocks(blocks: Iterable[DayBlock], discussion_prompt: Optional[str] = None) -> str:
    payload = {
        "version": PAYLOAD_VERSION,
        "blocks": [_dump_block(b) for b in blocks],
    }
    prompt = (discussion_prompt or "").strip()
    if prompt:
        payload["discussionPrompt"] = prompt
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------
def _decode(content) -> Any:
    if not isinstance(content, str) or not content.strip():
        return _UNDECODABLE
    try:
        return json.loads(content)
    except (ValueError, RecursionError):
        return _UNDECODABLE


def _looks_like_json(content: str) -> bool:
    return content.lstrip()[:1] in ("{", "[")


def _text(value) -> str:
    return value if isinstance(value, str) else ""


def _optional_text(value) -> Optional[str]:
    return value if isinstance(value, str) else None


def _option_text(value) -> str:
    # Keep one entry per stored option so correctIndex stays aligned
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _claim_id(value, fallback: str, seen: set) -> str:
    candidate = value if isinstance(value, str) and value else fallback
    if candidate in seen:
        candidate, n = fallback, 2
        while candidate in seen:
            candidate = f"{fallback}_{n}"
            n += 1
    seen.add(candidate)
    return candidate


def _normalize_items(raw_items, block_id: str) -> List[ChecklistItem]:
    items, seen = [], set()
    for position, raw in enumerate(raw_items if isinstance(raw_items, list) else [], start=1):
        fallback = f"{block_id}_item_{position}"
        if isinstance(raw, str):
            items.append(ChecklistItem(id=_claim_id(None, fallback, seen), text=raw))
        elif isinstance(raw, dict):
            items.append(ChecklistItem(id=_claim_id(raw.get("id"), fallback, seen), text=_text(raw.get("text"))))
    return items


def _normalize_questions(raw_questions, block_id: str) -> List[QuizQuestion]:
    questions, seen = [], set()
    for position, raw in enumerate(raw_questions if isinstance(raw_questions, list) else [], start=1):
        if not isinstance(raw, dict):
            continue
        raw_options = raw.get("options")
        options = [_option_text(o) for o in raw_options] if isinstance(raw_options, list) else []
        index = raw.get("correctIndex")
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(options):
            index = None
        questions.append(
            QuizQuestion(
                id=_claim_id(raw.get("id"), f"{block_id}_q_{position}", seen),
                prompt=_text(raw.get("prompt")),
                options=options,
                correct_index=index,
                explanation=_optional_text(raw.get("explanation")),
            )
        )
    return questions


def _normalize_steps(raw_steps, block_id: str) -> List[ChallengeStep]:
    steps, seen = [], set()
    for position, raw in enumerate(raw_steps if isinstance(raw_steps, list) else [], start=1):
        fallback = f"{block_id}_step_{position}"
        if isinstance(raw, str):
            steps.append(ChallengeStep(id=_claim_id(None, fallback, seen), label=step_label(position), text=raw))
        elif isinstance(raw, dict):
            label = raw.get("label")
            steps.append(
                ChallengeStep(
                    id=_claim_id(raw.get("id"), fallback, seen),
                    label=label if isinstance(label, str) and label.strip() else step_label(position),
                    text=_text(raw.get("text")),
                )
            )
    return steps


def _normalize_block(raw, position: int, seen_ids: set) -> Optional[DayBlock]:
    if not isinstance(raw, dict):
        return None
    block_type = raw.get("type")
    if block_type not in BLOCK_TYPES:
        logger.debug("Skipping block with unknown type %r", block_type)
        return None

    # Positional fallback keeps ids stable across reads of the same content
    block_id = _claim_id(raw.get("id"), f"block_{position}", seen_ids)

    group, role, slot = normalize_placement(block_type, raw.get("group"), raw.get("role"), raw.get("resourceSlot"))
    fields = {"id": block_id, "group": group, "role": role, "resource_slot": slot}

    if block_type == "text":
        fields["text"] = _text(raw.get("text"))
    elif block_type in MEDIA_BLOCK_TYPES:
        fields["url"] = _text(raw.get("url"))
        fields["caption"] = _text(raw.get("caption"))
    else:
        fields["title"] = _optional_text(raw.get("title"))
        if block_type == "checklist":
            fields["items"] = _normalize_items(raw.get("items"), block_id)
        elif block_type == "quiz":
            fields["questions"] = _normalize_questions(raw.get("questions"), block_id)
        else:
            fields["steps"] = _normalize_steps(raw.get("steps"), block_id)

    return BLOCK_MODELS[block_type](**fields)


def _normalize_blocks(raw_blocks: list) -> List[DayBlock]:
    seen_ids: set = set()
    blocks = []
    for position, raw in enumerate(raw_blocks, start=1):
        block = _normalize_block(raw, position, seen_ids)
        if block is not None:
            blocks.append(block)
    return blocks


def _detect_object_payload(document) -> Optional[List[DayBlock]]:
    """{"version": 1|2, "blocks": [...]}"""
    if not isinstance(document, dict) or not isinstance(document.get("blocks"), list):
        return None
    version = document.get("version")
    if version not in (1, PAYLOAD_VERSION):
        logger.debug("Reading day content with unexpected version %r", version)
    return _normalize_blocks(document["blocks"])


def _detect_bare_array(document) -> Optional[List[DayBlock]]:
    if not isinstance(document, list):
        return None
    return _normalize_blocks(document)


FORMAT_DETECTORS = (_detect_object_payload, _detect_bare_array)


def _legacy_blocks(content, legacy_video_url, structured: bool) -> List[DayBlock]:
    blocks: List[DayBlock] = []
    video_url = legacy_video_url.strip() if isinstance(legacy_video_url, str) else ""
    if video_url:
        blocks.append(
            VideoBlock(id=LEGACY_VIDEO_ID, group="resource", role="primary", resource_slot="none", url=video_url)
        )

    text = content.strip() if isinstance(content, str) else ""
    if text and not structured and not _looks_like_json(text):
        role = "support" if blocks else "primary"
        _, role, slot = normalize_placement("text", "resource", role)
        blocks.append(TextBlock(id=LEGACY_TEXT_ID, group="resource", role=role, resource_slot=slot, text=text))

    if blocks:
        logger.debug("Upgraded legacy day content into %d block(s)", len(blocks))
    return blocks


def parse_day_blocks(content: Optional[str], legacy_video_url: Optional[str] = None) -> List[DayBlock]:
    """
    Rebuild the block list stored in a day row.

    Formats are tried in order: JSON object payload, bare JSON array, then the
    legacy plain text / `video_url` pair. Unknown or corrupt blocks are dropped
    one by one; the result is always a list.
    """
    document = _decode(content)
    if document is not _UNDECODABLE:
        for detector in FORMAT_DETECTORS:
            blocks = detector(document)
            if blocks is not None:
                if blocks:
                    return blocks
                break
    structured = document is None or isinstance(document, (dict, list))
    return _legacy_blocks(content, legacy_video_url, structured)


def extract_discussion_prompt(content: Optional[str]) -> str:
    document = _decode(content)
    if isinstance(document, dict) and isinstance(document.get("discussionPrompt"), str):
        return document["discussionPrompt"].strip()
    return ""


# -----------------------------------------------------------------------------
# Save-time normalization
# -----------------------------------------------------------------------------
def _clean_checklist(block):
    items, seen = [], set()
    for item in block.items:
        text = item.text.strip()
        if not text or item.id in seen:
            continue
        seen.add(item.id)
        items.append(item.model_copy(update={"text": text}))
    if not items:
        return None
    return block.model_copy(update={"title": (block.title or "").strip() or None, "items": items})


def _clean_question(question: QuizQuestion) -> Optional[QuizQuestion]:
    prompt = question.prompt.strip()
    options, correct_index = [], None
    for index, option in enumerate(question.options):
        option = option.strip()
        if not option:
            continue
        if index == question.correct_index:
            correct_index = len(options)
        options.append(option)
    if not prompt or len(options) < 2:
        return None
    return question.model_copy(
        update={
            "prompt": prompt,
            "options": options,
            "correct_index": correct_index,
            "explanation": (question.explanation or "").strip() or None,
        }
    )


def _clean_quiz(block):
    questions, seen = [], set()
    for question in block.questions:
        cleaned = _clean_question(question)
        if cleaned is None or cleaned.id in seen:
            continue
        seen.add(cleaned.id)
        questions.append(cleaned)
    if not questions:
        return None
    return block.model_copy(update={"title": (block.title or "").strip() or None, "questions": questions})


def _clean_steps(block):
    steps, seen = [], set()
    for step in block.steps:
        text = step.text.strip()
        if not text or step.id in seen:
            continue
        seen.add(step.id)
        label = step.label.strip() or step_label(len(steps) + 1)
        steps.append(step.model_copy(update={"label": label, "text": text}))
    if not steps:
        return None
    return block.model_copy(update={"title": (block.title or "").strip() or None, "steps": steps})


def _clean_block(block: DayBlock) -> Optional[DayBlock]:
    if block.type == "text":
        text = normalize_rich_text_input(block.text)
        return block.model_copy(update={"text": text}) if has_rich_text_content(text) else None
    if block.type in MEDIA_BLOCK_TYPES:
        url = block.url.strip()
        return block.model_copy(update={"url": url, "caption": block.caption.strip()}) if url else None
    if block.type == "checklist":
        return _clean_checklist(block)
    if block.type == "quiz":
        return _clean_quiz(block)
    return _clean_steps(block)


def prepare_blocks_for_save(blocks: Iterable[DayBlock]) -> List[DayBlock]:
    """
    Strict pass run before `serialize_day_blocks` on the write path.

    Empty blocks and sub-entries are pruned, placement is normalized and only
    the first primary block keeps its role. Raises ContentError when nothing
    is left to store.
    """
    prepared: List[DayBlock] = []
    seen_ids: set = set()
    has_primary = False
    for block in blocks:
        cleaned = _clean_block(block)
        if cleaned is None:
            continue

        group, role, slot = normalize_placement(cleaned.type, cleaned.group, cleaned.role, cleaned.resource_slot)
        if role == "primary":
            if has_primary:
                group, role, slot = normalize_placement(cleaned.type, group, "support")
            has_primary = True

        block_id = cleaned.id if cleaned.id and cleaned.id not in seen_ids else new_block_id()
        seen_ids.add(block_id)
        prepared.append(
            cleaned.model_copy(update={"id": block_id, "group": group, "role": role, "resource_slot": slot})
        )

    if not prepared:
        raise ContentError("Add at least one block with content.")
    return prepared
