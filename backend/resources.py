# resources.py
from dataclasses import dataclass
from typing import List, Optional, Sequence

from blocks import DayBlock, extract_youtube_video_id
from rich_text import strip_rich_text

PREVIEW_MAX_CHARS = 160


@dataclass(frozen=True)
class PrimaryResource:
    """The block that drives a day's "engage before completing" gating."""

    block: Optional[DayBlock] = None
    video_id: Optional[str] = None

    @property
    def is_gating_video(self) -> bool:
        return self.block is not None and self.block.type == "video" and self.video_id is not None


def _video_id(block: DayBlock) -> Optional[str]:
    return extract_youtube_video_id(block.url) if block.type == "video" else None


def resolve_primary_resource(blocks: Sequence[DayBlock]) -> PrimaryResource:
    """
    Pick the main resource of a day.

    Precedence, always first in document order: an explicit primary resource
    block, then a resource video with a YouTube id, then any resource block.
    Days with only challenge blocks have no primary resource.
    """
    resources = [b for b in blocks if b.group == "resource"]

    for block in resources:
        if block.role == "primary":
            return PrimaryResource(block=block, video_id=_video_id(block))
    for block in resources:
        video_id = _video_id(block)
        if video_id:
            return PrimaryResource(block=block, video_id=video_id)
    if resources:
        return PrimaryResource(block=resources[0], video_id=_video_id(resources[0]))
    return PrimaryResource()


def primary_video_url(blocks: Sequence[DayBlock]) -> Optional[str]:
    """Value for the legacy `video_url` column."""
    block = resolve_primary_resource(blocks).block
    if block is not None and block.type == "video" and block.url.strip():
        return block.url.strip()
    return None


@dataclass
class DaySummary:
    resource_blocks: int = 0
    challenge_blocks: int = 0
    checklist_items: int = 0
    quiz_questions: int = 0
    challenge_steps: int = 0
    preview: str = ""
    discussion_prompt: str = ""
    primary_block_id: Optional[str] = None
    gated: bool = False


def _preview(text: str, limit: int = PREVIEW_MAX_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0] or text[:limit]
    return cut.rstrip(" ,.;:") + "…"


def summarize_day(blocks: List[DayBlock], discussion_prompt: str = "") -> DaySummary:
    primary = resolve_primary_resource(blocks)
    summary = DaySummary(
        discussion_prompt=(discussion_prompt or "").strip(),
        primary_block_id=primary.block.id if primary.block else None,
        gated=primary.is_gating_video,
    )

    for block in blocks:
        if block.group == "resource":
            summary.resource_blocks += 1
        else:
            summary.challenge_blocks += 1

        if block.type == "checklist":
            summary.checklist_items += len(block.items)
        elif block.type == "quiz":
            summary.quiz_questions += len(block.questions)
        elif block.type == "challenge_steps":
            summary.challenge_steps += len(block.steps)
        elif block.type == "text" and not summary.preview:
            summary.preview = _preview(strip_rich_text(block.text))

    return summary
