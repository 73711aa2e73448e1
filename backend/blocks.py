# blocks.py
"""
Day content block schema.

A day is an ordered list of blocks. Each block type is its own pydantic model
and `DayBlock` is the union discriminated on `type`. Blocks are frozen: edits
go through `model_copy(update=...)` so every change produces a new value.
"""
import re
import uuid
from typing import Annotated, List, Literal, Optional, Tuple, Union, get_args

from pydantic import BaseModel, ConfigDict, Field

BlockType = Literal["text", "video", "audio", "image", "file", "checklist", "quiz", "challenge_steps"]
BlockGroup = Literal["resource", "challenge"]
BlockRole = Literal["primary", "support"]
ResourceSlot = Literal["link", "download", "text", "media", "none"]

BLOCK_TYPES: Tuple[str, ...] = get_args(BlockType)
BLOCK_GROUPS: Tuple[str, ...] = get_args(BlockGroup)
BLOCK_ROLES: Tuple[str, ...] = get_args(BlockRole)
RESOURCE_SLOTS: Tuple[str, ...] = get_args(ResourceSlot)

MEDIA_BLOCK_TYPES = ("video", "audio", "image", "file")
CHALLENGE_BLOCK_TYPES = ("checklist", "quiz", "challenge_steps")

# Slots a resource/support block may use; the first one is the default.
RESOURCE_SLOTS_BY_TYPE = {
    "text": ("text", "none"),
    "video": ("link", "none"),
    "audio": ("link", "none"),
    "image": ("media", "link", "none"),
    "file": ("download", "link", "none"),
    "checklist": ("none",),
    "quiz": ("none",),
    "challenge_steps": ("none",),
}

STEP_LABEL_PREFIX = "Paso"

YOUTUBE_RE = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


class BlockModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ChecklistItem(BlockModel):
    id: str
    text: str = ""


class QuizQuestion(BlockModel):
    id: str
    prompt: str = ""
    options: List[str] = Field(default_factory=list)
    correct_index: Optional[int] = Field(default=None, alias="correctIndex")
    explanation: Optional[str] = None


class ChallengeStep(BlockModel):
    id: str
    label: str = ""
    text: str = ""


class BlockBase(BlockModel):
    id: str
    group: BlockGroup = "resource"
    role: BlockRole = "support"
    resource_slot: Optional[ResourceSlot] = Field(default=None, alias="resourceSlot")


class TextBlock(BlockBase):
    type: Literal["text"] = "text"
    text: str = ""


class MediaBlock(BlockBase):
    url: str = ""
    caption: str = ""


class VideoBlock(MediaBlock):
    type: Literal["video"] = "video"


class AudioBlock(MediaBlock):
    type: Literal["audio"] = "audio"


class ImageBlock(MediaBlock):
    type: Literal["image"] = "image"


class FileBlock(MediaBlock):
    type: Literal["file"] = "file"


class ChecklistBlock(BlockBase):
    type: Literal["checklist"] = "checklist"
    group: BlockGroup = "challenge"
    title: Optional[str] = None
    items: List[ChecklistItem] = Field(default_factory=list)


class QuizBlock(BlockBase):
    type: Literal["quiz"] = "quiz"
    group: BlockGroup = "challenge"
    title: Optional[str] = None
    questions: List[QuizQuestion] = Field(default_factory=list)


class ChallengeStepsBlock(BlockBase):
    type: Literal["challenge_steps"] = "challenge_steps"
    group: BlockGroup = "challenge"
    title: Optional[str] = None
    steps: List[ChallengeStep] = Field(default_factory=list)


DayBlock = Annotated[
    Union[
        TextBlock,
        VideoBlock,
        AudioBlock,
        ImageBlock,
        FileBlock,
        ChecklistBlock,
        QuizBlock,
        ChallengeStepsBlock,
    ],
    Field(discriminator="type"),
]

BLOCK_MODELS = {
    "text": TextBlock,
    "video": VideoBlock,
    "audio": AudioBlock,
    "image": ImageBlock,
    "file": FileBlock,
    "checklist": ChecklistBlock,
    "quiz": QuizBlock,
    "challenge_steps": ChallengeStepsBlock,
}


def new_block_id() -> str:
    return f"block_{uuid.uuid4().hex}"


def step_label(position: int) -> str:
    """Default label for the step at 1-based `position`."""
    return f"{STEP_LABEL_PREFIX} {position}"


def get_default_day_block_group(block_type: str) -> str:
    return "challenge" if block_type in CHALLENGE_BLOCK_TYPES else "resource"


def default_resource_slot(block_type: str) -> str:
    return RESOURCE_SLOTS_BY_TYPE.get(block_type, ("none",))[0]


def normalize_placement(block_type: str, group=None, role=None, resource_slot=None) -> Tuple[str, str, str]:
    """
    Coerce (group, role, resource_slot) into a consistent triple for `block_type`.

    Inputs may be anything read from storage; unknown values fall back to the
    type's defaults. Challenge blocks are always `support`, and only
    resource/support blocks carry a slot other than `none`.
    """
    if group not in BLOCK_GROUPS:
        group = get_default_day_block_group(block_type)
    if group == "challenge" or role not in BLOCK_ROLES:
        role = "support"
    if group != "resource" or role != "support":
        return group, role, "none"

    allowed = RESOURCE_SLOTS_BY_TYPE.get(block_type, ("none",))
    if resource_slot not in allowed:
        resource_slot = allowed[0]
    return group, role, resource_slot


def create_block(block_type: BlockType) -> DayBlock:
    """Build a new block of `block_type` with a fresh id and minimal valid content."""
    block_id = new_block_id()
    group, role, slot = normalize_placement(block_type)
    common = {"id": block_id, "group": group, "role": role, "resource_slot": slot}

    if block_type == "text":
        return TextBlock(**common, text="")
    if block_type in MEDIA_BLOCK_TYPES:
        return BLOCK_MODELS[block_type](**common, url="", caption="")
    if block_type == "checklist":
        return ChecklistBlock(**common, items=[ChecklistItem(id=new_block_id(), text="")])
    if block_type == "quiz":
        question = QuizQuestion(id=new_block_id(), prompt="", options=["", ""], correct_index=0)
        return QuizBlock(**common, questions=[question])
    return ChallengeStepsBlock(
        **common, steps=[ChallengeStep(id=new_block_id(), label=step_label(1), text="")]
    )


def extract_youtube_video_id(url) -> Optional[str]:
    if not url or not isinstance(url, str):
        return None
    match = YOUTUBE_RE.match(url.strip())
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None
