# schemas.py
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from blocks import DayBlock

class LabIn(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    slug: Optional[str] = None
    cover_image_url: Optional[str] = None
    accent_color: Optional[str] = None

class LabOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    slug: Optional[str] = None
    cover_image_url: Optional[str] = None
    accent_color: Optional[str] = None
    created_at: str

class DayIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    blocks: List[DayBlock]
    discussion_prompt: Optional[str] = Field(default=None, alias="discussionPrompt")

class PrimaryResourceOut(BaseModel):
    block_id: Optional[str] = None
    type: Optional[str] = None
    video_id: Optional[str] = None
    is_gating_video: bool = False

class DayOut(BaseModel):
    lab_id: int
    day_number: int
    title: str
    video_url: Optional[str] = None
    blocks: List[DayBlock]
    discussion_prompt: str = ""
    primary: PrimaryResourceOut

class DaySummaryOut(BaseModel):
    day_number: int
    title: str
    resource_blocks: int
    challenge_blocks: int
    checklist_items: int
    quiz_questions: int
    challenge_steps: int
    preview: str
    discussion_prompt: str
    primary_block_id: Optional[str] = None
    gated: bool

class DayListOut(BaseModel):
    items: List[DaySummaryOut]

class DayStateIn(BaseModel):
    # Shapes are checked by the normalizers in utils.py, not here
    notes: Any = None
    checklist_selections: Any = None
    quiz_answers: Any = None

class DayStateOut(BaseModel):
    notes: str
    checklist_selections: Dict[str, List[str]]
    quiz_answers: Dict[str, Dict[str, int]]
    quiz_grades: Dict[str, Dict[str, int]]
    updated_at: Optional[str] = None

class ProgressOut(BaseModel):
    ok: bool
    already_completed: bool

class CommentIn(BaseModel):
    content: Any = None
    user_email: Optional[str] = None

class CommentOut(BaseModel):
    id: int
    day_number: int
    user_email: Optional[str] = None
    content: str
    created_at: str

class EntitlementIn(BaseModel):
    grant: bool

class EntitlementOut(BaseModel):
    user_id: str
    lab_id: int
    status: str
    has_access: bool
