"""
Question Bank Schemas for authoring and versioning
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class QuestionBase(BaseModel):
    """Fields shared by every published question"""

    prompt: str = Field(..., min_length=10, description="Question text")
    option_a: str = Field(..., min_length=1)
    option_b: str = Field(..., min_length=1)
    option_c: str = Field(..., min_length=1)
    option_d: str = Field(..., min_length=1)
    correct_letter: str = Field(..., pattern="^[A-Da-d]$", description="Correct option letter")
    explanation: str = ""


class QuestionCreate(QuestionBase):
    """Schema for creating a new question"""

    template_id: str = Field(..., description="Assessment template the question belongs to")


class QuestionUpdate(BaseModel):
    """Schema for revising a question (all fields optional)"""

    prompt: str | None = Field(None, min_length=10)
    option_a: str | None = None
    option_b: str | None = None
    option_c: str | None = None
    option_d: str | None = None
    correct_letter: str | None = Field(None, pattern="^[A-Da-d]$")
    explanation: str | None = None


class QuestionDetail(QuestionBase):
    """Full question details including version lineage"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    template_id: str
    version: int
    previous_version_id: str | None
    is_active: bool
    created_at: datetime


class QuestionItem(BaseModel):
    """Simplified question for list views"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    template_id: str
    prompt: str
    version: int
    is_active: bool
