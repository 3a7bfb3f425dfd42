from typing import List
from pydantic import BaseModel, Field


class InstructionStep(BaseModel):
    step_number: int = Field(ge=1)
    description: str


class ExtractedSteps(BaseModel):
    steps: List[InstructionStep]


class GeneratedVideo(BaseModel):
    video_url: str
    duration_seconds: int = Field(gt=0)
    step_count: int = Field(ge=1)


class GeneratedCode(BaseModel):
    qr_code_url: str
    qr_target_url: str
