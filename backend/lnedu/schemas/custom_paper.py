from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from lnedu.models.enums import CustomPaperStatus, Urgency

PaperType = Literal[
    "ARTICLE", "REVIEW", "THESIS", "DISSERTATION", "PROJECT",
    "ESSAY", "SUMMARY", "MONOGRAPHY", "CASE_STUDY", "OTHER",
]

AcademicArea = Literal[
    "ADMINISTRATION", "LAW", "EDUCATION", "ENGINEERING", "PSYCHOLOGY",
    "HEALTH", "ACCOUNTING", "ARTS", "ECONOMICS", "SOCIAL_SCIENCES", "OTHER",
    "EXACT_SCIENCES", "BIOLOGICAL_SCIENCES", "HEALTH_SCIENCES",
    "APPLIED_SOCIAL_SCIENCES", "HUMANITIES", "LANGUAGES",
    "AGRICULTURAL_SCIENCES", "MULTIDISCIPLINARY",
]

class CustomPaperIn(BaseModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=50, max_length=5000)
    paperType: PaperType
    academicArea: AcademicArea
    pageCount: int = Field(ge=1, le=500)
    deadline: datetime
    urgency: Urgency = Urgency.NORMAL
    requirements: str = Field(min_length=20)
    keywords: str | None = None
    references: str | None = None
    requirementFiles: list[str] = []

class QuoteIn(BaseModel):
    quotedPrice: int = Field(ge=0)  # centavos
    adminNotes: str | None = None

class PaperStatusIn(BaseModel):
    status: CustomPaperStatus
    notes: str | None = None

class DeliveryIn(BaseModel):
    fileUrls: list[str] = Field(min_length=1)

class RejectIn(BaseModel):
    reason: str = Field(min_length=1)

class PaperMessageIn(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    attachments: list[str] = []
