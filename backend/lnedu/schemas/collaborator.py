from pydantic import BaseModel, EmailStr, Field

from lnedu.models.enums import ApplicationStage, ApplicationStatus, Recommendation

class ApplicationIn(BaseModel):
    fullName: str = Field(min_length=2)
    email: EmailStr
    phone: str
    area: str
    experience: str
    availability: str
    resumeUrl: str | None = None

class ApplicationStatusIn(BaseModel):
    status: ApplicationStatus

class ApplicationStageIn(BaseModel):
    stage: ApplicationStage

class EvaluationIn(BaseModel):
    experienceScore: int = Field(ge=0, le=10)
    skillsScore: int = Field(ge=0, le=10)
    educationScore: int = Field(ge=0, le=10)
    culturalFitScore: int = Field(ge=0, le=10)
    recommendation: Recommendation
    comments: str = ""
