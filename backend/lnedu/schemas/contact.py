from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from lnedu.models.enums import MessageStatus

class ContactIn(BaseModel):
    # extra liberado: o honeypot chega com o nome configurado em HONEYPOT_FIELD_NAME
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=2)
    email: EmailStr
    phone: str | None = None
    subject: str = Field(min_length=3)
    message: str = Field(min_length=10)
    category: str | None = None
    acceptTerms: bool
    captchaToken: str | None = None

    @field_validator("acceptTerms")
    @classmethod
    def _terms(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Você deve aceitar os termos")
        return v

class MessageStatusIn(BaseModel):
    status: MessageStatus

class ReplyIn(BaseModel):
    content: str = Field(min_length=10)

class BulkReadIn(BaseModel):
    messageIds: list[int] = Field(min_length=1)

class BlacklistIn(BaseModel):
    ip: str = Field(min_length=1)
