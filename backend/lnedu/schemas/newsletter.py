from pydantic import BaseModel, EmailStr, Field, model_validator

class SubscribeIn(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=120)

class UnsubscribeIn(BaseModel):
    email: EmailStr

class NewsletterSendIn(BaseModel):
    subject: str = Field(min_length=3, max_length=255)
    content: str | None = None
    postId: int | None = None

    @model_validator(mode="after")
    def _body(self):
        if not self.content and self.postId is None:
            raise ValueError("Informe o conteúdo ou o post a divulgar")
        return self
