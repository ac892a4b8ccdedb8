from pydantic import BaseModel, Field

class PaperIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: int = Field(default=0, ge=0)  # centavos
    fileUrl: str | None = None

class CourseIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: int = Field(default=0, ge=0)

class EbookIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    authorName: str | None = None
    price: int = Field(default=0, ge=0)
    pageCount: int | None = Field(default=None, ge=1)
    fileUrl: str | None = None

class EbookUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    authorName: str | None = None
    price: int | None = Field(default=None, ge=0)
    pageCount: int | None = Field(default=None, ge=1)
    fileUrl: str | None = None
