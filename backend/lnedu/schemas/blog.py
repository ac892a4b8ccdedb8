from pydantic import BaseModel, Field

from lnedu.models.enums import PostStatus

class PostIn(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    content: str = Field(min_length=1)
    excerpt: str | None = None
    coverImageUrl: str | None = None
    tags: list[str] = []
    published: bool = False
    status: PostStatus | None = None
    readingTime: int | None = Field(default=None, ge=1)

class PostUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=200)
    content: str | None = Field(default=None, min_length=1)
    excerpt: str | None = None
    coverImageUrl: str | None = None
    tags: list[str] | None = None
    published: bool | None = None
    status: PostStatus | None = None
    readingTime: int | None = Field(default=None, ge=1)

class CommentIn(BaseModel):
    postId: int
    content: str = Field(min_length=1, max_length=2000)
    parentId: int | None = None

class CommentUpdateIn(BaseModel):
    content: str | None = Field(default=None, min_length=1, max_length=2000)
    approved: bool | None = None

class TrackViewIn(BaseModel):
    postId: int

class TrackShareIn(BaseModel):
    postId: int
    platform: str = Field(min_length=1, max_length=40)
