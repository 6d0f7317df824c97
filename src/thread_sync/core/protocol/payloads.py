from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BackendUser(_Wire):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None


class BackendImage(_Wire):
    path: Optional[str] = None
    filename: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class BackendArticle(_Wire):
    id: str
    title: str = ""
    content: str = ""
    author_id: Optional[str] = Field(default=None, alias="authorId")
    author: Optional[BackendUser] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    depth: Optional[int] = None
    comments: Optional[list["BackendArticle"]] = None
    comments_count: Optional[int] = Field(default=None, alias="commentsCount")
    images: Optional[list[Union[BackendImage, str]]] = None
    upvoters: Optional[list[BackendUser]] = None
    downvoters: Optional[list[BackendUser]] = None
    slug: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class VoteResponse(_Wire):
    upvoted: Optional[bool] = None
    downvoted: Optional[bool] = None
    upvote_count: int = Field(alias="upvoteCount", ge=0)
    downvote_count: int = Field(alias="downvoteCount", ge=0)


class VoteCounts(_Wire):
    upvote_count: int = Field(alias="upvoteCount", ge=0)
    downvote_count: int = Field(alias="downvoteCount", ge=0)


class CreateRequest(_Wire):
    title: str
    content: str = Field(min_length=1)
    parent_id: Optional[str] = Field(default=None, alias="parentId")


class UpdateRequest(_Wire):
    title: Optional[str] = None
    content: Optional[str] = None


def dump_wire(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
