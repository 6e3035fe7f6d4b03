from datetime import datetime
from pydantic import BaseModel
from typing import List

class CreatorOut(BaseModel):
    id: int
    name: str

class PostOut(BaseModel):
    id: int
    title: str
    content: str
    image_url: str
    creator: CreatorOut
    created_at: datetime
    updated_at: datetime

class PostListOut(BaseModel):
    message: str
    posts: List[PostOut]
    totalItems: int

class PostCreatedOut(BaseModel):
    message: str
    post: PostOut
    creator: CreatorOut

class PostDetailOut(BaseModel):
    message: str
    post: PostOut

class MessageOut(BaseModel):
    message: str
