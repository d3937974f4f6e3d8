from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class PublishIn(BaseModel):
    message: str = Field(..., max_length=4096)


class PublishResult(BaseModel):
    published: bool
    topic: str


class TopicIn(BaseModel):
    topic: str = Field(..., min_length=1, max_length=256)


class TopicsResult(BaseModel):
    added: bool
    topics: List[str] = Field(default_factory=list)


class ConnectIn(BaseModel):
    # Solo para la fuente poll; aplica antes de (re)conectar.
    device_ip: Optional[str] = Field(default=None, max_length=255)
