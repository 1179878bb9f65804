"""
Immutable row records handed out by the store gateway.

These are the four source collections of a fetch cycle. They carry only
identifiers for references, never nested model instances, so the
view-model layer can be exercised without a database.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UserRow:
    id: int
    name: str
    role: str
    email: str

    @property
    def is_admin(self) -> bool:
        return self.role == 'admin'

    @property
    def can_publish(self) -> bool:
        return bool(self.role) and self.role != 'student'


@dataclass(frozen=True)
class PostRow:
    id: int
    title: str
    body: str
    category: str
    image: str
    author_id: int
    created_at: datetime


@dataclass(frozen=True)
class CommentRow:
    id: int
    text: str
    post_id: int
    parent_id: Optional[int]
    author_id: int
    created_at: datetime


@dataclass(frozen=True)
class LikeRow:
    id: int
    post_id: int
    user_id: int
