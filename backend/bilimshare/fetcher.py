"""
Entity fetcher: one read cycle against the store.

Dependency order is posts -> {authors, comments, likes}. The three
dependent queries are filtered by ids taken from the post query, and an
empty id set skips its query instead of sending an empty filter. Any
StoreError aborts the cycle; a Snapshot is only returned when all four
collections were read.
"""
import logging
from dataclasses import dataclass
from typing import Tuple

from .records import CommentRow, LikeRow, PostRow, UserRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    posts: Tuple[PostRow, ...] = ()
    users: Tuple[UserRow, ...] = ()
    comments: Tuple[CommentRow, ...] = ()
    likes: Tuple[LikeRow, ...] = ()


def distinct_author_ids(posts):
    """Author ids of the posts, de-duplicated, in first-seen order."""
    return list(dict.fromkeys(p.author_id for p in posts if p.author_id is not None))


def fetch_snapshot(gateway):
    """
    Read posts, their authors, comments and likes.

    Raises StoreError if any of the queries fails.
    """
    try:
        posts = gateway.list_posts()

        author_ids = distinct_author_ids(posts)
        post_ids = [p.id for p in posts]

        users = gateway.users_by_ids(author_ids) if author_ids else []
        comments = gateway.comments_for_posts(post_ids) if post_ids else []
        likes = gateway.likes_for_posts(post_ids) if post_ids else []
    except Exception:
        logger.exception("Fetch cycle aborted")
        raise

    logger.debug(
        f"Fetched {len(posts)} posts, {len(users)} authors, "
        f"{len(comments)} comments, {len(likes)} likes"
    )
    return Snapshot(
        posts=tuple(posts),
        users=tuple(users),
        comments=tuple(comments),
        likes=tuple(likes),
    )
