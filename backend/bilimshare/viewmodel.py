"""
View-model builder.

Pure transformation of a Snapshot into the lookup structures the pages
are rendered from. No store access happens here.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Tuple

from .fetcher import Snapshot
from .records import CommentRow, PostRow, UserRow


@dataclass(frozen=True)
class LikeAggregate:
    count: int = 0
    user_ids: FrozenSet[int] = frozenset()

    def liked_by(self, user_id):
        return user_id in self.user_ids


NO_LIKES = LikeAggregate()


@dataclass(frozen=True)
class ViewModel:
    posts: Tuple[PostRow, ...] = ()
    authors: Dict[int, UserRow] = field(default_factory=dict)
    comments_by_post: Dict[int, List[CommentRow]] = field(default_factory=dict)
    likes_by_post: Dict[int, LikeAggregate] = field(default_factory=dict)

    def author(self, user_id):
        return self.authors.get(user_id)

    def comments_for(self, post_id):
        return self.comments_by_post.get(post_id, [])

    def likes_for(self, post_id):
        return self.likes_by_post.get(post_id, NO_LIKES)

    def like_count(self, post_id):
        return self.likes_for(post_id).count

    def find_post(self, post_id):
        for post in self.posts:
            if post.id == post_id:
                return post
        return None


def build_author_map(users):
    return {u.id: u for u in users}


def build_comment_index(comments):
    """
    Group comments by post, keeping fetch order inside each group.

    This is a flat grouping; parent_id is left for the presentation layer.
    """
    index = defaultdict(list)
    for comment in comments:
        index[comment.post_id].append(comment)
    return dict(index)


def build_like_aggregate(likes):
    counts = defaultdict(int)
    users = defaultdict(set)
    for like in likes:
        counts[like.post_id] += 1
        users[like.post_id].add(like.user_id)
    return {
        post_id: LikeAggregate(count=counts[post_id], user_ids=frozenset(users[post_id]))
        for post_id in counts
    }


def build_view_model(snapshot: Snapshot) -> ViewModel:
    return ViewModel(
        posts=tuple(snapshot.posts),
        authors=build_author_map(snapshot.users),
        comments_by_post=build_comment_index(snapshot.comments),
        likes_by_post=build_like_aggregate(snapshot.likes),
    )
