"""
Derived aggregates computed from a view model.

All rankings use Python's stable sort, so posts or users with equal
scores keep the order they had in the fetched collections.
"""
from dataclasses import dataclass

from django.conf import settings

from .records import UserRow


def _option(name):
    return settings.BILIMSHARE[name]


def category_facets(posts, defaults=None, general=None):
    """
    Known categories first, then categories seen in posts, then the
    general category if it is still missing. No duplicates.
    """
    if defaults is None:
        defaults = _option('DEFAULT_CATEGORIES')
    if general is None:
        general = _option('GENERAL_CATEGORY')

    facets = list(dict.fromkeys(defaults))
    seen = set(facets)
    for post in posts:
        if post.category and post.category not in seen:
            facets.append(post.category)
            seen.add(post.category)
    if general not in seen:
        facets.append(general)
    return facets


def category_counts(posts, facets):
    counts = {facet: 0 for facet in facets}
    for post in posts:
        if post.category in counts:
            counts[post.category] += 1
    return [(facet, counts[facet]) for facet in facets]


def filter_by_category(posts, category):
    if not category:
        return list(posts)
    return [p for p in posts if p.category == category]


def popular_posts(view_model, limit=None):
    if limit is None:
        limit = _option('POPULAR_LIMIT')
    ranked = sorted(view_model.posts, key=lambda p: view_model.like_count(p.id), reverse=True)
    return ranked[:limit]


@dataclass(frozen=True)
class LeaderboardEntry:
    user: UserRow
    posts_count: int
    likes_received: int

    @property
    def score(self):
        return self.posts_count * 2 + self.likes_received


def leaderboard(view_model, limit=None):
    """
    Rank the known users by 2 x authored posts + likes received.

    Known users are the authors present in the view model, in the order
    the author query returned them.
    """
    if limit is None:
        limit = _option('LEADERBOARD_LIMIT')

    entries = []
    for user in view_model.authors.values():
        authored = [p for p in view_model.posts if p.author_id == user.id]
        likes = sum(view_model.like_count(p.id) for p in authored)
        entries.append(LeaderboardEntry(user=user, posts_count=len(authored), likes_received=likes))

    entries.sort(key=lambda e: e.score, reverse=True)
    return entries[:limit]
