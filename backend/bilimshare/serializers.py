"""
Serializers for the BilimShare API.

Design decisions:
1. Input serializers only check shape (required fields, types); the
   interaction handlers own the business rules
2. Page serializers render the dicts built by presentation.py
3. CommentNodeSerializer is recursive; replies are attached beforehand
   so rendering never touches the store
"""
from rest_framework import serializers

from .models import Profile


# ----------------------------------------------------------------------
# Input
# ----------------------------------------------------------------------

class LikeToggleSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    post_id = serializers.IntegerField()


class CommentCreateSerializer(serializers.Serializer):
    """Body of POST /api/comments. Empty text is rejected by the handler."""
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)
    post_id = serializers.IntegerField()
    author = serializers.IntegerField()
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class ReplySerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)
    parent_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class SignupSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)
    name = serializers.CharField(required=False, allow_blank=True, default='')


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)


class PostCreateSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True)
    body = serializers.CharField(allow_blank=True)
    category = serializers.CharField(required=False, allow_blank=True, default='')
    image = serializers.URLField(required=False, allow_blank=True, default='')


class RoleChangeSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Profile.ROLE_CHOICES)


# ----------------------------------------------------------------------
# Output
# ----------------------------------------------------------------------

class UserSerializer(serializers.Serializer):
    """Public user representation, built from a UserRow."""
    id = serializers.IntegerField()
    name = serializers.CharField()
    role = serializers.CharField()
    email = serializers.EmailField()


class AuthorSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()


class PostRecordSerializer(serializers.Serializer):
    """A post as stored, from a PostRow."""
    id = serializers.IntegerField()
    title = serializers.CharField()
    body = serializers.CharField()
    category = serializers.CharField()
    image = serializers.CharField()
    author_id = serializers.IntegerField()
    created_at = serializers.DateTimeField()


class CommentRecordSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    text = serializers.CharField()
    post_id = serializers.IntegerField()
    parent_id = serializers.IntegerField(allow_null=True)
    author_id = serializers.IntegerField()
    created_at = serializers.DateTimeField()


class PostListItemSerializer(PostRecordSerializer):
    """Item of GET /api/posts: the post joined with author name and likes."""
    author_name = serializers.CharField(allow_null=True)
    likes = serializers.ListField(child=serializers.DictField())
    likes_count = serializers.IntegerField()


class PostCardSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    excerpt = serializers.CharField()
    category = serializers.CharField()
    image = serializers.CharField()
    author = AuthorSerializer(allow_null=True)
    likes_count = serializers.IntegerField()
    liked = serializers.BooleanField()
    comments_count = serializers.IntegerField()
    created_at = serializers.DateTimeField()
    time_ago = serializers.CharField()


class CategoryFacetSerializer(serializers.Serializer):
    name = serializers.CharField()
    count = serializers.IntegerField()
    selected = serializers.BooleanField()


class LeaderboardEntrySerializer(serializers.Serializer):
    """
    Leaderboard entry: score is 2 points per post plus 1 per like received.
    """
    rank = serializers.IntegerField()
    user = AuthorSerializer()
    posts_count = serializers.IntegerField()
    likes_received = serializers.IntegerField()
    score = serializers.IntegerField()


class PopularPostSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    likes_count = serializers.IntegerField()


class HomePageSerializer(serializers.Serializer):
    current_user = UserSerializer(allow_null=True)
    can_publish = serializers.BooleanField()
    filter_category = serializers.CharField(allow_null=True)
    posts = PostCardSerializer(many=True)
    categories = CategoryFacetSerializer(many=True)
    popular = PopularPostSerializer(many=True)
    leaderboard = LeaderboardEntrySerializer(many=True)


class CommentNodeSerializer(serializers.Serializer):
    """
    Comment with its replies.

    'replies' is populated by presentation.comment_tree().
    """
    id = serializers.IntegerField()
    text = serializers.CharField()
    parent_id = serializers.IntegerField(allow_null=True)
    author = AuthorSerializer(allow_null=True)
    created_at = serializers.DateTimeField()
    time_ago = serializers.CharField()
    can_delete = serializers.BooleanField()
    can_reply = serializers.BooleanField()
    replies = serializers.SerializerMethodField()

    def get_replies(self, obj):
        return CommentNodeSerializer(obj['replies'], many=True, context=self.context).data


class PostPageSerializer(serializers.Serializer):
    current_user = UserSerializer(allow_null=True)
    post = PostRecordSerializer()
    author = AuthorSerializer(allow_null=True)
    likes_count = serializers.IntegerField()
    liked = serializers.BooleanField()
    can_like = serializers.BooleanField()
    can_delete = serializers.BooleanField()
    comments_count = serializers.IntegerField()
    comments = CommentNodeSerializer(many=True)


class ProfilePageSerializer(serializers.Serializer):
    current_user = UserSerializer(allow_null=True)
    user = UserSerializer()
    posts = PostCardSerializer(many=True)


class AdminPageSerializer(serializers.Serializer):
    current_user = UserSerializer()
    users = UserSerializer(many=True)
    posts = PostCardSerializer(many=True)
