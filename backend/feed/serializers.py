"""
DRF Serializers
===============

Serializers handle:
1. Validation of the *shape* of incoming data (business rules live in
   services.py and polls.py)
2. Transformation of model instances to JSON
3. Nested comment tree serialization

WIRE FORMAT:
------------
The single-page client reads camelCase field names (isPoll, pollEndDate,
pollNotified, votedBy, repostsCount, repostedBy, recipientId, isRead...).
Every snake_case model field is mapped explicitly with source=.
"""

from rest_framework import serializers
from django.contrib.auth.models import User

from .formatting import format_time_ago
from .models import (
    Comment,
    CustomBadge,
    Notification,
    PollOption,
    Post,
    ANONYMOUS_AUTHOR_NAME,
    MAX_POLL_OPTIONS,
)


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""

    class Meta:
        model = User
        fields = ['id', 'username']
        read_only_fields = fields


class PollOptionSerializer(serializers.ModelSerializer):
    votedBy = serializers.SerializerMethodField()

    class Meta:
        model = PollOption
        fields = ['text', 'votes', 'votedBy']

    def get_votedBy(self, obj):
        # Uses the prefetch from queries.post_queryset()
        return [user.id for user in obj.voted_by.all()]


class PostListSerializer(serializers.ModelSerializer):
    """
    Serializer for feed list view.

    Optimized for list performance - no nested comments.
    Anonymous posts never expose their author.
    """
    authorId = serializers.SerializerMethodField()
    author = serializers.SerializerMethodField()
    commentsCount = serializers.IntegerField(source='comments_count', read_only=True)
    isAnonymous = serializers.BooleanField(source='is_anonymous', read_only=True)
    isPoll = serializers.BooleanField(source='is_poll', read_only=True)
    allowMultipleVotes = serializers.BooleanField(source='allow_multiple_votes', read_only=True)
    pollOptions = serializers.SerializerMethodField()
    pollEndDate = serializers.DateTimeField(source='poll_end_date', read_only=True)
    pollNotified = serializers.BooleanField(source='poll_notified', read_only=True)
    isRepost = serializers.BooleanField(source='is_repost', read_only=True)
    originalPostId = serializers.IntegerField(source='original_post_id', read_only=True)
    originalAuthor = serializers.CharField(source='original_author_name', read_only=True)
    repostsCount = serializers.IntegerField(source='reposts_count', read_only=True)
    repostedBy = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    timeAgo = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id',
            'authorId',
            'author',
            'text',
            'score',
            'commentsCount',
            'isAnonymous',
            'isPoll',
            'allowMultipleVotes',
            'pollOptions',
            'pollEndDate',
            'pollNotified',
            'isRepost',
            'originalPostId',
            'originalAuthor',
            'repostsCount',
            'repostedBy',
            'createdAt',
            'timeAgo',
        ]
        read_only_fields = fields

    def get_authorId(self, obj):
        return None if obj.is_anonymous else obj.author_id

    def get_author(self, obj):
        return ANONYMOUS_AUTHOR_NAME if obj.is_anonymous else obj.author_name

    def get_pollOptions(self, obj):
        if not obj.is_poll:
            return []
        return PollOptionSerializer(obj.poll_options.all(), many=True).data

    def get_repostedBy(self, obj):
        return [user.id for user in obj.reposted_by.all()]

    def get_timeAgo(self, obj):
        return format_time_ago(obj.created_at)


class PostCreateSerializer(serializers.Serializer):
    """
    Input for creating posts and polls.

    Author is set from request.user in the view, not from input.
    """
    text = serializers.CharField(max_length=5000)
    isAnonymous = serializers.BooleanField(default=False)
    pollOptions = serializers.ListField(
        child=serializers.CharField(max_length=200),
        max_length=MAX_POLL_OPTIONS,
        required=False,
    )
    pollEndDate = serializers.DateTimeField(required=False)
    allowMultipleVotes = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if 'pollOptions' in attrs and 'pollEndDate' not in attrs:
            raise serializers.ValidationError({'pollEndDate': 'A poll needs an end date.'})
        if 'pollEndDate' in attrs and 'pollOptions' not in attrs:
            raise serializers.ValidationError({'pollOptions': 'A poll needs options.'})
        return attrs


class CommentSerializer(serializers.ModelSerializer):
    """
    Serializer for individual comments.

    NOTE: This does NOT include nested replies!
    Tree structure is handled by CommentTreeSerializer.
    """
    postId = serializers.IntegerField(source='post_id', read_only=True)
    authorId = serializers.IntegerField(source='author_id', read_only=True)
    author = serializers.CharField(source='author.username', read_only=True)
    parentId = serializers.IntegerField(source='parent_id', read_only=True)
    textHtml = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    timeAgo = serializers.SerializerMethodField()

    class Meta:
        model = Comment
        fields = [
            'id',
            'postId',
            'authorId',
            'author',
            'parentId',
            'text',
            'textHtml',
            'score',
            'depth',
            'createdAt',
            'timeAgo',
        ]
        read_only_fields = fields

    def get_textHtml(self, obj):
        rendered = self.context.get('rendered_comments', {})
        return rendered.get(obj.id)

    def get_timeAgo(self, obj):
        return format_time_ago(obj.created_at)


class CommentCreateSerializer(serializers.Serializer):
    text = serializers.CharField(max_length=2000)
    parentId = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializer for nested comment tree built by queries.build_comment_tree().

    Structure:
    {
        "comment": { ...comment data... },
        "replies": [ ...nested CommentTreeSerializer... ]
    }
    """
    comment = serializers.SerializerMethodField()
    replies = serializers.SerializerMethodField()

    def get_comment(self, obj):
        return CommentSerializer(obj['comment'], context=self.context).data

    def get_replies(self, obj):
        """Recursively serialize replies."""
        return CommentTreeSerializer(obj['replies'], many=True, context=self.context).data


class PostDetailSerializer(PostListSerializer):
    """
    Serializer for post detail view with nested comments.

    Comments and rendered HTML are passed pre-built in context.
    """
    textHtml = serializers.SerializerMethodField()
    comments = serializers.SerializerMethodField()
    userVote = serializers.SerializerMethodField()

    class Meta(PostListSerializer.Meta):
        fields = PostListSerializer.Meta.fields + ['textHtml', 'comments', 'userVote']
        read_only_fields = fields

    def get_textHtml(self, obj):
        return self.context.get('rendered_post', '')

    def get_comments(self, obj):
        comment_tree = self.context.get('comment_tree', [])
        return CommentTreeSerializer(comment_tree, many=True, context=self.context).data

    def get_userVote(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return None
        if obj.upvoted_by.filter(id=request.user.id).exists():
            return 'up'
        if obj.downvoted_by.filter(id=request.user.id).exists():
            return 'down'
        return None


class VoteSerializer(serializers.Serializer):
    targetType = serializers.ChoiceField(choices=['post', 'comment'])
    targetId = serializers.IntegerField(min_value=1)
    direction = serializers.ChoiceField(choices=['up', 'down'])


class PollVoteSerializer(serializers.Serializer):
    optionIndex = serializers.IntegerField(min_value=0)


class NotificationSerializer(serializers.ModelSerializer):
    recipientId = serializers.IntegerField(source='recipient_id', read_only=True)
    postId = serializers.IntegerField(source='post_id', read_only=True)
    commentId = serializers.IntegerField(source='comment_id', read_only=True)
    isRead = serializers.BooleanField(source='is_read', read_only=True)
    timeAgo = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id',
            'recipientId',
            'type',
            'postId',
            'commentId',
            'text',
            'isRead',
            'timestamp',
            'timeAgo',
        ]
        read_only_fields = fields

    def get_timeAgo(self, obj):
        return format_time_ago(obj.timestamp)


class CustomBadgeSerializer(serializers.ModelSerializer):
    imageUrl = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = CustomBadge
        fields = ['id', 'name', 'description', 'imageUrl', 'createdAt']
        read_only_fields = fields

    def get_imageUrl(self, obj):
        return obj.image.url if obj.image else None


class CustomBadgeWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=50)
    description = serializers.CharField(max_length=200, required=False, allow_blank=True)
    image = serializers.FileField(required=False)


class PrimaryBadgeSerializer(serializers.Serializer):
    badgeId = serializers.CharField(allow_null=True, allow_blank=True, max_length=32)
    custom = serializers.BooleanField(default=False)


class UserProfileSerializer(serializers.Serializer):
    """Serializes the dict built by queries.get_user_profile()."""
    id = serializers.IntegerField(source='user.id')
    username = serializers.CharField(source='user.username')
    badges = serializers.ListField(child=serializers.CharField())
    primaryBadge = serializers.DictField(source='primary_badge', allow_null=True)
    followers = serializers.ListField(child=serializers.IntegerField())
    following = serializers.ListField(child=serializers.IntegerField())
    customBadges = CustomBadgeSerializer(source='custom_badges', many=True)
