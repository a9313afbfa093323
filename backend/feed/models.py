"""
Data Models for SocialFeed
==========================

Design Philosophy:
------------------
1. Badges are rows, not a mutable list on the user
   - BadgeGrant has a unique (user, badge) constraint
   - A badge id can appear at most once per user, enforced by the database
   - Grants are additive only: nothing in the app deletes a BadgeGrant

2. Follow is a single edge table
   - One row is both "A follows B" and "B has follower A"
   - Toggling follow inserts or deletes exactly one row

3. Polls live on Post
   - is_poll / poll_end_date / poll_notified gate the poll closer
   - Options are PollOption rows with their own voter set
   - poll_notified is the only "already closed" flag in the schema

4. Counters are derived where it is cheap
   - score = upvoters - downvoters, recomputed on every vote
   - Badge thresholds are evaluated against raw rows (see badges.py)

Field names on the wire are camelCase (isPoll, pollNotified, votedBy...);
the mapping lives in serializers.py.
"""

from django.db import models
from django.db.models import Q
from django.contrib.auth.models import User
from django.core.validators import MinLengthValidator
from django.utils import timezone


class Profile(models.Model):
    """
    Per-user settings that don't belong on auth.User.

    The primary badge is either an official badge id (primary_badge) or one
    of the user's custom badges (primary_custom_badge), never both.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    primary_badge = models.CharField(max_length=32, blank=True, default='')
    primary_custom_badge = models.ForeignKey(
        'CustomBadge',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"Profile of {self.user.username}"


class BadgeGrant(models.Model):
    """
    One official badge held by one user.

    CONCURRENCY STRATEGY:
    - Unique constraint (user, badge) enforced at DB level
    - Two triggers granting the same badge at once: one insert wins,
      the other gets IntegrityError and becomes a no-op
    """

    class BadgeId(models.TextChoices):
        PIONEER = 'pioneer', 'Pioneer'
        CHATTERBOX = 'chatterbox', 'Chatterbox'
        POPULAR = 'popular', 'Popular'
        KING = 'king', 'King of Secrets'

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='badge_grants'
    )
    badge = models.CharField(max_length=32, choices=BadgeId.choices)
    granted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['granted_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'badge'],
                name='unique_badge_per_user'
            )
        ]

    def __str__(self):
        return f"{self.user.username} holds {self.badge}"


class Follow(models.Model):
    """follower -> following edge. Self-follows are rejected in services."""
    follower = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='following_links'
    )
    following = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='follower_links'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['follower', 'following'],
                name='unique_follow'
            )
        ]

    def __str__(self):
        return f"{self.follower_id} follows {self.following_id}"


class Post(models.Model):
    """
    A feed post. Can be a plain post, a poll, or a repost of another post.

    Reposts point at the original through original_post. is_repost stays
    true even if the original is deleted, so a repost can never be
    reposted.
    """
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='posts',
        db_index=True
    )
    # Display name at write time
    author_name = models.CharField(max_length=150)
    text = models.TextField(validators=[MinLengthValidator(1)])
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True  # For feed ordering - critical for cursor pagination
    )
    updated_at = models.DateTimeField(auto_now=True)

    score = models.IntegerField(default=0, db_index=True)
    upvoted_by = models.ManyToManyField(
        User,
        related_name='upvoted_posts',
        blank=True
    )
    downvoted_by = models.ManyToManyField(
        User,
        related_name='downvoted_posts',
        blank=True
    )
    # Denormalized for display - maintained by signals
    comments_count = models.PositiveIntegerField(default=0)

    is_anonymous = models.BooleanField(default=False)

    is_poll = models.BooleanField(default=False)
    allow_multiple_votes = models.BooleanField(default=False)
    poll_end_date = models.DateTimeField(null=True, blank=True)
    poll_notified = models.BooleanField(default=False)

    is_repost = models.BooleanField(default=False)
    original_post = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reposts'
    )
    original_author_name = models.CharField(max_length=150, blank=True, default='')
    reposts_count = models.PositiveIntegerField(default=0)
    reposted_by = models.ManyToManyField(
        User,
        related_name='reposted_posts',
        blank=True
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at', 'author'], name='post_feed_idx'),
            # The poll closer's query: is_poll AND NOT poll_notified AND end <= now
            models.Index(
                fields=['is_poll', 'poll_notified', 'poll_end_date'],
                name='post_due_poll_idx'
            ),
        ]
        constraints = [
            # A user may repost a given original at most once
            models.UniqueConstraint(
                fields=['author', 'original_post'],
                condition=Q(original_post__isnull=False),
                name='unique_repost_per_user'
            )
        ]

    def __str__(self):
        return f"{self.text[:50]} by {self.author_name}"


class PollOption(models.Model):
    """One choice of a poll. votes mirrors the size of voted_by."""
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='poll_options'
    )
    position = models.PositiveSmallIntegerField()
    text = models.CharField(max_length=200)
    votes = models.PositiveIntegerField(default=0)
    voted_by = models.ManyToManyField(
        User,
        related_name='poll_votes',
        blank=True
    )

    class Meta:
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(
                fields=['post', 'position'],
                name='unique_option_position'
            )
        ]

    def __str__(self):
        return f"Option {self.position} of poll {self.post_id}"


class Comment(models.Model):
    """
    Threaded comment using Adjacency List pattern (parent FK).

    Depth is stored so replies can be capped without walking the chain.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies',
        db_index=True
    )
    text = models.TextField(validators=[MinLengthValidator(1)])
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True
    )
    updated_at = models.DateTimeField(auto_now=True)

    score = models.IntegerField(default=0)
    upvoted_by = models.ManyToManyField(
        User,
        related_name='upvoted_comments',
        blank=True
    )
    downvoted_by = models.ManyToManyField(
        User,
        related_name='downvoted_comments',
        blank=True
    )
    depth = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['created_at']  # Oldest first within a thread
        indexes = [
            models.Index(fields=['post', 'created_at'], name='comment_post_created_idx'),
            models.Index(fields=['author'], name='comment_author_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author.username} on {self.post_id}"


class Notification(models.Model):
    """
    Inbox entry for one recipient.

    Created by services and by the poll closer, only ever mutated by
    mark-as-read. post/comment are nulled, not cascaded, when the target
    goes away.
    """

    class Type(models.TextChoices):
        POLL_END = 'poll_end', 'Poll ended'
        FOLLOW = 'follow', 'New follower'
        REPOST = 'repost', 'Repost'
        COMMENT = 'comment', 'Comment'
        REPLY = 'reply', 'Reply'
        UPVOTE = 'upvote', 'Upvote'
        BADGE = 'badge', 'Badge earned'

    recipient = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    post = models.ForeignKey(
        Post,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    comment = models.ForeignKey(
        Comment,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    text = models.TextField()
    is_read = models.BooleanField(default=False)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notification_inbox_idx'),
        ]

    def __str__(self):
        return f"{self.type} for {self.recipient_id}"


class CustomBadge(models.Model):
    """User-designed badge. At most MAX_CUSTOM_BADGES per user."""
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='custom_badges'
    )
    name = models.CharField(max_length=50)
    description = models.CharField(max_length=200, blank=True, default='')
    image = models.FileField(upload_to='custom_badges/', blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.name} ({self.user.username})"


# ============================================================================
# DOMAIN CONSTANTS
# ============================================================================
PIONEER_POST_COUNT = 1
CHATTERBOX_COMMENT_COUNT = 50
POPULAR_SCORE = 100
KING_SCORE = 500

ANONYMOUS_AUTHOR_NAME = 'Anonymous'
MAX_CUSTOM_BADGES = 6
MAX_COMMENT_DEPTH = 10
MIN_POLL_OPTIONS = 2
MAX_POLL_OPTIONS = 10
POLL_TEXT_PREVIEW_LENGTH = 50
