"""
Social Actions
==============

Write paths invoked by users: posting, commenting, voting, following,
reposting, and custom badge management.

TRANSACTION STRATEGY:
--------------------
Primary writes of one action share a single transaction.atomic() block,
so a fault leaves nothing half-done: a repost row without the original's
reposts_count bump can't happen.

Side effects (notifications, image cleanup) are best-effort. They run
after the primary block, in their own savepoint, and only log on failure.

CONCURRENCY STRATEGY:
---------------------
Check-then-write sequences lock the row they hinge on with
select_for_update (the original post for reposts, the voted object for
votes). Unique constraints (follow pairs, one repost per user per
original) back the checks up: a racing duplicate surfaces as
IntegrityError and is mapped to the same result as the pre-check.

ERRORS:
-------
Expected rejections raise FeedError subclasses (see exceptions.py).
"""
import logging
from typing import List, Literal, Optional

from django.contrib.auth.models import User
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .badges import BADGES
from .exceptions import (
    AlreadyExists,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ResourceExhausted,
    Unauthenticated,
)
from .models import (
    BadgeGrant,
    Comment,
    CustomBadge,
    Follow,
    Notification,
    Post,
    Profile,
    ANONYMOUS_AUTHOR_NAME,
    MAX_COMMENT_DEPTH,
    MAX_CUSTOM_BADGES,
    MAX_POLL_OPTIONS,
    MIN_POLL_OPTIONS,
)
from .notifications import send_notification
from .polls import create_poll_options

logger = logging.getLogger(__name__)


class VoteResult:
    """Result of a vote operation."""
    def __init__(
        self,
        success: bool,
        action: Literal['created', 'removed'],
        score: int
    ):
        self.success = success
        self.action = action
        self.score = score


class FollowResult:
    def __init__(self, success: bool, new_state: Literal['followed', 'unfollowed']):
        self.success = success
        self.new_state = new_state


class RepostResult:
    def __init__(self, success: bool, new_post_id: int):
        self.success = success
        self.new_post_id = new_post_id


def _require_user(user, message: str) -> None:
    if user is None or not user.is_authenticated:
        raise Unauthenticated(message)


def _parse_id(value, what: str) -> int:
    if value is None or value == '':
        raise InvalidArgument(f"A {what} id is required.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid {what} id: {value!r}")


def get_profile(user: User) -> Profile:
    profile, _ = Profile.objects.get_or_create(user=user)
    return profile


# ============================================================================
# POSTS & COMMENTS
# ============================================================================

def create_post(
    user,
    text: str,
    is_anonymous: bool = False,
    poll_options: Optional[List[str]] = None,
    poll_end_date=None,
    allow_multiple_votes: bool = False,
) -> Post:
    """
    Create a post, or a poll when poll_options is given.

    Polls always start with poll_notified = False so the closer picks them
    up once poll_end_date has passed.
    """
    _require_user(user, "You must be signed in to post.")

    text = (text or '').strip()
    if not text:
        raise InvalidArgument("Post text cannot be empty.")

    is_poll = poll_options is not None
    if is_poll:
        poll_options = [option.strip() for option in poll_options]
        if any(not option for option in poll_options):
            raise InvalidArgument("Poll options cannot be empty.")
        if not MIN_POLL_OPTIONS <= len(poll_options) <= MAX_POLL_OPTIONS:
            raise InvalidArgument(
                f"A poll needs between {MIN_POLL_OPTIONS} and {MAX_POLL_OPTIONS} options."
            )
        if poll_end_date is None or poll_end_date <= timezone.now():
            raise InvalidArgument("A poll needs an end date in the future.")

    with transaction.atomic():
        post = Post.objects.create(
            author=user,
            author_name=user.username,
            text=text,
            is_anonymous=is_anonymous,
            is_poll=is_poll,
            allow_multiple_votes=is_poll and allow_multiple_votes,
            poll_end_date=poll_end_date if is_poll else None,
            poll_notified=False,
        )
        if is_poll:
            create_poll_options(post, poll_options)

    return post


def create_comment(user, post_id: int, text: str, parent_id: Optional[int] = None) -> Comment:
    """
    Comment on a post, optionally as a reply to another comment.

    Notifies the post author ("comment") and the parent comment's author
    ("reply"), never the commenter themselves and never the same person
    twice.
    """
    _require_user(user, "You must be signed in to comment.")

    text = (text or '').strip()
    if not text:
        raise InvalidArgument("Comment cannot be empty.")

    post = Post.objects.filter(id=post_id).first()
    if post is None:
        raise NotFound(f"Post {post_id} does not exist.")

    parent = None
    if parent_id is not None:
        parent = Comment.objects.filter(id=parent_id).first()
        if parent is None:
            raise NotFound(f"Comment {parent_id} does not exist.")
        if parent.post_id != post.id:
            raise InvalidArgument("Parent comment must belong to the same post.")
        if parent.depth >= MAX_COMMENT_DEPTH:
            raise FailedPrecondition(
                f"Maximum reply depth ({MAX_COMMENT_DEPTH}) reached. Cannot nest deeper."
            )

    comment = Comment.objects.create(
        post=post,
        author=user,
        parent=parent,
        text=text,
        depth=parent.depth + 1 if parent else 0,
    )

    notified = {user.id}
    if parent is not None and parent.author_id not in notified:
        send_notification(
            parent.author_id,
            Notification.Type.REPLY,
            f"{user.username} replied to your comment.",
            post_id=post.id,
            comment_id=comment.id,
        )
        notified.add(parent.author_id)
    if post.author_id not in notified:
        send_notification(
            post.author_id,
            Notification.Type.COMMENT,
            f"{user.username} commented on your post.",
            post_id=post.id,
            comment_id=comment.id,
        )

    return comment


# ============================================================================
# VOTES
# ============================================================================

VOTE_TARGETS = {
    'post': Post,
    'comment': Comment,
}


def vote(user, target_type: str, target_id: int, direction: str) -> VoteResult:
    """
    Toggle an up/down vote on a post or comment.

    - same direction again: vote removed
    - opposite direction:   vote switched
    - otherwise:            vote added

    score is recomputed as len(upvoted_by) - len(downvoted_by) under the
    row lock and saved through the model, so the post-updated signal sees
    the (before, after) pair and can evaluate score badges.
    """
    _require_user(user, "You must be signed in to vote.")

    if direction not in ('up', 'down'):
        raise InvalidArgument(f"Invalid vote direction: {direction}")
    model = VOTE_TARGETS.get(target_type)
    if model is None:
        raise InvalidArgument(f"Invalid target_type: {target_type}")

    with transaction.atomic():
        target = model.objects.select_for_update().filter(id=target_id).first()
        if target is None:
            raise NotFound(f"{target_type.capitalize()} {target_id} does not exist.")

        if direction == 'up':
            same, opposite = target.upvoted_by, target.downvoted_by
        else:
            same, opposite = target.downvoted_by, target.upvoted_by

        if same.filter(id=user.id).exists():
            same.remove(user)
            action = 'removed'
        else:
            opposite.remove(user)
            same.add(user)
            action = 'created'

        target.score = target.upvoted_by.count() - target.downvoted_by.count()
        target.save(update_fields=['score', 'updated_at'])

    if action == 'created' and direction == 'up' and target.author_id != user.id:
        if target_type == 'post':
            send_notification(
                target.author_id,
                Notification.Type.UPVOTE,
                f"{user.username} upvoted your post.",
                post_id=target.id,
            )
        else:
            send_notification(
                target.author_id,
                Notification.Type.UPVOTE,
                f"{user.username} upvoted your comment.",
                post_id=target.post_id,
                comment_id=target.id,
            )

    return VoteResult(success=True, action=action, score=target.score)


# ============================================================================
# FOLLOW
# ============================================================================

def toggle_follow(user, target_user_id) -> FollowResult:
    """
    Follow target if not already following, otherwise unfollow.

    One Follow row is both sides of the relationship, so the toggle is a
    single insert or delete.
    """
    _require_user(user, "You must be signed in to follow users.")
    target_user_id = _parse_id(target_user_id, 'target user')
    if target_user_id == user.id:
        raise InvalidArgument("You cannot follow yourself.")

    target = User.objects.filter(id=target_user_id).first()
    if target is None:
        raise NotFound(f"User {target_user_id} does not exist.")

    try:
        with transaction.atomic():
            deleted, _ = Follow.objects.filter(follower=user, following=target).delete()
            if deleted:
                return FollowResult(success=True, new_state='unfollowed')
            Follow.objects.create(follower=user, following=target)
    except IntegrityError:
        # Followed concurrently by another request
        return FollowResult(success=True, new_state='followed')

    send_notification(
        target.id,
        Notification.Type.FOLLOW,
        f"{user.username} started following you.",
    )
    return FollowResult(success=True, new_state='followed')


# ============================================================================
# REPOST
# ============================================================================

def build_repost(original: Post, user: User) -> Post:
    """
    The new post for a repost, field by field.

    Carried over: text, original author's display name (masked if the
    original is anonymous), the link to the original.
    Reset: score, votes, comment count, anonymity, poll state, repost
    counters. Votes and poll options are relations and are never copied.
    """
    return Post(
        author=user,
        author_name=user.username,
        text=original.text,
        is_repost=True,
        original_post=original,
        original_author_name=(
            ANONYMOUS_AUTHOR_NAME if original.is_anonymous else original.author_name
        ),
        score=0,
        comments_count=0,
        is_anonymous=False,
        is_poll=False,
        allow_multiple_votes=False,
        poll_end_date=None,
        poll_notified=False,
        reposts_count=0,
    )


def repost(user, post_id) -> RepostResult:
    """
    Repost an original post.

    Rejected: reposting a repost, reposting your own post, reposting the
    same original twice. On success the original's reposts_count and
    reposted_by grow by one.
    """
    _require_user(user, "You must be signed in to repost.")
    post_id = _parse_id(post_id, 'post')

    try:
        with transaction.atomic():
            original = Post.objects.select_for_update().filter(id=post_id).first()
            if original is None:
                raise NotFound("The original post does not exist.")
            if original.is_repost:
                raise FailedPrecondition("You cannot repost a repost.")
            if original.author_id == user.id:
                raise FailedPrecondition("You cannot repost your own post.")
            if original.reposted_by.filter(id=user.id).exists():
                raise AlreadyExists("You have already reposted this post.")

            new_post = build_repost(original, user)
            new_post.save()
            original.reposted_by.add(user)
            Post.objects.filter(id=original.id).update(reposts_count=F('reposts_count') + 1)
    except IntegrityError:
        raise AlreadyExists("You have already reposted this post.")

    send_notification(
        original.author_id,
        Notification.Type.REPOST,
        f"{user.username} reposted your post.",
        post_id=original.id,
    )
    return RepostResult(success=True, new_post_id=new_post.id)


# ============================================================================
# CUSTOM BADGES
# ============================================================================

def _get_own_badge(user, badge_id) -> CustomBadge:
    badge_id = _parse_id(badge_id, 'badge')
    badge = CustomBadge.objects.filter(id=badge_id).first()
    if badge is None:
        raise NotFound(f"Custom badge {badge_id} does not exist.")
    if badge.user_id != user.id:
        raise PermissionDenied("You can only manage your own badges.")
    return badge


def _delete_stored_file(storage, name: str) -> None:
    """Best-effort removal of a stored image. Failures are logged only."""
    try:
        storage.delete(name)
    except OSError:
        logger.exception(f"Could not delete stored image {name}")


def create_custom_badge(user, name: str, description: str = '', image=None) -> CustomBadge:
    """
    Create a custom badge. A user holding MAX_CUSTOM_BADGES already gets
    ResourceExhausted and nothing is written.
    """
    _require_user(user, "You must be signed in to create badges.")

    name = (name or '').strip()
    if not name:
        raise InvalidArgument("A badge name is required.")

    with transaction.atomic():
        # Serializes concurrent creates by the same user around the count
        User.objects.select_for_update().filter(id=user.id).first()
        if CustomBadge.objects.filter(user_id=user.id).count() >= MAX_CUSTOM_BADGES:
            raise ResourceExhausted(
                f"You can create at most {MAX_CUSTOM_BADGES} custom badges."
            )
        badge = CustomBadge(user=user, name=name, description=(description or '').strip())
        if image is not None:
            badge.image = image
        badge.save()

    return badge


def update_custom_badge(user, badge_id, name=None, description=None, image=None) -> CustomBadge:
    _require_user(user, "You must be signed in to edit badges.")
    badge = _get_own_badge(user, badge_id)

    if name is not None:
        name = name.strip()
        if not name:
            raise InvalidArgument("A badge name is required.")
        badge.name = name
    if description is not None:
        badge.description = description.strip()

    replaced_image = None
    if image is not None:
        if badge.image:
            replaced_image = (badge.image.storage, badge.image.name)
        badge.image = image

    badge.save()

    if replaced_image is not None:
        _delete_stored_file(*replaced_image)
    return badge


def delete_custom_badge(user, badge_id) -> None:
    """
    Delete a custom badge, clear it as primary badge if selected, then try
    to remove its image from storage.
    """
    _require_user(user, "You must be signed in to delete badges.")
    badge = _get_own_badge(user, badge_id)
    stored_image = (badge.image.storage, badge.image.name) if badge.image else None

    with transaction.atomic():
        Profile.objects.filter(user_id=user.id, primary_custom_badge=badge).update(
            primary_custom_badge=None
        )
        badge.delete()

    if stored_image is not None:
        _delete_stored_file(*stored_image)


def set_primary_badge(user, badge_id, custom: bool = False) -> Profile:
    """
    Choose the badge shown next to the user's name.

    Official badges must already be held; custom badges must be the
    user's own. badge_id None clears the selection.
    """
    _require_user(user, "You must be signed in to choose a badge.")
    profile = get_profile(user)

    if badge_id is None or badge_id == '':
        profile.primary_badge = ''
        profile.primary_custom_badge = None
    elif custom:
        profile.primary_custom_badge = _get_own_badge(user, badge_id)
        profile.primary_badge = ''
    else:
        if badge_id not in BADGES:
            raise InvalidArgument(f"Unknown badge: {badge_id}")
        if not BadgeGrant.objects.filter(user_id=user.id, badge=badge_id).exists():
            raise FailedPrecondition("You have not earned this badge yet.")
        profile.primary_badge = badge_id
        profile.primary_custom_badge = None

    profile.save(update_fields=['primary_badge', 'primary_custom_badge'])
    return profile
