"""
Badge Evaluator
===============

Decides, from observed activity, whether a user newly qualifies for one of
the four official badges, and grants it exactly once.

BADGES:
-------
- pioneer:    first authored post
- chatterbox: 50 authored comments
- popular:    one authored post's score crosses 100
- king:       one authored post's score crosses 500

Event path vs. sweep:
---------------------
Event path (evaluate_and_grant) runs from the model signals:
- post created    -> pioneer
- comment created -> chatterbox (exact count)
- score changed   -> popular / king, EDGE-triggered: only on
                     before < threshold <= after

The retroactive sweep (reconcile_all_users) re-derives every badge from the
raw tables, LEVEL-triggered (score >= threshold), for back-fill.

IDEMPOTENCE:
------------
grant_badge() pre-checks membership and skips the write when the badge is
held. The unique (user, badge) constraint covers the race between two
triggers that both pass the pre-check: the loser's IntegrityError is a
no-op. So every path here can be replayed or reordered safely.

FAILURE SEMANTICS:
------------------
Badge granting is a side path. Store faults are logged and swallowed, and
each evaluation (reads included) runs in its own savepoint, so a failed
check never aborts the post/comment/vote that triggered it.

COST:
-----
Counters are derived from raw rows, not maintained. The sweep does O(posts)
reads per user for popular/king. Fine at current sizes; maintained
counters would be the next step if this gets slow.
"""
import logging
from typing import List, Optional, TypedDict

from django.contrib.auth.models import User
from django.db import DatabaseError, IntegrityError, transaction

from .models import (
    BadgeGrant,
    Comment,
    Notification,
    Post,
    CHATTERBOX_COMMENT_COUNT,
    KING_SCORE,
    PIONEER_POST_COUNT,
    POPULAR_SCORE,
)
from .notifications import create_notification

logger = logging.getLogger(__name__)

PIONEER = BadgeGrant.BadgeId.PIONEER.value
CHATTERBOX = BadgeGrant.BadgeId.CHATTERBOX.value
POPULAR = BadgeGrant.BadgeId.POPULAR.value
KING = BadgeGrant.BadgeId.KING.value


class BadgeDefinition(TypedDict):
    id: str
    name: str
    description: str
    color: str


BADGES: dict[str, BadgeDefinition] = {
    PIONEER: {
        'id': PIONEER,
        'name': 'Pioneer',
        'description': 'Published their first post.',
        'color': '#3498db',
    },
    CHATTERBOX: {
        'id': CHATTERBOX,
        'name': 'Chatterbox',
        'description': f'Wrote at least {CHATTERBOX_COMMENT_COUNT} comments.',
        'color': '#f1c40f',
    },
    POPULAR: {
        'id': POPULAR,
        'name': 'Popular',
        'description': f'One of their posts reached a score of {POPULAR_SCORE}.',
        'color': '#e67e22',
    },
    KING: {
        'id': KING,
        'name': 'King of Secrets',
        'description': f'One of their posts reached a score of {KING_SCORE}.',
        'color': '#e74c3c',
    },
}

# Score badges, lowest threshold first
SCORE_BADGES = [(POPULAR, POPULAR_SCORE), (KING, KING_SCORE)]


class Trigger:
    POST_CREATED = 'post_created'
    COMMENT_CREATED = 'comment_created'
    SCORE_CHANGED = 'score_changed'


class SweepResult:
    """Summary of a reconcile_all_users() run."""
    def __init__(self, users_examined: int = 0, badges_granted: int = 0):
        self.users_examined = users_examined
        self.badges_granted = badges_granted


def crossed_threshold(before: int, after: int, threshold: int) -> bool:
    """True only on the transition into qualification."""
    return before < threshold <= after


def held_badges(user_id: int) -> set[str]:
    return set(
        BadgeGrant.objects
        .filter(user_id=user_id)
        .values_list('badge', flat=True)
    )


def grant_badge(user_id: int, badge_id: str) -> bool:
    """
    Add badge_id to the user's badge set.

    Returns True if a grant was written, False if the badge was already
    held (no write happens in that case). The grant and its "badge"
    notification commit or roll back together.
    """
    if badge_id not in BADGES:
        raise ValueError(f"Unknown badge: {badge_id}")

    if BadgeGrant.objects.filter(user_id=user_id, badge=badge_id).exists():
        return False

    try:
        with transaction.atomic():
            BadgeGrant.objects.create(user_id=user_id, badge=badge_id)
            create_notification(
                user_id,
                Notification.Type.BADGE,
                f'You earned the "{BADGES[badge_id]["name"]}" badge!',
            )
    except IntegrityError:
        # Granted concurrently by another trigger
        return False

    logger.info(f"Granted badge {badge_id} to user {user_id}")
    return True


def _qualifying_badges(
    user_id: int,
    trigger: str,
    held: set[str],
    score_before: Optional[int],
    score_after: Optional[int],
) -> List[str]:
    if trigger == Trigger.POST_CREATED:
        if PIONEER not in held:
            post_count = Post.objects.filter(author_id=user_id).count()
            if post_count >= PIONEER_POST_COUNT:
                return [PIONEER]
        return []

    if trigger == Trigger.COMMENT_CREATED:
        if CHATTERBOX not in held:
            comment_count = Comment.objects.filter(author_id=user_id).count()
            if comment_count >= CHATTERBOX_COMMENT_COUNT:
                return [CHATTERBOX]
        return []

    if trigger == Trigger.SCORE_CHANGED:
        if score_before is None or score_after is None:
            return []
        return [
            badge_id
            for badge_id, threshold in SCORE_BADGES
            if badge_id not in held
            and crossed_threshold(score_before, score_after, threshold)
        ]

    raise ValueError(f"Unknown badge trigger: {trigger}")


def evaluate_and_grant(
    user_id: int,
    trigger: str,
    score_before: Optional[int] = None,
    score_after: Optional[int] = None,
) -> List[str]:
    """
    Evaluate the badges relevant to one trigger and grant the new ones.

    Returns the badge ids granted by this call (usually empty). A missing
    user is ignored. Store faults are logged and swallowed; the whole
    evaluation runs in its own savepoint so a failed read rolls back to it
    and leaves the caller's transaction usable.
    """
    try:
        with transaction.atomic():
            if not User.objects.filter(id=user_id).exists():
                logger.debug(f"Badge check skipped: user {user_id} does not exist")
                return []

            held = held_badges(user_id)
            candidates = _qualifying_badges(user_id, trigger, held, score_before, score_after)
            return [badge_id for badge_id in candidates if grant_badge(user_id, badge_id)]
    except DatabaseError:
        logger.exception(f"Badge evaluation failed for user {user_id} ({trigger})")
        return []


# ============================================================================
# RETROACTIVE SWEEP
# ============================================================================

def retroactive_badges(user_id: int) -> List[str]:
    """
    Re-derive every badge the user qualifies for but does not hold.

    Level-triggered: a post sitting at score 150 qualifies for popular here
    even though no 99 -> 100 transition was ever observed.
    """
    held = held_badges(user_id)
    earned = []

    if PIONEER not in held and Post.objects.filter(author_id=user_id).exists():
        earned.append(PIONEER)

    if CHATTERBOX not in held:
        # Capped read: fetching at most CHATTERBOX_COMMENT_COUNT ids and
        # getting a full page means ">= threshold". The cap and the event
        # path's threshold are the same constant and must stay that way.
        sample = (
            Comment.objects
            .filter(author_id=user_id)
            .values_list('id', flat=True)[:CHATTERBOX_COMMENT_COUNT]
        )
        if len(sample) >= CHATTERBOX_COMMENT_COUNT:
            earned.append(CHATTERBOX)

    pending = {badge_id: threshold for badge_id, threshold in SCORE_BADGES if badge_id not in held}
    if pending:
        scores = Post.objects.filter(author_id=user_id).values_list('score', flat=True)
        for score in scores.iterator():
            for badge_id, threshold in list(pending.items()):
                if score >= threshold:
                    earned.append(badge_id)
                    del pending[badge_id]
            if not pending:
                break

    # Keep registry order so grants and notifications are deterministic
    return [badge_id for badge_id in BADGES if badge_id in earned]


def reconcile_all_users() -> SweepResult:
    """
    Back-fill badges for every user. Safe to re-run: a second run in a row
    grants nothing.

    A fault on one user is logged and the sweep moves on to the next.
    """
    result = SweepResult()

    user_ids = User.objects.order_by('id').values_list('id', flat=True)
    for user_id in user_ids.iterator():
        result.users_examined += 1
        try:
            with transaction.atomic():
                granted = [
                    badge_id
                    for badge_id in retroactive_badges(user_id)
                    if grant_badge(user_id, badge_id)
                ]
        except DatabaseError:
            logger.exception(f"Retroactive badge check failed for user {user_id}")
            continue
        result.badges_granted += len(granted)

    logger.info(
        f"Retroactive badge check: {result.users_examined} users examined, "
        f"{result.badges_granted} badges granted"
    )
    return result
