"""
Poll Lifecycle
==============

Creation and voting feed the Poll Closer, which is the part with real
invariants.

POLL CLOSER:
------------
Run by the timer (manage.py close_polls, every 5 minutes from cron).
Each run is independent; the only state is the database and the clock.

1. due = posts WHERE is_poll AND NOT poll_notified AND poll_end_date <= now
   (inclusive: a poll ending exactly at tick time closes on that tick)
2. For each due poll, in ONE transaction with the poll row locked:
   - voters = union of voted_by across all options (a multi-select voter
     is notified once, not once per option)
   - bulk insert one poll_end notification per voter
   - set poll_notified = True
3. Return the number of polls closed.

Because the fan-out and the flag commit together, at-least-once ticks
can't double-notify: a poll is either untouched (and retried next tick) or
fully closed (and filtered out by step 1). Re-checking the due filter under
the row lock keeps two overlapping runs from closing the same poll twice.
"""
import logging
from itertools import chain, groupby
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone
from django.utils.text import Truncator

from .exceptions import AlreadyExists, FailedPrecondition, InvalidArgument, NotFound, Unauthenticated
from .models import Notification, PollOption, Post, POLL_TEXT_PREVIEW_LENGTH

logger = logging.getLogger(__name__)


class PollVoteResult:
    def __init__(self, success: bool, option_index: int, votes: int):
        self.success = success
        self.option_index = option_index
        self.votes = votes


def distinct_voters(option_voter_lists: Iterable[Iterable[int]]) -> List[int]:
    """Set union of voter ids across options, in first-seen order."""
    return list(dict.fromkeys(chain.from_iterable(option_voter_lists)))


def poll_end_text(poll_text: str) -> str:
    """
    Notification text. Short poll texts are used as-is; longer ones are cut
    to POLL_TEXT_PREVIEW_LENGTH characters with the ellipsis counted in
    that length (49 characters + "…").
    """
    preview = Truncator(poll_text).chars(POLL_TEXT_PREVIEW_LENGTH)
    return f'The poll "{preview}" has ended.'


def is_poll_open(post: Post, now=None) -> bool:
    if not post.is_poll or post.poll_notified:
        return False
    now = now or timezone.now()
    return post.poll_end_date is None or now < post.poll_end_date


def due_polls(now):
    return Post.objects.filter(
        is_poll=True,
        poll_notified=False,
        poll_end_date__lte=now,
    )


def option_voter_lists(poll_id: int) -> List[List[int]]:
    """voted_by of every option of the poll, one list per option, in option order."""
    through = PollOption.voted_by.through
    rows = (
        through.objects
        .filter(polloption__post_id=poll_id)
        .order_by('polloption__position', 'id')
        .values_list('polloption_id', 'user_id')
    )
    return [
        [user_id for _, user_id in option_rows]
        for _, option_rows in groupby(rows, key=lambda row: row[0])
    ]


def close_poll(poll_id: int, now) -> bool:
    """
    Close one poll atomically. Returns False if it is no longer due
    (closed by an overlapping run in the meantime).
    """
    with transaction.atomic():
        poll = due_polls(now).select_for_update().filter(id=poll_id).first()
        if poll is None:
            return False

        voter_ids = distinct_voters(option_voter_lists(poll.id))
        text = poll_end_text(poll.text)
        Notification.objects.bulk_create([
            Notification(
                recipient_id=voter_id,
                type=Notification.Type.POLL_END,
                post_id=poll.id,
                text=text,
            )
            for voter_id in voter_ids
        ])
        # QuerySet.update: no post_save, so no score-change hook on close
        Post.objects.filter(id=poll.id).update(poll_notified=True)

    logger.info(f"Closed poll {poll_id}: notified {len(voter_ids)} voters")
    return True


def close_due_polls(now=None) -> int:
    """
    Close every poll whose voting period has ended. Returns how many were
    closed. Store faults propagate; polls committed before the fault stay
    closed, the failing one is rolled back and retried next run.
    """
    now = now or timezone.now()
    poll_ids = list(
        due_polls(now)
        .order_by('poll_end_date', 'id')
        .values_list('id', flat=True)
    )
    if not poll_ids:
        logger.debug("No polls due for closing")
        return 0

    processed = sum(1 for poll_id in poll_ids if close_poll(poll_id, now))
    logger.info(f"Poll closer run finished: {processed} polls closed")
    return processed


# ============================================================================
# CREATION & VOTING
# ============================================================================

def create_poll_options(post: Post, option_texts: List[str]) -> List[PollOption]:
    return PollOption.objects.bulk_create([
        PollOption(post=post, position=position, text=text)
        for position, text in enumerate(option_texts)
    ])


def vote_in_poll(user, post_id: int, option_index: int, now=None) -> PollVoteResult:
    """
    Record user's vote for option_index of a poll.

    Single-choice polls take one vote per user; multi-choice polls take one
    vote per user per option. The poll row is locked for the check-and-add.
    """
    if user is None or not user.is_authenticated:
        raise Unauthenticated("You must be signed in to vote.")

    now = now or timezone.now()

    with transaction.atomic():
        post = Post.objects.select_for_update().filter(id=post_id).first()
        if post is None:
            raise NotFound(f"Post {post_id} does not exist.")
        if not post.is_poll:
            raise FailedPrecondition("This post is not a poll.")
        if not is_poll_open(post, now):
            raise FailedPrecondition("This poll has ended.")

        option = post.poll_options.filter(position=option_index).first()
        if option is None:
            raise InvalidArgument(f"Poll has no option {option_index}.")

        voted_option_ids = set(
            PollOption.voted_by.through.objects
            .filter(polloption__post_id=post.id, user_id=user.id)
            .values_list('polloption_id', flat=True)
        )
        if option.id in voted_option_ids:
            raise AlreadyExists("You already voted for this option.")
        if voted_option_ids and not post.allow_multiple_votes:
            raise AlreadyExists("You already voted in this poll.")

        option.voted_by.add(user)
        PollOption.objects.filter(id=option.id).update(votes=F('votes') + 1)

    return PollVoteResult(success=True, option_index=option_index, votes=option.votes + 1)
