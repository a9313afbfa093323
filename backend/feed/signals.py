"""
Django Signals: document hooks and denormalized counters.

Hooks:
------
- Post created       -> pioneer check
- Comment created    -> post.comments_count + 1, chatterbox check
- Comment deleted    -> post.comments_count - 1
- Post score changed -> popular / king check with the (before, after) pair
- User created       -> Profile row

The score hook needs the stored score from before the save. pre_save
reads it into instance._score_before; post_save compares.

IMPORTANT: Signals do NOT fire on:
- bulk_create()
- bulk_update()
- QuerySet.update()
- QuerySet.delete()

Writes that must not re-trigger badge checks (reposts_count bumps, the poll
closer's poll_notified flag) go through QuerySet.update() on purpose.
Score changes go through Model.save() in services.vote().

Badge evaluation swallows its own store faults (see badges.py), so none of
these hooks can fail the write that fired them.
"""

from django.contrib.auth.models import User
from django.db.models import F
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .badges import Trigger, evaluate_and_grant
from .models import Comment, Post, Profile


@receiver(post_save, sender=User)
def create_profile(sender, instance, created, **kwargs):
    if created:
        Profile.objects.get_or_create(user=instance)


@receiver(pre_save, sender=Post)
def remember_previous_score(sender, instance, update_fields=None, **kwargs):
    instance._score_before = None
    if instance.pk is None:
        return
    if update_fields is not None and 'score' not in update_fields:
        return
    instance._score_before = (
        Post.objects
        .filter(pk=instance.pk)
        .values_list('score', flat=True)
        .first()
    )


@receiver(post_save, sender=Post)
def evaluate_post_badges(sender, instance, created, **kwargs):
    if created:
        evaluate_and_grant(instance.author_id, Trigger.POST_CREATED)
        return

    before = getattr(instance, '_score_before', None)
    if before is not None and before != instance.score:
        evaluate_and_grant(
            instance.author_id,
            Trigger.SCORE_CHANGED,
            score_before=before,
            score_after=instance.score,
        )


@receiver(post_save, sender=Comment)
def on_comment_created(sender, instance, created, **kwargs):
    """
    New comment: bump the post's comment count (atomic F() update), then
    check chatterbox for the author.
    """
    if created:
        Post.objects.filter(id=instance.post_id).update(
            comments_count=F('comments_count') + 1
        )
        evaluate_and_grant(instance.author_id, Trigger.COMMENT_CREATED)


@receiver(post_delete, sender=Comment)
def decrement_comments_count(sender, instance, **kwargs):
    """
    Fires once per deleted row, including replies removed by cascade, so
    the count stays in step with the rows.
    """
    Post.objects.filter(id=instance.post_id, comments_count__gt=0).update(
        comments_count=F('comments_count') - 1
    )
