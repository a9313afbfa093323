"""
Tests for the social actions in services.py.

Focus areas:
1. Repost exclusivity (no duplicates, no repost chains, no self reposts)
2. Custom badge limit and cleanup
3. Votes, follows and comments with their notifications
"""

import shutil
import tempfile
from datetime import timedelta
from unittest.mock import MagicMock, patch
from django.test import TestCase, TransactionTestCase, override_settings
from django.contrib.auth.models import AnonymousUser, User
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError
from django.utils import timezone

from feed.badges import POPULAR, grant_badge
from feed.exceptions import (
    AlreadyExists,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ResourceExhausted,
    Unauthenticated,
)
from feed.models import (
    Comment,
    CustomBadge,
    Follow,
    Notification,
    Post,
    ANONYMOUS_AUTHOR_NAME,
    MAX_COMMENT_DEPTH,
    MAX_CUSTOM_BADGES,
)
from feed.services import (
    _delete_stored_file,
    create_comment,
    create_custom_badge,
    create_post,
    delete_custom_badge,
    get_profile,
    repost,
    set_primary_badge,
    toggle_follow,
    update_custom_badge,
    vote,
)


def image_file(name='badge.png'):
    return SimpleUploadedFile(name, b'\x89PNG\r\n\x1a\nfake', content_type='image/png')


class CreatePostTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.end = timezone.now() + timedelta(days=1)

    def test_plain_post(self):
        post = create_post(self.user, '  hello world  ')
        self.assertEqual(post.text, 'hello world')
        self.assertEqual(post.author_name, 'alice')
        self.assertFalse(post.is_poll)
        self.assertIsNone(post.poll_end_date)

    def test_poll_post(self):
        post = create_post(self.user, 'Pick one', poll_options=['a', 'b', 'c'], poll_end_date=self.end)
        self.assertTrue(post.is_poll)
        self.assertFalse(post.poll_notified)
        self.assertEqual(
            list(post.poll_options.values_list('position', 'text')),
            [(0, 'a'), (1, 'b'), (2, 'c')]
        )

    def test_invalid_posts(self):
        with self.assertRaises(InvalidArgument):
            create_post(self.user, '   ')
        with self.assertRaises(InvalidArgument):
            create_post(self.user, 'Pick', poll_options=['only one'], poll_end_date=self.end)
        with self.assertRaises(InvalidArgument):
            create_post(self.user, 'Pick', poll_options=[str(i) for i in range(11)], poll_end_date=self.end)
        with self.assertRaises(InvalidArgument):
            create_post(self.user, 'Pick', poll_options=['a', ' '], poll_end_date=self.end)
        with self.assertRaises(InvalidArgument):
            create_post(
                self.user, 'Pick', poll_options=['a', 'b'],
                poll_end_date=timezone.now() - timedelta(minutes=1)
            )
        self.assertEqual(Post.objects.count(), 0)

    def test_anonymous_user_rejected(self):
        with self.assertRaises(Unauthenticated):
            create_post(AnonymousUser(), 'hello')


class CommentTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'au@test.com', 'pass')
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')
        self.post = create_post(self.author, 'A post')

    def notifications(self, user):
        return list(
            Notification.objects
            .filter(recipient=user)
            .exclude(type=Notification.Type.BADGE)
            .values_list('type', flat=True)
        )

    def test_comment_notifies_post_author(self):
        comment = create_comment(self.alice, self.post.id, 'Nice')

        self.assertEqual(comment.depth, 0)
        self.assertEqual(self.notifications(self.author), [Notification.Type.COMMENT])
        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 1)

    def test_reply_notifies_parent_and_post_author(self):
        parent = create_comment(self.alice, self.post.id, 'First')
        reply = create_comment(self.bob, self.post.id, 'Reply', parent_id=parent.id)

        self.assertEqual(reply.depth, 1)
        self.assertEqual(self.notifications(self.alice), [Notification.Type.REPLY])
        self.assertEqual(
            sorted(self.notifications(self.author)),
            [Notification.Type.COMMENT, Notification.Type.COMMENT]
        )

    def test_no_self_or_duplicate_notifications(self):
        parent = create_comment(self.author, self.post.id, 'Own comment')
        create_comment(self.author, self.post.id, 'Own reply', parent_id=parent.id)
        self.assertEqual(self.notifications(self.author), [])

        create_comment(self.alice, self.post.id, 'Reply to author', parent_id=parent.id)
        self.assertEqual(self.notifications(self.author), [Notification.Type.REPLY])

    def test_reply_depth_cap(self):
        deep = Comment.objects.create(
            post=self.post, author=self.alice, text='deep', depth=MAX_COMMENT_DEPTH
        )
        with self.assertRaises(FailedPrecondition):
            create_comment(self.bob, self.post.id, 'too deep', parent_id=deep.id)

    def test_parent_from_other_post(self):
        other = create_post(self.author, 'Other')
        parent = create_comment(self.alice, other.id, 'elsewhere')
        with self.assertRaises(InvalidArgument):
            create_comment(self.bob, self.post.id, 'wrong thread', parent_id=parent.id)

    def test_missing_targets(self):
        with self.assertRaises(NotFound):
            create_comment(self.alice, 999999, 'hello')
        with self.assertRaises(NotFound):
            create_comment(self.alice, self.post.id, 'hello', parent_id=999999)

    def test_delete_decrements_count(self):
        parent = create_comment(self.alice, self.post.id, 'First')
        create_comment(self.bob, self.post.id, 'Reply', parent_id=parent.id)
        parent.delete()

        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 0)


class VoteTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'au@test.com', 'pass')
        self.voter = User.objects.create_user('voter', 'v@test.com', 'pass')
        self.post = create_post(self.author, 'A post')

    def test_vote_toggle(self):
        result = vote(self.voter, 'post', self.post.id, 'up')
        self.assertEqual((result.action, result.score), ('created', 1))

        result = vote(self.voter, 'post', self.post.id, 'down')
        self.assertEqual((result.action, result.score), ('created', -1))

        result = vote(self.voter, 'post', self.post.id, 'down')
        self.assertEqual((result.action, result.score), ('removed', 0))

        self.post.refresh_from_db()
        self.assertEqual(self.post.score, 0)
        self.assertFalse(self.post.upvoted_by.exists())
        self.assertFalse(self.post.downvoted_by.exists())

    def test_upvote_notifies_author_once(self):
        vote(self.voter, 'post', self.post.id, 'up')
        vote(self.author, 'post', self.post.id, 'up')

        upvotes = Notification.objects.filter(type=Notification.Type.UPVOTE)
        self.assertEqual(list(upvotes.values_list('recipient_id', flat=True)), [self.author.id])

    def test_comment_vote(self):
        comment = create_comment(self.author, self.post.id, 'A comment')
        result = vote(self.voter, 'comment', comment.id, 'up')

        self.assertEqual(result.score, 1)
        notification = Notification.objects.get(type=Notification.Type.UPVOTE)
        self.assertEqual(notification.comment_id, comment.id)

    def test_invalid_votes(self):
        with self.assertRaises(InvalidArgument):
            vote(self.voter, 'post', self.post.id, 'sideways')
        with self.assertRaises(InvalidArgument):
            vote(self.voter, 'user', self.post.id, 'up')
        with self.assertRaises(NotFound):
            vote(self.voter, 'post', 999999, 'up')


class FollowTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')

    def test_follow_then_unfollow(self):
        self.assertEqual(toggle_follow(self.alice, self.bob.id).new_state, 'followed')
        self.assertTrue(Follow.objects.filter(follower=self.alice, following=self.bob).exists())
        self.assertTrue(
            Notification.objects.filter(recipient=self.bob, type=Notification.Type.FOLLOW).exists()
        )

        self.assertEqual(toggle_follow(self.alice, str(self.bob.id)).new_state, 'unfollowed')
        self.assertFalse(Follow.objects.exists())

    def test_invalid_follows(self):
        with self.assertRaises(InvalidArgument):
            toggle_follow(self.alice, self.alice.id)
        with self.assertRaises(InvalidArgument):
            toggle_follow(self.alice, 'abc')
        with self.assertRaises(InvalidArgument):
            toggle_follow(self.alice, None)
        with self.assertRaises(NotFound):
            toggle_follow(self.alice, 999999)
        with self.assertRaises(Unauthenticated):
            toggle_follow(AnonymousUser(), self.bob.id)


class RepostTestCase(TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'au@test.com', 'pass')
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')
        self.original = create_post(self.author, 'Original secret')

    def test_repost(self):
        vote(self.bob, 'post', self.original.id, 'up')

        result = repost(self.alice, self.original.id)

        self.assertTrue(result.success)
        new_post = Post.objects.get(id=result.new_post_id)
        self.assertTrue(new_post.is_repost)
        self.assertEqual(new_post.author, self.alice)
        self.assertEqual(new_post.text, 'Original secret')
        self.assertEqual(new_post.original_post, self.original)
        self.assertEqual(new_post.original_author_name, 'author')
        self.assertEqual(new_post.score, 0)
        self.assertFalse(new_post.upvoted_by.exists())

        self.original.refresh_from_db()
        self.assertEqual(self.original.reposts_count, 1)
        self.assertEqual(list(self.original.reposted_by.all()), [self.alice])
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.author, type=Notification.Type.REPOST, post=self.original
            ).exists()
        )

    def test_duplicate_repost(self):
        repost(self.alice, self.original.id)

        with self.assertRaises(AlreadyExists):
            repost(self.alice, self.original.id)

        self.original.refresh_from_db()
        self.assertEqual(self.original.reposts_count, 1)
        self.assertEqual(Post.objects.filter(is_repost=True).count(), 1)

    def test_repost_of_repost(self):
        result = repost(self.alice, self.original.id)

        with self.assertRaises(FailedPrecondition):
            repost(self.bob, result.new_post_id)

        self.assertEqual(Post.objects.filter(is_repost=True).count(), 1)

    def test_own_post(self):
        with self.assertRaises(FailedPrecondition):
            repost(self.author, self.original.id)

        self.original.refresh_from_db()
        self.assertEqual(self.original.reposts_count, 0)

    def test_missing_original(self):
        with self.assertRaises(NotFound):
            repost(self.alice, 999999)

    def test_anonymous_original_is_masked(self):
        secret = create_post(self.author, 'Anonymous secret', is_anonymous=True)
        new_post = Post.objects.get(id=repost(self.alice, secret.id).new_post_id)

        self.assertEqual(new_post.original_author_name, ANONYMOUS_AUTHOR_NAME)
        self.assertFalse(new_post.is_anonymous)

    def test_poll_repost_is_plain_post(self):
        poll = create_post(
            self.author, 'Poll?', poll_options=['a', 'b'],
            poll_end_date=timezone.now() + timedelta(hours=1)
        )
        new_post = Post.objects.get(id=repost(self.alice, poll.id).new_post_id)

        self.assertFalse(new_post.is_poll)
        self.assertIsNone(new_post.poll_end_date)
        self.assertFalse(new_post.poll_options.exists())


class CustomBadgeTestCase(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.media_root = tempfile.mkdtemp()
        cls.media_override = override_settings(MEDIA_ROOT=cls.media_root)
        cls.media_override.enable()

    @classmethod
    def tearDownClass(cls):
        cls.media_override.disable()
        shutil.rmtree(cls.media_root, ignore_errors=True)
        super().tearDownClass()

    def setUp(self):
        self.user = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.other = User.objects.create_user('bob', 'b@test.com', 'pass')

    def test_limit(self):
        for i in range(MAX_CUSTOM_BADGES):
            create_custom_badge(self.user, f'Badge {i}')

        with self.assertRaises(ResourceExhausted):
            create_custom_badge(self.user, 'One too many')

        self.assertEqual(CustomBadge.objects.filter(user=self.user).count(), MAX_CUSTOM_BADGES)
        # The limit is per user
        create_custom_badge(self.other, 'Mine')

    def test_name_required(self):
        with self.assertRaises(InvalidArgument):
            create_custom_badge(self.user, '   ')

    def test_delete_clears_primary_and_image(self):
        badge = create_custom_badge(self.user, 'Shiny', image=image_file())
        image_name = badge.image.name
        self.assertTrue(default_storage.exists(image_name))
        set_primary_badge(self.user, badge.id, custom=True)

        delete_custom_badge(self.user, badge.id)

        self.assertFalse(CustomBadge.objects.filter(id=badge.id).exists())
        self.assertIsNone(get_profile(self.user).primary_custom_badge)
        self.assertFalse(default_storage.exists(image_name))

    def test_update_replaces_image(self):
        badge = create_custom_badge(self.user, 'Shiny', image=image_file('old.png'))
        old_name = badge.image.name

        badge = update_custom_badge(self.user, badge.id, name='Shinier', image=image_file('new.png'))

        self.assertEqual(badge.name, 'Shinier')
        self.assertFalse(default_storage.exists(old_name))
        self.assertTrue(default_storage.exists(badge.image.name))

    def test_only_owner_can_manage(self):
        badge = create_custom_badge(self.user, 'Mine')

        with self.assertRaises(PermissionDenied):
            update_custom_badge(self.other, badge.id, name='Stolen')
        with self.assertRaises(PermissionDenied):
            delete_custom_badge(self.other, badge.id)
        with self.assertRaises(NotFound):
            delete_custom_badge(self.user, 999999)

    def test_primary_badge_selection(self):
        with self.assertRaises(FailedPrecondition):
            set_primary_badge(self.user, POPULAR)
        with self.assertRaises(InvalidArgument):
            set_primary_badge(self.user, 'emperor')

        grant_badge(self.user.id, POPULAR)
        profile = set_primary_badge(self.user, POPULAR)
        self.assertEqual(profile.primary_badge, POPULAR)

        badge = create_custom_badge(self.user, 'Mine')
        profile = set_primary_badge(self.user, badge.id, custom=True)
        self.assertEqual(profile.primary_badge, '')
        self.assertEqual(profile.primary_custom_badge, badge)

        profile = set_primary_badge(self.user, None)
        self.assertEqual(profile.primary_badge, '')
        self.assertIsNone(profile.primary_custom_badge)


class RepostConstraintTestCase(TransactionTestCase):
    """
    The unique (author, original_post) constraint backs up the pre-check
    when two repost requests race.
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'au@test.com', 'pass')
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.original = create_post(self.author, 'Original')

    def test_racing_duplicate_is_already_exists(self):
        # The other request's repost row exists, but reposted_by is not updated yet
        Post.objects.create(
            author=self.alice,
            author_name='alice',
            text='Original',
            is_repost=True,
            original_post=self.original,
        )

        with self.assertRaises(AlreadyExists):
            repost(self.alice, self.original.id)

        self.original.refresh_from_db()
        self.assertEqual(self.original.reposts_count, 0)
        self.assertEqual(Post.objects.filter(original_post=self.original).count(), 1)


class BestEffortNotificationTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')

    def test_failed_notification_does_not_abort_follow(self):
        with patch('feed.notifications.create_notification', side_effect=DatabaseError('down')):
            result = toggle_follow(self.alice, self.bob.id)

        self.assertEqual(result.new_state, 'followed')
        self.assertTrue(Follow.objects.filter(follower=self.alice, following=self.bob).exists())
        self.assertFalse(Notification.objects.filter(type=Notification.Type.FOLLOW).exists())


class StoredImageCleanupTestCase(TestCase):

    def test_storage_error_is_logged_not_raised(self):
        storage = MagicMock()
        storage.delete.side_effect = OSError('bucket unavailable')

        with self.assertLogs('feed.services', level='ERROR'):
            _delete_stored_file(storage, 'custom_badges/gone.png')

        storage.delete.assert_called_once_with('custom_badges/gone.png')

    def test_programming_error_propagates(self):
        storage = MagicMock()
        storage.delete.side_effect = TypeError('bad argument')

        with self.assertRaises(TypeError):
            _delete_stored_file(storage, 'custom_badges/gone.png')
