"""
Tests for the read-side queries.

CRITICAL: Verify N+1 prevention on post detail.
"""

from django.test import TestCase
from django.contrib.auth.models import User
from django.db import connection
from django.test.utils import CaptureQueriesContext

from feed.badges import PIONEER
from feed.models import Comment, Post
from feed.queries import (
    build_comment_tree,
    get_all_comments_for_post,
    get_post_with_comment_tree,
    get_user_profile,
)
from feed.services import create_custom_badge, set_primary_badge, toggle_follow


class CommentTreeTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = Post.objects.create(author=self.user, author_name='user', text='Test post')

    def test_tree_building_single_level(self):
        """Flat comments should be returned as separate trees."""
        c1 = Comment.objects.create(post=self.post, author=self.user, text='Comment 1')
        c2 = Comment.objects.create(post=self.post, author=self.user, text='Comment 2')

        flat = get_all_comments_for_post(self.post.id)
        tree = build_comment_tree(flat)

        self.assertEqual(len(tree), 2)
        self.assertEqual(tree[0]['comment'].id, c1.id)
        self.assertEqual(tree[1]['comment'].id, c2.id)

    def test_tree_building_nested(self):
        """Nested comments should be in replies array."""
        c1 = Comment.objects.create(post=self.post, author=self.user, text='Comment 1', depth=0)
        c2 = Comment.objects.create(post=self.post, author=self.user, text='Reply to 1', parent=c1, depth=1)
        Comment.objects.create(post=self.post, author=self.user, text='Reply to reply', parent=c2, depth=2)

        flat = get_all_comments_for_post(self.post.id)
        tree = build_comment_tree(flat)

        self.assertEqual(len(tree), 1)  # One root
        self.assertEqual(tree[0]['comment'].id, c1.id)
        self.assertEqual(len(tree[0]['replies']), 1)
        self.assertEqual(tree[0]['replies'][0]['comment'].id, c2.id)
        self.assertEqual(len(tree[0]['replies'][0]['replies']), 1)

    def test_no_n_plus_one_queries(self):
        """
        Loading 50 comments full of mentions must NOT cause 50 queries.
        """
        User.objects.create_user('bob', 'b@test.com', 'pass')
        parent = None
        for i in range(50):
            if i % 5 == 0:
                parent = Comment.objects.create(
                    post=self.post,
                    author=self.user,
                    text=f'Comment {i} for @bob',
                    depth=0
                )
            else:
                Comment.objects.create(
                    post=self.post,
                    author=self.user,
                    text=f'Reply {i} to @user',
                    parent=parent,
                    depth=1
                )

        with CaptureQueriesContext(connection) as context:
            result = get_post_with_comment_tree(self.post.id)

        # Post, poll option prefetch, reposted_by prefetch, comments, usernames
        query_count = len(context)
        self.assertLessEqual(query_count, 5,
            f"Expected ≤5 queries, got {query_count}. Queries: {[q['sql'][:100] for q in context]}")

        self.assertEqual(result['comment_count'], 50)
        self.assertEqual(len(result['rendered']['comments']), 50)
        self.assertIn('data-mention="true"', result['rendered']['comments'][parent.id])

    def test_missing_post(self):
        self.assertIsNone(get_post_with_comment_tree(999999))


class UserProfileQueryTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')

    def test_profile(self):
        Post.objects.create(author=self.alice, author_name='alice', text='first')
        toggle_follow(self.bob, self.alice.id)
        badge = create_custom_badge(self.alice, 'Custom')
        set_primary_badge(self.alice, PIONEER)

        profile = get_user_profile(self.alice.id)

        self.assertEqual(profile['user'], self.alice)
        self.assertEqual(profile['badges'], [PIONEER])
        self.assertEqual(profile['primary_badge'], {'type': 'official', 'id': PIONEER})
        self.assertEqual(profile['followers'], [self.bob.id])
        self.assertEqual(profile['following'], [])
        self.assertEqual(profile['custom_badges'], [badge])

        set_primary_badge(self.alice, badge.id, custom=True)
        profile = get_user_profile(self.alice.id)
        self.assertEqual(profile['primary_badge'], {'type': 'custom', 'id': badge.id})

    def test_missing_user(self):
        self.assertIsNone(get_user_profile(999999))
