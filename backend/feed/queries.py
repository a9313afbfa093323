"""
Efficient Query Strategies
==========================

Read-side helpers that keep the query count flat.

OUR APPROACH:
-------------
1. Fetch ALL comments for a post in ONE query (select_related author)
2. Build the tree in Python with an O(n) single pass
3. Prefetch poll options + voters and repost users for whole pages of posts
4. Resolve every @mention on a page (post + all comments) with ONE lookup
   (see formatting.parse_texts)

Post detail = post query + prefetches + 1 comment query + 1 username query,
regardless of nesting depth or number of mentions.
"""

from typing import Optional
from django.contrib.auth.models import User
from django.db.models import Prefetch

from .formatting import parse_texts
from .models import BadgeGrant, Comment, CustomBadge, Follow, PollOption, Post


def post_queryset():
    """Posts with everything the serializers read, prefetched."""
    return (
        Post.objects
        .select_related('author')
        .prefetch_related(
            Prefetch(
                'poll_options',
                queryset=PollOption.objects.prefetch_related('voted_by').order_by('position'),
            ),
            'reposted_by',
        )
    )


def get_post_with_author(post_id: int) -> Optional[Post]:
    return post_queryset().filter(id=post_id).first()


def get_all_comments_for_post(post_id: int) -> list[Comment]:
    """
    Fetch ALL comments for a post in a SINGLE query.

    Ordered by created_at so parents come before their replies and threads
    read chronologically.
    """
    return list(
        Comment.objects
        .filter(post_id=post_id)
        .select_related('author')
        .order_by('created_at')
    )


def build_comment_tree(flat_comments: list[Comment]) -> list[dict]:
    """
    Build nested tree structure from flat list.

    Algorithm: O(n) single pass with hash map

    1. First pass: Create lookup dict {id -> node}
    2. Second pass: Attach children to parents

    Example Input (flat):
        [Comment(id=1, parent=None), Comment(id=2, parent=1), Comment(id=3, parent=1)]

    Example Output (nested):
        [
            {
                'comment': Comment(id=1),
                'replies': [
                    {'comment': Comment(id=2), 'replies': []},
                    {'comment': Comment(id=3), 'replies': []}
                ]
            }
        ]
    """
    nodes = {}
    for comment in flat_comments:
        nodes[comment.id] = {
            'comment': comment,
            'replies': []
        }

    root_nodes = []
    for comment in flat_comments:
        node = nodes[comment.id]
        if comment.parent_id is None:
            root_nodes.append(node)
        else:
            parent_node = nodes.get(comment.parent_id)
            if parent_node:
                parent_node['replies'].append(node)
            else:
                # Orphan comment - treat as root
                root_nodes.append(node)

    return root_nodes


def get_post_with_comment_tree(post_id: int) -> Optional[dict]:
    """
    Post + nested comment tree + rendered HTML for every text.

    Returns:
    {
        'post': Post,
        'comments': [tree nodes],
        'comment_count': int,
        'rendered': {'post': html, 'comments': {comment_id: html}}
    }
    """
    post = get_post_with_author(post_id)
    if not post:
        return None

    flat_comments = get_all_comments_for_post(post_id)
    comment_tree = build_comment_tree(flat_comments)

    html = parse_texts([post.text] + [comment.text for comment in flat_comments])

    return {
        'post': post,
        'comments': comment_tree,
        'comment_count': len(flat_comments),
        'rendered': {
            'post': html[0],
            'comments': {
                comment.id: rendered
                for comment, rendered in zip(flat_comments, html[1:])
            },
        },
    }


def get_user_profile(user_id: int) -> Optional[dict]:
    """
    Everything the profile page shows about a user.

    Badge ids, follower/following ids and custom badges are each one query.
    """
    user = (
        User.objects
        .select_related('profile', 'profile__primary_custom_badge')
        .filter(id=user_id)
        .first()
    )
    if user is None:
        return None

    profile = getattr(user, 'profile', None)
    primary = None
    if profile is not None:
        if profile.primary_custom_badge_id:
            primary = {'type': 'custom', 'id': profile.primary_custom_badge_id}
        elif profile.primary_badge:
            primary = {'type': 'official', 'id': profile.primary_badge}

    return {
        'user': user,
        'badges': list(
            BadgeGrant.objects.filter(user_id=user_id).values_list('badge', flat=True)
        ),
        'primary_badge': primary,
        'followers': list(
            Follow.objects.filter(following_id=user_id).values_list('follower_id', flat=True)
        ),
        'following': list(
            Follow.objects.filter(follower_id=user_id).values_list('following_id', flat=True)
        ),
        'custom_badges': list(CustomBadge.objects.filter(user_id=user_id)),
    }
