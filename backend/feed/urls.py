"""
Feed App URL Configuration
"""
from django.urls import path
from .views import (
    BadgeCatalogView,
    CommentCreateView,
    CustomBadgeDetailView,
    CustomBadgeListCreateView,
    FeedView,
    FollowToggleView,
    NotificationListView,
    NotificationMarkAllReadView,
    PollVoteView,
    PostCreateView,
    PostDetailView,
    PrimaryBadgeView,
    ReconcileBadgesView,
    RepostView,
    UserProfileView,
    VoteView,
)

urlpatterns = [
    # Feed
    path('feed/', FeedView.as_view(), name='feed'),

    # Posts
    path('posts/', PostCreateView.as_view(), name='post-create'),
    path('posts/<int:post_id>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/comments/', CommentCreateView.as_view(), name='comment-create'),
    path('posts/<int:post_id>/poll-vote/', PollVoteView.as_view(), name='poll-vote'),
    path('posts/<int:post_id>/repost/', RepostView.as_view(), name='repost'),

    # Votes (posts and comments)
    path('votes/', VoteView.as_view(), name='vote'),

    # Users
    path('users/me/custom-badges/', CustomBadgeListCreateView.as_view(), name='custom-badge-list'),
    path('users/me/custom-badges/<int:badge_id>/', CustomBadgeDetailView.as_view(), name='custom-badge-detail'),
    path('users/me/primary-badge/', PrimaryBadgeView.as_view(), name='primary-badge'),
    path('users/<int:user_id>/', UserProfileView.as_view(), name='user-profile'),
    path('users/<int:user_id>/follow/', FollowToggleView.as_view(), name='follow-toggle'),

    # Notifications
    path('notifications/', NotificationListView.as_view(), name='notification-list'),
    path('notifications/mark-all-read/', NotificationMarkAllReadView.as_view(), name='notification-mark-all-read'),

    # Badges
    path('badges/', BadgeCatalogView.as_view(), name='badge-catalog'),
    path('badges/reconcile/', ReconcileBadgesView.as_view(), name='badge-reconcile'),
]
