"""
DRF Views
=========

Thin HTTP layer over services.py, polls.py and badges.py.

Every callable endpoint follows the same shape: validate input with a
serializer, call one service function, render its result. Domain
rejections are FeedErrors and are rendered by
exceptions.custom_exception_handler as {"error", "kind"}.
"""

from rest_framework import generics, status, permissions
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import CursorPagination

from .badges import BADGES, reconcile_all_users
from .notifications import fetch_notifications, mark_all_notifications_as_read
from .polls import vote_in_poll
from .queries import get_post_with_author, get_post_with_comment_tree, get_user_profile, post_queryset
from .serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    CustomBadgeSerializer,
    CustomBadgeWriteSerializer,
    NotificationSerializer,
    PollVoteSerializer,
    PostCreateSerializer,
    PostDetailSerializer,
    PostListSerializer,
    PrimaryBadgeSerializer,
    UserProfileSerializer,
    VoteSerializer,
)
from .services import (
    create_comment,
    create_custom_badge,
    create_post,
    delete_custom_badge,
    repost,
    set_primary_badge,
    toggle_follow,
    update_custom_badge,
    vote,
)
from .models import CustomBadge


class FeedPagination(CursorPagination):
    """
    Cursor pagination for the feed.

    WHY CURSOR PAGINATION:
    - Offset pagination: SELECT ... LIMIT 20 OFFSET 1000 → scans 1020 rows
    - Cursor pagination: SELECT ... WHERE created_at < cursor → index seek
    """
    page_size = 20
    ordering = '-created_at'
    cursor_query_param = 'cursor'


class NotificationPagination(CursorPagination):
    page_size = 50
    ordering = '-timestamp'
    cursor_query_param = 'cursor'


class FeedView(generics.ListAPIView):
    """
    GET /api/feed/

    Paginated posts, newest first. ?authorId=<id> limits to one author
    (anonymous posts excluded from author listings).
    """
    serializer_class = PostListSerializer
    pagination_class = FeedPagination
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        queryset = post_queryset()
        author_id = self.request.query_params.get('authorId')
        if author_id and author_id.isdigit():
            queryset = queryset.filter(author_id=int(author_id), is_anonymous=False)
        return queryset


class PostCreateView(APIView):
    """
    POST /api/posts/

    Body:
    {
        "text": "...",
        "isAnonymous": false,
        "pollOptions": ["yes", "no"],              // optional
        "pollEndDate": "2030-01-01T00:00:00Z",     // required with pollOptions
        "allowMultipleVotes": false
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        post = create_post(
            request.user,
            data['text'],
            is_anonymous=data['isAnonymous'],
            poll_options=data.get('pollOptions'),
            poll_end_date=data.get('pollEndDate'),
            allow_multiple_votes=data['allowMultipleVotes'],
        )
        return Response(
            PostListSerializer(get_post_with_author(post.id)).data,
            status=status.HTTP_201_CREATED
        )


class PostDetailView(APIView):
    """
    GET /api/posts/<id>/

    Post with full nested comment tree and rendered HTML.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, post_id):
        result = get_post_with_comment_tree(post_id)
        if not result:
            return Response(
                {'error': 'Post not found', 'kind': 'not-found'},
                status=status.HTTP_404_NOT_FOUND
            )

        serializer = PostDetailSerializer(
            result['post'],
            context={
                'comment_tree': result['comments'],
                'rendered_post': result['rendered']['post'],
                'rendered_comments': result['rendered']['comments'],
                'request': request
            }
        )
        return Response(serializer.data)


class CommentCreateView(APIView):
    """
    POST /api/posts/<post_id>/comments/

    Body:
    {
        "text": "Comment text",
        "parentId": 123  // optional, for replies
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = create_comment(
            request.user,
            post_id,
            serializer.validated_data['text'],
            parent_id=serializer.validated_data.get('parentId'),
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class VoteView(APIView):
    """
    POST /api/votes/

    Body:
    {
        "targetType": "post" | "comment",
        "targetId": 123,
        "direction": "up" | "down"
    }

    Returns:
    {
        "success": true,
        "action": "created" | "removed",
        "score": 42
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = VoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = vote(request.user, data['targetType'], data['targetId'], data['direction'])
        return Response({
            'success': result.success,
            'action': result.action,
            'score': result.score
        })


class PollVoteView(APIView):
    """
    POST /api/posts/<post_id>/poll-vote/

    Body: { "optionIndex": 0 }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        serializer = PollVoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = vote_in_poll(request.user, post_id, serializer.validated_data['optionIndex'])
        return Response({
            'success': result.success,
            'optionIndex': result.option_index,
            'votes': result.votes
        })


class RepostView(APIView):
    """
    POST /api/posts/<post_id>/repost/

    Returns: { "success": true, "newPostId": 456 }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        result = repost(request.user, post_id)
        return Response(
            {'success': result.success, 'newPostId': result.new_post_id},
            status=status.HTTP_201_CREATED
        )


class UserProfileView(APIView):
    """
    GET /api/users/<user_id>/

    Username, badge ids, primary badge, follower/following ids, custom badges.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        profile = get_user_profile(user_id)
        if profile is None:
            return Response(
                {'error': 'User not found', 'kind': 'not-found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(UserProfileSerializer(profile).data)


class FollowToggleView(APIView):
    """
    POST /api/users/<user_id>/follow/

    Returns: { "success": true, "newState": "followed" | "unfollowed" }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, user_id):
        result = toggle_follow(request.user, user_id)
        return Response({'success': result.success, 'newState': result.new_state})


class NotificationListView(generics.ListAPIView):
    """
    GET /api/notifications/?unread=true

    The signed-in user's notifications, newest first.
    """
    serializer_class = NotificationSerializer
    pagination_class = NotificationPagination
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        unread_only = self.request.query_params.get('unread', '').lower() in ('1', 'true')
        return fetch_notifications(self.request.user.id, unread_only=unread_only)


class NotificationMarkAllReadView(APIView):
    """POST /api/notifications/mark-all-read/"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        updated = mark_all_notifications_as_read(request.user.id)
        return Response({'success': True, 'updated': updated})


class CustomBadgeListCreateView(APIView):
    """
    GET  /api/users/me/custom-badges/
    POST /api/users/me/custom-badges/   (multipart: name, description, image)
    """
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get(self, request):
        badges = CustomBadge.objects.filter(user_id=request.user.id)
        return Response(CustomBadgeSerializer(badges, many=True).data)

    def post(self, request):
        serializer = CustomBadgeWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        badge = create_custom_badge(
            request.user,
            data['name'],
            description=data.get('description', ''),
            image=data.get('image'),
        )
        return Response(CustomBadgeSerializer(badge).data, status=status.HTTP_201_CREATED)


class CustomBadgeDetailView(APIView):
    """
    PATCH  /api/users/me/custom-badges/<badge_id>/
    DELETE /api/users/me/custom-badges/<badge_id>/
    """
    permission_classes = [permissions.IsAuthenticated]
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def patch(self, request, badge_id):
        serializer = CustomBadgeWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        badge = update_custom_badge(
            request.user,
            badge_id,
            name=data.get('name'),
            description=data.get('description'),
            image=data.get('image'),
        )
        return Response(CustomBadgeSerializer(badge).data)

    def delete(self, request, badge_id):
        delete_custom_badge(request.user, badge_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PrimaryBadgeView(APIView):
    """
    PUT /api/users/me/primary-badge/

    Body: { "badgeId": "pioneer", "custom": false }  // badgeId null clears
    """
    permission_classes = [permissions.IsAuthenticated]

    def put(self, request):
        serializer = PrimaryBadgeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        set_primary_badge(request.user, data['badgeId'], custom=data['custom'])
        profile = get_user_profile(request.user.id)
        return Response({'success': True, 'primaryBadge': profile['primary_badge']})


class BadgeCatalogView(APIView):
    """GET /api/badges/ - the official badge definitions."""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response(list(BADGES.values()))


class ReconcileBadgesView(APIView):
    """
    POST /api/badges/reconcile/

    Admin only. Runs the retroactive badge sweep over every user.
    """
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        result = reconcile_all_users()
        return Response({
            'status': 'success',
            'message': f'Checked {result.users_examined} users.',
            'usersExamined': result.users_examined,
            'badgesGranted': result.badges_granted,
        })
