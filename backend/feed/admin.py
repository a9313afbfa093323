"""
Django Admin Configuration for Feed Models
"""
from django.contrib import admin
from .models import BadgeGrant, Comment, CustomBadge, Follow, Notification, PollOption, Post, Profile


class PollOptionInline(admin.TabularInline):
    model = PollOption
    extra = 0
    readonly_fields = ['votes']
    exclude = ['voted_by']


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['id', 'author_name', 'score', 'comments_count', 'is_poll', 'poll_notified', 'is_repost', 'created_at']
    list_filter = ['is_poll', 'poll_notified', 'is_repost', 'is_anonymous', 'created_at']
    search_fields = ['text', 'author__username']
    readonly_fields = ['score', 'comments_count', 'reposts_count', 'created_at', 'updated_at']
    exclude = ['upvoted_by', 'downvoted_by', 'reposted_by']
    inlines = [PollOptionInline]


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'author', 'parent', 'depth', 'score', 'created_at']
    list_filter = ['created_at', 'depth']
    search_fields = ['text', 'author__username']
    readonly_fields = ['score', 'depth', 'created_at', 'updated_at']
    exclude = ['upvoted_by', 'downvoted_by']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['recipient', 'type', 'post', 'is_read', 'timestamp']
    list_filter = ['type', 'is_read', 'timestamp']
    search_fields = ['recipient__username', 'text']


@admin.register(BadgeGrant)
class BadgeGrantAdmin(admin.ModelAdmin):
    list_display = ['user', 'badge', 'granted_at']
    list_filter = ['badge']
    search_fields = ['user__username']
    readonly_fields = ['user', 'badge', 'granted_at']

    def has_add_permission(self, request):
        # Badges are only granted by the badge evaluator
        return False

    def has_delete_permission(self, request, obj=None):
        # No revocation path
        return False


@admin.register(CustomBadge)
class CustomBadgeAdmin(admin.ModelAdmin):
    list_display = ['name', 'user', 'created_at']
    search_fields = ['name', 'user__username']


@admin.register(Follow)
class FollowAdmin(admin.ModelAdmin):
    list_display = ['follower', 'following', 'created_at']
    search_fields = ['follower__username', 'following__username']


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'primary_badge', 'primary_custom_badge']
    search_fields = ['user__username']
