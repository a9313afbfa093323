"""
SocialFeed URL Configuration
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'SocialFeed API Server',
        'version': '1.0',
        'endpoints': {
            'feed': '/api/feed/',
            'post': '/api/posts/<id>/',
            'comments': '/api/posts/<id>/comments/',
            'votes': '/api/votes/',
            'poll_vote': '/api/posts/<id>/poll-vote/',
            'repost': '/api/posts/<id>/repost/',
            'users': '/api/users/<id>/',
            'follow': '/api/users/<id>/follow/',
            'notifications': '/api/notifications/',
            'custom_badges': '/api/users/me/custom-badges/',
            'auth': '/api/auth/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('feed.urls')),
    path('api/auth/', include('rest_framework.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
