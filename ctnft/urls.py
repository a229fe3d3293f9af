"""
URL configuration for the ctnft project.

API routes live under /api/, health checks under /health/.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/accounts/', include(('accounts.urls', 'accounts'))),
    path('api/', include(('events_ctf.urls', 'events_ctf'))),
    path('api/', include(('challenges.urls', 'challenges'))),
    path('api/', include(('submissions.urls', 'submissions'))),
    path('api/', include(('nft_rewards.urls', 'nft_rewards'))),
    path('', include(('ctf_core.urls', 'ctf_core'))),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
