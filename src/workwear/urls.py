"""URL configuration for the workwear project."""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

from workwear.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("inventory.urls")),
    path("health/", health_check, name="health_check"),
]

if settings.DEBUG:
    urlpatterns += static(
        settings.MEDIA_URL, document_root=settings.MEDIA_ROOT
    )
