"""
URL configuration for Orderhub.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    # POS integration (webhooks + staff tooling)
    path("pos/<slug:vendor>/", include("apps.web.pos.urls")),
]
