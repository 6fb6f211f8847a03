"""
URL routing for POS endpoints.

Mounted at /pos/<vendor>/; the webhook is public (signature-verified), the
rest require staff or a client user.
"""

from django.urls import path

from apps.web.pos import views

app_name = "pos"

urlpatterns = [
    path("webhook", views.pos_webhook, name="webhook"),
    # Actions
    path("sync-menu", views.sync_menu, name="sync_menu"),
    path("send-order", views.send_order, name="send_order"),
    path("cancel-order", views.cancel_order, name="cancel_order"),
    path("availability", views.update_availability, name="availability"),
    path("retry-failed", views.retry_failed, name="retry_failed"),
    # Reports
    path("unavailable", views.unavailable_items, name="unavailable"),
    path("status", views.integration_status, name="status"),
    path("sync-history", views.sync_history, name="sync_history"),
]
