"""Restaurant app - locations, menus and orders the POS layer syncs with."""

from django.apps import AppConfig


class RestaurantConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.restaurant"
    label = "restaurant"
    verbose_name = "Restaurant Operations"
