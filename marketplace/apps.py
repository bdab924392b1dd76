from django.apps import AppConfig


class MarketplaceConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'marketplace'
    verbose_name = 'Agri Marketplace'

    def ready(self):
        # Register rating aggregate signal receivers
        from . import signals  # noqa: F401
