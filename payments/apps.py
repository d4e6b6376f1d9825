import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"

    def ready(self):
        # Missing gateway credentials must stop the process at startup
        from .integrations.cashfree import CashfreeConfig

        config = CashfreeConfig.from_settings()
        logger.info("Cashfree initialized in %s mode", config.environment)
