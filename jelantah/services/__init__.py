# Services module
from jelantah.services.settings_service import SettingsService, SettingsCache, settings_cache
from jelantah.services.pricing_service import PricingEngine, PricingBreakdown
from jelantah.services.pickup_service import PickupService
from jelantah.services.billing_service import BillService
from jelantah.services.commission_service import CommissionService
from jelantah.services.notification_service import NotificationService
from jelantah.services.message_service import MessageService
from jelantah.services.dashboard_service import DashboardService
from jelantah.services.email_service import EmailService, get_email_service

__all__ = [
    "SettingsService",
    "SettingsCache",
    "settings_cache",
    "PricingEngine",
    "PricingBreakdown",
    "PickupService",
    "BillService",
    "CommissionService",
    "NotificationService",
    "MessageService",
    "DashboardService",
    "EmailService",
    "get_email_service",
]
