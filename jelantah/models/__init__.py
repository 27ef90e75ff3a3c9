from jelantah.models.user import User, UserRole
from jelantah.models.settings import PricingSettings
from jelantah.models.pickup import Pickup, PickupStatus
from jelantah.models.billing import Bill, BillStatus
from jelantah.models.commission import Commission, CommissionType, CommissionStatus
from jelantah.models.notifications import Notification, NotificationType
from jelantah.models.message import Message

__all__ = [
    "User", "UserRole",
    "PricingSettings",
    "Pickup", "PickupStatus",
    "Bill", "BillStatus",
    "Commission", "CommissionType", "CommissionStatus",
    "Notification", "NotificationType",
    "Message",
]
