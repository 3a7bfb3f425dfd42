"""Models package."""

from .company import Company
from .user import User
from .notification_preference import NotificationPreference
from .sku import Sku
from .scan import Scan
from .question import Question
