from .user import User
from .item import Item
from .claim import Claim
from .notification import Notification

__all__ = ["User", "Item", "Claim", "Notification"]
