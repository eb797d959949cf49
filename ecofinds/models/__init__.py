# Import all models so they're registered with Base.metadata
from ecofinds.models.user import User
from ecofinds.models.category import Category
from ecofinds.models.product import Product
from ecofinds.models.product_images import ProductImage
from ecofinds.models.favorite import Favorite
from ecofinds.models.cart import CartItem
from ecofinds.models.purchase import Purchase
from ecofinds.models.review import Review
from ecofinds.models.chat import ChatRoom, Message
from ecofinds.models.report import Report
from ecofinds.models.notification import Notification
from ecofinds.models.follow import Follow
from ecofinds.models.audit_log import AuditLog

__all__ = [
    "User",
    "Category",
    "Product",
    "ProductImage",
    "Favorite",
    "CartItem",
    "Purchase",
    "Review",
    "ChatRoom",
    "Message",
    "Report",
    "Notification",
    "Follow",
    "AuditLog",
]
