# Import models so that SQLAlchemy metadata includes them on app startup
from .category import Category  # noqa: F401
from .product import Product  # noqa: F401
from .governorate import Governorate, ShippingSettings  # noqa: F401
from .payment_method import PaymentMethod  # noqa: F401
from .cart import CartItem  # noqa: F401
from .wishlist import WishlistItem  # noqa: F401
from .coupon import Coupon, CouponUsage  # noqa: F401
from .promotion import Promotion, PromotionProduct  # noqa: F401
from .order import Order  # noqa: F401
from .order_item import OrderItem  # noqa: F401
from .notification import Notification  # noqa: F401
from .support import SupportTicket, TicketMessage  # noqa: F401
