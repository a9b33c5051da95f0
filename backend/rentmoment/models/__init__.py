from .auth import User, SessionToken, ROLES, ROLE_USER, ROLE_ADMIN
from .catalog import Category, Product, ProductCategory, ProductSize, SIZES, CONDITIONS, DEFAULT_CONDITION
from .orders import Order, OrderItem, PAYMENT_METHODS, PAYMENT_STATUSES, ORDER_STATUSES, SHIPPING_FIELDS

__all__ = [
    'User', 'SessionToken', 'ROLES', 'ROLE_USER', 'ROLE_ADMIN',
    'Category', 'Product', 'ProductCategory', 'ProductSize', 'SIZES', 'CONDITIONS', 'DEFAULT_CONDITION',
    'Order', 'OrderItem', 'PAYMENT_METHODS', 'PAYMENT_STATUSES', 'ORDER_STATUSES', 'SHIPPING_FIELDS',
]
