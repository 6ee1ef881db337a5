from . import admin
from . import auth
from . import cart
from . import checkout
from . import orders
from . import products
from . import users

__all__ = [
    "admin",
    "auth",
    "cart",
    "checkout",
    "orders",
    "products",
    "users",
]
