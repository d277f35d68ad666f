"""
Storefront purchase endpoints (authorization, purchase status, order history).
"""

from .api import create_commerce_router

__all__ = ["create_commerce_router"]
