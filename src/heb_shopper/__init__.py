"""
HEB shopper - fills an online grocery cart from a free-form shopping list.
"""

__version__ = "0.1.0"
