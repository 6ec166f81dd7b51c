"""
GiftSearch
Hybrid keyword + semantic relevance ranking for the gift catalog.
"""

__version__ = "0.1.0"
