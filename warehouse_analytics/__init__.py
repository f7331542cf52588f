"""
Warehouse Sales Analytics

Bulk loading, window analytics, segmentation and reports over a star-schema
sales warehouse.
"""

__version__ = "1.0.0"
