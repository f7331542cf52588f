"""
Data Generation Module
"""
from .generators import DataGenerator, CustomerGenerator, ProductGenerator, SalesGenerator

__all__ = [
    "DataGenerator",
    "CustomerGenerator",
    "ProductGenerator",
    "SalesGenerator",
]
