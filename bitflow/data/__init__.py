"""
Data boundary - canonical bars, price series and synthetic data
"""

from .bars import Bar, PriceSeries, normalize_bar
from .synthetic import generate_synthetic_bars

__all__ = [
    'Bar',
    'PriceSeries',
    'normalize_bar',
    'generate_synthetic_bars',
]
