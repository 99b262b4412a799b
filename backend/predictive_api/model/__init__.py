"""
Model module

Modules:
- regressor: fixed-architecture feed-forward regression network
"""

from predictive_api.model.regressor import FeedForwardRegressor

__all__ = [
    "FeedForwardRegressor",
]

__version__ = "1.0.0"
