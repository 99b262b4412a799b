"""
Predictive model service

Trains a small feed-forward regressor on a numeric table and returns
same-sample predictions, served over a FastAPI HTTP layer.

Packages:
- core: configuration and exceptions
- model: regression network
- services: training service and tabular adapter
- api: routes, request/response models, middleware
"""

__version__ = "1.0.0"
