"""
Service module

Modules:
- training_service: validate, train and predict
- tabular: csvData/targetColumn adapter
"""

from predictive_api.services.training_service import (
    TrainingRun,
    TrainingService,
    train_and_predict,
    training_service,
)
from predictive_api.services.tabular import TabularDataset, build_dataset

__all__ = [
    "TrainingRun",
    "TrainingService",
    "train_and_predict",
    "training_service",
    "TabularDataset",
    "build_dataset",
]
