"""
API data models
"""
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, Field, StrictFloat, StrictInt

from predictive_api.core.config import settings

# Error response
class ErrorResponse(BaseModel):
    """Error response"""
    error: str
    details: Optional[str] = None

# JSON numbers only; booleans and numeric strings are rejected
StrictNumber = Union[StrictInt, StrictFloat]

# Prediction request models
class PredictRequest(BaseModel):
    """Prediction request from a table (CSV text or row objects)"""
    csvData: Union[str, List[Dict[str, Any]]]
    targetColumn: str = Field(..., min_length=1)
    epochs: Optional[int] = Field(None, ge=1, le=settings.MAX_EPOCHS)
    seed: Optional[int] = Field(None, ge=0)
    include_metrics: bool = False

class TrainRequest(BaseModel):
    """Prediction request from already separated features and labels"""
    rows: List[List[StrictNumber]]
    labels: List[StrictNumber]
    epochs: Optional[int] = Field(None, ge=1, le=settings.MAX_EPOCHS)
    seed: Optional[int] = Field(None, ge=0)
    include_metrics: bool = False

# Prediction response models
class TrainingMetrics(BaseModel):
    """Training run summary"""
    epochs: int
    n_samples: int
    n_features: int
    initial_loss: float
    final_loss: float
    training_time: float
    device: str
    feature_columns: Optional[List[str]] = None
    target_column: Optional[str] = None

class PredictionResponse(BaseModel):
    """Prediction response"""
    prediction: List[float]
    metrics: Optional[TrainingMetrics] = None

# Health check
class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    services: Dict[str, bool]
