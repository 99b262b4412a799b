"""
API dependencies
"""
from typing import Optional
from fastapi import HTTPException

from predictive_api.services.training_service import TrainingService

# Service instance, injected at startup
_training_service: Optional[TrainingService] = None

def set_training_service(service: Optional[TrainingService]):
    """Set the training service instance"""
    global _training_service
    _training_service = service

async def get_training_service() -> TrainingService:
    """Provide the running training service"""
    if _training_service is None or not _training_service.is_running:
        raise HTTPException(status_code=503, detail="Training service unavailable")
    return _training_service
