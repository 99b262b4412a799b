"""
Prediction API endpoints
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from predictive_api.api.dependencies import get_training_service
from predictive_api.api.models import (
    ErrorResponse, PredictionResponse, PredictRequest, TrainRequest, TrainingMetrics
)
from predictive_api.core.exceptions import (
    InvalidInputError, PredictionServiceError, TrainingFailedError, TrainingTimeoutError
)
from predictive_api.services.tabular import TabularDataset, build_dataset
from predictive_api.services.training_service import TrainingRun, TrainingService

logger = logging.getLogger(__name__)
router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    500: {"model": ErrorResponse, "description": "Training failed"},
    503: {"model": ErrorResponse, "description": "Service unavailable"},
    504: {"model": ErrorResponse, "description": "Training timed out"},
}

def _error_response(error: PredictionServiceError) -> JSONResponse:
    """Map a service error to its HTTP status"""
    if isinstance(error, InvalidInputError):
        status_code = 400
    elif isinstance(error, TrainingTimeoutError):
        status_code = 504
    else:
        status_code = 500

    body = ErrorResponse(error=error.message, details=error.details)
    return JSONResponse(status_code=status_code, content=body.model_dump())

def _prediction_response(
    run: TrainingRun,
    include_metrics: bool,
    dataset: Optional[TabularDataset] = None
) -> PredictionResponse:
    metrics = None
    if include_metrics:
        metrics = TrainingMetrics(**run.to_metrics())
        if dataset is not None:
            metrics.feature_columns = dataset.feature_columns
            metrics.target_column = dataset.target_column

    return PredictionResponse(prediction=run.predictions, metrics=metrics)

@router.post(
    "",
    response_model=PredictionResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES
)
async def predict_from_table(
    request: PredictRequest,
    service: TrainingService = Depends(get_training_service)
):
    """Train on a table and predict its target column"""
    try:
        logger.info(f"Prediction request: target='{request.targetColumn}', epochs={request.epochs}")

        dataset = build_dataset(request.csvData, request.targetColumn)
        run = await service.fit_async(
            dataset.rows,
            dataset.labels,
            epochs=request.epochs,
            seed=request.seed
        )

        return _prediction_response(run, request.include_metrics, dataset)

    except InvalidInputError as e:
        logger.warning(f"Invalid prediction request: {e}")
        return _error_response(e)
    except TrainingFailedError as e:
        logger.error(f"Prediction failed: {e}")
        return _error_response(e)

@router.post(
    "/train",
    response_model=PredictionResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES
)
async def predict_from_rows(
    request: TrainRequest,
    service: TrainingService = Depends(get_training_service)
):
    """Train on feature rows and labels, predict on the same rows"""
    try:
        logger.info(f"Training request: {len(request.rows)} rows, epochs={request.epochs}")

        run = await service.fit_async(
            request.rows,
            request.labels,
            epochs=request.epochs,
            seed=request.seed
        )

        return _prediction_response(run, request.include_metrics)

    except InvalidInputError as e:
        logger.warning(f"Invalid training request: {e}")
        return _error_response(e)
    except TrainingFailedError as e:
        logger.error(f"Training failed: {e}")
        return _error_response(e)
