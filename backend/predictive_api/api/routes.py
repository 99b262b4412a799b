"""
API routes
"""
from fastapi import APIRouter
from predictive_api.api.endpoints import predict

# Main router
api_router = APIRouter()

# Endpoint routers
api_router.include_router(predict.router, prefix="/predict", tags=["prediction"])
