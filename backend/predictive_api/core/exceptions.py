"""
Prediction service exception classes

A single hierarchy so the HTTP layer can map failures to status codes
"""
from typing import Optional


class PredictionServiceError(Exception):
    """
    Base class for prediction service errors

    Attributes:
        message: human-readable summary
        details: diagnostic detail (optional)
    """

    def __init__(self, message: str, details: Optional[str] = None):
        """
        Initialize the error

        Args:
            message: human-readable summary
            details: diagnostic detail
        """
        self.message = message
        self.details = details
        if details:
            super().__init__(f"{message}: {details}")
        else:
            super().__init__(message)


class InvalidInputError(PredictionServiceError):
    """
    Invalid input

    Raised when the dataset or training config is malformed or
    inconsistent. Always correctable by the caller.
    """
    pass


class TrainingFailedError(PredictionServiceError):
    """
    Training failed

    Raised when the training/inference pipeline itself fails, e.g. the
    loss diverges to a non-finite value or the tensor runtime errors out.
    """
    pass


class TrainingCancelledError(TrainingFailedError):
    """
    Training cancelled

    Raised at an epoch boundary once the cancel token has been set
    """
    pass


class TrainingTimeoutError(TrainingFailedError):
    """
    Training timed out

    Raised to the awaiting caller when training exceeds its time budget
    """
    pass
