"""
System configuration management
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service configuration"""

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False

    # CORS (the browser UI calls the API directly)
    CORS_ORIGINS: list = ["*"]

    # Request handling
    MAX_REQUEST_BYTES: int = 5 * 1024 * 1024  # 5MB, same cap as the original upload route

    # Training
    DEFAULT_EPOCHS: int = 50
    MAX_EPOCHS: int = 10000  # upper bound accepted from HTTP callers
    LEARNING_RATE: float = 0.01  # Adam step size
    TRAINING_TIMEOUT_SECONDS: float = 300.0
    MAX_CONCURRENT_TRAININGS: int = 4
    LOG_EVERY_N_EPOCHS: int = 10

    # GPU
    USE_GPU: bool = False
    GPU_DEVICE: str = "cuda:0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "predictive_service.log"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True

    def validate_config(self):
        """
        Check that configuration values are sensible

        Raises:
            ValueError: if any value is out of range
        """
        errors = []

        if self.DEFAULT_EPOCHS <= 0:
            errors.append(f"DEFAULT_EPOCHS must be greater than 0, got: {self.DEFAULT_EPOCHS}")

        if self.MAX_EPOCHS < self.DEFAULT_EPOCHS:
            errors.append(f"MAX_EPOCHS({self.MAX_EPOCHS}) must be at least DEFAULT_EPOCHS({self.DEFAULT_EPOCHS})")

        if self.LEARNING_RATE <= 0:
            errors.append(f"LEARNING_RATE must be greater than 0, got: {self.LEARNING_RATE}")

        if self.TRAINING_TIMEOUT_SECONDS <= 0:
            errors.append(f"TRAINING_TIMEOUT_SECONDS must be greater than 0, got: {self.TRAINING_TIMEOUT_SECONDS}")

        if self.MAX_CONCURRENT_TRAININGS <= 0:
            errors.append(f"MAX_CONCURRENT_TRAININGS must be greater than 0, got: {self.MAX_CONCURRENT_TRAININGS}")

        if self.LOG_EVERY_N_EPOCHS <= 0:
            errors.append(f"LOG_EVERY_N_EPOCHS must be greater than 0, got: {self.LOG_EVERY_N_EPOCHS}")

        if self.MAX_REQUEST_BYTES <= 0:
            errors.append(f"MAX_REQUEST_BYTES must be greater than 0, got: {self.MAX_REQUEST_BYTES}")

        if self.LOG_LEVEL.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"LOG_LEVEL is not a valid logging level: {self.LOG_LEVEL}")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {err}" for err in errors)
            raise ValueError(error_msg)

# Global settings instance
settings = Settings()

# Validate on import
try:
    settings.validate_config()
except ValueError as e:
    import logging
    logger = logging.getLogger(__name__)
    logger.error(f"❌ Configuration validation failed: {e}")
    raise
