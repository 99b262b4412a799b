"""
Training service - fit a small regressor and predict on the training rows

Every call is self-contained: the model, optimizer, tensors and random
generator are created for that call and dropped when it returns, so
concurrent calls never share mutable state.
"""
import asyncio
import functools
import logging
import math
import numbers
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch
import torch.nn as nn

from predictive_api.core.config import settings
from predictive_api.core.exceptions import (
    InvalidInputError,
    PredictionServiceError,
    TrainingCancelledError,
    TrainingFailedError,
    TrainingTimeoutError,
)
from predictive_api.model.regressor import FeedForwardRegressor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, float], None]


@dataclass
class TrainingRun:
    """Result of one training call"""
    predictions: List[float]
    loss_history: List[float] = field(default_factory=list)
    epochs: int = 0
    n_samples: int = 0
    n_features: int = 0
    training_time: float = 0.0
    device: str = "cpu"

    @property
    def final_loss(self) -> float:
        """MSE of the last epoch"""
        return self.loss_history[-1]

    def to_metrics(self) -> Dict[str, Any]:
        """Summary suitable for a JSON response"""
        return {
            'epochs': self.epochs,
            'n_samples': self.n_samples,
            'n_features': self.n_features,
            'initial_loss': self.loss_history[0],
            'final_loss': self.final_loss,
            'training_time': round(self.training_time, 4),
            'device': self.device,
        }


def _is_number(value: Any) -> bool:
    # bool is an Integral, reject it explicitly
    return isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))


def _is_sequence(value: Any) -> bool:
    return hasattr(value, '__len__') and not isinstance(value, (str, bytes, dict))


def _release_slot(semaphore: asyncio.Semaphore, future: asyncio.Future):
    # Retrieve the outcome so an abandoned failure is not reported as unhandled
    if not future.cancelled():
        future.exception()
    semaphore.release()


class TrainingService:
    """
    Tabular regression training service

    Pipeline (fixed order): validate -> build -> compile -> fit -> predict
    """

    def __init__(
        self,
        learning_rate: Optional[float] = None,
        default_epochs: Optional[int] = None,
        use_gpu: Optional[bool] = None,
        gpu_device: Optional[str] = None,
        max_concurrent: Optional[int] = None,
        timeout: Optional[float] = None,
        log_every: Optional[int] = None
    ):
        self.learning_rate = learning_rate if learning_rate is not None else settings.LEARNING_RATE
        self.default_epochs = default_epochs if default_epochs is not None else settings.DEFAULT_EPOCHS
        self.use_gpu = use_gpu if use_gpu is not None else settings.USE_GPU
        self.gpu_device = gpu_device or settings.GPU_DEVICE
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_TRAININGS
        self.timeout = timeout if timeout is not None else settings.TRAINING_TIMEOUT_SECONDS
        self.log_every = log_every or settings.LOG_EVERY_N_EPOCHS

        self.is_running = False
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def start(self):
        """Start the service"""
        # Created here so the semaphore belongs to the serving event loop
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self.is_running = True
        logger.info(
            f"Training service started (lr={self.learning_rate}, "
            f"max concurrent={self.max_concurrent}, timeout={self.timeout}s, "
            f"device={self._resolve_device()})"
        )

    async def stop(self):
        """Stop the service"""
        self.is_running = False
        logger.info("Training service stopped")

    # ========================================
    # Validation
    # ========================================

    def validate(
        self,
        rows: Sequence[Sequence[float]],
        labels: Sequence[float],
        epochs: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        """
        Validate a dataset and convert it to float32 arrays

        Args:
            rows: N rows of F numeric values
            labels: N numeric targets
            epochs: number of full passes (None uses the default)

        Returns:
            (X of shape (N, F), y of shape (N,), epochs)

        Raises:
            InvalidInputError: on any malformed input
        """
        if epochs is None:
            epochs = self.default_epochs

        if not isinstance(epochs, numbers.Integral) or isinstance(epochs, bool) or epochs <= 0:
            raise InvalidInputError("epochs must be a positive integer", f"got {epochs!r}")

        if rows is None or not _is_sequence(rows) or len(rows) == 0:
            raise InvalidInputError("rows must be a non-empty sequence of rows")

        if labels is None or not _is_sequence(labels):
            raise InvalidInputError("labels must be a sequence of numbers")

        if not _is_sequence(rows[0]):
            raise InvalidInputError("each row must be a sequence of numbers", "row 0 is not a sequence")

        n_features = len(rows[0])
        if n_features < 1:
            raise InvalidInputError("rows must have at least one feature")

        for i, row in enumerate(rows):
            if not _is_sequence(row):
                raise InvalidInputError("each row must be a sequence of numbers", f"row {i} is not a sequence")
            if len(row) != n_features:
                raise InvalidInputError(
                    "all rows must have the same width",
                    f"row {i} has {len(row)} values, expected {n_features}"
                )
            for j, value in enumerate(row):
                if not _is_number(value):
                    raise InvalidInputError("feature values must be numeric", f"rows[{i}][{j}] = {value!r}")

        if len(labels) != len(rows):
            raise InvalidInputError(
                "labels must have the same length as rows",
                f"{len(labels)} labels for {len(rows)} rows"
            )

        for i, value in enumerate(labels):
            if not _is_number(value):
                raise InvalidInputError("labels must be numeric", f"labels[{i}] = {value!r}")

        try:
            X = np.asarray(rows, dtype=np.float32).reshape(len(rows), n_features)
            y = np.asarray(labels, dtype=np.float32).reshape(len(labels))
        except (OverflowError, ValueError, TypeError) as e:
            raise InvalidInputError("values could not be converted to floats", str(e)) from e

        # Checked after the float32 cast so out-of-range values show up as inf
        if not np.isfinite(X).all():
            i, j = np.argwhere(~np.isfinite(X))[0]
            raise InvalidInputError("feature values must be finite", f"rows[{i}][{j}] = {rows[i][j]!r}")

        if not np.isfinite(y).all():
            i = int(np.argwhere(~np.isfinite(y))[0][0])
            raise InvalidInputError("labels must be finite", f"labels[{i}] = {labels[i]!r}")

        return X, y, int(epochs)

    # ========================================
    # Training
    # ========================================

    def _resolve_device(self) -> torch.device:
        if self.use_gpu and torch.cuda.is_available():
            return torch.device(self.gpu_device)
        return torch.device('cpu')

    def fit(
        self,
        rows: Sequence[Sequence[float]],
        labels: Sequence[float],
        epochs: Optional[int] = None,
        seed: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> TrainingRun:
        """
        Train a fresh regressor and predict on the same rows

        Args:
            rows: N rows of F numeric values
            labels: N numeric targets
            epochs: number of full-batch passes (None uses the default)
            seed: parameter-initialization seed (None for random init)
            progress_callback: called as (epoch, total_epochs, loss) after each epoch
            cancel_event: checked at every epoch boundary

        Returns:
            TrainingRun with predictions in row order

        Raises:
            InvalidInputError: malformed input (before any compute starts)
            TrainingCancelledError: cancel_event was set
            TrainingFailedError: divergence or runtime failure
        """
        X_np, y_np, epochs = self.validate(rows, labels, epochs)

        if seed is not None and (not isinstance(seed, numbers.Integral) or isinstance(seed, bool) or seed < 0):
            raise InvalidInputError("seed must be a non-negative integer", f"got {seed!r}")

        n_samples, n_features = X_np.shape
        device = self._resolve_device()
        start_time = time.time()

        logger.info(f"Training regressor: samples={n_samples}, features={n_features}, "
                    f"epochs={epochs}, seed={seed}, device={device}")

        try:
            # 1. Private generator for parameter init
            generator = torch.Generator()
            if seed is not None:
                generator.manual_seed(int(seed))
            else:
                generator.seed()

            # 2. Build the model (init on CPU, then move)
            model = FeedForwardRegressor(n_features)
            model.reset_parameters(generator)
            model = model.to(device)

            # 3. Loss and optimizer
            criterion = nn.MSELoss()
            optimizer = torch.optim.Adam(model.parameters(), lr=self.learning_rate)

            X_tensor = torch.from_numpy(X_np).to(device)
            y_tensor = torch.from_numpy(y_np).to(device)

            # 4. Full-batch training loop
            model.train()
            loss_history: List[float] = []

            for epoch in range(epochs):
                if cancel_event is not None and cancel_event.is_set():
                    raise TrainingCancelledError(
                        "training was cancelled",
                        f"stopped after {epoch}/{epochs} epochs"
                    )

                outputs = model(X_tensor)
                loss = criterion(outputs, y_tensor)
                loss_value = loss.item()

                if not math.isfinite(loss_value):
                    raise TrainingFailedError(
                        "training diverged",
                        f"loss became {loss_value} at epoch {epoch + 1}/{epochs}"
                    )

                optimizer.zero_grad()
                loss.backward()
                optimizer.step()

                loss_history.append(loss_value)

                if progress_callback is not None:
                    progress_callback(epoch + 1, epochs, loss_value)

                if (epoch + 1) % self.log_every == 0 or epoch == epochs - 1:
                    logger.debug(f"   Epoch [{epoch + 1}/{epochs}] Loss: {loss_value:.6f}")

            # 5. Inference on the training rows
            model.eval()
            with torch.no_grad():
                predictions = model(X_tensor).cpu().numpy()

        except PredictionServiceError:
            raise
        except (RuntimeError, MemoryError) as e:
            logger.error(f"❌ Training pipeline failed: {e}")
            raise TrainingFailedError("training pipeline failed", str(e)) from e

        if not np.isfinite(predictions).all():
            raise TrainingFailedError(
                "training produced non-finite predictions",
                f"{int((~np.isfinite(predictions)).sum())} of {n_samples} predictions are not finite"
            )

        training_time = time.time() - start_time
        logger.info(f"✅ Training finished: final loss={loss_history[-1]:.6f}, "
                    f"took {training_time:.2f}s")

        return TrainingRun(
            predictions=predictions.tolist(),
            loss_history=loss_history,
            epochs=epochs,
            n_samples=n_samples,
            n_features=n_features,
            training_time=training_time,
            device=str(device),
        )

    def train_and_predict(
        self,
        rows: Sequence[Sequence[float]],
        labels: Sequence[float],
        epochs: Optional[int] = None,
        seed: Optional[int] = None
    ) -> List[float]:
        """Train and return only the predictions"""
        return self.fit(rows, labels, epochs=epochs, seed=seed).predictions

    # ========================================
    # Async entry points
    # ========================================

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
        return self._semaphore

    async def fit_async(
        self,
        rows: Sequence[Sequence[float]],
        labels: Sequence[float],
        epochs: Optional[int] = None,
        seed: Optional[int] = None,
        timeout: Optional[float] = None
    ) -> TrainingRun:
        """
        Run fit() in a worker thread with a time budget

        The torch runtime cannot be interrupted mid-epoch, so on timeout
        the result is abandoned and the worker stops at its next epoch
        boundary. The concurrency slot stays held until the worker thread
        has actually finished, not just until the caller gives up.

        Args:
            rows: N rows of F numeric values
            labels: N numeric targets
            epochs: number of full-batch passes
            seed: parameter-initialization seed
            timeout: seconds to wait (None uses the configured timeout)

        Returns:
            TrainingRun

        Raises:
            TrainingTimeoutError: the time budget was exceeded
        """
        # Fail fast on bad input without occupying a worker slot
        self.validate(rows, labels, epochs)

        timeout = timeout if timeout is not None else self.timeout
        cancel_event = threading.Event()
        loop = asyncio.get_running_loop()

        semaphore = self._get_semaphore()
        await semaphore.acquire()

        try:
            future = loop.run_in_executor(
                None,
                functools.partial(
                    self.fit, rows, labels,
                    epochs=epochs, seed=seed, cancel_event=cancel_event
                )
            )
        except BaseException:
            semaphore.release()
            raise

        # Released when the worker finishes, even if the caller stopped waiting
        future.add_done_callback(functools.partial(_release_slot, semaphore))

        try:
            # shield: a timeout must not mark the worker future as done early
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError:
            cancel_event.set()
            logger.warning(f"⚠️ Training timed out after {timeout}s, abandoning result")
            raise TrainingTimeoutError("training timed out", f"exceeded {timeout}s")
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    async def train_and_predict_async(
        self,
        rows: Sequence[Sequence[float]],
        labels: Sequence[float],
        epochs: Optional[int] = None,
        seed: Optional[int] = None,
        timeout: Optional[float] = None
    ) -> List[float]:
        """Async variant of train_and_predict()"""
        run = await self.fit_async(rows, labels, epochs=epochs, seed=seed, timeout=timeout)
        return run.predictions


# Global training service instance
training_service = TrainingService()


def train_and_predict(
    rows: Sequence[Sequence[float]],
    labels: Sequence[float],
    epochs: int = 50,
    seed: Optional[int] = None
) -> List[float]:
    """
    Train a fresh regressor on (rows, labels) and predict on rows

    Args:
        rows: N rows of F numeric values
        labels: N numeric targets
        epochs: number of full passes over the data
        seed: parameter-initialization seed (optional)

    Returns:
        N predictions in row order
    """
    return training_service.train_and_predict(rows, labels, epochs=epochs, seed=seed)
