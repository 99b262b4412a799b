"""Tests for the training service."""

import asyncio
import math
import threading

import numpy as np
import pytest

from predictive_api.core.exceptions import (
    InvalidInputError,
    TrainingCancelledError,
    TrainingFailedError,
    TrainingTimeoutError,
)
from predictive_api.services.training_service import (
    TrainingRun,
    TrainingService,
    train_and_predict,
)


class TestValidation:
    """Input validation happens before any training starts."""

    def test_empty_rows(self, service: TrainingService) -> None:
        """Test that an empty dataset is rejected."""
        with pytest.raises(InvalidInputError, match="non-empty"):
            service.train_and_predict([], [], epochs=1)

    def test_ragged_rows(self, service: TrainingService) -> None:
        """Test that rows of different widths are rejected."""
        with pytest.raises(InvalidInputError, match="same width") as exc_info:
            service.train_and_predict([[1, 2], [1]], [1, 2], epochs=1)
        assert "row 1" in exc_info.value.details

    def test_zero_width_rows(self, service: TrainingService) -> None:
        """Test that rows without features are rejected."""
        with pytest.raises(InvalidInputError, match="at least one feature"):
            service.train_and_predict([[], []], [1, 2], epochs=1)

    def test_label_length_mismatch(self, service: TrainingService) -> None:
        """Test that labels must match the number of rows."""
        with pytest.raises(InvalidInputError, match="same length"):
            service.train_and_predict([[1], [2], [3]], [1, 2], epochs=1)

    @pytest.mark.parametrize("epochs", [0, -1, 2.5, True, "10"])
    def test_invalid_epochs(self, service: TrainingService, epochs) -> None:
        """Test that epochs must be a positive integer."""
        with pytest.raises(InvalidInputError, match="epochs"):
            service.train_and_predict([[1], [2]], [1, 2], epochs=epochs)

    def test_nan_feature(self, service: TrainingService) -> None:
        """Test that NaN features are rejected rather than imputed."""
        with pytest.raises(InvalidInputError, match="finite"):
            service.train_and_predict([[1.0], [float("nan")]], [1, 2], epochs=1)

    def test_infinite_label(self, service: TrainingService) -> None:
        """Test that infinite labels are rejected."""
        with pytest.raises(InvalidInputError, match="finite"):
            service.train_and_predict([[1.0], [2.0]], [1.0, float("inf")], epochs=1)

    def test_non_numeric_values(self, service: TrainingService) -> None:
        """Test that strings and None are not accepted as numbers."""
        with pytest.raises(InvalidInputError, match="numeric"):
            service.train_and_predict([[1.0], ["2"]], [1, 2], epochs=1)
        with pytest.raises(InvalidInputError, match="numeric"):
            service.train_and_predict([[1.0], [2.0]], [1, None], epochs=1)

    def test_negative_seed(self, service: TrainingService) -> None:
        """Test that the seed must be non-negative."""
        with pytest.raises(InvalidInputError, match="seed"):
            service.fit([[1.0], [2.0]], [1, 2], epochs=1, seed=-5)

    def test_numpy_input_accepted(self, service: TrainingService) -> None:
        """Test that numpy arrays validate like lists."""
        X, y, epochs = service.validate(np.ones((3, 2)), np.zeros(3), 5)
        assert X.shape == (3, 2)
        assert X.dtype == np.float32
        assert y.shape == (3,)
        assert epochs == 5

    def test_default_epochs(self) -> None:
        """Test that omitted epochs fall back to the service default."""
        service = TrainingService(default_epochs=7)
        _, _, epochs = service.validate([[1.0]], [1.0])
        assert epochs == 7


class TestTraining:
    """Tests for fit and train_and_predict."""

    def test_shape_and_order(self, service: TrainingService, two_feature_dataset) -> None:
        """Test that there is one prediction per row."""
        rows, labels = two_feature_dataset
        predictions = service.train_and_predict(rows, labels, epochs=5, seed=1)

        assert len(predictions) == len(rows)
        assert all(isinstance(p, float) for p in predictions)
        assert all(math.isfinite(p) for p in predictions)

    def test_same_seed_is_deterministic(self, service: TrainingService, doubling_dataset) -> None:
        """Test that identical inputs and seed give identical predictions."""
        rows, labels = doubling_dataset
        first = service.train_and_predict(rows, labels, epochs=30, seed=42)
        second = service.train_and_predict(rows, labels, epochs=30, seed=42)

        np.testing.assert_allclose(first, second, rtol=1e-5, atol=1e-5)

    def test_loss_decreases_with_training(self, service: TrainingService, doubling_dataset) -> None:
        """Test that 50 epochs reach a lower loss than 1 epoch."""
        rows, labels = doubling_dataset
        short = service.fit(rows, labels, epochs=1, seed=7)
        long = service.fit(rows, labels, epochs=50, seed=7)

        assert long.final_loss < short.final_loss

    def test_fits_linear_relationship(self, service: TrainingService) -> None:
        """Test that a simple linear relationship is learned."""
        rows = [[0], [1], [2], [3]]
        labels = [0, 2, 4, 6]
        predictions = service.train_and_predict(rows, labels, epochs=200, seed=0)

        assert len(predictions) == 4
        for prediction, label in zip(predictions, labels):
            assert math.isfinite(prediction)
            assert abs(prediction - label) <= 3

    def test_training_run_report(self, service: TrainingService, two_feature_dataset) -> None:
        """Test the fields of a training run."""
        rows, labels = two_feature_dataset
        run = service.fit(rows, labels, epochs=12, seed=5)

        assert isinstance(run, TrainingRun)
        assert run.epochs == 12
        assert len(run.loss_history) == 12
        assert run.n_samples == 5
        assert run.n_features == 2
        assert run.device == "cpu"

        metrics = run.to_metrics()
        assert metrics["initial_loss"] == run.loss_history[0]
        assert metrics["final_loss"] == run.loss_history[-1]

    def test_progress_callback(self, service: TrainingService, doubling_dataset) -> None:
        """Test that progress is reported once per epoch."""
        rows, labels = doubling_dataset
        calls = []
        service.fit(rows, labels, epochs=4, seed=0,
                    progress_callback=lambda epoch, total, loss: calls.append((epoch, total)))

        assert calls == [(1, 4), (2, 4), (3, 4), (4, 4)]

    def test_cancel_event(self, service: TrainingService, doubling_dataset) -> None:
        """Test that a set cancel token stops training at the epoch boundary."""
        rows, labels = doubling_dataset
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(TrainingCancelledError):
            service.fit(rows, labels, epochs=10, cancel_event=cancel)

    def test_divergence_is_reported(self) -> None:
        """Test that a non-finite loss raises TrainingFailedError."""
        service = TrainingService(learning_rate=1e38)

        with pytest.raises(TrainingFailedError):
            service.fit([[1e30], [-1e30], [3e30]], [1e30, -1e30, 3e30], epochs=50, seed=0)

    def test_module_level_function(self, doubling_dataset) -> None:
        """Test the module-level train_and_predict contract."""
        rows, labels = doubling_dataset
        predictions = train_and_predict(rows, labels, epochs=3, seed=1)
        assert len(predictions) == len(rows)


class TestAsyncTraining:
    """Tests for the async entry points."""

    def test_fit_async(self, service: TrainingService, doubling_dataset) -> None:
        """Test that the async path returns the same result as the sync path."""
        rows, labels = doubling_dataset
        run = asyncio.run(service.fit_async(rows, labels, epochs=10, seed=9))
        expected = service.train_and_predict(rows, labels, epochs=10, seed=9)

        np.testing.assert_allclose(run.predictions, expected, rtol=1e-5, atol=1e-5)

    def test_invalid_input_raises_before_training(self, service: TrainingService) -> None:
        """Test that validation errors surface from the async path."""
        with pytest.raises(InvalidInputError):
            asyncio.run(service.fit_async([], [], epochs=1))

    def test_timeout(self, service: TrainingService, doubling_dataset) -> None:
        """Test that a long run is abandoned once the timeout passes."""
        rows, labels = doubling_dataset

        with pytest.raises(TrainingTimeoutError):
            asyncio.run(service.fit_async(rows, labels, epochs=10_000_000, timeout=0.2))

    def test_concurrent_calls_are_independent(self, service: TrainingService,
                                              doubling_dataset, two_feature_dataset) -> None:
        """Test that concurrent runs match their sequential counterparts."""
        rows_a, labels_a = doubling_dataset
        rows_b, labels_b = two_feature_dataset

        async def run_both():
            return await asyncio.gather(
                service.train_and_predict_async(rows_a, labels_a, epochs=40, seed=11),
                service.train_and_predict_async(rows_b, labels_b, epochs=40, seed=12),
            )

        concurrent_a, concurrent_b = asyncio.run(run_both())
        sequential_a = service.train_and_predict(rows_a, labels_a, epochs=40, seed=11)
        sequential_b = service.train_and_predict(rows_b, labels_b, epochs=40, seed=12)

        np.testing.assert_allclose(concurrent_a, sequential_a, rtol=1e-5, atol=1e-5)
        np.testing.assert_allclose(concurrent_b, sequential_b, rtol=1e-5, atol=1e-5)

    def test_slot_held_until_worker_stops(self, doubling_dataset) -> None:
        """Test that a timed-out run keeps its concurrency slot until the worker exits."""
        rows, labels = doubling_dataset
        service = TrainingService(use_gpu=False, max_concurrent=1)

        async def scenario():
            with pytest.raises(TrainingTimeoutError):
                await service.fit_async(rows, labels, epochs=10_000_000, timeout=0.2)
            semaphore = service._get_semaphore()
            held_after_timeout = semaphore.locked()

            for _ in range(200):
                if not semaphore.locked():
                    break
                await asyncio.sleep(0.05)
            return held_after_timeout, semaphore.locked()

        held_after_timeout, held_at_end = asyncio.run(scenario())

        assert held_after_timeout
        assert not held_at_end
