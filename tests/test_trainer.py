"""
test_trainer.py
~~~~~~~~~~~~~~~

Tests for the epoch/batch training loop.
"""

import pytest
import numpy as np

from mynet.errors import DimensionMismatchError
from mynet.losses import first_node_absolute_error
from mynet.models import build_network
from mynet.trainer import Trainer, evaluate_percent


@pytest.fixture
def small_network():
    """A 2 -> 2 sigmoid network with a fixed seed."""
    return build_network([2, 2], output_activation='sigmoid',
                         learning_rate=0.5, rng=np.random.default_rng(0))


@pytest.fixture
def toy_data():
    """Five examples of a two-class problem."""
    images = [[1, 0], [0, 1], [0.9, 0.1], [0.2, 0.8], [1, 0.2]]
    labels = [[1, 0], [0, 1], [1, 0], [0, 1], [1, 0]]
    return images, labels


@pytest.mark.unit
class TestTrainer:
    """Test callbacks, batching and history."""

    def test_batch_and_epoch_callbacks(self, small_network, toy_data):
        """Test that callbacks fire once per batch and once per epoch."""
        batch_calls = []
        epoch_calls = []
        yields = []

        trainer = Trainer(
            small_network,
            batch_size=2,
            epochs=2,
            on_batch_end=lambda batch, logs: batch_calls.append((batch, logs)),
            on_epoch_end=lambda epoch, logs: epoch_calls.append((epoch, logs)),
            yield_func=lambda: yields.append(True)
        )
        history = trainer.train(*toy_data)

        # 5 examples in batches of 2 -> 3 batches per epoch
        assert [batch for batch, _ in batch_calls] == [1, 2, 3, 4, 5, 6]
        assert batch_calls[-1][1]['progress'] == 100
        assert batch_calls[2][1]['examples_seen'] == 5
        assert [epoch for epoch, _ in epoch_calls] == [1, 2]
        assert epoch_calls[0][1]['total_epochs'] == 2
        assert len(yields) == 6
        assert len(history.batch_losses) == 6
        assert len(history.epoch_losses) == 2

    def test_reported_batch_loss_is_percent(self, small_network, toy_data):
        """Test that the callback loss is the history loss times 100."""
        reported = []
        trainer = Trainer(small_network, batch_size=5,
                          on_batch_end=lambda batch, logs: reported.append(logs['loss']))
        history = trainer.train(*toy_data)
        assert reported[0] == pytest.approx(history.batch_losses[0] * 100)

    def test_custom_loss_function(self, small_network, toy_data):
        """Test that a different loss reduction can be plugged in."""
        trainer = Trainer(small_network, batch_size=5, loss_fn=first_node_absolute_error)
        history = trainer.train(*toy_data)
        assert history.batch_losses[0] >= 0.0

    def test_epoch_accuracy_with_test_data(self, small_network, toy_data):
        """Test that test data is evaluated after each epoch."""
        trainer = Trainer(small_network, batch_size=5, epochs=3)
        history = trainer.train(*toy_data, test_data=toy_data)
        assert len(history.epoch_accuracies) == 3
        assert all(0.0 <= acc <= 1.0 for acc in history.epoch_accuracies)

    def test_mismatched_images_and_labels(self, small_network):
        """Test that image and label counts must agree."""
        with pytest.raises(DimensionMismatchError):
            Trainer(small_network).train([[1, 0]], [])

    @pytest.mark.parametrize('kwargs', [{'batch_size': 0}, {'epochs': 0}])
    def test_invalid_parameters(self, small_network, kwargs):
        """Test that non-positive batch size or epochs are rejected."""
        with pytest.raises(ValueError):
            Trainer(small_network, **kwargs)


@pytest.mark.integration
class TestTrainerLearning:
    """Test that the training loop improves the model."""

    def test_loss_decreases_and_accuracy_reaches_100(self, small_network, toy_data):
        """Test loss goes down over epochs on a separable problem."""
        trainer = Trainer(small_network, batch_size=5, epochs=100,
                          shuffle=True, rng=np.random.default_rng(1))
        history = trainer.train(*toy_data)

        assert history.epoch_losses[-1] < history.epoch_losses[0]
        assert evaluate_percent(small_network, *toy_data) == 100.0
