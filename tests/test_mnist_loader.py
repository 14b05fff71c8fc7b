"""
test_mnist_loader.py
~~~~~~~~~~~~~~~~~~~~

Unit tests for loading MNIST from a local npz archive.
"""

import pytest
import numpy as np

from mynet import mnist_loader
from mynet.models import IMAGE_SIZE, NUM_CLASSES


def write_archive(path, n=3):
    """Write a tiny archive with ``n`` examples per split."""
    images = np.linspace(0, 1, n * IMAGE_SIZE, dtype=np.float32).reshape(n, IMAGE_SIZE)
    labels = np.arange(n, dtype=np.int64) % NUM_CLASSES
    np.savez_compressed(
        path,
        train_images=images, train_labels=labels,
        val_images=images, val_labels=labels,
        test_images=images, test_labels=labels
    )
    return images, labels


@pytest.fixture
def archive(tmp_path):
    """Path to a freshly written archive."""
    path = tmp_path / "mnist.npz"
    write_archive(path)
    return str(path)


@pytest.mark.unit
class TestMnistLoader:
    """Test archive loading and label encoding."""

    def test_one_hot(self):
        """Test one-hot encoding of a digit."""
        assert mnist_loader.one_hot(3) == [0, 0, 0, 1, 0, 0, 0, 0, 0, 0]

    def test_one_hot_out_of_range(self):
        """Test that a label outside the class range is rejected."""
        with pytest.raises(ValueError):
            mnist_loader.one_hot(10)

    def test_load_data_shapes(self, archive):
        """Test that every split holds flat images and one-hot labels."""
        dataset = mnist_loader.load_data(archive)

        for images, labels in (dataset.train, dataset.validation, dataset.test):
            assert len(images) == 3
            assert all(len(image) == IMAGE_SIZE for image in images)
            assert labels[1] == mnist_loader.one_hot(1)

    def test_load_data_limit(self, archive):
        """Test that limit truncates each split."""
        dataset = mnist_loader.load_data(archive, limit=2)
        assert len(dataset.train[0]) == 2
        assert len(dataset.test[1]) == 2

    def test_path_from_environment(self, archive, monkeypatch):
        """Test that MNIST_DATA_PATH selects the archive."""
        monkeypatch.setenv('MNIST_DATA_PATH', archive)
        assert mnist_loader.data_path() == archive
        assert len(mnist_loader.load_data().train[0]) == 3

    def test_missing_archive(self, tmp_path):
        """Test that a missing archive raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            mnist_loader.load_data(str(tmp_path / "missing.npz"))
