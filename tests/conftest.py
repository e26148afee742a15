import sys
from pathlib import Path
import pytest
import numpy as np
import matplotlib
import torch
from PIL import Image
from torch.utils.data import DataLoader, TensorDataset

# Add project root to sys.path so tests can import 'models' and 'data_loading'
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

matplotlib.use("Agg")

from models.cnn.config import DataMetadata


@pytest.fixture
def dummy_data_meta():
    """Returns metadata for a dummy 10-class dataset with 1x28x28 images."""
    return DataMetadata(
        dataset_key="dummy",
        num_classes=10,
        input_channels=1,
        input_size=28,
        class_names=[str(i) for i in range(10)],
    )

@pytest.fixture
def dummy_dataloader():
    """Returns a DataLoader with 10 random samples (batch_size=2)."""
    torch.manual_seed(0)
    X = torch.randn(10, 1, 28, 28)
    y = torch.randint(0, 10, (10,))
    dataset = TensorDataset(X, y)
    return DataLoader(dataset, batch_size=2)

@pytest.fixture
def digit_folder(tmp_path):
    """
    Folder-labelled grayscale PNGs: labels '0' and '1' with 6 images each,
    label '2' with 6 images plus one in a nested subfolder (7 total).
    """
    rng = np.random.default_rng(0)
    root = tmp_path / "DigitDataset"
    for label in ("0", "1", "2"):
        label_dir = root / label
        label_dir.mkdir(parents=True)
        for i in range(6):
            pixels = rng.integers(0, 256, size=(28, 28), dtype=np.uint8)
            Image.fromarray(pixels).save(label_dir / f"img_{label}_{i}.png")
    nested = root / "2" / "extra"
    nested.mkdir()
    pixels = rng.integers(0, 256, size=(28, 28), dtype=np.uint8)
    Image.fromarray(pixels).save(nested / "img_2_nested.png")
    return root
