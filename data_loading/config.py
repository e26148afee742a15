from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

import torch
from torch.utils.data import Dataset
from torchvision import datasets, transforms

from . import transforms as custom_transforms

@dataclass(frozen=True)
class DatasetConfig:
    key: str
    dataset_cls: Optional[Callable[..., Dataset]]
    default_train_per_label: int
    default_root: str
    augment_builder: Optional[Callable[[torch.Tensor, torch.Tensor, int], transforms.Compose]]
    default_augment: bool
    image_size: int
    display_name: str


@dataclass
class DatasetBundle:
    full: Dataset
    train: Dataset
    test: Dataset
    mean: torch.Tensor
    std: torch.Tensor
    image_size: int
    num_channels: int
    class_names: Optional[Sequence[str]]


DATASET_REGISTRY: Dict[str, DatasetConfig] = {
    "digits": DatasetConfig(
        key="digits",
        dataset_cls=datasets.ImageFolder,
        default_train_per_label=750,
        default_root="./data/DigitDataset",
        augment_builder=custom_transforms.digit_augment,
        default_augment=False,
        image_size=28,
        display_name="Digit folders",
    ),
    "mnist": DatasetConfig(
        key="mnist",
        dataset_cls=datasets.MNIST,
        default_train_per_label=750,
        default_root="./data",
        augment_builder=custom_transforms.digit_augment,
        default_augment=False,
        image_size=28,
        display_name="MNIST",
    ),
}
