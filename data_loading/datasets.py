from __future__ import annotations

import numbers
import os
import random
from collections import defaultdict
from typing import Optional, Sequence, Union

import pandas as pd
import torch
from PIL import Image
from torch.utils.data import DataLoader, Dataset, Subset
from torchvision import datasets

from . import config
from . import transforms as custom_transforms

# Re-export for convenience
DatasetBundle = config.DatasetBundle
DatasetConfig = config.DatasetConfig


def read_image(path: str) -> Image.Image:
    # keeps the file's own mode; torchvision's default loader forces RGB
    with open(path, "rb") as f:
        image = Image.open(f)
        image.load()
    return image


def load_image_folder(root: str, transform=None) -> datasets.ImageFolder:
    """Image collection labelled by the names of its subfolders (sorted)."""
    if not os.path.isdir(root):
        raise FileNotFoundError(f"Image folder not found at '{root}'. Expected one subfolder per label.")
    return datasets.ImageFolder(root=root, transform=transform, loader=read_image)


def labels_of(dataset: Dataset) -> list[int]:
    if isinstance(dataset, Subset):
        parent = labels_of(dataset.dataset)
        return [parent[i] for i in dataset.indices]
    targets = getattr(dataset, "targets", None)
    if targets is not None:
        if isinstance(targets, torch.Tensor):
            return targets.tolist()
        return [int(t) for t in targets]
    return [int(label) for _, label in dataset]


def class_names_of(dataset: Dataset) -> Optional[list[str]]:
    if isinstance(dataset, Subset):
        return class_names_of(dataset.dataset)
    classes = getattr(dataset, "classes", None)
    return list(classes) if classes is not None else None


def count_each_label(dataset: Dataset) -> pd.DataFrame:
    labels = labels_of(dataset)
    names = class_names_of(dataset)
    counts = defaultdict(int)
    for label in labels:
        counts[label] += 1

    keys = range(len(names)) if names is not None else sorted(counts)
    rows = []
    for label in keys:
        rows.append({
            'Label': names[label] if names is not None else str(label),
            'Count': counts.get(label, 0),
        })
    return pd.DataFrame(rows, columns=['Label', 'Count'])


def image_shape(dataset: Dataset, index: int = 0) -> tuple[int, int, int]:
    """Returns (height, width, channels) of a single image."""
    image = dataset[index][0]
    if isinstance(image, Image.Image):
        width, height = image.size
        return height, width, len(image.getbands())
    if isinstance(image, torch.Tensor):
        if image.dim() == 2:
            return image.shape[0], image.shape[1], 1
        return image.shape[1], image.shape[2], image.shape[0]
    raise TypeError(f"Cannot read the shape of an item of type {type(image).__name__}.")


def _per_label_count(n: Union[int, float], cls_total: int) -> int:
    if isinstance(n, float):
        return int(n * cls_total)
    return min(n, cls_total)


def split_each_label_indices(
    labels: Sequence[int],
    n: Union[int, float],
    *,
    randomize: bool = True,
    seed: int = 1,
) -> tuple[list[int], list[int]]:
    if isinstance(n, bool) or not isinstance(n, numbers.Real):
        raise ValueError(f"n must be an int >= 1 or a float in (0, 1), got {n!r}")
    if isinstance(n, numbers.Integral):
        n = int(n)
        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
    else:
        n = float(n)
        if not 0.0 < n < 1.0:
            raise ValueError(f"Fractional n must be in (0, 1), got {n}")

    by_class = defaultdict(list)
    for idx, label in enumerate(labels):
        by_class[label].append(idx)

    rng = random.Random(seed)
    first: list[int] = []
    second: list[int] = []
    for label in sorted(by_class.keys()):
        idxs = by_class[label]
        if randomize:
            rng.shuffle(idxs)
        count = _per_label_count(n, len(idxs))
        first.extend(idxs[:count])
        second.extend(idxs[count:])

    if len(first) + len(second) != len(labels):
        raise RuntimeError(f"Split lost items: {len(first)} + {len(second)} != {len(labels)}")
    return first, second


def split_each_label(
    dataset: Dataset,
    n: Union[int, float],
    *,
    randomize: bool = True,
    seed: int = 1,
) -> tuple[Subset, Subset]:
    """Split per label so each label puts ``n`` items (or the fraction ``n``) in the first subset.

    Labels with ``n`` or fewer items go entirely to the first subset.
    """
    first, second = split_each_label_indices(labels_of(dataset), n, randomize=randomize, seed=seed)
    return Subset(dataset, first), Subset(dataset, second)


def _compute_mean_std_from_dataset(dataset: Dataset, batch_size: int = 256) -> tuple[torch.Tensor, torch.Tensor]:
    loader = DataLoader(dataset, batch_size=batch_size, shuffle=False, num_workers=0)
    mean = 0.0
    second_moment = 0.0
    count = 0

    for images, *_ in loader:
        images = images.float()
        bsz = images.size(0)
        reshaped = images.view(bsz, images.size(1), -1)
        mean += reshaped.mean(dim=2).sum(dim=0)
        second_moment += (reshaped ** 2).mean(dim=2).sum(dim=0)
        count += bsz

    if count == 0:
        raise ValueError("Cannot compute statistics of an empty dataset.")
    mean /= count
    variance = second_moment / count - mean ** 2
    std = torch.sqrt(torch.clamp(variance, min=1e-8))
    return mean, std


def _open_collection(dataset_config: DatasetConfig, root: str, download: bool, transform=None) -> Dataset:
    if dataset_config.key == "digits":
        return load_image_folder(root, transform=transform)
    # 10k images, about 1000 per digit
    return dataset_config.dataset_cls(root=root, train=False, download=download, transform=transform)


def open_collection(name: str, root: Optional[str] = None, *, download: bool = True, transform=None) -> Dataset:
    """The whole labelled image collection for ``name``, before any split."""
    key = name.lower()
    if key not in config.DATASET_REGISTRY:
        raise ValueError(f"Unknown dataset '{name}'. Available: {sorted(config.DATASET_REGISTRY)}")
    dataset_config = config.DATASET_REGISTRY[key]
    return _open_collection(dataset_config, root or dataset_config.default_root, download, transform)


def load_dataset(
    name: str,
    *,
    root: Optional[str] = None,
    train_per_label: Optional[Union[int, float]] = None,
    augment: Optional[bool] = None,
    seed: int = 1,
    download: bool = True,
    verbose: bool = True,
) -> DatasetBundle:
    key = name.lower()
    if key not in config.DATASET_REGISTRY:
        raise ValueError(f"Unknown dataset '{name}'. Available: {sorted(config.DATASET_REGISTRY)}")

    dataset_config = config.DATASET_REGISTRY[key]
    root = root or dataset_config.default_root
    image_size = dataset_config.image_size

    full = _open_collection(dataset_config, root, download)
    n = dataset_config.default_train_per_label if train_per_label is None else train_per_label
    train_indices, test_indices = split_each_label_indices(labels_of(full), n, randomize=True, seed=seed)
    if not train_indices or not test_indices:
        raise ValueError(f"Split with n={n} leaves an empty set (train={len(train_indices)}, test={len(test_indices)})")

    stats_ds = _open_collection(dataset_config, root, False, custom_transforms.stats_transform(image_size))
    mean, std = _compute_mean_std_from_dataset(Subset(stats_ds, train_indices))

    eval_transform = custom_transforms.digit_transform(mean, std, image_size)
    use_augment = dataset_config.default_augment if augment is None else augment
    if use_augment and dataset_config.augment_builder is not None:
        train_transform = dataset_config.augment_builder(mean, std, image_size)
    else:
        train_transform = eval_transform

    train_subset = Subset(_open_collection(dataset_config, root, False, train_transform), train_indices)
    test_subset = Subset(_open_collection(dataset_config, root, False, eval_transform), test_indices)
    class_names = class_names_of(full)

    if verbose:
        print(f"{dataset_config.display_name} stats: mean={mean.tolist()}, std={std.tolist()}")
        print(f"Image size: {image_size}x{image_size}")
        print("Using data augmentation for training set" if use_augment else "No data augmentation for training set")
        print(f"Training images per label: {n}")
        print("Train (subset):", len(train_subset))
        print("Test (subset):", len(test_subset))

    return DatasetBundle(
        full=full,
        train=train_subset,
        test=test_subset,
        mean=mean,
        std=std,
        image_size=image_size,
        num_channels=1,
        class_names=class_names,
    )
