import os
from typing import Tuple
import torch
from torch.utils.data import DataLoader, Subset

from models.cnn.config import DataConfig, DataMetadata
from . import datasets as ldd

SHUFFLE_MODES = {"every-epoch", "once", "never"}


def build_dataloaders(data_cfg: DataConfig, device: torch.device) -> Tuple[DataLoader, DataLoader, DataMetadata]:
    shuffle_mode = data_cfg.shuffle.lower()
    if shuffle_mode not in SHUFFLE_MODES:
        raise ValueError(f"Unknown shuffle mode '{data_cfg.shuffle}'. Available: {sorted(SHUFFLE_MODES)}")

    bundle = ldd.load_dataset(
        data_cfg.dataset_key,
        root=data_cfg.root,
        train_per_label=data_cfg.train_per_label,
        augment=data_cfg.use_augment,
        seed=data_cfg.seed,
    )
    train_ds, test_ds = bundle.train, bundle.test
    num_classes = len(bundle.class_names) if bundle.class_names is not None else 10

    if shuffle_mode == "once":
        generator = torch.Generator().manual_seed(data_cfg.seed)
        order = torch.randperm(len(train_ds), generator=generator).tolist()
        train_ds = Subset(train_ds, order)

    batch_size = data_cfg.batch_size
    test_batch_size = data_cfg.test_batch_size or 256

    num_workers = data_cfg.num_workers
    if num_workers is None:
        num_workers = (os.cpu_count() or 4) // 2

    pin_memory = data_cfg.pin_memory if data_cfg.pin_memory is not None else (device.type == 'cuda')

    print(f"Using {num_workers} data loader workers.")

    def _build_loader(dataset, *, batch_size, shuffle):
        kwargs = {
            'batch_size': batch_size,
            'shuffle': shuffle,
            'drop_last': False,
            'num_workers': num_workers,
            'pin_memory': pin_memory,
        }
        if num_workers and num_workers > 0:
            if data_cfg.persistent_workers is not None:
                kwargs['persistent_workers'] = data_cfg.persistent_workers
            if data_cfg.prefetch_factor is not None:
                kwargs['prefetch_factor'] = data_cfg.prefetch_factor
        return DataLoader(dataset, **kwargs)

    train_loader = _build_loader(train_ds, batch_size=batch_size, shuffle=(shuffle_mode == "every-epoch"))
    test_loader = _build_loader(test_ds, batch_size=test_batch_size, shuffle=False)

    metadata = DataMetadata(
        dataset_key=data_cfg.dataset_key.lower(),
        num_classes=num_classes,
        input_channels=bundle.num_channels,
        input_size=bundle.image_size,
        class_names=list(bundle.class_names or []),
    )

    return train_loader, test_loader, metadata
