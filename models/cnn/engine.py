import time
from dataclasses import dataclass

import pandas as pd
import torch
from torch.utils.data import DataLoader

from .config import ModelConfig, TrainConfig, DataMetadata
from .architectures.factory import build_model
from .utils.optimization import build_optimizer, build_scheduler
from .utils.checkpoint import save_checkpoint
from .trainer import train_epochs, test_model
from .utils.visualization import plot_training_curves


@dataclass
class TrainingResult:
    history: pd.DataFrame
    model: torch.nn.Module
    accuracy: float


def run_training(
    model_cfg: ModelConfig,
    train_cfg: TrainConfig,
    device: torch.device,
    train_loader: DataLoader,
    test_loader: DataLoader,
    data_meta: DataMetadata
) -> TrainingResult:

    print("Building model...")
    model = build_model(model_cfg, data_meta).to(device)
    print(model)

    print("Setting up training components...")
    criterion = torch.nn.CrossEntropyLoss(reduction='none')
    optimizer = build_optimizer(model, train_cfg)
    scheduler = build_scheduler(optimizer, train_cfg)

    print(f"Starting training on {device}...")
    start_time = time.time()
    history_df = train_epochs(
        model=model,
        train_loader=train_loader,
        criterion=criterion,
        optimizer=optimizer,
        scheduler=scheduler,
        device=device,
        num_epochs=train_cfg.max_epochs,
        verbose_frequency=train_cfg.verbose_frequency,
    )

    epoch_time = (time.time() - start_time) / max(train_cfg.max_epochs, 1)
    print(f"Training time per epoch: {epoch_time:.2f} seconds")

    print("Classifying test images...")
    accuracy = test_model(model, test_loader, device)

    if train_cfg.checkpoint_path:
        save_checkpoint(train_cfg.checkpoint_path, model, model_cfg, data_meta)

    if train_cfg.plot_curves:
        print("Plotting training curves...")
        plot_training_curves(history_df)

    return TrainingResult(history=history_df, model=model, accuracy=accuracy)
