import os
from dataclasses import asdict

import torch

from ..config import ModelConfig, DataMetadata
from ..architectures.factory import build_model


def save_checkpoint(path: str, model: torch.nn.Module, model_cfg: ModelConfig, data_meta: DataMetadata) -> str:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    payload = {
        'state_dict': model.state_dict(),
        'model_cfg': asdict(model_cfg),
        'data_meta': asdict(data_meta),
    }
    torch.save(payload, path)
    print("Saved model to", path)
    return path


def load_checkpoint(path: str, map_location=None):
    """Rebuild a trained network; returns (model, model_cfg, data_meta)."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Checkpoint not found at '{path}'.")
    payload = torch.load(path, map_location=map_location or "cpu")
    model_cfg = ModelConfig(**payload['model_cfg'])
    data_meta = DataMetadata(**payload['data_meta'])
    model = build_model(model_cfg, data_meta)
    model.load_state_dict(payload['state_dict'])
    model.eval()
    return model, model_cfg, data_meta
