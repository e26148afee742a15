from ..config import ModelConfig, DataMetadata
from .digit_cnn import DigitCNN


def build_model(model_cfg: ModelConfig, data_meta: DataMetadata):
    name = model_cfg.model_name.lower()

    if name == "digitcnn":
        model = DigitCNN(
            input_size=data_meta.input_size,
            num_classes=data_meta.num_classes,
            input_channels=data_meta.input_channels,
            filter_size=model_cfg.filter_size,
            num_filters=model_cfg.num_filters,
            pool_size=model_cfg.pool_size,
            pool_stride=model_cfg.pool_stride,
            init=model_cfg.init,
        )
    else:
        raise ValueError(f"Unknown model_name '{model_cfg.model_name}'.")

    return model
