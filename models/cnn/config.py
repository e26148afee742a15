from dataclasses import dataclass, field
from typing import List, Optional, Union

@dataclass
class DataConfig:
    """Where the digits come from and how they are batched.

    batch_size is the training mini-batch; shuffle is "every-epoch", "once" or "never".
    """
    dataset_key: str = "digits"
    root: Optional[str] = None
    train_per_label: Optional[Union[int, float]] = None
    use_augment: Optional[bool] = None
    seed: int = 1
    batch_size: int = 128
    shuffle: str = "every-epoch"
    test_batch_size: Optional[int] = None
    num_workers: Optional[int] = None
    pin_memory: Optional[bool] = None
    persistent_workers: bool = True
    prefetch_factor: Optional[int] = 2

@dataclass
class ModelConfig:
    model_name: str = "digitcnn"
    filter_size: int = 5
    num_filters: int = 20
    pool_size: int = 2
    pool_stride: int = 2
    init: str = "kaiming"

@dataclass
class TrainConfig:
    """Training options, named after the usual SGD-with-momentum knobs.

    Attributes:
        optimizer: Only "sgdm" (SGD with momentum) is supported
        max_epochs: Full passes over the training set
        initial_learn_rate: Learning rate at the first iteration
        momentum: Contribution of the previous step to the current update
        l2_regularization: Weight decay applied to weights (not biases)
        learn_rate_schedule: "none" keeps the rate fixed, "piecewise" drops it
        learn_rate_drop_factor: Multiplier applied at each drop
        learn_rate_drop_period: Epochs between drops
        verbose_frequency: Iterations between progress lines
        execution_environment: "auto", "cpu" or "gpu"
        plot_curves: Plot per-epoch curves after training
        checkpoint_path: Where to save the trained network, None to skip
    """
    optimizer: str = "sgdm"
    max_epochs: int = 15
    initial_learn_rate: float = 1e-4
    momentum: float = 0.9
    l2_regularization: float = 1e-4

    learn_rate_schedule: str = "none"
    learn_rate_drop_factor: float = 0.1
    learn_rate_drop_period: int = 10

    verbose_frequency: int = 50
    execution_environment: str = "auto"
    plot_curves: bool = True
    checkpoint_path: Optional[str] = None

@dataclass
class DataMetadata:
    dataset_key: str
    num_classes: int
    input_channels: int
    input_size: int
    class_names: List[str] = field(default_factory=list)
