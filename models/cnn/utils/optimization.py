import torch
from ..config import TrainConfig


def make_param_groups(model):
    decay_params = []
    no_decay_params = []

    for name, p in model.named_parameters():
        if not p.requires_grad:
            continue
        if name.endswith('.bias'):
            no_decay_params.append(p)
        else:
            decay_params.append(p)

    print(f"Optimizer params: decay={len(decay_params)} no_decay={len(no_decay_params)}")
    return decay_params, no_decay_params


def build_optimizer(model, train_cfg: TrainConfig):
    decay_params, no_decay_params = make_param_groups(model)
    opt_name = train_cfg.optimizer.lower()
    if opt_name == "sgdm":
        optimizer = torch.optim.SGD(
            [
                {'params': decay_params, 'weight_decay': train_cfg.l2_regularization},
                {'params': no_decay_params, 'weight_decay': 0.0},
            ],
            lr=train_cfg.initial_learn_rate,
            momentum=train_cfg.momentum,
        )
    else:
        raise ValueError(f"Unsupported optimizer '{train_cfg.optimizer}'.")
    return optimizer


def build_scheduler(optimizer, train_cfg: TrainConfig):
    if train_cfg.learn_rate_schedule is None:
        return None
    name = train_cfg.learn_rate_schedule.lower()
    if name in {"none", ""}:
        return None
    if name == "piecewise":
        if train_cfg.learn_rate_drop_period < 1:
            raise ValueError(f"learn_rate_drop_period must be >= 1, got {train_cfg.learn_rate_drop_period}")
        return torch.optim.lr_scheduler.StepLR(
            optimizer,
            step_size=train_cfg.learn_rate_drop_period,
            gamma=train_cfg.learn_rate_drop_factor,
        )

    raise ValueError(f"Unknown learn rate schedule '{train_cfg.learn_rate_schedule}'.")


def resolve_device(execution_environment: str = "auto") -> torch.device:
    env = execution_environment.lower()
    if env == "auto":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    if env == "cpu":
        return torch.device("cpu")
    if env == "gpu":
        if not torch.cuda.is_available():
            raise RuntimeError("execution_environment='gpu' requested but no CUDA device is available.")
        return torch.device("cuda")
    raise ValueError(f"Unknown execution environment '{execution_environment}'.")
