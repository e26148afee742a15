"""Digit CNN model, training loop, and utilities."""

from . import engine
from . import config
from . import trainer
from .architectures import digit_cnn, factory

__all__ = [
    "engine",
    "config",
    "trainer",
    "digit_cnn",
    "factory",
]
