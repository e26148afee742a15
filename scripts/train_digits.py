########################################################################
# Walkthrough: train a small CNN on 28x28 grayscale digits.
# Load the folder-labelled images, look at them, split per label,
# declare the network, set the training options, train, then
# classify the held-out images and report accuracy.
########################################################################

import sys
import argparse
from pathlib import Path
import datetime
import torch

# Add project root to sys.path
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from models.cnn.config import DataConfig, ModelConfig, TrainConfig
from models.cnn.engine import run_training
from models.cnn.utils.optimization import resolve_device
from models.cnn.utils.visualization import plot_sample_images, plot_predictions
from data_loading import datasets as ldd
from data_loading.loaders import build_dataloaders


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="train-digits", description="Train a small CNN on digit images.")
    parser.add_argument("--dataset", default="digits",
                        help="Registry key: 'digits' (image folders) or 'mnist'. There is no automatic fallback; "
                             "pass --dataset mnist when no digit folders are available.")
    parser.add_argument("--root", default=None, help="Dataset root; for 'digits' one subfolder per label.")
    parser.add_argument("--train-per-label", type=train_per_label_arg, default=750,
                        help="Training images per label (>= 1) or fraction per label (< 1).")
    parser.add_argument("--epochs", type=int, default=15)
    parser.add_argument("--lr", type=float, default=1e-4)
    parser.add_argument("--batch-size", type=int, default=128)
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--device", default="auto", choices=["auto", "cpu", "gpu"])
    parser.add_argument("--workers", type=int, default=None, help="Data loader workers (default: half the CPUs).")
    parser.add_argument("--no-plots", action="store_true")
    parser.add_argument("--checkpoint", default=None, help="Path to save the trained network.")
    return parser


def train_per_label_arg(text: str):
    """Whole count (>= 1) or fraction in (0, 1); 1.5 is neither and is rejected."""
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}")
    if 0.0 < value < 1.0:
        return value
    if value >= 1 and value.is_integer():
        return int(value)
    raise argparse.ArgumentTypeError(f"expected a whole count >= 1 or a fraction in (0, 1), got {text!r}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    now = datetime.datetime.now()
    print("Start time:", now.strftime("%Y-%m-%d %H:%M:%S"))

    # Reproducibility
    torch.manual_seed(args.seed)

    device = resolve_device(args.device)
    print("Using device:", device)

    # ---- Configuration ----
    data_cfg = DataConfig(
        dataset_key=args.dataset,
        root=args.root,
        train_per_label=args.train_per_label,
        seed=args.seed,
        batch_size=args.batch_size,
        num_workers=args.workers,
    )
    model_cfg = ModelConfig(model_name="digitcnn", filter_size=5, num_filters=20, pool_size=2, pool_stride=2)
    train_cfg = TrainConfig(
        optimizer="sgdm",
        max_epochs=args.epochs,
        initial_learn_rate=args.lr,
        execution_environment=args.device,
        plot_curves=not args.no_plots,
        checkpoint_path=args.checkpoint,
    )

    # ---- Explore the image data ----
    try:
        collection = ldd.open_collection(data_cfg.dataset_key, data_cfg.root)
    except FileNotFoundError as exc:
        parser.error(f"{exc} Pass --root, or --dataset mnist to use MNIST instead.")
    print("Images per label:")
    print(ldd.count_each_label(collection).to_string(index=False))
    print("Size of first image (H, W, C):", ldd.image_shape(collection, 0))
    if not args.no_plots:
        plot_sample_images(collection, num_images=20, rows=4, cols=5, seed=args.seed)

    # ---- Split, train, classify ----
    print("Building dataloaders...")
    train_loader, test_loader, data_meta = build_dataloaders(data_cfg, device)

    result = run_training(
        model_cfg,
        train_cfg,
        device,
        train_loader,
        test_loader,
        data_meta
    )

    if not args.no_plots:
        plot_predictions(result.model, test_loader, device, class_names=data_meta.class_names)

    print(f"Accuracy: {result.accuracy:.4f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
