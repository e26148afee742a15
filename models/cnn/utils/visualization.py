import random

import torch
import numpy as np
import matplotlib.pyplot as plt
from PIL import Image
from torchvision import transforms


def find_normalize(transform):
    if transform is None:
        return None
    if isinstance(transform, transforms.Compose):
        for t in transform.transforms:
            if isinstance(t, transforms.Normalize):
                return (torch.tensor(t.mean).view(-1,1,1), torch.tensor(t.std).view(-1,1,1))
    elif isinstance(transform, transforms.Normalize):
        return (torch.tensor(transform.mean).view(-1,1,1), torch.tensor(transform.std).view(-1,1,1))
    return None


def _dataset_transform(dataset):
    # unwrap Subset chains
    while hasattr(dataset, "dataset"):
        dataset = dataset.dataset
    return getattr(dataset, "transform", None)


def prepare_for_display(batch, norm_params=None):
    x = batch.detach().cpu()
    if norm_params is not None:
        mean, std = norm_params
        x = x * std + mean
    x_min = x.amin(dim=(1,2,3), keepdim=True)
    x_max = x.amax(dim=(1,2,3), keepdim=True)
    needs_rescale = (x_min < 0).any() or (x_max > 1).any()
    if needs_rescale:
        denom = torch.clamp(x_max - x_min, min=1e-8)
        x = (x - x_min) / denom
    x = torch.clamp(x, 0.0, 1.0)
    x = x.permute(0, 2, 3, 1).numpy()
    return x


def plot_sample_images(dataset, num_images: int = 20, rows: int = 4, cols: int = 5, seed: int = 0, show: bool = True):
    if num_images > rows * cols:
        raise ValueError(f"num_images={num_images} does not fit in a {rows}x{cols} grid")
    num_images = min(num_images, len(dataset))
    picks = random.Random(seed).sample(range(len(dataset)), num_images)

    fig, axes = plt.subplots(rows, cols, figsize=(cols * 1.6, rows * 1.6))
    axes = axes.flat if hasattr(axes, "flat") else [axes]
    for i, ax in enumerate(axes):
        ax.axis('off')
        if i >= num_images:
            continue
        image = dataset[picks[i]][0]
        if isinstance(image, Image.Image):
            ax.imshow(np.asarray(image.convert('L')), cmap='gray', interpolation='nearest')
        else:
            ax.imshow(prepare_for_display(image.unsqueeze(0))[0][..., 0], cmap='gray', interpolation='nearest')

    plt.tight_layout()
    if show:
        plt.show()
    return fig


def plot_predictions(model, test_loader, device, class_names=None, show: bool = True):
    model.eval()

    norm_params = find_normalize(_dataset_transform(test_loader.dataset))
    xb, yb = next(iter(test_loader))
    xb, yb = xb.to(device), yb.to(device)

    with torch.inference_mode():
        preds = model(xb).argmax(dim=1)

    imgs_disp = prepare_for_display(xb, norm_params=norm_params)

    n_rows, n_cols = 4, 8
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(8, 4.5))
    axes = axes.flat if hasattr(axes, "flat") else [axes]

    for i, ax in enumerate(axes):
        if i >= len(xb):
            ax.axis('off'); continue
        gray = imgs_disp[i][..., 0]
        ax.imshow(gray, cmap='gray', interpolation='nearest')
        pred_i = preds[i].item()
        label_i = yb[i].item()
        ptxt = class_names[pred_i] if class_names else str(pred_i)
        ltxt = class_names[label_i] if class_names else str(label_i)
        color = 'green' if pred_i == label_i else 'red'
        ax.set_title(f"P:{ptxt} / L:{ltxt}", fontsize=9, color=color)
        ax.axis('off')

    plt.tight_layout()
    if show:
        plt.show()
    return fig


def plot_training_curves(history_df, show: bool = True):
    num_epochs = len(history_df)
    epochs = np.arange(1, num_epochs+1)
    lr = history_df['learning_rate'] if 'learning_rate' in history_df else None
    has_val = 'val_loss' in history_df

    fig = plt.figure(figsize=(12,5))
    plt.subplot(1,2,1)
    plt.plot(epochs, history_df['train_loss'], label='Train Loss')
    if has_val:
        plt.plot(epochs, history_df['val_loss'], label='Val Loss')
    plt.xlabel('Epoch')
    plt.ylabel('Loss')
    plt.title('Training Loss')
    plt.legend()
    ax_err = plt.subplot(1,2,2)
    ax_err.plot(epochs, history_df['train_err'], label='Train Error')
    if has_val:
        ax_err.plot(epochs, history_df['val_err'], label='Val Error')
    ax_err.set_xlabel('Epoch')
    ax_err.set_ylabel('Error')
    ax_err.set_title('Training Error')
    handles, labels = ax_err.get_legend_handles_labels()
    if lr is not None:
        # learning rate on its own y-axis
        ax_lr = ax_err.twinx()
        ax_lr.plot(epochs, lr, label='Learning Rate', linestyle='--', color='tab:gray')
        ax_lr.set_ylabel('Learning Rate')
        lr_handles, lr_labels = ax_lr.get_legend_handles_labels()
        handles, labels = handles + lr_handles, labels + lr_labels
    ax_err.legend(handles, labels)
    if show:
        plt.show()
    return fig
