import time
from typing import Optional
import torch
import pandas as pd


def _print_progress_header():
    print(f"{'epoch':>5} {'iteration':>9} {'time(s)':>8} {'batch_loss':>10} {'batch_acc':>9} {'lr':>10}")


def train_epochs(model, train_loader, criterion, optimizer, scheduler, device, num_epochs: int = 15, verbose_frequency: int = 50, val_loader: Optional[torch.utils.data.DataLoader] = None):
    if num_epochs < 1:
        raise ValueError(f"num_epochs must be >= 1, got {num_epochs}")
    if len(train_loader) == 0:
        raise ValueError("Training loader is empty.")

    rows = []
    total_iterations = num_epochs * len(train_loader)
    iteration = 0
    train_start = time.time()

    if verbose_frequency:
        _print_progress_header()

    for epoch in range(num_epochs):
        model.train()
        running_loss, running_acc, n = 0.0, 0.0, 0
        time_start = time.time()

        for xb, yb in train_loader:
            xb, yb = xb.to(device), yb.to(device)
            iteration += 1

            optimizer.zero_grad(set_to_none=True)
            logits = model(xb)
            loss_vec = criterion(logits, yb)
            if loss_vec.dim() == 0:
                loss_vec = loss_vec.expand(xb.size(0))
            preds = logits.argmax(1)
            batch_correct = (preds == yb).sum().item()

            loss = loss_vec.mean()
            loss.backward()
            optimizer.step()

            bs = xb.size(0)
            running_loss += loss_vec.sum().item()
            running_acc += batch_correct
            n += bs

            if verbose_frequency and (iteration == 1 or iteration % verbose_frequency == 0 or iteration == total_iterations):
                lr = optimizer.param_groups[0]['lr']
                print(f"{epoch+1:5d} {iteration:9d} {time.time() - train_start:8.2f} {loss.item():10.4f} {100.0 * batch_correct / bs:8.2f}% {lr:10.6f}")

        train_loss = running_loss / n
        train_acc  = running_acc / n

        row = {
            'epoch': epoch+1,
            'train_loss': train_loss,
            'train_acc': train_acc,
            'train_err': 1.0 - train_acc,
        }

        if val_loader is not None:
            model.eval()
            val_loss, val_acc, n_val = 0.0, 0.0, 0
            with torch.no_grad():
                for xb, yb in val_loader:
                    xb, yb = xb.to(device), yb.to(device)
                    logits = model(xb)
                    loss_vec = criterion(logits, yb)
                    if loss_vec.dim() == 0:
                        loss_vec = loss_vec.expand(xb.size(0))
                    val_loss += loss_vec.sum().item()
                    val_acc  += (logits.argmax(1) == yb).sum().item()
                    n_val += xb.size(0)
            row['val_loss'] = val_loss / n_val
            row['val_acc'] = val_acc / n_val
            row['val_err'] = 1.0 - row['val_acc']

        row['learning_rate'] = optimizer.param_groups[0]['lr']
        row['time_elapsed'] = time.time() - time_start
        rows.append(row)

        if scheduler is not None:
            scheduler.step()

    history_df = pd.DataFrame(rows)
    return history_df


def classify(model, loader, device):
    """Predicted and true labels for every item of ``loader``, in loader order."""
    model.eval()
    predicted, true = [], []
    with torch.no_grad():
        for xb, yb in loader:
            xb = xb.to(device)
            predicted.append(model(xb).argmax(1).cpu())
            true.append(torch.as_tensor(yb).cpu())
    if not predicted:
        return torch.empty(0, dtype=torch.long), torch.empty(0, dtype=torch.long)
    return torch.cat(predicted), torch.cat(true)


def accuracy(predicted, true) -> float:
    predicted = torch.as_tensor(predicted)
    true = torch.as_tensor(true)
    if predicted.numel() != true.numel():
        raise ValueError(f"Length mismatch: {predicted.numel()} predictions for {true.numel()} labels")
    if true.numel() == 0:
        raise ValueError("Cannot compute accuracy of an empty set.")
    return (predicted.view(-1) == true.view(-1)).sum().item() / true.numel()


def test_model(model, test_loader, device) -> float:
    predicted, true = classify(model, test_loader, device)
    acc = accuracy(predicted, true)
    print(f"Test accuracy: {acc:.4f} ({int(round(acc * true.numel()))}/{true.numel()})")
    return acc
