import inspect
import pytest
import torch
import torch.nn as nn
from models.cnn import trainer
from models.cnn.trainer import train_epochs, classify, accuracy
from models.cnn.architectures.digit_cnn import DigitCNN
from models.cnn.config import DataConfig, ModelConfig, TrainConfig
from models.cnn.engine import run_training
from models.cnn.utils.optimization import build_optimizer, build_scheduler, resolve_device
from models.cnn.utils.checkpoint import save_checkpoint, load_checkpoint
from models.cnn.utils.visualization import plot_sample_images, plot_training_curves
from data_loading.loaders import build_dataloaders


def test_train_loop_one_epoch(dummy_dataloader):
    """
    Integration test: Runs the training loop for 1 epoch on dummy data.
    Verifies that it completes without error and returns a history DataFrame.
    """
    device = torch.device("cpu")
    model = DigitCNN(input_size=28, num_classes=10, input_channels=1).to(device)
    optimizer = torch.optim.SGD(model.parameters(), lr=0.01, momentum=0.9)
    criterion = nn.CrossEntropyLoss()

    history = train_epochs(
        model=model,
        train_loader=dummy_dataloader,
        criterion=criterion,
        optimizer=optimizer,
        scheduler=None,
        device=device,
        num_epochs=1,
        val_loader=dummy_dataloader, # reuse for speed
    )

    assert len(history) == 1
    assert "train_loss" in history.columns
    assert "val_loss" in history.columns
    # Ensure loss is not NaN
    assert not history["train_loss"].isna().any()


def test_progress_lines_first_every_n_and_last(dummy_dataloader, capsys):
    """5 iterations/epoch x 2 epochs, frequency 3 -> iterations 1, 3, 6, 9, 10."""
    model = DigitCNN()
    optimizer = torch.optim.SGD(model.parameters(), lr=1e-4, momentum=0.9)
    train_epochs(model, dummy_dataloader, nn.CrossEntropyLoss(reduction='none'), optimizer, None,
                 torch.device("cpu"), num_epochs=2, verbose_frequency=3)

    lines = capsys.readouterr().out.strip().splitlines()
    assert "iteration" in lines[0]
    iterations = [int(line.split()[1]) for line in lines[1:]]
    assert iterations == [1, 3, 6, 9, 10]


def test_train_epochs_rejects_zero_epochs(dummy_dataloader):
    model = DigitCNN()
    optimizer = torch.optim.SGD(model.parameters(), lr=1e-4)
    with pytest.raises(ValueError):
        train_epochs(model, dummy_dataloader, nn.CrossEntropyLoss(), optimizer, None,
                     torch.device("cpu"), num_epochs=0)


def test_piecewise_schedule_drops_learning_rate(dummy_dataloader):
    model = DigitCNN()
    train_cfg = TrainConfig(initial_learn_rate=0.01, learn_rate_schedule="piecewise",
                            learn_rate_drop_factor=0.1, learn_rate_drop_period=1)
    optimizer = build_optimizer(model, train_cfg)
    scheduler = build_scheduler(optimizer, train_cfg)

    history = train_epochs(model, dummy_dataloader, nn.CrossEntropyLoss(), optimizer, scheduler,
                           torch.device("cpu"), num_epochs=2, verbose_frequency=0)

    assert history["learning_rate"].tolist() == pytest.approx([0.01, 0.001])


def test_build_optimizer_sgdm():
    model = DigitCNN()
    optimizer = build_optimizer(model, TrainConfig())
    assert isinstance(optimizer, torch.optim.SGD)
    assert optimizer.param_groups[0]['momentum'] == 0.9
    assert optimizer.param_groups[0]['lr'] == 1e-4
    # biases are not regularized
    assert optimizer.param_groups[1]['weight_decay'] == 0.0


def test_training_option_errors():
    model = DigitCNN()
    with pytest.raises(ValueError):
        build_optimizer(model, TrainConfig(optimizer="adam"))
    optimizer = build_optimizer(model, TrainConfig())
    assert build_scheduler(optimizer, TrainConfig(learn_rate_schedule="none")) is None
    with pytest.raises(ValueError):
        build_scheduler(optimizer, TrainConfig(learn_rate_schedule="cosine"))


def test_resolve_device():
    assert resolve_device("cpu").type == "cpu"
    with pytest.raises(ValueError):
        resolve_device("tpu")
    if not torch.cuda.is_available():
        with pytest.raises(RuntimeError):
            resolve_device("gpu")


def test_accuracy_is_ratio_of_matches():
    assert accuracy(torch.tensor([1, 2, 3, 4]), torch.tensor([1, 2, 0, 4])) == 0.75
    assert accuracy([0, 0], [1, 1]) == 0.0
    with pytest.raises(ValueError):
        accuracy(torch.tensor([1, 2]), torch.tensor([1]))
    with pytest.raises(ValueError):
        accuracy(torch.tensor([]), torch.tensor([]))


def test_classify_returns_labels_in_loader_order(dummy_dataloader):
    model = DigitCNN()
    predicted, true = classify(model, dummy_dataloader, torch.device("cpu"))
    expected_true = torch.cat([yb for _, yb in dummy_dataloader])
    assert predicted.shape == (10,)
    assert torch.equal(true, expected_true)
    assert trainer.test_model(model, dummy_dataloader, torch.device("cpu")) == accuracy(predicted, true)


def test_run_training_end_to_end(dummy_dataloader, dummy_data_meta, tmp_path):
    ckpt = tmp_path / "convnet.pt"
    train_cfg = TrainConfig(max_epochs=1, initial_learn_rate=1e-3, plot_curves=False,
                            verbose_frequency=2, checkpoint_path=str(ckpt))
    result = run_training(ModelConfig(), train_cfg, torch.device("cpu"),
                          dummy_dataloader, dummy_dataloader, dummy_data_meta)

    assert len(result.history) == 1
    assert 0.0 <= result.accuracy <= 1.0

    model, model_cfg, data_meta = load_checkpoint(str(ckpt))
    assert model_cfg == ModelConfig()
    assert data_meta == dummy_data_meta
    x = torch.randn(3, 1, 28, 28)
    result.model.eval()
    assert torch.allclose(model(x), result.model(x))


def test_load_checkpoint_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_checkpoint(str(tmp_path / "missing.pt"))


def test_build_dataloaders_from_folder(digit_folder):
    data_cfg = DataConfig(dataset_key="digits", root=str(digit_folder), train_per_label=4,
                          batch_size=4, shuffle="once", num_workers=0)
    train_loader, test_loader, meta = build_dataloaders(data_cfg, torch.device("cpu"))

    assert len(train_loader.dataset) == 12
    assert len(test_loader.dataset) == 7
    assert meta.num_classes == 3
    assert meta.class_names == ["0", "1", "2"]
    xb, yb = next(iter(train_loader))
    assert xb.shape == (4, 1, 28, 28)


def test_build_dataloaders_takes_batching_from_data_config():
    assert list(inspect.signature(build_dataloaders).parameters) == ["data_cfg", "device"]
    assert DataConfig().batch_size == 128
    assert DataConfig().shuffle == "every-epoch"


def test_build_dataloaders_rejects_unknown_shuffle(digit_folder):
    data_cfg = DataConfig(dataset_key="digits", root=str(digit_folder), train_per_label=4,
                          shuffle="sometimes", num_workers=0)
    with pytest.raises(ValueError):
        build_dataloaders(data_cfg, torch.device("cpu"))


def test_plots_do_not_need_a_display(digit_folder, dummy_dataloader):
    from data_loading.datasets import load_image_folder

    fig = plot_sample_images(load_image_folder(str(digit_folder)), num_images=20, rows=4, cols=5, show=False)
    assert len(fig.axes) == 20

    model = DigitCNN()
    optimizer = torch.optim.SGD(model.parameters(), lr=1e-4)
    history = train_epochs(model, dummy_dataloader, nn.CrossEntropyLoss(), optimizer, None,
                           torch.device("cpu"), num_epochs=2, verbose_frequency=0)
    fig = plot_training_curves(history, show=False)
    assert len(fig.axes) == 3


def test_learning_rate_curve_has_its_own_axis(dummy_dataloader):
    model = DigitCNN()
    optimizer = torch.optim.SGD(model.parameters(), lr=1e-4)
    history = train_epochs(model, dummy_dataloader, nn.CrossEntropyLoss(), optimizer, None,
                           torch.device("cpu"), num_epochs=2, verbose_frequency=0)
    fig = plot_training_curves(history, show=False)

    _, ax_err, ax_lr = fig.axes
    assert ax_err.get_ylabel() == "Error"
    assert ax_lr.get_ylabel() == "Learning Rate"
    assert [line.get_label() for line in ax_err.get_lines()] == ["Train Error"]
    assert list(ax_lr.get_lines()[0].get_ydata()) == pytest.approx([1e-4, 1e-4])
    # a fixed 1e-4 rate is readable on its own scale
    low, high = ax_lr.get_ylim()
    assert high < 1e-3


def test_walkthrough_script(digit_folder, capsys):
    from scripts.train_digits import main

    exit_code = main([
        "--root", str(digit_folder),
        "--train-per-label", "4",
        "--epochs", "1",
        "--batch-size", "4",
        "--device", "cpu",
        "--workers", "0",
        "--no-plots",
    ])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Accuracy:" in out
    assert "Size of first image (H, W, C): (28, 28, 1)" in out


@pytest.mark.parametrize("text, expected", [("750", 750), ("4.0", 4), ("0.75", 0.75)])
def test_train_per_label_flag_accepts_counts_and_fractions(text, expected):
    from scripts.train_digits import build_parser

    value = build_parser().parse_args(["--train-per-label", text]).train_per_label
    assert value == expected
    assert type(value) is type(expected)


@pytest.mark.parametrize("text", ["1.5", "750.9", "0", "-3", "abc"])
def test_train_per_label_flag_rejects_partial_counts(text, capsys):
    from scripts.train_digits import build_parser

    with pytest.raises(SystemExit) as exc_info:
        build_parser().parse_args(["--train-per-label", text])
    assert exc_info.value.code == 2
    assert "--train-per-label" in capsys.readouterr().err


def test_walkthrough_missing_folder_suggests_mnist(tmp_path, capsys):
    from scripts.train_digits import build_parser, main

    assert "--dataset mnist" in build_parser().format_help()
    with pytest.raises(SystemExit) as exc_info:
        main(["--root", str(tmp_path / "missing"), "--device", "cpu", "--no-plots"])
    assert exc_info.value.code == 2
    assert "--dataset mnist" in capsys.readouterr().err
