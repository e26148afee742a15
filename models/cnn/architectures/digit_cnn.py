import torch
import torch.nn as nn
import torch.nn.functional as F


class DigitCNN(nn.Module):
    """
    Image input (C×H×W) → Conv(C→20, 5×5, stride=1, padding=0) → ReLU
    → MaxPool(2×2, stride 2) → Flatten → Linear(20·12·12 → 10)
    For 28×28 grayscale digits: (N, 1, 28, 28) → (N, 10)

    Softmax and the classification output are not layers here: forward returns
    logits for CrossEntropyLoss, predict_proba/classify apply them at inference.
    """
    def __init__(
        self,
        input_size: int = 28,
        num_classes: int = 10,
        input_channels: int = 1,
        filter_size: int = 5,
        num_filters: int = 20,
        pool_size: int = 2,
        pool_stride: int = 2,
        init: str = "kaiming",
    ):
        super().__init__()

        if num_classes < 1:
            raise ValueError(f"num_classes must be >= 1, got {num_classes}")

        self.input_size = input_size
        self.input_channels = input_channels

        feature_size = input_size
        if feature_size < filter_size:
            raise ValueError(f"input_size {input_size} is smaller than filter_size {filter_size}")

        self.conv1 = nn.Conv2d(in_channels=input_channels, out_channels=num_filters, kernel_size=filter_size, stride=1, padding=0)
        feature_size = (feature_size - filter_size) + 1  # after conv layer

        if feature_size < pool_size:
            raise ValueError(f"Feature map {feature_size}x{feature_size} after conv is smaller than pool_size {pool_size}")

        self.pool = nn.MaxPool2d(kernel_size=pool_size, stride=pool_stride)
        feature_size = (feature_size - pool_size) // pool_stride + 1  # after pool layer

        self.feature_size = feature_size
        self.fc1 = nn.Linear(num_filters * feature_size * feature_size, num_classes)

        if init == "kaiming":
            self.apply(self._init_weights)
        elif init != "default":
            raise ValueError(f"Unknown init '{init}'.")

    @staticmethod
    def _init_weights(m):

        # He/Kaiming init for ReLU layers

        if isinstance(m, nn.Conv2d):
            nn.init.kaiming_normal_(m.weight, nonlinearity='relu')
            if m.bias is not None:
                nn.init.zeros_(m.bias)

        elif isinstance(m, nn.Linear):
            nn.init.kaiming_uniform_(m.weight, nonlinearity='relu')
            if m.bias is not None:
                nn.init.zeros_(m.bias)

    def forward(self, x):

        # starts at (N, 1, 28, 28)
        x = self.conv1(x)             # (N, 20, 24, 24)
        x = F.relu(x)
        x = self.pool(x)              # (N, 20, 12, 12)

        x = torch.flatten(x, 1)       # (N, 20*12*12)

        logits = self.fc1(x)          # (N, 10)

        return logits

    @torch.no_grad()
    def predict_proba(self, x):
        return F.softmax(self(x), dim=1)

    @torch.no_grad()
    def classify(self, x):
        return self(x).argmax(dim=1)
