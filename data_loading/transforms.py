import torch
from torchvision import transforms

def digit_transform(mean: torch.Tensor, std: torch.Tensor, image_size: int) -> transforms.Compose:
    mean_list = mean.tolist()
    std_list = std.tolist()
    return transforms.Compose([
        transforms.Grayscale(num_output_channels=1),
        transforms.Resize((image_size, image_size)),
        transforms.ToTensor(),
        transforms.Normalize(mean_list, std_list),
    ])


def digit_augment(mean: torch.Tensor, std: torch.Tensor, image_size: int) -> transforms.Compose:
    # no horizontal flip: mirrored digits are different glyphs
    mean_list = mean.tolist()
    std_list = std.tolist()
    return transforms.Compose([
        transforms.Grayscale(num_output_channels=1),
        transforms.Resize((image_size, image_size)),
        transforms.RandomCrop(image_size, padding=2),
        transforms.RandomRotation(degrees=8, fill=0),
        transforms.ToTensor(),
        transforms.Normalize(mean_list, std_list),
    ])


def stats_transform(image_size: int) -> transforms.Compose:
    return transforms.Compose([
        transforms.Grayscale(num_output_channels=1),
        transforms.Resize((image_size, image_size)),
        transforms.ToTensor(),
    ])
