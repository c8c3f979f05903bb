import os

from PIL import Image
from torch.utils.data import DataLoader, Dataset
from torchvision import transforms
from torchvision.transforms import functional as TF
from ddim.config import config
from ddim.utils.logger import logger

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp")


def center_crop_square(img):
    """Crop the largest centered square"""
    return TF.center_crop(img, min(img.size))


class ImageFolderDataset(Dataset):
    """Square RGB images in [0, 1] read from a flat directory"""

    def __init__(self, data_dir, image_size=config.IMG_SIZE, use_cache=True):
        self.image_files = sorted(
            os.path.join(data_dir, f)
            for f in os.listdir(data_dir)
            if f.lower().endswith(IMAGE_EXTENSIONS)
        )
        if not self.image_files:
            raise RuntimeError(f"No images found in {data_dir}")

        self.transform = transforms.Compose(
            [
                center_crop_square,
                transforms.Resize((image_size, image_size), antialias=True),
                transforms.ToTensor(),
            ]
        )
        self.use_cache = use_cache
        self.cache = [None] * len(self.image_files)

    def __len__(self):
        return len(self.image_files)

    def __getitem__(self, index):
        """index -> (3, image_size, image_size) float tensor"""
        if self.use_cache and self.cache[index] is not None:
            return self.cache[index]

        with Image.open(self.image_files[index]) as img:
            image = self.transform(img.convert("RGB"))
        if self.use_cache:
            self.cache[index] = image
        return image


def get_image_loader(
    data_dir=config.DATA_DIR,
    image_size=config.IMG_SIZE,
    batch_size=config.BATCH_SIZE,
    num_workers=config.NUM_WORKERS,
    generator=None,
):
    dataset = ImageFolderDataset(data_dir, image_size=image_size)
    logger.info(f"Found {len(dataset)} images in {data_dir}")
    return DataLoader(
        dataset,
        batch_size=batch_size,
        shuffle=True,
        drop_last=True,
        num_workers=num_workers,
        persistent_workers=num_workers > 0,  # keeps per-worker image caches
        generator=generator,
    )
