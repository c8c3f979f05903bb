import torch
import torch.nn as nn
import torch.nn.functional as F
from ddim.config import config
from ddim.diffusion.forward import ForwardDiffusion
from ddim.models.unet import UNet


class DenoisingDiffusionImplicitModel(nn.Module):
    """Input normalizer, diffusion schedule and UNet denoiser.

    Running statistics of the normalizer and of every residual block are
    updated only in train mode (``model.train()``); ``model.eval()`` freezes
    them, which is the only mode-dependent behavior of the model.
    """

    def __init__(
        self,
        channels=config.CHANNELS,
        block_depth=config.BLOCK_DEPTH,
        min_freq=config.MIN_FREQ,
        max_freq=config.MAX_FREQ,
        embedding_dims=config.EMBEDDING_DIMS,
        min_signal_rate=config.MIN_SIGNAL_RATE,
        max_signal_rate=config.MAX_SIGNAL_RATE,
    ):
        super().__init__()
        self.hyperparameters = {
            "channels": list(channels),
            "block_depth": block_depth,
            "min_freq": float(min_freq),
            "max_freq": float(max_freq),
            "embedding_dims": embedding_dims,
            "min_signal_rate": float(min_signal_rate),
            "max_signal_rate": float(max_signal_rate),
        }
        self.diffusion = ForwardDiffusion(min_signal_rate, max_signal_rate)
        self.unet = UNet(
            channels=channels,
            block_depth=block_depth,
            min_freq=min_freq,
            max_freq=max_freq,
            embedding_dims=embedding_dims,
        )
        self.normalizer = nn.BatchNorm2d(
            3, affine=False, momentum=config.BN_MOMENTUM, eps=config.BN_EPS
        )

    @property
    def device(self):
        return next(self.parameters()).device

    def forward(self, images, generator=None):
        """
        images: (batch, 3, H, W) in [0, 1]
        returns (noises, normalized images, predicted noises, predicted images)
        """
        images = self.normalizer(images)

        noises = torch.randn(
            images.shape, generator=generator, device=images.device, dtype=images.dtype
        )
        diffusion_times = self.diffusion.sample_times(
            images.shape[0],
            generator=generator,
            device=images.device,
            dtype=images.dtype,
        )
        noise_rates, signal_rates = self.diffusion.schedule(diffusion_times)

        noisy_images = signal_rates * images + noise_rates * noises

        pred_noises, pred_images = self.denoise(noisy_images, noise_rates, signal_rates)
        return noises, images, pred_noises, pred_images

    def denoise(self, noisy_images, noise_rates, signal_rates):
        """Predict the noise and recover the clean image estimate"""
        pred_noises = self.unet(noisy_images, noise_rates**2)
        pred_images = (noisy_images - pred_noises * noise_rates) / signal_rates
        return pred_noises, pred_images

    def denormalize(self, x):
        """Invert the input normalization using its running statistics"""
        mean = self.normalizer.running_mean.view(1, -1, 1, 1)
        var = self.normalizer.running_var.view(1, -1, 1, 1)
        std = torch.sqrt(var + self.normalizer.eps)
        return std * x + mean


def compute_loss(model, images, generator=None):
    """Mean absolute error on both the noise and the image prediction"""
    noises, images, pred_noises, pred_images = model(images, generator)
    noise_loss = F.l1_loss(pred_noises, noises)
    image_loss = F.l1_loss(pred_images, images)
    return noise_loss + image_loss
