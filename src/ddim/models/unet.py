import torch
import torch.nn.functional as F
import torch.nn as nn
from ddim.config import config
from ddim.utils.time_embedding import SinusoidalEmbedding


class ResidualBlock(nn.Module):
    def __init__(self, in_channels, out_channels):
        super().__init__()
        self.shortcut = (
            nn.Conv2d(in_channels, out_channels, kernel_size=1)
            if in_channels != out_channels
            else nn.Identity()
        )
        # running statistics only, no learned scale/shift
        self.norm = nn.BatchNorm2d(
            out_channels, affine=False, momentum=config.BN_MOMENTUM, eps=config.BN_EPS
        )
        self.conv1 = nn.Conv2d(out_channels, out_channels, kernel_size=3, padding=1)
        self.conv2 = nn.Conv2d(out_channels, out_channels, kernel_size=3, padding=1)

    def forward(self, x):
        x = self.shortcut(x)
        h = self.norm(x)
        h = F.silu(self.conv1(h))
        h = self.conv2(h)
        return x + h


class DownBlock(nn.Module):
    def __init__(self, in_channels, width, block_depth):
        super().__init__()
        self.residual_blocks = nn.ModuleList(
            [ResidualBlock(in_channels, width)]
            + [ResidualBlock(width, width) for _ in range(block_depth - 1)]
        )
        self.pool = nn.MaxPool2d(kernel_size=2)

    def forward(self, x):
        """Returns the pooled output and one skip per residual block, in order"""
        skips = []
        for block in self.residual_blocks:
            x = block(x)
            skips.append(x)
        return self.pool(x), skips


class UpBlock(nn.Module):
    def __init__(self, in_channels, width, block_depth):
        super().__init__()
        self.residual_blocks = nn.ModuleList(
            [ResidualBlock(in_channels + width, width)]
            + [ResidualBlock(width * 2, width) for _ in range(block_depth - 1)]
        )

    def forward(self, x, skips):
        """Consumes skips from the end of the list (last pushed, first popped)"""
        x = F.interpolate(x, scale_factor=2, mode="bilinear", align_corners=False)
        for block in self.residual_blocks:
            x = torch.cat([x, skips.pop()], dim=1)
            x = block(x)
        return x


class UNet(nn.Module):
    def __init__(
        self,
        channels=config.CHANNELS,
        block_depth=config.BLOCK_DEPTH,
        min_freq=config.MIN_FREQ,
        max_freq=config.MAX_FREQ,
        embedding_dims=config.EMBEDDING_DIMS,
    ):
        super().__init__()
        if len(channels) < 2:
            raise ValueError(f"channels needs at least two widths, got {channels}")
        if block_depth < 1:
            raise ValueError(f"block_depth must be positive, got {block_depth}")
        channels = list(channels)

        self.noise_embedding = SinusoidalEmbedding(embedding_dims, min_freq, max_freq)
        self.conv_in = nn.Conv2d(3, channels[0], kernel_size=1)

        in_channels = [embedding_dims + channels[0]] + channels[:-2]
        self.down_blocks = nn.ModuleList(
            [
                DownBlock(in_ch, width, block_depth)
                for in_ch, width in zip(in_channels, channels[:-1])
            ]
        )

        self.bottleneck = nn.ModuleList(
            [ResidualBlock(channels[-2], channels[-1])]
            + [
                ResidualBlock(channels[-1], channels[-1])
                for _ in range(block_depth - 1)
            ]
        )

        reversed_channels = channels[::-1]
        self.up_blocks = nn.ModuleList(
            [
                UpBlock(in_ch, width, block_depth)
                for in_ch, width in zip(reversed_channels[:-1], reversed_channels[1:])
            ]
        )

        # Zero init so the untrained network predicts zero noise
        self.conv_out = nn.Conv2d(channels[0], 3, kernel_size=1)
        nn.init.zeros_(self.conv_out.weight)
        nn.init.zeros_(self.conv_out.bias)

    def forward(self, noisy_images, noise_variances):
        """
        noisy_images: (batch, 3, H, W)
        noise_variances: (batch, 1, 1, 1)
        returns predicted noise, (batch, 3, H, W)
        """
        height, width = noisy_images.shape[-2:]
        factor = 2 ** len(self.down_blocks)
        if height % factor != 0 or width % factor != 0:
            raise ValueError(
                f"Image size {height}x{width} is not divisible by {factor}"
            )
        if noise_variances.shape[0] != noisy_images.shape[0]:
            raise ValueError(
                f"Batch mismatch: {noisy_images.shape[0]} images, "
                f"{noise_variances.shape[0]} noise variances"
            )

        emb = self.noise_embedding(noise_variances)
        emb = F.interpolate(emb, size=(height, width), mode="nearest")

        x = self.conv_in(noisy_images)
        x = torch.cat([x, emb], dim=1)

        skip_stack = []
        for down in self.down_blocks:
            x, skips = down(x)
            skip_stack.append(skips)

        for block in self.bottleneck:
            x = block(x)

        for up in self.up_blocks:
            x = up(x, skip_stack.pop())

        return self.conv_out(x)
