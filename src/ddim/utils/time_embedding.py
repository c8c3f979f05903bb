import math

import torch
import torch.nn as nn


class SinusoidalEmbedding(nn.Module):
    """Sinusoidal embedding of per-sample noise variances"""

    def __init__(self, embedding_dims, min_freq=1.0, max_freq=1000.0):
        super().__init__()
        if embedding_dims % 2 != 0:
            raise ValueError(f"embedding_dims must be even, got {embedding_dims}")
        # log-spaced frequencies need at least two points
        if embedding_dims < 4:
            raise ValueError(f"embedding_dims must be at least 4, got {embedding_dims}")
        self.embedding_dims = embedding_dims
        half_dim = embedding_dims // 2
        freqs = torch.exp(
            torch.linspace(math.log(min_freq), math.log(max_freq), half_dim)
        )
        self.register_buffer(
            "angular_speeds", (2.0 * math.pi * freqs).view(1, half_dim, 1, 1),
            persistent=False,
        )

    def forward(self, x):
        """x: (batch, 1, 1, 1) -> (batch, embedding_dims, 1, 1)"""
        if x.dim() != 4 or tuple(x.shape[1:]) != (1, 1, 1):
            raise ValueError(
                f"Input shape must be (batch, 1, 1, 1), got {tuple(x.shape)}"
            )
        angles = self.angular_speeds * x
        return torch.cat((torch.sin(angles), torch.cos(angles)), dim=1)
