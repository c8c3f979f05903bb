import torch

from ddim.config import config
from ddim.utils.schedulers import offset_cosine_schedule


class ForwardDiffusion:
    def __init__(
        self,
        min_signal_rate=config.MIN_SIGNAL_RATE,
        max_signal_rate=config.MAX_SIGNAL_RATE,
    ):
        if not 0.0 < min_signal_rate < max_signal_rate < 1.0:
            raise ValueError(
                "Signal rates must satisfy 0 < min_signal_rate < max_signal_rate < 1, "
                f"got min={min_signal_rate}, max={max_signal_rate}"
            )
        self.min_signal_rate = min_signal_rate
        self.max_signal_rate = max_signal_rate

    def schedule(self, diffusion_times):
        """diffusion_times: (batch, 1, 1, 1) -> (noise_rates, signal_rates)"""
        return offset_cosine_schedule(
            diffusion_times, self.min_signal_rate, self.max_signal_rate
        )

    def sample_times(self, batch_size, generator=None, device=None, dtype=None):
        """Uniform diffusion times in [0, 1), one per sample"""
        return torch.rand(
            (batch_size, 1, 1, 1), generator=generator, device=device, dtype=dtype
        )

    def q_sample(self, x_start, diffusion_times, noise=None):
        """Corrupt x_start with noise at the given diffusion times"""
        if noise is None:
            noise = torch.randn_like(x_start)

        noise_rates, signal_rates = self.schedule(diffusion_times)
        return signal_rates * x_start + noise_rates * noise
