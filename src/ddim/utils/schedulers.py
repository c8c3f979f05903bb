import math

import torch


def offset_cosine_schedule(diffusion_times, min_signal_rate, max_signal_rate):
    """Map diffusion times in [0, 1] to (noise_rates, signal_rates).

    The angle is interpolated between acos(max_signal_rate) at t=0 and
    acos(min_signal_rate) at t=1, so noise_rate**2 + signal_rate**2 == 1.
    """
    start_angle = math.acos(max_signal_rate)
    end_angle = math.acos(min_signal_rate)

    diffusion_angles = start_angle + (end_angle - start_angle) * diffusion_times

    signal_rates = torch.cos(diffusion_angles)
    noise_rates = torch.sin(diffusion_angles)
    return noise_rates, signal_rates
