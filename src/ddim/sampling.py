import torch
from tqdm import tqdm
from ddim.config import config


class DDIMSampler:
    def __init__(self, model, diffusion_steps=config.DIFFUSION_STEPS, progress=False):
        if diffusion_steps < 1:
            raise ValueError(f"diffusion_steps must be positive, got {diffusion_steps}")
        self.model = model
        self.diffusion_steps = diffusion_steps
        self.progress = progress

    @torch.no_grad()
    def reverse_diffusion(self, initial_noise, save_each_step=False):
        """Deterministic DDIM reverse process from pure noise down to t=0.

        Returns the final predicted images (normalized space) and, when
        save_each_step is set, the initial noise followed by the prediction
        after every step.
        """
        num_images = initial_noise.shape[0]
        step_size = 1.0 / self.diffusion_steps
        diffusion = self.model.diffusion

        was_training = self.model.training
        self.model.eval()
        try:
            next_noisy_images = initial_noise
            pred_images = None
            images_each_step = [initial_noise] if save_each_step else None
            steps = tqdm(
                range(1, self.diffusion_steps + 1),
                disable=not self.progress,
                leave=False,
            )
            for step in steps:
                noisy_images = next_noisy_images

                diffusion_times = torch.full(
                    (num_images, 1, 1, 1),
                    1.0 - step * step_size,
                    device=initial_noise.device,
                    dtype=initial_noise.dtype,
                )
                noise_rates, signal_rates = diffusion.schedule(diffusion_times)
                pred_noises, pred_images = self.model.denoise(
                    noisy_images, noise_rates, signal_rates
                )

                # Re-noise with the predicted noise instead of fresh noise
                next_noise_rates, next_signal_rates = diffusion.schedule(
                    diffusion_times - step_size
                )
                next_noisy_images = (
                    next_signal_rates * pred_images + next_noise_rates * pred_noises
                )

                if save_each_step:
                    images_each_step.append(pred_images)
        finally:
            self.model.train(was_training)

        return pred_images, images_each_step

    @torch.no_grad()
    def sample(self, num_images, image_size, generator=None, save_each_step=False):
        """Generate images in [0, 1] from standard normal noise"""
        initial_noise = torch.randn(
            (num_images, 3, image_size, image_size),
            generator=generator,
            device=self.model.device,
        )
        pred_images, images_each_step = self.reverse_diffusion(
            initial_noise, save_each_step=save_each_step
        )

        images = self.to_pixels(pred_images)
        if images_each_step is not None:
            images_each_step = [self.to_pixels(x) for x in images_each_step]
        return images, images_each_step

    def to_pixels(self, x):
        return self.model.denormalize(x).clamp(0.0, 1.0)
