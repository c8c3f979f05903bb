import torch
from ddim.config import config
from ddim.models.ddim import DenoisingDiffusionImplicitModel
from ddim.sampling import DDIMSampler
from ddim.utils.checkpoint import load_checkpoint, restore_checkpoint
from ddim.utils.logger import logger
from ddim.utils.visualization import save_as_gif, save_as_png


def generate_images(
    checkpoint_path,
    output_dir=config.GENERATE_OUTPUT_DIR,
    image_size=config.IMG_SIZE,
    num_images=config.NUM_IMAGES,
    diffusion_steps=config.DIFFUSION_STEPS,
    seed=config.GENERATE_SEED,
    save_gif=True,
    device=config.DEVICE,
    **model_kwargs,
):
    """Load a checkpoint and render reverse diffusion from pure noise.

    model_kwargs must match the architecture used at training time, otherwise
    restoring the checkpoint fails. Writes one PNG per image and, if save_gif,
    one GIF per image with a frame for every diffusion step.
    """
    model = DenoisingDiffusionImplicitModel(**model_kwargs).to(device)
    restore_checkpoint(model, load_checkpoint(checkpoint_path))
    model.eval()

    logger.info("Generate images.")
    sampler = DDIMSampler(model, diffusion_steps=diffusion_steps, progress=True)
    generator = torch.Generator(device=device).manual_seed(seed)
    images, images_each_step = sampler.sample(
        num_images, image_size, generator=generator, save_each_step=save_gif
    )

    save_as_png(images, output_dir)
    if save_gif:
        logger.info("Save diffusion as GIF.")
        save_as_gif(images_each_step, output_dir)
    return images
