import os

import torch
from tqdm import tqdm
from ddim.config import config
from ddim.data.loaders import get_image_loader
from ddim.models.ddim import DenoisingDiffusionImplicitModel, compute_loss
from ddim.sampling import DDIMSampler
from ddim.utils.checkpoint import load_checkpoint, restore_checkpoint, save_checkpoint
from ddim.utils.logger import logger
from ddim.utils.visualization import save_as_png


def build_optimizer(
    model, learning_rate=config.LR, weight_decay=config.WEIGHT_DECAY, betas=config.BETAS
):
    """AdamW: adaptive moments with decoupled weight decay"""
    return torch.optim.AdamW(
        model.parameters(), lr=learning_rate, betas=betas, weight_decay=weight_decay
    )


class DDIMTrainer:
    def __init__(
        self,
        model,
        optimizer,
        dataloader,
        output_dir=config.OUTPUT_DIR,
        epochs=config.EPOCHS,
        image_size=config.IMG_SIZE,
        val_diffusion_steps=config.VAL_DIFFUSION_STEPS,
        num_val_images=config.NUM_VAL_IMAGES,
        checkpoint_every=config.CHECKPOINT_EVERY,
        seed=config.SEED,
        eval_seed=config.EVAL_SEED,
        device=config.DEVICE,
        debug=False,
        progress=True,
    ):
        """
        Args:
            model: the DDIM to train, already on device
            optimizer: optimizer over the model parameters
            dataloader: yields (batch, 3, H, W) image batches in [0, 1]
            output_dir: root for generated_images/ and ckpt/
            epochs: last epoch to run
            image_size: side of the validation samples
            val_diffusion_steps: reverse diffusion steps for validation samples
            num_val_images: validation samples written after each epoch
            checkpoint_every: checkpoint period in epochs
            seed: seed of the training random stream (noise and diffusion times)
            eval_seed: seed replayed before every validation generation
            device: torch device of the model
            debug: stop each epoch after one batch
            progress: show a progress bar over batches
        """
        self.model = model
        self.optimizer = optimizer
        self.dataloader = dataloader
        self.epochs = epochs
        self.image_size = image_size
        self.num_val_images = num_val_images
        self.checkpoint_every = checkpoint_every
        self.eval_seed = eval_seed
        self.device = device
        self.debug = debug
        self.progress = progress

        self.image_dir = os.path.join(output_dir, "generated_images")
        self.ckpt_dir = os.path.join(output_dir, "ckpt")
        os.makedirs(self.image_dir, exist_ok=True)
        os.makedirs(self.ckpt_dir, exist_ok=True)

        self.generator = torch.Generator(device=device).manual_seed(seed)
        self.sampler = DDIMSampler(model, diffusion_steps=val_diffusion_steps)

    def train_step(self, images, generator=None):
        loss = compute_loss(self.model, images, generator)

        self.optimizer.zero_grad()
        loss.backward()
        self.optimizer.step()

        return loss.item()

    def train_epoch(self, epoch, generator=None):
        """Run one pass over the data and return the mean loss"""
        if generator is None:
            generator = self.generator

        self.model.train()
        losses = []
        progress_bar = tqdm(self.dataloader, leave=False, disable=not self.progress)
        for images in progress_bar:
            images = images.to(self.device)
            losses.append(self.train_step(images, generator))
            progress_bar.set_description(
                f"Epoch: {epoch} Loss: {sum(losses) / len(losses):.4f}"
            )
            if self.debug:
                break

        if not losses:
            raise RuntimeError("The data loader produced no batches")
        return sum(losses) / len(losses)

    def evaluate(self, epoch):
        """Generate validation samples from the fixed evaluation seed"""
        generator = torch.Generator(device=self.device).manual_seed(self.eval_seed)
        images, _ = self.sampler.sample(
            self.num_val_images, self.image_size, generator=generator
        )
        save_as_png(images, self.image_dir, epoch)
        return images

    def train(self, start_epoch=1):
        """Train epochs start_epoch..epochs and return the mean loss of each"""
        epoch_losses = []
        for epoch in range(start_epoch, self.epochs + 1):
            loss = self.train_epoch(epoch)
            epoch_losses.append(loss)
            logger.info(f"Epoch {epoch}, Avg Loss: {loss:.4f}")

            self.evaluate(epoch)
            if epoch % self.checkpoint_every == 0:
                save_checkpoint(self.model, self.optimizer, self.ckpt_dir, epoch)

        return epoch_losses


def train(
    data_dir=config.DATA_DIR,
    output_dir=config.OUTPUT_DIR,
    epochs=config.EPOCHS,
    image_size=config.IMG_SIZE,
    batch_size=config.BATCH_SIZE,
    learning_rate=config.LR,
    weight_decay=config.WEIGHT_DECAY,
    val_diffusion_steps=config.VAL_DIFFUSION_STEPS,
    checkpoint_every=config.CHECKPOINT_EVERY,
    num_workers=config.NUM_WORKERS,
    seed=config.SEED,
    debug=False,
    resume=None,
    device=config.DEVICE,
    **model_kwargs,
):
    """Build the data loader, DDIM and optimizer, then train.

    model_kwargs are forwarded to DenoisingDiffusionImplicitModel (channels,
    block_depth, min_freq, max_freq, embedding_dims, min_signal_rate,
    max_signal_rate). resume is an optional checkpoint path to continue from.
    """
    logger.info("Preparing dataset.")
    dataloader = get_image_loader(
        data_dir,
        image_size=image_size,
        batch_size=batch_size,
        num_workers=num_workers,
        generator=torch.Generator().manual_seed(seed),
    )

    logger.info("Preparing DDIM.")
    model = DenoisingDiffusionImplicitModel(**model_kwargs).to(device)
    optimizer = build_optimizer(model, learning_rate, weight_decay)
    logger.info(f"Training on {device}.")

    start_epoch = 1
    if resume is not None:
        last_epoch = restore_checkpoint(model, load_checkpoint(resume), optimizer)
        start_epoch = last_epoch + 1
        logger.info(f"Resumed from {resume} at epoch {last_epoch}.")

    trainer = DDIMTrainer(
        model,
        optimizer,
        dataloader,
        output_dir=output_dir,
        epochs=epochs,
        image_size=image_size,
        val_diffusion_steps=val_diffusion_steps,
        checkpoint_every=checkpoint_every,
        seed=seed,
        device=device,
        debug=debug,
    )
    return trainer.train(start_epoch=start_epoch)
