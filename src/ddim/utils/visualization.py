import os

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
from torchvision.utils import save_image
from tqdm import tqdm


def save_as_png(images, output_dir, epoch=None):
    """images: (batch, 3, H, W) in [0, 1] -> img_{i}_epoch{epoch}.png, 1-indexed"""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for i, img in enumerate(images.detach().cpu(), start=1):
        suffix = "" if epoch is None else f"_epoch{epoch}"
        path = os.path.join(output_dir, f"img_{i}{suffix}.png")
        save_image(img, path)
        paths.append(path)
    return paths


def save_as_gif(images_each_step, output_dir, fps=10):
    """Write one GIF per image, one frame per diffusion step"""
    os.makedirs(output_dir, exist_ok=True)
    frames_per_image = [x.detach().cpu() for x in images_each_step]
    num_images = frames_per_image[0].shape[0]

    paths = []
    for image_id in tqdm(range(num_images), desc="Saving GIFs"):
        frames = [x[image_id].permute(1, 2, 0).numpy() for x in frames_per_image]
        path = os.path.join(output_dir, f"img_{image_id + 1}.gif")
        _save_gif(frames, path, fps)
        paths.append(path)
    return paths


def _save_gif(frames, path, fps):
    fig, ax = plt.subplots(figsize=(3, 3))
    ax.axis("off")
    artist = ax.imshow(frames[0])
    title = ax.set_title("step=1")

    def update(step):
        artist.set_data(frames[step])
        title.set_text(f"step={step + 1}")
        return artist, title

    anim = FuncAnimation(fig, update, frames=len(frames), blit=False)
    anim.save(path, writer=PillowWriter(fps=fps))
    plt.close(fig)
