import argparse

from ddim.config import config
from ddim.generation import generate_images


def parse_args():
    parser = argparse.ArgumentParser(
        description="Generate images from a DDIM checkpoint"
    )
    parser.add_argument("checkpoint_path", type=str)
    parser.add_argument("--output_dir", type=str, default=config.GENERATE_OUTPUT_DIR)
    parser.add_argument("--image_size", type=int, default=config.IMG_SIZE)
    parser.add_argument("--num_images", type=int, default=config.NUM_IMAGES)
    parser.add_argument("--diffusion_steps", type=int, default=config.DIFFUSION_STEPS)
    parser.add_argument("--seed", type=int, default=config.GENERATE_SEED)
    parser.add_argument(
        "--no_gif", dest="save_gif", action="store_false", help="Skip per-step GIFs"
    )
    parser.add_argument("--device", type=str, default=config.DEVICE)
    # must match the values used at training time
    parser.add_argument("--channels", type=int, nargs="+", default=config.CHANNELS)
    parser.add_argument("--block_depth", type=int, default=config.BLOCK_DEPTH)
    parser.add_argument("--min_freq", type=float, default=config.MIN_FREQ)
    parser.add_argument("--max_freq", type=float, default=config.MAX_FREQ)
    parser.add_argument("--embedding_dims", type=int, default=config.EMBEDDING_DIMS)
    parser.add_argument("--min_signal_rate", type=float, default=config.MIN_SIGNAL_RATE)
    parser.add_argument("--max_signal_rate", type=float, default=config.MAX_SIGNAL_RATE)
    return parser.parse_args()


if __name__ == "__main__":
    generate_images(**vars(parse_args()))
