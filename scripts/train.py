import argparse

from ddim.config import config
from ddim.trainer import train


def parse_args():
    parser = argparse.ArgumentParser(description="Train a DDIM on a folder of images")
    parser.add_argument("--data_dir", type=str, default=config.DATA_DIR)
    parser.add_argument("--output_dir", type=str, default=config.OUTPUT_DIR)
    parser.add_argument("--epochs", type=int, default=config.EPOCHS)
    parser.add_argument("--image_size", type=int, default=config.IMG_SIZE)
    parser.add_argument("--batch_size", type=int, default=config.BATCH_SIZE)
    parser.add_argument("--learning_rate", type=float, default=config.LR)
    parser.add_argument("--weight_decay", type=float, default=config.WEIGHT_DECAY)
    parser.add_argument(
        "--val_diffusion_steps", type=int, default=config.VAL_DIFFUSION_STEPS
    )
    parser.add_argument(
        "--checkpoint_every",
        type=int,
        default=config.CHECKPOINT_EVERY,
        help="Save a checkpoint every N epochs",
    )
    parser.add_argument("--num_workers", type=int, default=config.NUM_WORKERS)
    parser.add_argument("--seed", type=int, default=config.SEED)
    parser.add_argument("--resume", type=str, default=None, help="Checkpoint to resume")
    parser.add_argument(
        "--debug", action="store_true", help="Train on one batch per epoch"
    )
    parser.add_argument("--device", type=str, default=config.DEVICE)
    # model hyper params
    parser.add_argument("--channels", type=int, nargs="+", default=config.CHANNELS)
    parser.add_argument("--block_depth", type=int, default=config.BLOCK_DEPTH)
    parser.add_argument("--min_freq", type=float, default=config.MIN_FREQ)
    parser.add_argument("--max_freq", type=float, default=config.MAX_FREQ)
    parser.add_argument("--embedding_dims", type=int, default=config.EMBEDDING_DIMS)
    parser.add_argument("--min_signal_rate", type=float, default=config.MIN_SIGNAL_RATE)
    parser.add_argument("--max_signal_rate", type=float, default=config.MAX_SIGNAL_RATE)
    return parser.parse_args()


if __name__ == "__main__":
    train(**vars(parse_args()))
