import torch


class Config:
    # Diffusion
    MIN_SIGNAL_RATE = 0.02
    MAX_SIGNAL_RATE = 0.95

    # Model
    CHANNELS = [32, 64, 96, 128]
    BLOCK_DEPTH = 2
    MIN_FREQ = 1.0
    MAX_FREQ = 1000.0
    EMBEDDING_DIMS = 32
    BN_MOMENTUM = 0.01
    BN_EPS = 1e-5

    # Training
    EPOCHS = 1
    IMG_SIZE = 64
    BATCH_SIZE = 64
    LR = 1e-3
    WEIGHT_DECAY = 1e-4
    BETAS = (0.9, 0.999)
    VAL_DIFFUSION_STEPS = 3
    NUM_VAL_IMAGES = 10
    CHECKPOINT_EVERY = 5
    SEED = 12345
    EVAL_SEED = 0
    NUM_WORKERS = 4
    DATA_DIR = "oxford_flowers_102/"
    OUTPUT_DIR = "./output"

    # Generation
    NUM_IMAGES = 10
    DIFFUSION_STEPS = 80
    GENERATE_SEED = 1234
    GENERATE_OUTPUT_DIR = "./output/generated_images_steps"

    DEVICE = "cuda" if torch.cuda.is_available() else "cpu"


config = Config()
