import os

import torch
from ddim.utils.logger import logger

CHECKPOINT_FIELDS = ("parameters", "state", "optimizer", "epoch", "hyperparameters")


def save_checkpoint(model, optimizer, output_dir, epoch):
    """Write parameters, running state and optimizer state for one epoch"""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"checkpoint_{epoch}.pt")
    persistent = model.state_dict().keys()
    checkpoint = {
        "parameters": {
            name: param.detach().cpu().clone()
            for name, param in model.named_parameters()
        },
        "state": {
            name: buffer.detach().cpu().clone()
            for name, buffer in model.named_buffers()
            if name in persistent
        },
        "optimizer": _to_cpu(optimizer.state_dict()),
        "epoch": epoch,
        "hyperparameters": dict(model.hyperparameters),
    }
    torch.save(checkpoint, path)
    logger.info(f"Checkpoint saved to {path}")
    return path


def load_checkpoint(path):
    """Read a checkpoint written by save_checkpoint"""
    checkpoint = torch.load(path, map_location="cpu", weights_only=True)
    if not isinstance(checkpoint, dict):
        raise ValueError(f"Corrupt checkpoint {path}: expected a mapping")
    missing = [field for field in CHECKPOINT_FIELDS if field not in checkpoint]
    if missing:
        raise ValueError(f"Corrupt checkpoint {path}: missing fields {missing}")
    return checkpoint


def restore_checkpoint(model, checkpoint, optimizer=None):
    """Load a checkpoint into model (and optimizer), failing on any mismatch"""
    if checkpoint["hyperparameters"] != model.hyperparameters:
        raise ValueError(
            "Checkpoint hyperparameters do not match the model: "
            f"{checkpoint['hyperparameters']} != {model.hyperparameters}"
        )
    model.load_state_dict(
        {**checkpoint["parameters"], **checkpoint["state"]}, strict=True
    )
    if optimizer is not None:
        optimizer.load_state_dict(checkpoint["optimizer"])
    return checkpoint["epoch"]


def _to_cpu(value):
    if isinstance(value, torch.Tensor):
        return value.detach().cpu().clone()
    if isinstance(value, dict):
        return {key: _to_cpu(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_to_cpu(item) for item in value)
    return value
