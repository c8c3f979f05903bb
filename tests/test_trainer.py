"""
Test DDIMTrainer and the generation driver on synthetic data with Python's unittest
"""
import os
import tempfile
import unittest

import torch
from torch.utils.data import DataLoader, Dataset
from ddim.generation import generate_images
from ddim.models.ddim import DenoisingDiffusionImplicitModel
from ddim.trainer import DDIMTrainer, build_optimizer

MODEL_KWARGS = dict(
    channels=[16, 32], block_depth=1, embedding_dims=16, min_signal_rate=0.3
)


class ConstantColorDataset(Dataset):
    def __init__(self, length=256, image_size=8, value=0.5):
        self.length = length
        self.image = torch.full((3, image_size, image_size), value)

    def __len__(self):
        return self.length

    def __getitem__(self, index):
        return self.image


class DDIMTrainerTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.output_dir = self.tmp.name

        torch.manual_seed(0)
        self.model = DenoisingDiffusionImplicitModel(**MODEL_KWARGS)
        self.optimizer = build_optimizer(self.model, learning_rate=1e-3)
        self.dataloader = DataLoader(
            ConstantColorDataset(), batch_size=16, shuffle=False, drop_last=True
        )

    def tearDown(self):
        self.tmp.cleanup()

    def make_trainer(self, **kwargs):
        params = dict(
            output_dir=self.output_dir,
            image_size=8,
            val_diffusion_steps=2,
            num_val_images=3,
            device="cpu",
            progress=False,
        )
        params.update(kwargs)
        return DDIMTrainer(self.model, self.optimizer, self.dataloader, **params)

    def test_loss_decreases_on_constant_images(self):
        """Mean epoch loss decreases monotonically over five epochs"""
        trainer = self.make_trainer()
        losses = []
        for epoch in range(1, 6):
            # Replay the same noise and times so epochs differ only by the weights
            generator = torch.Generator().manual_seed(0)
            losses.append(trainer.train_epoch(epoch, generator))
        for previous, current in zip(losses, losses[1:]):
            self.assertLess(current, previous)

    def test_loss_trends_down_on_training_stream(self):
        """Five epochs driven by the trainer's own generator lower the loss"""
        trainer = self.make_trainer(epochs=5, checkpoint_every=5, seed=0)
        losses = trainer.train()
        self.assertEqual(len(losses), 5)
        self.assertLess(losses[-1], losses[0])
        self.assertLess(sum(losses[3:]) / 2, sum(losses[:2]) / 2)

    def test_train_step_updates_parameters(self):
        trainer = self.make_trainer()
        before = self.model.unet.conv_out.weight.detach().clone()
        images = torch.rand(4, 3, 8, 8)
        loss = trainer.train_step(images, torch.Generator().manual_seed(0))
        self.assertIsInstance(loss, float)
        self.assertFalse(torch.equal(before, self.model.unet.conv_out.weight))

    def test_debug_runs_one_batch(self):
        trainer = self.make_trainer(debug=True)
        trainer.train_epoch(1)
        self.assertEqual(self.model.normalizer.num_batches_tracked.item(), 1)

    def test_evaluation_is_reproducible_across_epochs(self):
        """The evaluation seed is replayed, independent of the training stream"""
        trainer = self.make_trainer()
        first = trainer.evaluate(1)
        trainer.generator.manual_seed(99)
        second = trainer.evaluate(2)
        self.assertTrue(torch.equal(first, second))
        self.assertTrue(self.model.training)

    def test_train_writes_samples_and_checkpoints(self):
        trainer = self.make_trainer(epochs=4, checkpoint_every=2, debug=True)
        losses = trainer.train()
        self.assertEqual(len(losses), 4)

        image_dir = os.path.join(self.output_dir, "generated_images")
        for epoch in range(1, 5):
            for i in range(1, 4):
                self.assertTrue(
                    os.path.isfile(os.path.join(image_dir, f"img_{i}_epoch{epoch}.png"))
                )
        ckpt_dir = os.path.join(self.output_dir, "ckpt")
        self.assertEqual(
            sorted(os.listdir(ckpt_dir)), ["checkpoint_2.pt", "checkpoint_4.pt"]
        )

    def test_resume_continues_epoch_count(self):
        trainer = self.make_trainer(epochs=3, debug=True)
        losses = trainer.train(start_epoch=3)
        self.assertEqual(len(losses), 1)

    def test_empty_loader_fails(self):
        self.dataloader = DataLoader(
            ConstantColorDataset(length=4), batch_size=16, drop_last=True
        )
        trainer = self.make_trainer()
        with self.assertRaises(RuntimeError):
            trainer.train_epoch(1)


class GenerateImagesTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        torch.manual_seed(0)
        model = DenoisingDiffusionImplicitModel(**MODEL_KWARGS)
        optimizer = build_optimizer(model)
        dataloader = DataLoader(ConstantColorDataset(length=32), batch_size=16)
        trainer = DDIMTrainer(
            model,
            optimizer,
            dataloader,
            output_dir=self.tmp.name,
            epochs=1,
            image_size=8,
            val_diffusion_steps=2,
            num_val_images=2,
            checkpoint_every=1,
            device="cpu",
            progress=False,
        )
        trainer.train()
        self.checkpoint_path = os.path.join(self.tmp.name, "ckpt", "checkpoint_1.pt")

    def tearDown(self):
        self.tmp.cleanup()

    def test_generates_pngs_and_gifs(self):
        output_dir = os.path.join(self.tmp.name, "generated")
        images = generate_images(
            self.checkpoint_path,
            output_dir=output_dir,
            image_size=8,
            num_images=2,
            diffusion_steps=3,
            device="cpu",
            **MODEL_KWARGS,
        )
        self.assertEqual(images.shape, (2, 3, 8, 8))
        self.assertTrue(torch.all((images >= 0.0) & (images <= 1.0)))
        self.assertEqual(
            sorted(os.listdir(output_dir)),
            ["img_1.gif", "img_1.png", "img_2.gif", "img_2.png"],
        )

    def test_same_seed_same_images(self):
        kwargs = dict(
            image_size=8,
            num_images=2,
            diffusion_steps=2,
            seed=5,
            save_gif=False,
            device="cpu",
            **MODEL_KWARGS,
        )
        first = generate_images(
            self.checkpoint_path, os.path.join(self.tmp.name, "a"), **kwargs
        )
        second = generate_images(
            self.checkpoint_path, os.path.join(self.tmp.name, "b"), **kwargs
        )
        self.assertTrue(torch.equal(first, second))

    def test_hyperparameter_mismatch_fails(self):
        with self.assertRaises(ValueError):
            generate_images(
                self.checkpoint_path,
                os.path.join(self.tmp.name, "bad"),
                image_size=8,
                num_images=1,
                diffusion_steps=1,
                device="cpu",
                channels=[16, 24],
                block_depth=1,
                embedding_dims=16,
                min_signal_rate=0.3,
            )


if __name__ == "__main__":
    unittest.main()
