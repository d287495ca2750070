import unittest
import numpy as np
from dataclasses import replace
from halidepy.application.engine import EmulsionEngine
from halidepy.domain.models import SimulationConfig
from halidepy.features.development.logic import develop_emulsion
from halidepy.features.development.models import Developer, DevelopmentConfig
from halidepy.features.emulsion.logic import generate
from halidepy.features.emulsion.models import EmulsionConfig, PerPixelGrid
from halidepy.features.exposure.logic import expose_emulsion
from halidepy.features.exposure.models import ExposureConfig
from halidepy.features.halation.models import HalationConfig
from halidepy.features.render.logic import render

# One saturated grain per pixel: a single absorbed photon activates it
SINGLE_GRAIN_EMULSION = EmulsionConfig(
    strategy="grid",
    samples_per_pixel=1,
    radius_range=(1.0, 1.0001),
    grid_latent_threshold=1,
    grid_absorption_probability=1.0,
)

# f = 0.1 * 1 * 1.0 -> D = 0.1 + 0.7 * log10(101) -> 67
EXPECTED_SINGLE_PIXEL = 67


class TestSinglePixelPipeline(unittest.TestCase):
    def test_stage_functions(self) -> None:
        field = np.ones((1, 1), dtype=np.float32)
        emulsion = generate(
            1, 1, field, PerPixelGrid(1), np.random.SeedSequence(0),
            SINGLE_GRAIN_EMULSION, exposure_time=10.0,
        )
        # The grid exposes while generating; a second pass leaves it alone
        expose_emulsion(emulsion, field, 10.0, np.random.SeedSequence(1))
        self.assertEqual(emulsion.silver_count.tolist(), [1])
        self.assertTrue(emulsion.activated[0])

        develop_emulsion(emulsion, Developer(strength=0.1, max_development=1.0), 1.0)
        self.assertAlmostEqual(float(emulsion.developed_fraction[0]), 0.1)

        out = render(emulsion, 1, 1)
        self.assertEqual(out.tolist(), [[EXPECTED_SINGLE_PIXEL]])

    def test_engine(self) -> None:
        settings = SimulationConfig(
            seed=5,
            emulsion=SINGLE_GRAIN_EMULSION,
            halation=HalationConfig(reflection_factor=0.0),
            exposure=ExposureConfig(exposure_time=10.0),
            development=DevelopmentConfig(strength=0.1, development_dt=1.0),
        )
        out, metrics = EmulsionEngine().process(np.ones((1, 1), dtype=np.float32), settings)

        self.assertEqual(out.tolist(), [[EXPECTED_SINGLE_PIXEL]])
        self.assertEqual(metrics["grain_count"], 1)
        self.assertEqual(metrics["activated_grains"], 1)


class TestEmulsionEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = EmulsionEngine()
        self.img = np.random.default_rng(0).random((16, 24)).astype(np.float32)
        self.settings = SimulationConfig(
            seed=123, emulsion=EmulsionConfig(num_grains=3000, chunk_size=500)
        )

    def test_output_shape_and_metrics(self) -> None:
        out, metrics = self.engine.process(self.img, self.settings)

        self.assertEqual(out.shape, (16, 24))
        self.assertEqual(out.dtype, np.uint8)
        for key in (
            "halation_energy_added",
            "grain_count",
            "activated_grains",
            "developed_grains",
            "mean_developed_fraction",
        ):
            self.assertIn(key, metrics)
        self.assertEqual(metrics["grain_count"], 3000)
        self.assertGreater(metrics["halation_energy_added"], 0.0)
        self.assertIsNotNone(self.engine.last_context)

    def test_rgba_output(self) -> None:
        settings = replace(self.settings, render=replace(self.settings.render, channels=4))
        out, _ = self.engine.process(self.img, settings)
        self.assertEqual(out.shape, (16, 24, 4))
        self.assertTrue(np.all(out[..., 3] == 255))

    def test_seeded_runs_are_reproducible(self) -> None:
        a, _ = EmulsionEngine().process(self.img, self.settings)
        b, _ = EmulsionEngine().process(self.img, self.settings)
        c, _ = EmulsionEngine().process(self.img, replace(self.settings, seed=124))

        np.testing.assert_array_equal(a, b)
        self.assertFalse(np.array_equal(a, c))

    def test_no_grains_renders_white(self) -> None:
        settings = replace(self.settings, emulsion=EmulsionConfig(num_grains=0))
        out, metrics = self.engine.process(self.img, settings)
        self.assertTrue(np.all(out == 255))
        self.assertEqual(metrics["activated_grains"], 0)

        settings = replace(
            self.settings, emulsion=EmulsionConfig(strategy="grid", samples_per_pixel=0)
        )
        out, _ = self.engine.process(self.img, settings)
        self.assertTrue(np.all(out == 255))

    def test_halation_field_is_cached(self) -> None:
        self.engine.process(self.img, self.settings, source_hash="scan-a")
        first = self.engine.cache.halation
        self.assertIsNotNone(first)

        # Stochastic settings change, halation does not
        settings = replace(self.settings, seed=99)
        self.engine.process(self.img, settings, source_hash="scan-a")
        self.assertEqual(id(self.engine.cache.halation), id(first))

        # New halation parameters recompute
        settings = replace(self.settings, halation=HalationConfig(reflection_factor=0.5))
        self.engine.process(self.img, settings, source_hash="scan-a")
        self.assertNotEqual(id(self.engine.cache.halation), id(first))

    def test_source_change_invalidates_cache(self) -> None:
        self.engine.process(self.img, self.settings, source_hash="scan-a")
        first = self.engine.cache.halation

        self.engine.process(self.img * 0.5, self.settings, source_hash="scan-b")
        self.assertEqual(self.engine.cache.source_hash, "scan-b")
        self.assertNotEqual(id(self.engine.cache.halation), id(first))

    def test_invalid_input(self) -> None:
        with self.assertRaises(TypeError):
            self.engine.process(None, self.settings)
        with self.assertRaises(ValueError):
            self.engine.process(np.ones((4, 4, 3), dtype=np.float32), self.settings)
        with self.assertRaises(ValueError):
            self.engine.process(np.full((4, 4), 2.0, dtype=np.float32), self.settings)
        with self.assertRaises(ValueError):
            self.engine.process(np.full((4, 4), -0.5, dtype=np.float32), self.settings)

    def test_invalid_config_rejected_before_work(self) -> None:
        settings = replace(self.settings, exposure=ExposureConfig(exposure_time=-1.0))
        with self.assertRaises(ValueError):
            self.engine.process(self.img, settings)
        self.assertIsNone(self.engine.cache.halation)


if __name__ == "__main__":
    unittest.main()
