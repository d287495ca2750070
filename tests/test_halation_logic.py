import numpy as np
import pytest
from halidepy.features.halation.logic import (
    gaussian_kernel,
    kernel_size,
    convolve_field,
    diffuse,
)


def test_kernel_size():
    # 2 * ceil(3 * sigma) + 1, never below 3
    assert kernel_size(0.05) == 3
    assert kernel_size(0.1) == 3
    assert kernel_size(1.0) == 7
    assert kernel_size(2.5) == 17


def test_gaussian_kernel_sums_to_one():
    for sigma in [0.01, 0.3, 1.0, 2.7, 5.0, 12.0]:
        k = gaussian_kernel(sigma)
        assert k.shape[0] == k.shape[1] == kernel_size(sigma)
        assert abs(k.sum() - 1.0) < 1e-4


def test_gaussian_kernel_peak_at_centre():
    k = gaussian_kernel(2.0)
    c = k.shape[0] // 2
    assert k[c, c] == k.max()
    # Symmetric
    assert np.allclose(k, k.T)
    assert np.allclose(k, k[::-1, ::-1])


def test_gaussian_kernel_invalid_sigma():
    with pytest.raises(ValueError):
        gaussian_kernel(0.0)


def test_convolve_uniform_interior_preserved():
    field = np.full((40, 40), 0.6, dtype=np.float32)
    k = gaussian_kernel(1.0)
    r = k.shape[0] // 2
    res = convolve_field(field, k, backend="direct")

    assert np.allclose(res[r:-r, r:-r], 0.6, atol=1e-5)
    # Out-of-canvas samples are dropped, so borders lose energy
    assert res[0, 0] < 0.6
    assert res[0, 20] < 0.6


def test_fft_and_direct_backends_agree():
    rng = np.random.default_rng(3)
    field = rng.random((32, 48)).astype(np.float32)
    k = gaussian_kernel(2.0)

    direct = convolve_field(field, k, backend="direct")
    fft = convolve_field(field, k, backend="fft")

    assert direct.shape == fft.shape == field.shape
    assert np.allclose(direct, fft, atol=1e-5)


def test_convolve_unknown_backend():
    with pytest.raises(ValueError):
        convolve_field(np.zeros((4, 4), dtype=np.float32), gaussian_kernel(1.0), "gpu")


def test_diffuse_adds_energy_only():
    rng = np.random.default_rng(11)
    field = rng.random((30, 25)).astype(np.float32)

    res = diffuse(25, 30, field, reflection_factor=0.5, sigma_down=1.0, sigma_up=3.0)

    assert res.shape == field.shape
    assert np.all(res >= field)
    assert res.sum() > field.sum()


def test_diffuse_zero_reflection_is_identity():
    field = np.random.default_rng(1).random((10, 12)).astype(np.float32)
    res = diffuse(12, 10, field, reflection_factor=0.0, sigma_down=1.0, sigma_up=1.0)
    assert np.array_equal(res, field)
    assert res is not field


def test_diffuse_impulse_energy():
    """Away from the borders both kernels keep all their mass."""
    field = np.zeros((41, 41), dtype=np.float32)
    field[20, 20] = 1.0

    res = diffuse(41, 41, field, reflection_factor=0.5, sigma_down=1.0, sigma_up=2.0)

    assert res.sum() == pytest.approx(1.5, rel=1e-4)
    # The halo spreads around the impulse
    assert res[20, 25] > 0.0
    assert res[20, 20] > 1.0


def test_diffuse_output_unclamped():
    field = np.ones((9, 9), dtype=np.float32)
    res = diffuse(9, 9, field, reflection_factor=1.0, sigma_down=0.5, sigma_up=0.5)
    assert res.max() > 1.0


def test_diffuse_auto_backend_matches_direct():
    rng = np.random.default_rng(5)
    field = rng.random((64, 64)).astype(np.float32)

    auto = diffuse(64, 64, field, 0.3, 1.0, 8.0, backend="auto", fft_kernel_threshold=31)
    direct = diffuse(64, 64, field, 0.3, 1.0, 8.0, backend="direct")

    assert np.allclose(auto, direct, atol=1e-5)


def test_diffuse_validation():
    field = np.ones((4, 5), dtype=np.float32)
    with pytest.raises(ValueError):
        diffuse(4, 5, field, 0.5, 1.0, 1.0)  # width/height swapped
    with pytest.raises(ValueError):
        diffuse(5, 4, field, 1.5, 1.0, 1.0)
    with pytest.raises(ValueError):
        diffuse(5, 4, field, 0.5, 0.0, 1.0)
    with pytest.raises(ValueError):
        diffuse(5, 4, -field, 0.5, 1.0, 1.0)
    with pytest.raises(ValueError):
        diffuse(0, 4, field, 0.5, 1.0, 1.0)
    with pytest.raises(TypeError):
        diffuse(5, 4, [[1.0] * 5] * 4, 0.5, 1.0, 1.0)
