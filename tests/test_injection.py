"""Comprehensive unit tests for Gaussian point-source injection.

Test suites:
1. Initialization & validation (shapes, rank, dtype)
2. Normalization constants (sum_weights, num_pixels)
3. Peak-scaled splatting (add_gaussian)
4. Integral-scaled splatting (add_normalized_gaussian)
5. Linearity & order independence
6. Boundary handling (partial / fully outside windows)
7. Torch interop and convenience methods

Fixtures:
- volumes: 21×21×5 FP32 signal/weight pair
- injector: sigma (2, 2, 1) injector on that pair
"""

import math

import numpy as np
import pytest
import torch

from src.volume_simulator.injection import VolumeInjector
from src.volume_simulator.kernel import gauss_value
from src.volume_simulator.window import WindowCursor


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def volumes():
    """Empty 21×21×5 signal and weight volumes."""
    signal = np.zeros((21, 21, 5), dtype=np.float32)
    weight = np.zeros_like(signal)
    return signal, weight


@pytest.fixture
def injector(volumes):
    """Injector with anisotropic sigma (2, 2, 1)."""
    signal, weight = volumes
    return VolumeInjector(signal, weight, (2.0, 2.0, 1.0))


def _fresh_injector(shape=(21, 21, 5), sigma=(2.0, 2.0, 1.0)):
    signal = np.zeros(shape, dtype=np.float32)
    weight = np.zeros_like(signal)
    return VolumeInjector(signal, weight, sigma), signal, weight


# ============================================================================
# TEST SUITE 1: Initialization & Validation
# ============================================================================

def test_initialization(injector, volumes):
    signal, weight = volumes
    assert injector.num_dimensions == 3
    assert injector.size == (13, 13, 7)
    assert injector.signal is signal
    assert injector.weight is weight


def test_shape_mismatch_rejected():
    signal = np.zeros((8, 8, 4), dtype=np.float32)
    weight = np.zeros((8, 8, 5), dtype=np.float32)
    with pytest.raises(ValueError, match="Signal shape"):
        VolumeInjector(signal, weight, (1.0, 1.0, 1.0))


def test_sigma_rank_mismatch_rejected(volumes):
    signal, weight = volumes
    with pytest.raises(ValueError, match="sigma has 2 entries"):
        VolumeInjector(signal, weight, (1.0, 1.0))


def test_integer_volume_rejected():
    signal = np.zeros((8, 8, 4), dtype=np.int32)
    weight = np.zeros((8, 8, 4), dtype=np.float32)
    with pytest.raises(TypeError, match="floating point"):
        VolumeInjector(signal, weight, (1.0, 1.0, 1.0))


def test_location_rank_mismatch_rejected(injector):
    with pytest.raises(ValueError, match="2 coordinates"):
        injector.add_gaussian(1.0, (3.0, 3.0))


# ============================================================================
# TEST SUITE 2: Normalization Constants
# ============================================================================

def test_sum_weights_matches_explicit_window_sum(injector):
    geom = injector.geometry
    expected = 0.0
    count = 0
    for p in WindowCursor((0.0, 0.0, 0.0), geom):
        value = 1.0
        for d in range(3):
            value *= gauss_value(0.0, p[d], geom.two_sq_sigma[d])
        expected += value
        count += 1

    assert injector.sum_weights == pytest.approx(expected, rel=1e-12)
    assert injector.num_pixels == count == 13 * 13 * 7


def test_sum_weights_is_separable(injector):
    per_axis = []
    for size, tss in zip(injector.size, injector.geometry.two_sq_sigma):
        half = size // 2
        per_axis.append(sum(math.exp(-(k * k) / tss) for k in range(-half, half + 1)))
    assert injector.sum_weights == pytest.approx(np.prod(per_axis), rel=1e-12)


def test_isotropic_kernel_symmetric_and_positive():
    injector, _, _ = _fresh_injector(shape=(9, 9, 9), sigma=(1.5, 1.5, 1.5))
    window, block = injector.kernel_weights((0.0, 0.0, 0.0))

    assert window.shape == block.shape == (11, 11, 11)
    assert np.allclose(block, block[::-1, ::-1, ::-1])
    assert np.allclose(block, block.transpose(1, 0, 2))
    assert np.allclose(block, block.transpose(2, 1, 0))
    assert injector.sum_weights > 0
    assert block.max() == pytest.approx(1.0)


# ============================================================================
# TEST SUITE 3: Peak-Scaled Splatting
# ============================================================================

def test_zero_sigma_single_voxel():
    """All-zero sigma at an integer location deposits into one voxel with weight 1."""
    injector, signal, weight = _fresh_injector(shape=(6, 6, 4), sigma=(0.0, 0.0, 0.0))

    assert injector.size == (1, 1, 1)
    assert injector.sum_weights == 1.0
    assert injector.num_pixels == 1

    injector.add_gaussian(5.0, (3.0, 4.0, 2.0))

    assert signal[3, 4, 2] == pytest.approx(5.0)
    assert weight[3, 4, 2] == pytest.approx(1.0)
    assert np.count_nonzero(signal) == 1
    assert np.count_nonzero(weight) == 1


def test_zero_sigma_fractional_offset_attenuates():
    """A sub-voxel offset on a zero-sigma axis scales the voxel by exp(-offset²)."""
    injector, signal, weight = _fresh_injector(shape=(21, 21, 5), sigma=(2.0, 2.0, 0.0))

    injector.add_gaussian(100.0, (10.0, 10.0, 2.3))

    expected = math.exp(-0.09)
    assert weight[10, 10, 2] == pytest.approx(expected, rel=1e-6)
    assert signal[10, 10, 2] == pytest.approx(100.0 * expected, rel=1e-6)
    assert np.count_nonzero(weight[:, :, [0, 1, 3, 4]]) == 0


def test_zero_sigma_all_axes_fractional():
    injector, signal, weight = _fresh_injector(shape=(6, 6, 4), sigma=(0.0, 0.0, 0.0))

    injector.add_gaussian(5.0, (3.2, 3.7, 2.4))

    expected = math.exp(-(0.2 ** 2 + 0.3 ** 2 + 0.4 ** 2))
    assert weight[3, 4, 2] == pytest.approx(expected, rel=1e-6)
    assert signal[3, 4, 2] == pytest.approx(5.0 * expected, rel=1e-6)
    assert np.count_nonzero(weight) == 1


def test_peak_scenario(injector, volumes):
    """21×21×5 volume, sigma (2,2,1), intensity 100 at (10,10,2)."""
    signal, weight = volumes
    injector.add_gaussian(100.0, (10.0, 10.0, 2.0))

    peak = np.unravel_index(np.argmax(signal), signal.shape)
    assert peak == (10, 10, 2)
    assert signal[peak] == pytest.approx(100.0)

    weight_at_peak = float(weight[peak])
    assert weight_at_peak == pytest.approx(1.0)

    normed = injector.normalize()
    assert normed[peak] == pytest.approx(100.0 / weight_at_peak)


def test_add_gaussian_values(injector, volumes):
    signal, weight = volumes
    injector.add_gaussian(10.0, (10.0, 10.0, 2.0))

    expected = math.exp(-1.0 / 8.0) * math.exp(-1.0 / 2.0)
    assert weight[11, 10, 3] == pytest.approx(expected, rel=1e-6)
    assert signal[11, 10, 3] == pytest.approx(10.0 * expected, rel=1e-6)


def test_fractional_center_splits_evenly(injector, volumes):
    signal, weight = volumes
    injector.add_gaussian(100.0, (10.5, 10.0, 2.0))

    expected = 100.0 * math.exp(-0.25 / 8.0)
    assert signal[10, 10, 2] == pytest.approx(expected, rel=1e-6)
    assert signal[11, 10, 2] == pytest.approx(expected, rel=1e-6)
    assert signal.max() < 100.0


def test_peak_scaled_total_is_intensity_times_sum_weights():
    injector, signal, _ = _fresh_injector(shape=(31, 31, 11))
    injector.add_gaussian(100.0, (15.0, 15.0, 5.0))

    total = signal.sum(dtype=np.float64)
    assert total == pytest.approx(100.0 * injector.sum_weights, rel=1e-5)
    assert total != pytest.approx(100.0, rel=1e-2)


def test_one_dimensional_volume():
    injector, signal, weight = _fresh_injector(shape=(11,), sigma=(1.0,))
    injector.add_gaussian(1.0, (5.0,))

    assert injector.size == (7,)
    assert signal[5] == pytest.approx(1.0)
    assert signal[4] == pytest.approx(math.exp(-0.5), rel=1e-6)
    assert weight[8] == pytest.approx(math.exp(-4.5), rel=1e-6)
    assert weight[9] == 0.0


# ============================================================================
# TEST SUITE 4: Integral-Scaled Splatting
# ============================================================================

def test_normalized_gaussian_conserves_intensity():
    injector, signal, weight = _fresh_injector(shape=(31, 31, 11))
    injector.add_normalized_gaussian(250.0, (15.0, 15.0, 5.0))

    assert signal.sum(dtype=np.float64) == pytest.approx(250.0, rel=1e-5)
    assert weight.sum(dtype=np.float64) == pytest.approx(injector.sum_weights, rel=1e-5)


def test_normalized_gaussian_equals_rescaled_peak():
    a, sig_a, w_a = _fresh_injector()
    b, sig_b, w_b = _fresh_injector()

    a.add_normalized_gaussian(300.0, (7.3, 12.9, 1.6))
    b.add_gaussian(300.0 / b.sum_weights, (7.3, 12.9, 1.6))

    assert np.allclose(sig_a, sig_b)
    assert np.array_equal(w_a, w_b)


# ============================================================================
# TEST SUITE 5: Linearity & Order Independence
# ============================================================================

def test_linearity():
    both, sig_both, w_both = _fresh_injector()
    first, sig_1, w_1 = _fresh_injector()
    second, sig_2, w_2 = _fresh_injector()

    sources = [(100.0, (6.2, 8.0, 1.0)), (40.0, (9.0, 10.4, 3.3))]
    for intensity, loc in sources:
        both.add_gaussian(intensity, loc)
    first.add_gaussian(*sources[0])
    second.add_gaussian(*sources[1])

    assert np.allclose(sig_both, sig_1 + sig_2, atol=1e-4)
    assert np.allclose(w_both, w_1 + w_2, atol=1e-6)


def test_order_independence():
    forward, sig_f, w_f = _fresh_injector()
    backward, sig_b, w_b = _fresh_injector()

    sources = [(100.0, (6.2, 8.0, 1.0)), (40.0, (9.0, 10.4, 3.3)), (7.5, (12.0, 3.0, 2.0))]
    for intensity, loc in sources:
        forward.add_gaussian(intensity, loc)
    for intensity, loc in reversed(sources):
        backward.add_gaussian(intensity, loc)

    assert np.allclose(sig_f, sig_b, atol=1e-4)
    assert np.allclose(w_f, w_b, atol=1e-6)


# ============================================================================
# TEST SUITE 6: Boundary Handling
# ============================================================================

def test_corner_source_keeps_in_bounds_fraction(injector, volumes):
    signal, weight = volumes
    window, block = injector.kernel_weights((0.0, 0.0, 0.0))
    assert window.min == (-6, -6, -3)

    injector.add_gaussian(50.0, (0.0, 0.0, 0.0))

    in_bounds = block[6:, 6:, 3:].sum()
    assert weight.sum(dtype=np.float64) == pytest.approx(in_bounds, rel=1e-5)
    assert signal.sum(dtype=np.float64) == pytest.approx(50.0 * in_bounds, rel=1e-5)
    assert in_bounds < injector.sum_weights


def test_source_outside_volume_is_dropped(injector, volumes):
    signal, weight = volumes
    injector.add_gaussian(50.0, (-30.0, 10.0, 2.0))
    injector.add_normalized_gaussian(50.0, (10.0, 10.0, 40.0))

    assert not signal.any()
    assert not weight.any()


def test_source_just_outside_still_reaches_edge(injector, volumes):
    signal, weight = volumes
    injector.add_gaussian(10.0, (-2.0, 10.0, 2.0))

    assert weight[0, 10, 2] == pytest.approx(math.exp(-4.0 / 8.0), rel=1e-6)
    assert weight[5, 10, 2] == 0.0


# ============================================================================
# TEST SUITE 7: Torch Interop & Convenience Methods
# ============================================================================

def test_torch_volumes_mutated_in_place():
    signal = torch.zeros((21, 21, 5), dtype=torch.float32)
    weight = torch.zeros((21, 21, 5), dtype=torch.float32)
    injector = VolumeInjector(signal, weight, (2.0, 2.0, 1.0))

    injector.add_gaussian(100.0, (10.0, 10.0, 2.0))

    assert injector.signal is signal
    assert signal[10, 10, 2].item() == pytest.approx(100.0)
    assert weight[10, 10, 2].item() == pytest.approx(1.0)


def test_non_cpu_tensor_rejected():
    signal = torch.zeros((4, 4, 4), device="meta")
    with pytest.raises(TypeError, match="CPU tensor"):
        VolumeInjector(signal, signal.clone(), (1.0, 1.0, 1.0))


def test_convenience_normalize_and_project(injector, volumes):
    signal, _ = volumes
    injector.add_gaussian(100.0, (10.0, 10.0, 2.0))

    normed = injector.normalize()
    assert normed.shape == signal.shape
    assert normed.dtype == np.float32
    assert normed is not signal

    proj = injector.project()
    assert proj.shape == (21, 21)
    assert proj.dtype == np.float32
    assert proj[10, 10] > proj[0, 0]
