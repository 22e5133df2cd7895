"""Tests for the FFT engine used by the spectral solvers."""

from __future__ import annotations

import numpy as np
import pytest

from pic1d.fft import FFTEngine


@pytest.fixture
def engine():
    return FFTEngine(nx=32, dx=0.1)


class TestFFTEngine:
    def test_wavenumbers(self, engine):
        assert engine.k[0] == 0.0
        assert engine.k[1] == pytest.approx(2.0 * np.pi / 3.2)
        assert engine.k[-1] == pytest.approx(-2.0 * np.pi / 3.2)

    def test_nyquist(self, engine):
        assert engine.k_nyquist == pytest.approx(np.pi / 0.1)
        assert np.max(np.abs(engine.k)) == pytest.approx(engine.k_nyquist)

    def test_round_trip(self, engine, rng):
        values = rng.standard_normal(32)
        np.testing.assert_allclose(engine.inverse(engine.forward(values)), values, atol=1e-14)

    def test_forward_batches_last_axis(self, engine, rng):
        values = rng.standard_normal((3, 32))
        spectrum = engine.forward(values)
        assert spectrum.shape == (3, 32)
        np.testing.assert_allclose(spectrum[1], engine.forward(values[1]))

    def test_single_mode(self, engine):
        x = np.arange(32) * 0.1
        spectrum = engine.forward(np.cos(engine.k[3] * x))
        assert abs(spectrum[3]) == pytest.approx(16.0)
        assert abs(spectrum[-3]) == pytest.approx(16.0)
        spectrum[[3, -3]] = 0.0
        np.testing.assert_allclose(spectrum, 0.0, atol=1e-12)

    def test_half_node_shift(self, engine):
        """A cosine sampled on half nodes has the node-centred spectrum after the shift."""
        k = engine.k[5]
        nodes = np.arange(32) * 0.1
        halves = nodes + 0.05
        np.testing.assert_allclose(
            engine.forward_half(np.cos(k * halves)),
            engine.forward(np.cos(k * nodes)),
            atol=1e-12,
        )

    def test_half_node_round_trip(self, engine, rng):
        values = rng.standard_normal(32)
        np.testing.assert_allclose(
            engine.inverse_half(engine.forward_half(values)), values, atol=1e-14,
        )
