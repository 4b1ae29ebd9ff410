"""Unit tests for the triangular mel filter bank."""

from __future__ import annotations

import unittest

import numpy as np

from vowel_mfcc.audio.filterbank import (
    InvalidFilterBankConfig,
    MelFilterBank,
    hz_to_mel,
    mel_to_hz,
)

SOURCE = (0.0, 24_000.0)
TARGET = (300.0, 8_000.0)


class TestMelScale(unittest.TestCase):
    """Tests for the Hz <-> mel conversions."""

    def test_known_values(self) -> None:
        self.assertAlmostEqual(hz_to_mel(0.0), 0.0)
        self.assertAlmostEqual(hz_to_mel(700.0), 1125.0 * np.log(2.0), places=6)

    def test_inverse(self) -> None:
        freqs = np.array([0.0, 300.0, 1000.0, 8000.0])
        np.testing.assert_allclose(mel_to_hz(hz_to_mel(freqs)), freqs, atol=1e-6)

    def test_array_in_array_out(self) -> None:
        mels = hz_to_mel(np.array([300.0, 8000.0], dtype=np.float32))
        self.assertIsInstance(mels, np.ndarray)
        self.assertEqual(mels.shape, (2,))
        self.assertIsInstance(mel_to_hz(mels), np.ndarray)


class TestMelFilterBankConfig(unittest.TestCase):
    """Precondition checks."""

    def test_non_positive_sizes(self) -> None:
        with self.assertRaises(InvalidFilterBankConfig):
            MelFilterBank(SOURCE, TARGET, num_bins=0, num_filters=32)
        with self.assertRaises(InvalidFilterBankConfig):
            MelFilterBank(SOURCE, TARGET, num_bins=512, num_filters=0)

    def test_empty_target_range(self) -> None:
        with self.assertRaises(InvalidFilterBankConfig):
            MelFilterBank(SOURCE, (8_000.0, 300.0), num_bins=512, num_filters=32)
        with self.assertRaises(InvalidFilterBankConfig):
            MelFilterBank(SOURCE, (1_000.0, 1_000.0), num_bins=512, num_filters=32)

    def test_target_outside_source(self) -> None:
        with self.assertRaises(InvalidFilterBankConfig):
            MelFilterBank((0.0, 4_000.0), TARGET, num_bins=512, num_filters=32)

    def test_config_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            MelFilterBank(SOURCE, TARGET, num_bins=-1, num_filters=32)


class TestMelFilterBank(unittest.TestCase):
    """Shape and triangle properties of the reference configuration."""

    def setUp(self) -> None:
        self.bank = MelFilterBank.build(SOURCE, TARGET, num_bins=512, num_filters=32)

    def test_shape_and_dtype(self) -> None:
        self.assertEqual(self.bank.weights.shape, (32, 512))
        self.assertEqual(self.bank.shape, (32, 512))
        self.assertEqual(self.bank.weights.dtype, np.float32)
        self.assertEqual(len(self.bank.edges), 34)
        self.assertEqual(self.bank.degenerate_filters, ())

    def test_weights_are_read_only(self) -> None:
        with self.assertRaises(ValueError):
            self.bank.weights[0, 0] = 1.0
        with self.assertRaises(ValueError):
            self.bank.edges[0] = 0.0

    def test_edges_strictly_increasing(self) -> None:
        edges = self.bank.edges
        self.assertTrue(np.all(np.diff(edges) > 0))
        self.assertAlmostEqual(float(edges[0]), 300.0, delta=0.05)
        self.assertAlmostEqual(float(edges[-1]), 8_000.0, delta=0.5)

    def test_bin_frequencies(self) -> None:
        k = self.bank.bin_frequencies
        self.assertEqual(float(k[0]), 0.0)
        self.assertAlmostEqual(float(k[1]), 46.875, places=4)
        self.assertAlmostEqual(float(k[-1]), 24_000.0 - 46.875, places=2)

    def test_rows_non_negative_and_bounded(self) -> None:
        w = self.bank.weights
        self.assertTrue(np.all(w >= 0.0))
        self.assertTrue(np.all(w <= 1.0 + 1e-6))
        self.assertTrue(np.all(np.isfinite(w)))

    def test_zero_outside_support(self) -> None:
        edges = self.bank.edges
        k = self.bank.bin_frequencies
        for row in range(self.bank.num_filters):
            outside = (k < edges[row]) | (k >= edges[row + 2])
            self.assertTrue(np.all(self.bank.weights[row, outside] == 0.0), f"filter {row}")

    def test_rows_unimodal(self) -> None:
        for row in self.bank.weights:
            support = np.flatnonzero(row)
            self.assertGreater(len(support), 0)
            self.assertEqual(support[-1] - support[0] + 1, len(support))  # contiguous
            values = row[support[0] : support[-1] + 1]
            peak = int(np.argmax(values))
            self.assertTrue(np.all(np.diff(values[: peak + 1]) >= -1e-6))
            self.assertTrue(np.all(np.diff(values[peak:]) <= 1e-6))

    def test_adjacent_filters_cross_over(self) -> None:
        """Between two neighbouring peaks the falling and rising ramps sum to one."""
        edges = self.bank.edges
        k = self.bank.bin_frequencies
        inner = (k >= edges[1]) & (k < edges[-2])
        total = self.bank.weights[:, inner].sum(axis=0)
        np.testing.assert_allclose(total, 1.0, atol=1e-5)

    def test_peak_near_centre_edge(self) -> None:
        """Weights ramp from 0 at the lower edge to ~1.0 at the centre edge."""
        bank = MelFilterBank((0.0, 1_000.0), (0.0, 1_000.0), num_bins=1_000, num_filters=1)
        centre = float(bank.edges[1])
        ramp_up = (np.floor(centre) - bank.edges[0]) / (bank.edges[1] - bank.edges[0])
        self.assertAlmostEqual(float(bank.weights[0, int(np.floor(centre))]), float(ramp_up), places=5)
        self.assertEqual(float(bank.weights[0, 0]), 0.0)
        self.assertGreater(float(bank.weights[0].max()), 0.99)

    def test_apply_is_matrix_vector_product(self) -> None:
        rng = np.random.default_rng(0)
        spectrum = rng.random(512, dtype=np.float32)
        np.testing.assert_allclose(
            self.bank.apply(spectrum),
            self.bank.weights.astype(np.float64) @ spectrum,
            rtol=1e-5,
        )
        out = np.empty(32, dtype=np.float32)
        result = self.bank.apply(spectrum, out=out)
        self.assertIs(result, out)

    def test_apply_rejects_wrong_length(self) -> None:
        with self.assertRaises(ValueError):
            self.bank.apply(np.zeros(256, dtype=np.float32))


class TestDegenerateFilters(unittest.TestCase):
    """Too many filters for the mel span collapse to all-zero rows."""

    def test_degenerate_rows_are_zero_and_warned(self) -> None:
        with self.assertLogs("vowel_mfcc.audio.filterbank", level="WARNING") as logs:
            bank = MelFilterBank(SOURCE, (1_000.0, 1_000.001), num_bins=512, num_filters=200)
        self.assertGreater(len(bank.degenerate_filters), 0)
        self.assertTrue(np.all(np.isfinite(bank.weights)))
        for index in bank.degenerate_filters:
            self.assertTrue(np.all(bank.weights[index] == 0.0))
        self.assertTrue(any("degenerate" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main(verbosity=2)
