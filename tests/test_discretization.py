import unittest
import numpy as np
from lime_toolkit.explainers.discretization import FeatureBins


class TestFeatureBins(unittest.TestCase):
    def setUp(self):
        self.bins = FeatureBins([0.0, 1.0, 2.0, 3.0], [0.5, 0.25, 0.25])

    def test_quantile_bins(self):
        """Quartile bins of 1..100 hold a quarter of the values each"""
        bins = FeatureBins.from_values(np.arange(1, 101), n_bins=4, quantile_bins=True)
        self.assertEqual(bins.n_bins, 4)
        np.testing.assert_allclose(bins.frequencies, [0.25, 0.25, 0.25, 0.25])
        self.assertEqual(bins.cuts[0], 1)
        self.assertEqual(bins.cuts[-1], 100)

    def test_equal_width_bins(self):
        bins = FeatureBins.from_values(np.arange(11), n_bins=2, quantile_bins=False)
        np.testing.assert_allclose(bins.cuts, [0.0, 5.0, 10.0])
        np.testing.assert_allclose(bins.frequencies, [6 / 11, 5 / 11])

    def test_duplicate_cuts_are_merged(self):
        values = np.array([0, 0, 0, 0, 0, 0, 1, 2])
        bins = FeatureBins.from_values(values, n_bins=4)
        self.assertEqual(len(np.unique(bins.cuts)), len(bins.cuts))
        self.assertAlmostEqual(bins.frequencies.sum(), 1.0)

    def test_constant_feature(self):
        bins = FeatureBins.from_values(np.full(20, 3.0), n_bins=4)
        self.assertEqual(bins.n_bins, 1)
        np.testing.assert_array_equal(bins.bin_index([1.0, 3.0, 5.0]), [0, 0, 0])
        self.assertEqual(bins.describe('x', 0), 'x')

    def test_bin_index_boundaries(self):
        """A value on a cut belongs to the lower bin"""
        np.testing.assert_array_equal(self.bins.bin_index([0.5, 1.0, 1.5, 2.0, 2.5]), [0, 0, 1, 1, 2])

    def test_values_outside_training_range(self):
        np.testing.assert_array_equal(self.bins.bin_index([-10.0, 10.0]), [0, 2])

    def test_bounds(self):
        self.assertEqual(self.bins.bounds(0), (-np.inf, 1.0))
        self.assertEqual(self.bins.bounds(1), (1.0, 2.0))
        self.assertEqual(self.bins.bounds(2), (2.0, np.inf))
        self.assertEqual(self.bins.training_range(0), (0.0, 1.0))

    def test_describe(self):
        self.assertEqual(self.bins.describe('freedom', 0), 'freedom <= 1.00')
        self.assertEqual(self.bins.describe('freedom', 1), '1.00 < freedom <= 2.00')
        self.assertEqual(self.bins.describe('freedom', 2), '2.00 < freedom')

    def test_value_inside_its_bounds(self):
        rng = np.random.RandomState(0)
        bins = FeatureBins.from_values(rng.normal(size=200), n_bins=5)
        for value in rng.normal(scale=3, size=50):
            low, high = bins.bounds(int(bins.bin_index(value)[0]))
            self.assertTrue(low < value <= high)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            FeatureBins.from_values([1.0, 2.0], n_bins=0)
        with self.assertRaises(ValueError):
            FeatureBins.from_values([np.nan, np.nan])
        with self.assertRaises(ValueError):
            FeatureBins([2.0, 1.0], [1.0])
        with self.assertRaises(ValueError):
            FeatureBins([0.0, 1.0, 2.0], [1.0])

if __name__ == '__main__':
    unittest.main(verbosity=2)
