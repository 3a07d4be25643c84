import unittest
import numpy as np
from lime_toolkit.explainers.feature_selection import FEATURE_SELECTION_METHODS, select_features


class TestFeatureSelection(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        rng = np.random.RandomState(0)
        cls.X = rng.randint(0, 2, size=(500, 6)).astype(float)
        cls.y = 0.8 * cls.X[:, 2] - 0.5 * cls.X[:, 4] + rng.normal(0, 0.01, 500)
        cls.weights = rng.uniform(0.5, 1.0, 500)

    def test_methods_find_driving_features(self):
        """Every strategy recovers the two columns the target depends on"""
        for method in ['auto', 'forward_selection', 'highest_weights', 'lasso_path', 'tree']:
            with self.subTest(method=method):
                selected = select_features(self.X, self.y, self.weights, 2, method)
                self.assertEqual(set(selected), {2, 4})

    def test_forward_selection_order(self):
        selected = select_features(self.X, self.y, self.weights, 2, 'forward_selection')
        self.assertEqual(selected, [2, 4])

    def test_at_most_n_features(self):
        for method in FEATURE_SELECTION_METHODS:
            if method == 'none':
                continue
            with self.subTest(method=method):
                selected = select_features(self.X, self.y, self.weights, 3, method)
                self.assertEqual(len(selected), 3)
                self.assertEqual(len(set(selected)), 3)
                self.assertTrue(all(0 <= i < 6 for i in selected))

    def test_none_keeps_everything(self):
        self.assertEqual(select_features(self.X, self.y, self.weights, 2, 'none'), list(range(6)))

    def test_more_features_than_columns(self):
        self.assertEqual(select_features(self.X, self.y, self.weights, 10, 'lasso_path'), list(range(6)))

    def test_constant_target(self):
        selected = select_features(self.X, np.full(500, 0.3), self.weights, 2, 'lasso_path')
        self.assertEqual(len(selected), 2)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            select_features(self.X, self.y, self.weights, 2, 'random')
        with self.assertRaises(ValueError):
            select_features(self.X, self.y, self.weights, 0, 'auto')

if __name__ == '__main__':
    unittest.main(verbosity=2)
