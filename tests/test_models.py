import os
import shutil
import tempfile
import unittest
import numpy as np
import pandas as pd
import torch
from lime_toolkit.data_generation import HAPPINESS_FEATURES, LABEL_COLUMN, LABEL_LEVELS, generate_happiness_dataset, prepare_data
from lime_toolkit.models import HappinessMLP, TabularClassifier
from lime_toolkit.train import fit_classifier, train_mlp, tune_mlp


class TestHappinessMLP(unittest.TestCase):
    def test_forward_shape(self):
        model = HappinessMLP(n_features=6, n_classes=3, hidden_size=8)
        output = model(torch.zeros(5, 6))
        self.assertEqual(tuple(output.shape), (5, 3))

    def test_train_mlp_learns_separable_data(self):
        rng = np.random.RandomState(0)
        X = rng.normal(size=(200, 2)).astype(np.float32)
        y = (X[:, 0] > 0).astype(np.int64)

        model, losses = train_mlp(X, y, n_classes=2, hidden_size=8, num_epochs=300, seed=1)
        self.assertLess(losses[-1], losses[0])
        with torch.no_grad():
            predictions = model(torch.from_numpy(X)).argmax(dim=1).numpy()
        self.assertGreater((predictions == y).mean(), 0.9)


class TestTabularClassifier(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        data = generate_happiness_dataset(seed=42)
        cls.train, cls.test = prepare_data(data, HAPPINESS_FEATURES)
        cls.classifier = fit_classifier(cls.train, HAPPINESS_FEATURES, num_epochs=300, seed=42)
        cls.tmp_dir = tempfile.mkdtemp()

    @classmethod
    def tearDownClass(cls):
        shutil.rmtree(cls.tmp_dir, ignore_errors=True)

    def test_classes_follow_label_order(self):
        self.assertEqual(list(self.classifier.classes_), LABEL_LEVELS)
        self.assertEqual(self.classifier.feature_names, HAPPINESS_FEATURES)

    def test_predict_proba(self):
        probs = self.classifier.predict_proba(self.test)
        self.assertEqual(probs.shape, (len(self.test), 3))
        np.testing.assert_allclose(probs.sum(axis=1), np.ones(len(self.test)), rtol=1e-5)

        predictions = self.classifier.predict(self.test)
        self.assertTrue(set(predictions) <= set(LABEL_LEVELS))
        np.testing.assert_array_equal(predictions, np.array(LABEL_LEVELS, dtype=object)[probs.argmax(axis=1)])

    def test_training_accuracy(self):
        """The MLP should do much better than chance (1/3) on its training data"""
        accuracy = (self.classifier.predict(self.train) == self.train[LABEL_COLUMN].astype(str)).mean()
        self.assertGreater(accuracy, 0.6)

    def test_column_order_does_not_matter(self):
        shuffled = self.test[HAPPINESS_FEATURES[::-1]]
        np.testing.assert_allclose(self.classifier.predict_proba(shuffled),
                                   self.classifier.predict_proba(self.test), rtol=1e-6)

    def test_array_input(self):
        array = self.test[HAPPINESS_FEATURES].to_numpy()
        np.testing.assert_allclose(self.classifier.predict_proba(array),
                                   self.classifier.predict_proba(self.test), rtol=1e-6)
        self.assertEqual(self.classifier.predict_proba(array[0]).shape, (1, 3))

    def test_invalid_input(self):
        with self.assertRaises(KeyError):
            self.classifier.predict_proba(self.test.drop(columns=['freedom']))
        with self.assertRaises(ValueError):
            self.classifier.predict_proba(np.zeros((2, 4)))

    def test_save_and_load(self):
        path = self.classifier.save(os.path.join(self.tmp_dir, 'model.pt'))
        loaded = TabularClassifier.load(path)

        self.assertEqual(loaded.feature_names, self.classifier.feature_names)
        self.assertEqual(list(loaded.classes_), list(self.classifier.classes_))
        np.testing.assert_allclose(loaded.predict_proba(self.test),
                                   self.classifier.predict_proba(self.test), rtol=1e-6)

    def test_integer_params_survive_save(self):
        classifier = TabularClassifier(self.classifier.model, self.classifier.feature_names,
                                       self.classifier.classes_, self.classifier.mean,
                                       self.classifier.scale,
                                       params={'hidden_size': np.int64(8), 'weight_decay': np.float64(1e-3)})
        loaded = TabularClassifier.load(classifier.save(os.path.join(self.tmp_dir, 'typed.pt')))
        self.assertEqual(loaded.params, {'hidden_size': 8, 'weight_decay': 1e-3})
        self.assertIsInstance(loaded.params['hidden_size'], int)

    def test_load_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            TabularClassifier.load(os.path.join(self.tmp_dir, 'missing.pt'))

    def test_mismatched_names(self):
        with self.assertRaises(ValueError):
            TabularClassifier(HappinessMLP(6, 3), HAPPINESS_FEATURES[:5], LABEL_LEVELS,
                              np.zeros(5), np.ones(5))
        with self.assertRaises(ValueError):
            TabularClassifier(HappinessMLP(6, 3), HAPPINESS_FEATURES, ['low', 'high'],
                              np.zeros(6), np.ones(6))


class TestTuneMLP(unittest.TestCase):
    def test_cross_validated_grid(self):
        data = generate_happiness_dataset(n_samples=90, seed=7)
        train, _ = prepare_data(data, HAPPINESS_FEATURES)
        grid = {'hidden_size': [4], 'weight_decay': [1e-3, 1e-2]}

        classifier, cv_results = tune_mlp(train, HAPPINESS_FEATURES, param_grid=grid,
                                          n_folds=3, num_epochs=30, n_jobs=1, seed=7)

        self.assertEqual(len(cv_results), 2)
        self.assertEqual(set(cv_results.columns),
                         {'hidden_size', 'weight_decay', 'mean_accuracy', 'std_accuracy'})
        self.assertTrue(cv_results['mean_accuracy'].is_monotonic_decreasing)
        self.assertTrue(((cv_results['mean_accuracy'] >= 0) & (cv_results['mean_accuracy'] <= 1)).all())
        self.assertEqual(classifier.params['hidden_size'], 4)
        self.assertEqual(classifier.params['weight_decay'], cv_results.loc[0, 'weight_decay'])
        self.assertEqual(list(classifier.classes_), LABEL_LEVELS)

    def test_parallel_folds_match_sequential(self):
        data = generate_happiness_dataset(n_samples=90, seed=7)
        train, _ = prepare_data(data, HAPPINESS_FEATURES)
        grid = {'hidden_size': [4, 8], 'weight_decay': [1e-3]}

        _, sequential = tune_mlp(train, HAPPINESS_FEATURES, param_grid=grid,
                                 n_folds=3, num_epochs=30, n_jobs=1, seed=7)
        _, parallel = tune_mlp(train, HAPPINESS_FEATURES, param_grid=grid,
                               n_folds=3, num_epochs=30, n_jobs=2, seed=7)

        key = ['hidden_size', 'weight_decay']
        pd.testing.assert_frame_equal(sequential.sort_values(key).reset_index(drop=True),
                                      parallel.sort_values(key).reset_index(drop=True))

    def test_non_numeric_inputs(self):
        data = generate_happiness_dataset(n_samples=60, seed=7)
        data['region'] = 'Europe'
        with self.assertRaises(ValueError) as context:
            fit_classifier(data, HAPPINESS_FEATURES + ['region'], num_epochs=5)
        self.assertIn('region', str(context.exception))

if __name__ == '__main__':
    unittest.main(verbosity=2)
