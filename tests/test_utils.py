import json
import logging
import os
import shutil
import tempfile
import unittest
import numpy as np
import pandas as pd
from lime_toolkit.explainers.lime_explainer import EXPLANATION_COLUMNS
from lime_toolkit.utils import ResultsLogger, archive_old_results, save_predictions, setup_logging


class TestArchive(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_moves_everything_but_kept_files(self):
        for name in ['model.pt', 'explanations.csv', 'feature_plot.png']:
            with open(os.path.join(self.tmp_dir, name), 'w') as f:
                f.write(name)

        archive_dir = archive_old_results(self.tmp_dir, keep=['model.pt'])

        self.assertEqual(sorted(os.listdir(archive_dir)), ['explanations.csv', 'feature_plot.png'])
        self.assertEqual(sorted(os.listdir(self.tmp_dir)), ['archive', 'model.pt'])

    def test_nothing_to_archive(self):
        self.assertIsNone(archive_old_results(os.path.join(self.tmp_dir, 'missing')))
        self.assertIsNone(archive_old_results(self.tmp_dir))


class TestSavePredictions(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_writes_predictions_and_summary(self):
        data = pd.DataFrame({'x': [1, 2, 3, 4]}, index=['a', 'b', 'c', 'd'])
        probabilities = np.array([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4], [0.3, 0.7]])
        paths = save_predictions(data, ['low', 'high', 'high', 'high'], ['low', 'high', 'low', 'high'],
                                 probabilities, ['low', 'high'], 'mlp', self.tmp_dir)

        results = pd.read_csv(paths['results'], index_col=0)
        self.assertEqual(list(results.index), ['a', 'b', 'c', 'd'])
        self.assertEqual(list(results['correct_prediction']), [True, True, False, True])
        np.testing.assert_allclose(results['prob_high'], probabilities[:, 1])

        with open(paths['summary']) as f:
            summary = f.read()
        self.assertIn('Accuracy: 0.7500', summary)
        self.assertIn('Correct Predictions: 3', summary)
        self.assertIn('Confusion Matrix', summary)


class TestResultsLogger(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_log_explanation(self):
        case = pd.Series({'a': 0.9, 'b': 0.2}, name='Country 007')
        explanation = pd.DataFrame([
            {'model_type': 'M', 'case': 'Country 007', 'label': 'high', 'label_prob': 0.8,
             'model_r2': 0.5, 'model_intercept': 0.3, 'model_prediction': 0.75, 'feature': 'a',
             'feature_value': 0.9, 'feature_weight': 0.4, 'feature_desc': '0.70 < a',
             'feature_low': 0.7, 'feature_high': np.inf}
        ], columns=EXPLANATION_COLUMNS)

        case_dir = ResultsLogger(self.tmp_dir).log_explanation(case, explanation,
                                                               {'low': 0.2, 'high': 0.8})

        self.assertEqual(os.path.basename(case_dir), 'LIME_Country_007')
        self.assertEqual(sorted(os.listdir(case_dir)), ['feature_plot.png', 'results.json', 'summary.txt'])
        with open(os.path.join(case_dir, 'results.json')) as f:
            results = json.load(f)
        self.assertEqual(results['predicted'], 'high')
        self.assertEqual(results['explanations'][0]['weights'], {'0.70 < a': 0.4})
        with open(os.path.join(case_dir, 'summary.txt')) as f:
            self.assertIn('Supports: 0.70 < a', f.read())


class TestSetupLogging(unittest.TestCase):
    def test_logs_to_file(self):
        tmp_dir = tempfile.mkdtemp()
        try:
            setup_logging(tmp_dir, log_name='run.log')
            logging.getLogger('lime_toolkit.test').info("hello from the test")
            for handler in logging.getLogger().handlers:
                handler.flush()
            with open(os.path.join(tmp_dir, 'run.log')) as f:
                self.assertIn("hello from the test", f.read())
        finally:
            for handler in list(logging.getLogger().handlers):
                handler.close()
                logging.getLogger().removeHandler(handler)
            shutil.rmtree(tmp_dir, ignore_errors=True)

if __name__ == '__main__':
    unittest.main(verbosity=2)
