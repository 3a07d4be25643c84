import os
import sys
import json
import shutil
import logging
import numpy as np
import pandas as pd
from datetime import datetime
from typing import Dict, Optional, Sequence
from sklearn.metrics import accuracy_score, confusion_matrix

from .explainers.visualization_utils import plot_features, support_table

logger = logging.getLogger(__name__)


def setup_logging(output_dir: str = "artifacts",
                  log_name: str = "execute.log",
                  level: int = logging.INFO) -> logging.Logger:
    """Log to the terminal and to a log file in the output directory."""
    os.makedirs(output_dir, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(output_dir, log_name), mode='w')
        ],
        force=True
    )
    return logging.getLogger()


def archive_old_results(output_dir: str = "artifacts", keep: Sequence[str] = ()) -> Optional[str]:
    """Archive old results into a timestamped folder."""
    if not os.path.exists(output_dir):
        return None

    files = [f for f in os.listdir(output_dir) if f != "archive" and f not in keep]
    if not files:
        return None

    archive_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    archive_dir = os.path.join(output_dir, "archive", archive_timestamp)
    os.makedirs(archive_dir, exist_ok=True)

    for file in files:
        src = os.path.join(output_dir, file)
        dst = os.path.join(archive_dir, file)
        shutil.move(src, dst)

    logger.info("Archived old results to: %s", archive_dir)
    return archive_dir


def save_predictions(data: pd.DataFrame,
                     y_true: Sequence[str],
                     y_pred: Sequence[str],
                     probabilities: np.ndarray,
                     class_names: Sequence[str],
                     model_name: str,
                     output_dir: str = "artifacts") -> Dict[str, str]:
    """Save predictions and evaluation metrics to files."""
    os.makedirs(output_dir, exist_ok=True)

    y_true = np.asarray(y_true, dtype=str)
    y_pred = np.asarray(y_pred, dtype=str)
    class_names = [str(c) for c in class_names]

    results_df = pd.DataFrame({
        'true_label': y_true,
        'predicted_label': y_pred,
        'correct_prediction': y_true == y_pred
    }, index=data.index)
    for i, name in enumerate(class_names):
        results_df[f'prob_{name}'] = probabilities[:, i]

    total_samples = len(y_true)
    correct_predictions = int(np.sum(y_true == y_pred))
    accuracy = accuracy_score(y_true, y_pred) if total_samples else float('nan')

    filepath = os.path.join(output_dir, f"{model_name}_predictions.csv")
    results_df.to_csv(filepath)

    matrix = confusion_matrix(y_true, y_pred, labels=class_names)
    summary_file = os.path.join(output_dir, f"{model_name}_summary.txt")
    with open(summary_file, 'w') as f:
        f.write(f"Model: {model_name}\n")
        f.write(f"Total Samples: {total_samples}\n")
        f.write(f"Correct Predictions: {correct_predictions}\n")
        f.write(f"Accuracy: {accuracy:.4f}\n")
        f.write("\nConfusion Matrix (rows: true, columns: predicted):\n")
        f.write(pd.DataFrame(matrix, index=class_names, columns=class_names).to_string())
        f.write("\n")

    logger.info("Results saved to %s", filepath)
    logger.info("Summary saved to %s", summary_file)

    return {
        'results': filepath,
        'summary': summary_file
    }


class ResultsLogger:
    """Logger for explanation results with visualizations and metrics."""

    def __init__(self, output_dir: str = "artifacts"):
        self.output_dir = output_dir
        self.log_dir = os.path.join(output_dir, "cases")
        os.makedirs(self.log_dir, exist_ok=True)

    def log_explanation(self,
                        case_data: pd.Series,
                        explanation: pd.DataFrame,
                        probabilities: Dict[str, float],
                        method_name: str = "LIME",
                        case_name: Optional[str] = None) -> str:
        case_id = case_name or str(case_data.name) or datetime.now().strftime("%H%M%S")
        safe_id = "".join(c if c.isalnum() or c in "-_" else "_" for c in str(case_id))
        case_dir = os.path.join(self.log_dir, f"{method_name}_{safe_id}")
        os.makedirs(case_dir, exist_ok=True)

        case_explanation = explanation[explanation['case'] == case_data.name]
        if len(case_explanation):
            plot_features(case_explanation, ncol=len(case_explanation['label'].unique()),
                          save_path=os.path.join(case_dir, 'feature_plot.png'))

        table = support_table(case_explanation)
        results = {
            'case': str(case_id),
            'input': {k: (v.item() if hasattr(v, 'item') else v) for k, v in case_data.items()},
            'probabilities': {k: float(v) for k, v in probabilities.items()},
            'predicted': max(probabilities, key=probabilities.get),
            'explanations': [
                {
                    'label': label,
                    'probability': float(group['label_prob'].iloc[0]),
                    'local_model_r2': float(group['model_r2'].iloc[0]),
                    'intercept': float(group['model_intercept'].iloc[0]),
                    'local_prediction': float(group['model_prediction'].iloc[0]),
                    'weights': dict(zip(group['feature_desc'], group['feature_weight'].astype(float)))
                }
                for label, group in case_explanation.groupby('label', sort=False)
            ]
        }

        with open(os.path.join(case_dir, 'results.json'), 'w') as f:
            json.dump(results, f, indent=2, default=str)

        with open(os.path.join(case_dir, 'summary.txt'), 'w') as f:
            f.write(f"Explanation Summary for {method_name}\n")
            f.write(f"{'='*50}\n\n")
            f.write(f"Case: {case_id}\n")
            f.write(f"Input:\n{case_data.to_string()}\n\n")
            f.write(f"Predicted Label: {results['predicted']}\n")
            for _, row in table.iterrows():
                f.write(f"\nLabel: {row['label']} (probability {row['probability']:.4f}, "
                        f"explanation fit {row['explanation_fit']:.4f})\n")
                f.write(f"  Supports: {row['supports'] or '-'}\n")
                f.write(f"  Contradicts: {row['contradicts'] or '-'}\n")

        return case_dir
