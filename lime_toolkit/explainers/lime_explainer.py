import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import torch
from sklearn.linear_model import Ridge

from .base_explainer import BaseExplainer
from .feature_selection import select_features
from .kernels import compute_weights
from .sampling import PerturbationSampler, TrainingStatistics

logger = logging.getLogger(__name__)

EXPLANATION_COLUMNS = [
    'model_type', 'case', 'label', 'label_prob', 'model_r2', 'model_intercept',
    'model_prediction', 'feature', 'feature_value', 'feature_weight', 'feature_desc',
    'feature_low', 'feature_high'
]


class LimeExplainer(BaseExplainer):
    """
    Local surrogate explanations for tabular classifiers.

    The explainer learns the training distribution once (bins, frequencies,
    moments). Every explained case is then perturbed, the perturbations are
    scored by the model and weighted by their similarity to the case, and a
    weighted ridge model is fitted per label on the selected features.
    """

    def __init__(self,
                 model: Union[torch.nn.Module, Any],
                 training_data: pd.DataFrame,
                 bin_continuous: bool = True,
                 n_bins: int = 4,
                 quantile_bins: bool = True,
                 use_density: bool = True,
                 class_names: Optional[Sequence[str]] = None,
                 surrogate_alpha: float = 1.0,
                 random_state: Optional[Union[int, np.random.RandomState]] = None,
                 device: str = 'cpu'):
        super().__init__(model, class_names, device)
        self.bin_continuous = bin_continuous
        self.surrogate_alpha = surrogate_alpha
        self.statistics = TrainingStatistics.from_frame(training_data,
                                                        bin_continuous=bin_continuous,
                                                        n_bins=n_bins,
                                                        quantile_bins=quantile_bins)
        self.feature_names = self.statistics.feature_names
        self.sampler = PerturbationSampler(self.statistics, use_density, random_state)
        self.model_type = type(model).__name__

    def _describe(self, name: str, value) -> Dict[str, Any]:
        """Human-readable description and numeric bounds of a feature's interpretable value."""
        if self.statistics.is_categorical(name):
            return {'feature_desc': f"{name} = {value}", 'feature_low': np.nan, 'feature_high': np.nan}
        if self.statistics.is_binned(name):
            bins = self.statistics.bins[name]
            index = int(bins.bin_index(value)[0])
            low, high = bins.bounds(index)
            return {'feature_desc': bins.describe(name, index), 'feature_low': low, 'feature_high': high}
        return {'feature_desc': name, 'feature_low': np.nan, 'feature_high': np.nan}

    def _resolve_labels(self,
                        probabilities: np.ndarray,
                        labels: Optional[Sequence[str]],
                        n_labels: Optional[int]) -> List[int]:
        if labels is not None:
            indices = []
            for label in labels:
                if str(label) not in self.class_names:
                    raise ValueError(f"Unknown label '{label}', model classes are {self.class_names}")
                indices.append(self.class_names.index(str(label)))
            return indices
        if n_labels < 1 or n_labels > len(self.class_names):
            raise ValueError(f"n_labels must be between 1 and {len(self.class_names)}, got {n_labels}")
        return [int(i) for i in np.argsort(-probabilities, kind='stable')[:n_labels]]

    def _explain_case(self,
                      case_id,
                      case: pd.Series,
                      labels: Optional[Sequence[str]],
                      n_labels: Optional[int],
                      n_features: int,
                      n_permutations: int,
                      feature_select: str,
                      dist_fun: str,
                      kernel_width: Optional[float]) -> List[Dict[str, Any]]:
        perturbations, representation = self.sampler.sample(case, n_permutations)
        probabilities = self._predict_proba(perturbations)
        weights = compute_weights(perturbations, representation,
                                  self.statistics.ranges, self.statistics.categorical,
                                  dist_fun=dist_fun, kernel_width=kernel_width)

        rows = []
        for label_index in self._resolve_labels(probabilities[0], labels, n_labels):
            target = probabilities[:, label_index]
            selected = select_features(representation, target, weights, n_features, feature_select)

            surrogate = Ridge(alpha=self.surrogate_alpha, fit_intercept=True)
            surrogate.fit(representation[:, selected], target, sample_weight=weights)
            r2 = surrogate.score(representation[:, selected], target, sample_weight=weights)
            local_prediction = surrogate.predict(representation[:1, selected])[0]

            ranked = sorted(zip(selected, surrogate.coef_), key=lambda item: -abs(item[1]))
            for column, weight in ranked:
                name = self.feature_names[column]
                row = {
                    'model_type': self.model_type,
                    'case': case_id,
                    'label': self.class_names[label_index],
                    'label_prob': float(probabilities[0, label_index]),
                    'model_r2': float(r2),
                    'model_intercept': float(surrogate.intercept_),
                    'model_prediction': float(local_prediction),
                    'feature': name,
                    'feature_value': case[name],
                    'feature_weight': float(weight)
                }
                row.update(self._describe(name, case[name]))
                rows.append(row)

            logger.debug("Case %s, label %s: R^2 %.3f with features %s",
                         case_id, self.class_names[label_index], r2,
                         [self.feature_names[c] for c in selected])
        return rows

    def explain(self,
                cases: pd.DataFrame,
                labels: Optional[Sequence[str]] = None,
                n_labels: Optional[int] = None,
                n_features: int = 5,
                n_permutations: int = 5000,
                feature_select: str = 'auto',
                dist_fun: str = 'gower',
                kernel_width: Optional[float] = None) -> pd.DataFrame:
        """
        Explain the model's predictions for a set of cases.

        Args:
            cases: Rows to explain, identified by their index
            labels: Labels to explain for every case
            n_labels: Explain the n most probable labels of each case instead
            n_features: Number of features per explanation
            n_permutations: Number of perturbed samples per case
            feature_select: Feature selection strategy
            dist_fun: 'gower' or a scipy distance metric
            kernel_width: Kernel width for non-gower distances

        Returns:
            pd.DataFrame: One row per (case, label, feature)
        """
        if (labels is None) == (n_labels is None):
            raise ValueError("Exactly one of 'labels' and 'n_labels' must be given")
        if isinstance(cases, pd.Series):
            cases = cases.to_frame().T.infer_objects()
        missing = [name for name in self.feature_names if name not in cases.columns]
        if missing:
            raise KeyError(f"Cases are missing feature columns: {missing}")

        rows = []
        for case_id, case in cases[self.feature_names].iterrows():
            rows.extend(self._explain_case(case_id, case, labels, n_labels, n_features,
                                           n_permutations, feature_select, dist_fun, kernel_width))

        explanation = pd.DataFrame(rows, columns=EXPLANATION_COLUMNS)
        logger.info("Explained %d cases (%d explanation rows)", len(cases), len(explanation))
        return explanation

    def explain_instance(self,
                         case: pd.Series,
                         label: Optional[str] = None,
                         n_features: int = 5,
                         **kwargs) -> Dict[str, Any]:
        """
        Explain a single case for one label (the predicted label by default).
        """
        frame = case.to_frame().T.infer_objects() if isinstance(case, pd.Series) else case
        if len(frame) != 1:
            raise ValueError(f"explain_instance expects a single case, got {len(frame)}")
        probabilities = self._predict_proba(frame[self.feature_names])[0]
        prediction = self.class_names[int(np.argmax(probabilities))]

        explanation = self.explain(frame,
                                   labels=[label if label is not None else prediction],
                                   n_features=n_features,
                                   **kwargs)
        return {
            'prediction': prediction,
            'probabilities': dict(zip(self.class_names, probabilities.tolist())),
            'attributions': dict(zip(explanation['feature'], explanation['feature_weight'])),
            'local_model_accuracy': float(explanation['model_r2'].iloc[0]) if len(explanation) else np.nan,
            'explanation': explanation
        }
