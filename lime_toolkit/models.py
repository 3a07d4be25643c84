import logging
import os
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import torch
import torch.nn as nn

logger = logging.getLogger(__name__)


class HappinessMLP(nn.Module):
    """
    Multi-layer perceptron for tabular multi-class classification.
    Input: n_features standardized features
    Output: n_classes logits
    """
    def __init__(self, n_features: int, n_classes: int = 3, hidden_size: int = 8, dropout: float = 0.0):
        super(HappinessMLP, self).__init__()
        self.n_features = n_features
        self.n_classes = n_classes
        self.hidden_size = hidden_size
        self.net = nn.Sequential(
            nn.Linear(n_features, hidden_size),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_size, hidden_size),
            nn.ReLU(),
            nn.Linear(hidden_size, n_classes)
        )
        self._init_weights()

    def _init_weights(self):
        for m in self.modules():
            if isinstance(m, nn.Linear):
                nn.init.xavier_uniform_(m.weight)
                nn.init.zeros_(m.bias)

    def forward(self, x):
        return self.net(x.view(-1, self.n_features))


class TabularClassifier:
    """
    A trained MLP bundled with its input standardization and class names.

    Accepts data frames (columns are picked by name) or arrays (columns in
    ``feature_names`` order) and exposes the scikit-learn prediction API.
    """

    def __init__(self,
                 model: HappinessMLP,
                 feature_names: Sequence[str],
                 class_names: Sequence[str],
                 mean: Sequence[float],
                 scale: Sequence[float],
                 params: Optional[dict] = None):
        if len(feature_names) != model.n_features:
            raise ValueError(
                f"Model expects {model.n_features} features, got {len(feature_names)} feature names")
        if len(class_names) != model.n_classes:
            raise ValueError(
                f"Model predicts {model.n_classes} classes, got {len(class_names)} class names")
        self.model = model
        self.feature_names = list(feature_names)
        self.classes_ = np.array(list(class_names), dtype=object)
        self.mean = np.asarray(mean, dtype=np.float32)
        self.scale = np.asarray(scale, dtype=np.float32)
        self.params = dict(params or {})
        self.model.eval()

    def _to_tensor(self, X: Union[pd.DataFrame, np.ndarray]) -> torch.Tensor:
        if isinstance(X, pd.DataFrame):
            missing = [name for name in self.feature_names if name not in X.columns]
            if missing:
                raise KeyError(f"Input is missing feature columns: {missing}")
            X = X[self.feature_names].to_numpy(dtype=np.float32)
        X = np.asarray(X, dtype=np.float32)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[1] != len(self.feature_names):
            raise ValueError(f"Expected {len(self.feature_names)} features, got shape {X.shape}")
        return torch.from_numpy((X - self.mean) / self.scale)

    def predict_proba(self, X: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        self.model.eval()
        with torch.no_grad():
            logits = self.model(self._to_tensor(X))
            return torch.softmax(logits, dim=1).cpu().numpy()

    def predict(self, X: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        return self.classes_[self.predict_proba(X).argmax(axis=1)]

    def save(self, path: str) -> str:
        """Serialize the model weights together with everything needed to rebuild it."""
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        checkpoint = {
            'state_dict': self.model.state_dict(),
            'n_features': self.model.n_features,
            'n_classes': self.model.n_classes,
            'hidden_size': self.model.hidden_size,
            'feature_names': list(self.feature_names),
            'class_names': [str(c) for c in self.classes_],
            'mean': [float(v) for v in self.mean],
            'scale': [float(v) for v in self.scale],
            'params': {k: v.item() if isinstance(v, np.generic) else v
                       for k, v in self.params.items()}
        }
        torch.save(checkpoint, path)
        logger.info("Saved model to %s", path)
        return path

    @classmethod
    def load(cls, path: str) -> 'TabularClassifier':
        if not os.path.exists(path):
            raise FileNotFoundError(f"Model file not found: {path}")
        checkpoint = torch.load(path, map_location='cpu')
        model = HappinessMLP(checkpoint['n_features'],
                             checkpoint['n_classes'],
                             checkpoint['hidden_size'])
        model.load_state_dict(checkpoint['state_dict'])
        logger.info("Loaded weights from %s", path)
        return cls(model,
                   checkpoint['feature_names'],
                   checkpoint['class_names'],
                   checkpoint['mean'],
                   checkpoint['scale'],
                   checkpoint.get('params'))

    def __repr__(self) -> str:
        return (f"TabularClassifier(features={len(self.feature_names)}, "
                f"classes={list(self.classes_)}, hidden_size={self.model.hidden_size})")


def class_names_of(labels: Union[pd.Series, Sequence]) -> List[str]:
    """Ordered class names of a label column (category order when categorical)."""
    if isinstance(labels, pd.Series) and isinstance(labels.dtype, pd.CategoricalDtype):
        return [str(c) for c in labels.cat.categories]
    return sorted({str(v) for v in labels})
