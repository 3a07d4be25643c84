from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import torch
from torch import nn


class BaseExplainer(ABC):
    """
    Wraps the model under explanation and answers probability queries.

    The model is either a torch module producing logits, or any object with a
    scikit-learn style ``predict_proba``. Modules are fed the feature columns
    as a float tensor, ``predict_proba`` models get the data frame itself.
    """

    def __init__(self,
                 model: Union[nn.Module, Any],
                 class_names: Optional[Sequence[str]] = None,
                 device: str = 'cpu'):
        self.model = model
        self.device = device
        self.is_torch_model = isinstance(model, nn.Module)

        if self.is_torch_model:
            self.model.to(self.device)
            self.model.eval()
        elif not hasattr(model, 'predict_proba'):
            raise TypeError(f"Model of type {type(model).__name__} is neither a torch module "
                            f"nor has a predict_proba method")

        if class_names is None and hasattr(model, 'classes_'):
            class_names = model.classes_
        self.class_names: Optional[List[str]] = \
            [str(c) for c in class_names] if class_names is not None else None

    def _predict_proba(self, data: pd.DataFrame) -> np.ndarray:
        """
        Query the model for class probabilities.

        Args:
            data: Rows to score, in the original feature space

        Returns:
            np.ndarray: Probabilities of shape (n_rows, n_classes)
        """
        if self.is_torch_model:
            x = torch.as_tensor(data.to_numpy(dtype=np.float32)).to(self.device)
            with torch.no_grad():
                probs = torch.softmax(self.model(x), dim=1).cpu().numpy()
        else:
            probs = np.asarray(self.model.predict_proba(data), dtype=float)

        if probs.ndim != 2 or probs.shape[0] != len(data):
            raise ValueError(f"Model returned probabilities of shape {probs.shape} "
                             f"for {len(data)} rows")

        if self.class_names is None:
            self.class_names = [str(i) for i in range(probs.shape[1])]
        elif probs.shape[1] != len(self.class_names):
            raise ValueError(f"Model returned {probs.shape[1]} class probabilities, "
                             f"expected {len(self.class_names)} ({self.class_names})")
        return probs

    @abstractmethod
    def explain(self, cases: pd.DataFrame, **kwargs) -> pd.DataFrame:
        """Main explanation method to be implemented by each explainer."""
        pass
