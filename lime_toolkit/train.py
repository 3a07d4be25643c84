import itertools
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype
import torch
import torch.nn as nn
import torch.optim as optim
from joblib import Parallel, delayed
from sklearn.metrics import accuracy_score
from sklearn.model_selection import StratifiedKFold
from sklearn.preprocessing import StandardScaler
from torch.optim.lr_scheduler import ReduceLROnPlateau

from .data_generation import LABEL_COLUMN, SEED
from .models import HappinessMLP, TabularClassifier, class_names_of

logger = logging.getLogger(__name__)

# Constants
ST_NUM_EPOCHS = 500
DEFAULT_PARAM_GRID = {
    'hidden_size': [4, 8, 16],
    'weight_decay': [1e-4, 1e-3, 1e-2]
}


def train_mlp(X: np.ndarray,
              y: np.ndarray,
              n_classes: int,
              hidden_size: int = 8,
              weight_decay: float = 1e-3,
              num_epochs: int = ST_NUM_EPOCHS,
              learning_rate: float = 0.01,
              seed: int = SEED) -> Tuple[HappinessMLP, List[float]]:
    """
    Train an MLP on standardized features with full-batch Adam.

    Args:
        X: Standardized features, shape (n_samples, n_features)
        y: Integer class codes
        n_classes: Number of output classes
        hidden_size: Width of the hidden layers
        weight_decay: L2 penalty passed to the optimizer
        num_epochs: Maximum number of epochs
        learning_rate: Initial learning rate
        seed: Seed for weight initialization

    Returns:
        The trained model (best training loss) and the per-epoch losses
    """
    torch.manual_seed(seed)
    np.random.seed(seed)

    X_tensor = torch.as_tensor(np.asarray(X, dtype=np.float32))
    y_tensor = torch.as_tensor(np.asarray(y, dtype=np.int64))

    model = HappinessMLP(X_tensor.shape[1], n_classes, hidden_size)
    criterion = nn.CrossEntropyLoss()
    optimizer = optim.Adam(model.parameters(), lr=learning_rate, weight_decay=weight_decay)
    scheduler = ReduceLROnPlateau(optimizer, mode='min', factor=0.5, patience=10)

    best_loss = float('inf')
    best_state = None
    patience = 30
    patience_counter = 0

    train_losses = []
    for epoch in range(num_epochs):
        model.train()
        optimizer.zero_grad()
        outputs = model(X_tensor)
        loss = criterion(outputs, y_tensor)
        loss.backward()
        torch.nn.utils.clip_grad_norm_(model.parameters(), 1.0)
        optimizer.step()

        train_losses.append(loss.item())
        scheduler.step(loss.item())

        if loss.item() < best_loss - 1e-6:
            best_loss = loss.item()
            best_state = {k: v.detach().clone() for k, v in model.state_dict().items()}
            patience_counter = 0
        else:
            patience_counter += 1

        if patience_counter >= patience:
            logger.debug("Early stopping at epoch %d", epoch)
            break

        if (epoch + 1) % 100 == 0:
            logger.debug("MLP seed %d: Epoch [%d/%d], Loss: %.4f", seed, epoch + 1, num_epochs, loss.item())

    if best_state is not None:
        model.load_state_dict(best_state)
    model.eval()

    return model, train_losses


def _feature_matrix(train: pd.DataFrame, feature_columns: List[str]) -> np.ndarray:
    """Float32 model inputs; the MLP only takes numeric columns."""
    non_numeric = [column for column in feature_columns if not is_numeric_dtype(train[column])]
    if non_numeric:
        raise ValueError(f"MLP inputs must be numeric, got non-numeric columns: {non_numeric}")
    return train[feature_columns].to_numpy(dtype=np.float32)


def _fit_fold(X: np.ndarray,
              y: np.ndarray,
              train_idx: np.ndarray,
              val_idx: np.ndarray,
              n_classes: int,
              params: Dict[str, float],
              num_epochs: int,
              seed: int) -> float:
    """Train on one fold and return the validation accuracy."""
    torch.set_num_threads(1)
    scaler = StandardScaler().fit(X[train_idx])
    model, _ = train_mlp(scaler.transform(X[train_idx]), y[train_idx], n_classes,
                         num_epochs=num_epochs, seed=seed, **params)
    with torch.no_grad():
        logits = model(torch.as_tensor(scaler.transform(X[val_idx]), dtype=torch.float32))
        predictions = logits.argmax(dim=1).numpy()
    return accuracy_score(y[val_idx], predictions)


def tune_mlp(train: pd.DataFrame,
             feature_columns: Sequence[str],
             label_column: str = LABEL_COLUMN,
             param_grid: Optional[Dict[str, list]] = None,
             n_folds: int = 5,
             num_epochs: int = ST_NUM_EPOCHS,
             n_jobs: int = -1,
             seed: int = SEED) -> Tuple[TabularClassifier, pd.DataFrame]:
    """
    Select MLP hyper-parameters by stratified k-fold cross-validation and
    refit the best configuration on the whole training frame.

    Every (configuration, fold) pair is an independent job, spread over
    ``n_jobs`` worker processes.

    Returns:
        The refitted classifier and a frame with the mean/std CV accuracy of
        every configuration
    """
    param_grid = param_grid or DEFAULT_PARAM_GRID
    feature_columns = list(feature_columns)
    class_names = class_names_of(train[label_column])
    codes = {name: i for i, name in enumerate(class_names)}

    X = _feature_matrix(train, feature_columns)
    y = train[label_column].astype(str).map(codes).to_numpy(dtype=np.int64)

    keys = sorted(param_grid)
    candidates = [dict(zip(keys, values)) for values in itertools.product(*(param_grid[k] for k in keys))]
    folds = list(StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=seed).split(X, y))

    logger.info("Tuning MLP: %d configurations x %d folds on %s workers",
                len(candidates), len(folds), n_jobs)
    scores = Parallel(n_jobs=n_jobs)(
        delayed(_fit_fold)(X, y, train_idx, val_idx, len(class_names), params, num_epochs, seed)
        for params in candidates
        for train_idx, val_idx in folds
    )

    scores = np.asarray(scores).reshape(len(candidates), len(folds))
    cv_results = pd.DataFrame(candidates)
    cv_results['mean_accuracy'] = scores.mean(axis=1)
    cv_results['std_accuracy'] = scores.std(axis=1)
    cv_results = cv_results.sort_values('mean_accuracy', ascending=False).reset_index(drop=True)

    best_params = {k: cv_results.loc[0, k] for k in keys}
    best_params = {k: int(v) if k == 'hidden_size' else float(v) for k, v in best_params.items()}
    logger.info("Best parameters: %s (CV accuracy %.4f)", best_params, cv_results.loc[0, 'mean_accuracy'])

    classifier = fit_classifier(train, feature_columns, label_column,
                                num_epochs=num_epochs, seed=seed, **best_params)
    return classifier, cv_results


def fit_classifier(train: pd.DataFrame,
                   feature_columns: Sequence[str],
                   label_column: str = LABEL_COLUMN,
                   hidden_size: int = 8,
                   weight_decay: float = 1e-3,
                   num_epochs: int = ST_NUM_EPOCHS,
                   learning_rate: float = 0.01,
                   seed: int = SEED) -> TabularClassifier:
    """Fit a single MLP on the whole frame and wrap it as a TabularClassifier."""
    feature_columns = list(feature_columns)
    class_names = class_names_of(train[label_column])
    codes = {name: i for i, name in enumerate(class_names)}

    X = _feature_matrix(train, feature_columns)
    y = train[label_column].astype(str).map(codes).to_numpy(dtype=np.int64)

    scaler = StandardScaler().fit(X)
    model, losses = train_mlp(scaler.transform(X), y, len(class_names),
                              hidden_size=hidden_size,
                              weight_decay=weight_decay,
                              num_epochs=num_epochs,
                              learning_rate=learning_rate,
                              seed=seed)
    classifier = TabularClassifier(model, feature_columns, class_names,
                                   scaler.mean_, scaler.scale_,
                                   params={'hidden_size': hidden_size, 'weight_decay': weight_decay})

    accuracy = accuracy_score(train[label_column].astype(str), classifier.predict(train))
    logger.info("MLP seed %d: %d epochs, final loss %.4f, training accuracy %.4f",
                seed, len(losses), losses[-1], accuracy)
    return classifier
