"""
Strategies for choosing the features that appear in a local explanation.

All strategies work on the interpretable representation ``X`` of the
perturbed samples, the model output ``y`` for the explained label and the
similarity ``weights`` of the samples.
"""
import logging
import math
from typing import List

import numpy as np
from sklearn.linear_model import Ridge, lars_path
from sklearn.tree import DecisionTreeRegressor

logger = logging.getLogger(__name__)

FEATURE_SELECTION_METHODS = ('auto', 'none', 'forward_selection', 'highest_weights', 'lasso_path', 'tree')


def forward_selection(X: np.ndarray, y: np.ndarray, weights: np.ndarray, n_features: int) -> List[int]:
    """Greedily add the feature that most improves the weighted R^2 of a ridge fit."""
    selected: List[int] = []
    for _ in range(n_features):
        best_score = -np.inf
        best_feature = None
        for feature in range(X.shape[1]):
            if feature in selected:
                continue
            columns = selected + [feature]
            model = Ridge(alpha=0.01, fit_intercept=True)
            model.fit(X[:, columns], y, sample_weight=weights)
            score = model.score(X[:, columns], y, sample_weight=weights)
            if score > best_score:
                best_score = score
                best_feature = feature
        if best_feature is None:
            break
        selected.append(best_feature)
    return selected


def highest_weights(X: np.ndarray, y: np.ndarray, weights: np.ndarray, n_features: int) -> List[int]:
    """Keep the features with the largest absolute coefficients of a weighted ridge fit."""
    model = Ridge(alpha=0.01, fit_intercept=True)
    model.fit(X, y, sample_weight=weights)
    order = np.argsort(-np.abs(model.coef_), kind='stable')
    return [int(i) for i in order[:n_features]]


def lasso_path(X: np.ndarray, y: np.ndarray, weights: np.ndarray, n_features: int) -> List[int]:
    """Walk the weighted lasso path back from the least regularized end until at most n_features remain."""
    X_mean = np.average(X, axis=0, weights=weights)
    y_mean = np.average(y, weights=weights)
    sqrt_weights = np.sqrt(weights)[:, np.newaxis]
    weighted_X = (X - X_mean) * sqrt_weights
    weighted_y = (y - y_mean) * sqrt_weights.ravel()

    _, _, coefs = lars_path(weighted_X, weighted_y, method='lasso')
    nonzero: np.ndarray = np.array([], dtype=int)
    for i in range(coefs.shape[1] - 1, -1, -1):
        nonzero = coefs[:, i].nonzero()[0]
        if len(nonzero) <= n_features:
            break

    selected = [int(i) for i in nonzero]
    if len(selected) < n_features:
        # The path may end before enough features enter; complete it by coefficient size
        for feature in highest_weights(X, y, weights, X.shape[1]):
            if len(selected) == n_features:
                break
            if feature not in selected:
                selected.append(feature)
    return selected


def tree_selection(X: np.ndarray, y: np.ndarray, weights: np.ndarray, n_features: int) -> List[int]:
    """Rank features by the importances of a shallow weighted regression tree."""
    depth = max(1, math.ceil(math.log2(n_features + 1)))
    tree = DecisionTreeRegressor(max_depth=depth, random_state=0)
    tree.fit(X, y, sample_weight=weights)

    importances = tree.feature_importances_
    selected = [int(i) for i in np.argsort(-importances, kind='stable') if importances[i] > 0][:n_features]
    for feature in highest_weights(X, y, weights, X.shape[1]):
        if len(selected) == n_features:
            break
        if feature not in selected:
            selected.append(feature)
    return selected


def select_features(X: np.ndarray,
                    y: np.ndarray,
                    weights: np.ndarray,
                    n_features: int,
                    method: str = 'auto') -> List[int]:
    """
    Choose which columns of X appear in the explanation.

    Args:
        X: Interpretable representation, shape (n_samples, n_columns)
        y: Model probability of the explained label per sample
        weights: Similarity weight per sample
        n_features: Maximum number of columns to keep
        method: One of FEATURE_SELECTION_METHODS; 'auto' uses forward
            selection up to 6 features and highest weights beyond

    Returns:
        List[int]: Selected column indices, most important first where the
        method defines an order
    """
    if method not in FEATURE_SELECTION_METHODS:
        raise ValueError(f"Unknown feature selection method '{method}', "
                         f"expected one of {FEATURE_SELECTION_METHODS}")
    if n_features < 1:
        raise ValueError(f"n_features must be at least 1, got {n_features}")

    n_columns = X.shape[1]
    if method == 'none' or n_features >= n_columns:
        return list(range(n_columns))
    if method == 'auto':
        method = 'forward_selection' if n_features <= 6 else 'highest_weights'

    if method == 'forward_selection':
        if n_features > 10:
            logger.warning("Forward selection of %d features fits %d ridge models, consider 'highest_weights'",
                           n_features, n_features * n_columns)
        return forward_selection(X, y, weights, n_features)
    if method == 'highest_weights':
        return highest_weights(X, y, weights, n_features)
    if method == 'lasso_path':
        return lasso_path(X, y, weights, n_features)
    return tree_selection(X, y, weights, n_features)
