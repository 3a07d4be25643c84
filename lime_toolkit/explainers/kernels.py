from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist


def gower_distance(perturbations: pd.DataFrame,
                   ranges: Dict[str, Tuple[float, float]],
                   categorical: Sequence[str]) -> np.ndarray:
    """
    Gower distance between row 0 (the case) and every row.

    Numeric features contribute |x - y| / range, categorical features 0 on a
    match and 1 otherwise; the distance is the mean contribution.
    """
    categorical = set(categorical)
    contributions = np.zeros((len(perturbations), perturbations.shape[1]))
    for j, name in enumerate(perturbations.columns):
        column = perturbations[name]
        if name in categorical:
            values = column.to_numpy(dtype=object)
            contributions[:, j] = (values != values[0]).astype(float)
        else:
            low, high = ranges[name]
            span = high - low
            if span > 0:
                values = column.to_numpy(dtype=float)
                contributions[:, j] = np.minimum(np.abs(values - values[0]) / span, 1.0)
    return contributions.mean(axis=1)


def exponential_kernel(distances: np.ndarray, kernel_width: float) -> np.ndarray:
    """sqrt(exp(-d^2 / width^2))"""
    if kernel_width <= 0:
        raise ValueError(f"kernel_width must be positive, got {kernel_width}")
    return np.sqrt(np.exp(-(distances ** 2) / kernel_width ** 2))


def compute_weights(perturbations: pd.DataFrame,
                    representation: np.ndarray,
                    ranges: Dict[str, Tuple[float, float]],
                    categorical: Sequence[str],
                    dist_fun: str = 'gower',
                    kernel_width: Optional[float] = None) -> np.ndarray:
    """
    Similarity weight of every perturbed row with respect to row 0.

    Args:
        perturbations: Perturbed rows in the original feature space
        representation: The same rows in the interpretable representation
        ranges: Training (min, max) of every numeric feature
        categorical: Names of the categorical features
        dist_fun: 'gower', or any metric accepted by scipy's cdist
        kernel_width: Width of the exponential kernel, defaults to
            0.75 * sqrt(n_features); unused for gower

    Returns:
        np.ndarray: Weights in [0, 1], 1 for the case itself and 0 for rows
        whose distance to the case is undefined under ``dist_fun``

    Raises:
        ValueError: For an unknown metric, or one that is undefined for
            every perturbation (e.g. 'correlation' on a constant case row)
    """
    if dist_fun == 'gower':
        return np.clip(1.0 - gower_distance(perturbations, ranges, categorical), 0.0, 1.0)

    if kernel_width is None:
        kernel_width = 0.75 * np.sqrt(representation.shape[1])
    try:
        distances = cdist(representation[:1], representation, metric=dist_fun).ravel()
    except ValueError as e:
        raise ValueError(f"Unknown distance function '{dist_fun}'") from e

    distances[0] = 0.0
    undefined = ~np.isfinite(distances)
    if undefined[1:].all():
        raise ValueError(f"Distance '{dist_fun}' is undefined between the case and its perturbations")
    weights = exponential_kernel(np.where(undefined, 0.0, distances), kernel_width)
    weights[undefined] = 0.0
    return weights
