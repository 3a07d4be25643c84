from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype
from sklearn.utils import check_random_state

from .discretization import FeatureBins


class TrainingStatistics:
    """
    Everything the sampler needs to know about the training distribution.

    Numeric columns are continuous features: their mean, standard deviation,
    range and (when binning) their ``FeatureBins`` are kept. Every other
    column (object, category, bool) is categorical and keeps the relative
    frequency of each observed level.
    """

    def __init__(self,
                 feature_names: List[str],
                 categorical: List[str],
                 bins: Dict[str, FeatureBins],
                 means: Dict[str, float],
                 stds: Dict[str, float],
                 ranges: Dict[str, Tuple[float, float]],
                 levels: Dict[str, Tuple[np.ndarray, np.ndarray]],
                 dtypes: Dict[str, object]):
        self.feature_names = feature_names
        self.categorical = categorical
        self.bins = bins
        self.means = means
        self.stds = stds
        self.ranges = ranges
        self.levels = levels
        self.dtypes = dtypes

    @classmethod
    def from_frame(cls,
                   data: pd.DataFrame,
                   bin_continuous: bool = True,
                   n_bins: int = 4,
                   quantile_bins: bool = True) -> 'TrainingStatistics':
        if len(data) == 0:
            raise ValueError("Training data is empty")

        feature_names = [str(c) for c in data.columns]
        categorical, bins, means, stds, ranges, levels, dtypes = [], {}, {}, {}, {}, {}, {}
        for name, column in zip(feature_names, data.columns):
            values = data[column]
            dtypes[name] = values.dtype
            if is_numeric_dtype(values) and not is_bool_dtype(values):
                numeric = values.to_numpy(dtype=float)
                means[name] = float(np.nanmean(numeric))
                std = float(np.nanstd(numeric))
                stds[name] = std if std > 0 else 1.0
                ranges[name] = (float(np.nanmin(numeric)), float(np.nanmax(numeric)))
                if bin_continuous:
                    bins[name] = FeatureBins.from_values(numeric, n_bins, quantile_bins)
            else:
                categorical.append(name)
                counts = values.value_counts(normalize=True, sort=False)
                counts = counts[counts > 0]
                levels[name] = (counts.index.to_numpy(dtype=object), counts.to_numpy(dtype=float))

        return cls(feature_names, categorical, bins, means, stds, ranges, levels, dtypes)

    def is_categorical(self, name: str) -> bool:
        return name in self.levels

    def is_binned(self, name: str) -> bool:
        return name in self.bins


class PerturbationSampler:
    """
    Draws synthetic neighbours of a case from the training distribution.

    Returns the neighbours twice: in the original feature space (what the
    model is queried with) and in the interpretable representation the
    surrogate is fitted on. Row 0 is always the case itself.
    """

    def __init__(self,
                 statistics: TrainingStatistics,
                 use_density: bool = True,
                 random_state: Optional[Union[int, np.random.RandomState]] = None):
        self.statistics = statistics
        self.use_density = use_density
        self.random_state = check_random_state(random_state)

    def _sample_binned(self, name: str, value: float, n: int) -> Tuple[np.ndarray, np.ndarray]:
        bins = self.statistics.bins[name]
        probs = bins.frequencies if self.use_density else None
        drawn = self.random_state.choice(bins.n_bins, size=n, p=probs)
        case_bin = bins.bin_index(value)[0]
        drawn[0] = case_bin

        lows = bins.cuts[drawn]
        highs = bins.cuts[drawn + 1]
        values = lows + self.random_state.random_sample(n) * (highs - lows)
        values[0] = value
        return values, (drawn == case_bin).astype(float)

    def _sample_numeric(self, name: str, value: float, n: int) -> Tuple[np.ndarray, np.ndarray]:
        mean, std = self.statistics.means[name], self.statistics.stds[name]
        if self.use_density:
            values = self.random_state.normal(mean, std, size=n)
        else:
            low, high = self.statistics.ranges[name]
            values = self.random_state.uniform(low, high, size=n)
        values[0] = value
        return values, (values - mean) / std

    def _sample_categorical(self, name: str, value, n: int) -> Tuple[np.ndarray, np.ndarray]:
        levels, probs = self.statistics.levels[name]
        drawn = levels[self.random_state.choice(len(levels), size=n, p=probs if self.use_density else None)]
        drawn[0] = value
        return drawn, (drawn == value).astype(float)

    def sample(self, case: pd.Series, n_permutations: int) -> Tuple[pd.DataFrame, np.ndarray]:
        """
        Args:
            case: One row of features, indexed by feature name
            n_permutations: Number of rows to draw, the case included

        Returns:
            The perturbed rows as a data frame and their interpretable
            representation, shape (n_permutations, n_features)
        """
        if n_permutations < 2:
            raise ValueError(f"n_permutations must be at least 2, got {n_permutations}")

        columns = {}
        representation = np.zeros((n_permutations, len(self.statistics.feature_names)))
        for j, name in enumerate(self.statistics.feature_names):
            value = case[name]
            if self.statistics.is_categorical(name):
                values, encoded = self._sample_categorical(name, value, n_permutations)
                columns[name] = pd.Series(values).astype(self.statistics.dtypes[name])
            elif self.statistics.is_binned(name):
                values, encoded = self._sample_binned(name, float(value), n_permutations)
                columns[name] = values
            else:
                values, encoded = self._sample_numeric(name, float(value), n_permutations)
                columns[name] = values
            representation[:, j] = encoded

        return pd.DataFrame(columns, columns=self.statistics.feature_names), representation
