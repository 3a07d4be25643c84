from typing import Sequence, Tuple, Union

import numpy as np


class FeatureBins:
    """
    Bins of one continuous feature.

    ``cuts`` holds the bin edges learned from the training data, including
    the training minimum and maximum. Value ``v`` falls into bin ``i`` when
    ``cuts[i] < v <= cuts[i + 1]``; the first bin is open below and the last
    bin open above, so every real value has a bin.
    """

    def __init__(self, cuts: Sequence[float], frequencies: Sequence[float]):
        cuts = np.asarray(cuts, dtype=float)
        frequencies = np.asarray(frequencies, dtype=float)
        if cuts.ndim != 1 or len(cuts) < 2:
            raise ValueError(f"Need at least two cuts, got {cuts}")
        if np.any(np.diff(cuts) < 0):
            raise ValueError(f"Cuts must be sorted, got {cuts}")
        if len(frequencies) != len(cuts) - 1:
            raise ValueError(f"Expected {len(cuts) - 1} bin frequencies, got {len(frequencies)}")
        self.cuts = cuts
        self.frequencies = frequencies

    @classmethod
    def from_values(cls, values: Sequence[float], n_bins: int = 4, quantile_bins: bool = True) -> 'FeatureBins':
        """Learn the bins of a feature from its training values."""
        if n_bins < 1:
            raise ValueError(f"n_bins must be at least 1, got {n_bins}")
        values = np.asarray(values, dtype=float)
        values = values[~np.isnan(values)]
        if len(values) == 0:
            raise ValueError("Cannot bin a feature without values")

        if quantile_bins:
            cuts = np.quantile(values, np.linspace(0, 1, n_bins + 1))
        else:
            cuts = np.linspace(values.min(), values.max(), n_bins + 1)
        cuts = np.unique(cuts)
        if len(cuts) == 1:
            # Constant feature
            cuts = np.array([cuts[0], cuts[0]])

        bins = cls(cuts, np.ones(len(cuts) - 1))
        counts = np.bincount(bins.bin_index(values), minlength=bins.n_bins)
        bins.frequencies = counts / counts.sum()
        return bins

    @property
    def n_bins(self) -> int:
        return len(self.cuts) - 1

    def bin_index(self, values: Union[float, Sequence[float]]) -> np.ndarray:
        """Index of the bin of each value."""
        values = np.atleast_1d(np.asarray(values, dtype=float))
        return np.searchsorted(self.cuts[1:-1], values, side='left')

    def bounds(self, index: int) -> Tuple[float, float]:
        """(low, high) of a bin, with infinite outer edges."""
        low = -np.inf if index == 0 else self.cuts[index]
        high = np.inf if index == self.n_bins - 1 else self.cuts[index + 1]
        return low, high

    def training_range(self, index: int) -> Tuple[float, float]:
        """(low, high) of a bin, limited to the training range."""
        return self.cuts[index], self.cuts[index + 1]

    def describe(self, name: str, index: int) -> str:
        if self.n_bins == 1:
            return name
        low, high = self.bounds(index)
        if index == 0:
            return f"{name} <= {high:.2f}"
        if index == self.n_bins - 1:
            return f"{low:.2f} < {name}"
        return f"{low:.2f} < {name} <= {high:.2f}"

    def __repr__(self) -> str:
        return f"FeatureBins(cuts={np.round(self.cuts, 4).tolist()})"
