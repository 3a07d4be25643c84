"""
Local surrogate (LIME) explanations for tabular classifiers.
"""

from .base_explainer import BaseExplainer
from .discretization import FeatureBins
from .sampling import PerturbationSampler, TrainingStatistics
from .kernels import compute_weights, exponential_kernel, gower_distance
from .feature_selection import FEATURE_SELECTION_METHODS, select_features
from .lime_explainer import LimeExplainer
from .visualization_utils import (
    plot_features,
    plot_explanations,
    plot_feature_boxplots,
    support_table
)

__all__ = [
    'BaseExplainer',
    'FeatureBins',
    'PerturbationSampler',
    'TrainingStatistics',
    'compute_weights',
    'exponential_kernel',
    'gower_distance',
    'FEATURE_SELECTION_METHODS',
    'select_features',
    'LimeExplainer',
    'plot_features',
    'plot_explanations',
    'plot_feature_boxplots',
    'support_table'
]
