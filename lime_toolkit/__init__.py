"""
LIME toolkit: explaining a happiness-level MLP classifier
with local surrogate models on tabular data.
"""

from .data_generation import (
    HAPPINESS_FEATURES,
    LABEL_COLUMN,
    LABEL_LEVELS,
    SEED,
    generate_happiness_dataset,
    discretize_scores,
    load_dataset,
    save_dataset,
    prepare_data
)
from .models import (
    HappinessMLP,
    TabularClassifier
)
from .train import (
    train_mlp,
    fit_classifier,
    tune_mlp,
    DEFAULT_PARAM_GRID,
    ST_NUM_EPOCHS
)
from .utils import (
    archive_old_results,
    save_predictions,
    setup_logging,
    ResultsLogger
)
from .explainers.base_explainer import BaseExplainer
from .explainers.lime_explainer import LimeExplainer
from .explainers.visualization_utils import (
    plot_features,
    plot_explanations,
    plot_feature_boxplots,
    support_table
)
from .pipeline import run_pipeline, select_cases

__all__ = [
    # Data
    "HAPPINESS_FEATURES",
    "LABEL_COLUMN",
    "LABEL_LEVELS",
    "SEED",
    "generate_happiness_dataset",
    "discretize_scores",
    "load_dataset",
    "save_dataset",
    "prepare_data",

    # Models
    "HappinessMLP",
    "TabularClassifier",

    # Training
    "train_mlp",
    "fit_classifier",
    "tune_mlp",
    "DEFAULT_PARAM_GRID",
    "ST_NUM_EPOCHS",

    # Utilities
    "archive_old_results",
    "save_predictions",
    "setup_logging",
    "ResultsLogger",

    # Explainers
    "BaseExplainer",
    "LimeExplainer",
    "plot_features",
    "plot_explanations",
    "plot_feature_boxplots",
    "support_table",

    # Pipeline
    "run_pipeline",
    "select_cases"
]

__version__ = "0.1.0"
