import logging
import os
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype
from sklearn.model_selection import train_test_split

logger = logging.getLogger(__name__)

# Constants
SEED = 42
HAPPINESS_FEATURES = [
    'gdp_per_capita',
    'social_support',
    'life_expectancy',
    'freedom',
    'generosity',
    'corruption'
]
SCORE_COLUMN = 'happiness_score'
LABEL_COLUMN = 'happiness_level'
LABEL_LEVELS = ['low', 'medium', 'high']

# Contribution of each feature to the synthetic happiness score
_FEATURE_EFFECTS = {
    'gdp_per_capita': 1.1,
    'social_support': 1.3,
    'life_expectancy': 1.0,
    'freedom': 1.4,
    'generosity': 0.4,
    'corruption': 0.8
}


def generate_happiness_dataset(n_samples: int = 156, seed: int = SEED) -> pd.DataFrame:
    """
    Generates a synthetic country-level happiness dataset.

    The feature ranges follow the World Happiness Report tables: every
    feature is a non-negative index and the happiness score is roughly a
    weighted sum of the features plus a residual.

    Args:
        n_samples: Number of countries
        seed: Seed for the random generator

    Returns:
        pd.DataFrame: Indexed by country, with the feature columns, the
        happiness score and its three-level label
    """
    rng = np.random.RandomState(seed)

    # A shared latent prosperity factor keeps the features correlated
    prosperity = rng.beta(2.0, 2.0, size=n_samples)
    data = {
        'gdp_per_capita': np.clip(1.6 * prosperity + rng.normal(0, 0.15, n_samples), 0, None),
        'social_support': np.clip(0.6 + 0.9 * prosperity + rng.normal(0, 0.12, n_samples), 0, None),
        'life_expectancy': np.clip(1.0 * prosperity + rng.normal(0, 0.1, n_samples), 0, None),
        'freedom': np.clip(0.25 + 0.35 * prosperity + rng.normal(0, 0.1, n_samples), 0, None),
        'generosity': np.clip(rng.gamma(4.0, 0.05, n_samples), 0, None),
        'corruption': np.clip(rng.exponential(0.08, n_samples) + 0.1 * prosperity ** 3, 0, None)
    }
    frame = pd.DataFrame(data)

    score = 2.0 + sum(effect * frame[name] for name, effect in _FEATURE_EFFECTS.items())
    frame[SCORE_COLUMN] = score + rng.normal(0, 0.3, n_samples)
    frame[LABEL_COLUMN] = discretize_scores(frame[SCORE_COLUMN])
    frame.index = pd.Index([f"Country {i + 1:03d}" for i in range(n_samples)], name='country')

    logger.info("Generated synthetic happiness dataset with %d countries", n_samples)
    return frame


def discretize_scores(scores: Sequence[float],
                      levels: List[str] = LABEL_LEVELS,
                      method: str = 'quantile') -> pd.Categorical:
    """
    Discretizes a continuous score into ordered levels.

    Args:
        scores: Continuous scores
        levels: Level names, lowest first
        method: 'quantile' for equally populated levels, 'width' for equally
            wide score ranges

    Returns:
        pd.Categorical: Ordered categorical with the given levels
    """
    scores = pd.Series(np.asarray(scores, dtype=float))
    if method == 'quantile':
        binned = pd.qcut(scores, q=len(levels), labels=levels)
    elif method == 'width':
        binned = pd.cut(scores, bins=len(levels), labels=levels)
    else:
        raise ValueError(f"Unknown discretization method '{method}', expected 'quantile' or 'width'")
    return pd.Categorical(binned, categories=levels, ordered=True)


def load_dataset(path: str,
                 label_column: str = LABEL_COLUMN,
                 score_column: str = SCORE_COLUMN) -> pd.DataFrame:
    """
    Loads a serialized dataset (.csv or .pkl).

    The first CSV column is used as the index. When the label column is
    missing but the score column exists, the label is derived from the score.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dataset file not found: {path}")

    extension = os.path.splitext(path)[1].lower()
    if extension == '.csv':
        data = pd.read_csv(path, index_col=0)
    elif extension in ('.pkl', '.pickle'):
        data = pd.read_pickle(path)
    else:
        raise ValueError(f"Unsupported dataset format '{extension}', expected .csv or .pkl")

    if label_column not in data.columns:
        if score_column not in data.columns:
            raise KeyError(f"Dataset has neither a '{label_column}' nor a '{score_column}' column")
        data[label_column] = discretize_scores(data[score_column])
    elif set(data[label_column].astype(str)) <= set(LABEL_LEVELS):
        data[label_column] = pd.Categorical(data[label_column].astype(str),
                                            categories=LABEL_LEVELS, ordered=True)

    logger.info("Loaded dataset from %s (%d rows, %d columns)", path, len(data), data.shape[1])
    return data


def save_dataset(data: pd.DataFrame, path: str) -> str:
    """Serializes a dataset as .csv or .pkl depending on the file extension."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if path.lower().endswith('.csv'):
        data.to_csv(path)
    else:
        data.to_pickle(path)
    logger.info("Dataset saved to %s", path)
    return path


def feature_columns_of(data: pd.DataFrame,
                       label_column: str = LABEL_COLUMN,
                       score_column: str = SCORE_COLUMN) -> List[str]:
    """Returns the numeric columns usable as model inputs (everything but label and score)."""
    candidates = [column for column in data.columns if column not in (label_column, score_column)]
    skipped = [column for column in candidates if not is_numeric_dtype(data[column])]
    if skipped:
        logger.warning("Ignoring non-numeric columns as model inputs: %s", skipped)
    return [column for column in candidates if column not in skipped]


def prepare_data(data: pd.DataFrame,
                 feature_columns: Optional[List[str]] = None,
                 label_column: str = LABEL_COLUMN,
                 test_ratio: float = 0.2,
                 seed: int = SEED) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Splits the dataset into stratified train and test frames.

    Args:
        data: Full dataset
        feature_columns: Model input columns, defaults to every non-label column
        label_column: Name of the label column
        test_ratio: Proportion for the test set
        seed: Seed for the split

    Returns:
        Two frames (train, test), each holding the feature columns and the label
    """
    if not 0.0 < test_ratio < 1.0:
        raise ValueError(f"test_ratio must be between 0 and 1, got {test_ratio}")
    if label_column not in data.columns:
        raise KeyError(f"Label column '{label_column}' not in dataset")

    if feature_columns is None:
        feature_columns = feature_columns_of(data, label_column)
    missing = [column for column in feature_columns if column not in data.columns]
    if missing:
        raise KeyError(f"Feature columns missing from dataset: {missing}")

    frame = data[feature_columns + [label_column]]
    train, test = train_test_split(frame,
                                   test_size=test_ratio,
                                   random_state=seed,
                                   stratify=frame[label_column])

    logger.info("Dataset Statistics:")
    logger.info("Training samples: %d, Test samples: %d", len(train), len(test))
    for level, count in train[label_column].value_counts(sort=False).items():
        logger.info("  %s: %d train / %d test", level, count,
                    int((test[label_column] == level).sum()))

    return train, test
