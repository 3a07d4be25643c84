"""
End-to-end walk-through: load the happiness data, train (or load) the MLP,
explain six example cases with LIME and render the plots and tables.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .data_generation import (
    LABEL_COLUMN,
    SEED,
    feature_columns_of,
    generate_happiness_dataset,
    load_dataset,
    prepare_data,
    save_dataset
)
from .explainers.lime_explainer import LimeExplainer
from .explainers.visualization_utils import (
    plot_explanations,
    plot_feature_boxplots,
    plot_features,
    support_table
)
from .models import TabularClassifier
from .train import ST_NUM_EPOCHS, tune_mlp
from .utils import ResultsLogger, save_predictions

logger = logging.getLogger(__name__)

N_CASES = 6


def select_cases(data: pd.DataFrame,
                 classifier: TabularClassifier,
                 n_cases: int = N_CASES,
                 names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Pick the cases to explain.

    Named cases are taken as given. Otherwise the cases are spread over the
    predicted classes: each class contributes its most confidently predicted
    rows in turn until ``n_cases`` are chosen.
    """
    if names:
        missing = [name for name in names if name not in data.index]
        if missing:
            raise KeyError(f"Cases not found in data: {missing}")
        return data.loc[list(names)]

    probabilities = pd.DataFrame(classifier.predict_proba(data), index=data.index,
                                 columns=[str(c) for c in classifier.classes_])
    predicted = probabilities.idxmax(axis=1)
    queues = []
    for name in probabilities.columns:
        members = probabilities.loc[predicted == name, name].sort_values(ascending=False)
        queues.append(list(members.index))

    chosen: List = []
    while len(chosen) < min(n_cases, len(data)) and any(queues):
        for queue in queues:
            if queue and len(chosen) < n_cases:
                chosen.append(queue.pop(0))
    return data.loc[chosen]


def run_pipeline(data_path: Optional[str] = None,
                 model_path: Optional[str] = None,
                 output_dir: str = "artifacts",
                 label_column: str = LABEL_COLUMN,
                 n_features: int = 4,
                 n_labels: int = 1,
                 n_permutations: int = 5000,
                 feature_select: str = 'auto',
                 dist_fun: str = 'gower',
                 n_bins: int = 4,
                 n_jobs: int = -1,
                 num_epochs: int = ST_NUM_EPOCHS,
                 param_grid: Optional[Dict[str, list]] = None,
                 seed: int = SEED,
                 cases: Optional[Sequence[str]] = None,
                 n_cases: int = N_CASES) -> Dict[str, Any]:
    """
    Run the whole tutorial and write every artifact to ``output_dir``.

    Returns:
        Dict with the explanation frame, the support table, the classifier
        and the paths of the written files
    """
    os.makedirs(output_dir, exist_ok=True)
    paths: Dict[str, str] = {}

    if data_path:
        data = load_dataset(data_path, label_column=label_column)
    else:
        data = generate_happiness_dataset(seed=seed)
        paths['dataset'] = save_dataset(data, os.path.join(output_dir, "happiness.csv"))

    model_path = model_path or os.path.join(output_dir, "model.pt")
    classifier = TabularClassifier.load(model_path) if os.path.exists(model_path) else None
    feature_columns = classifier.feature_names if classifier else feature_columns_of(data, label_column)

    train, test = prepare_data(data, feature_columns, label_column, seed=seed)

    if classifier is None:
        logger.info("Training MLP classifier...")
        classifier, cv_results = tune_mlp(train, feature_columns, label_column,
                                          param_grid=param_grid,
                                          num_epochs=num_epochs,
                                          n_jobs=n_jobs,
                                          seed=seed)
        paths['cv_results'] = os.path.join(output_dir, "cv_results.csv")
        cv_results.to_csv(paths['cv_results'], index=False)
        paths['model'] = classifier.save(model_path)

    probabilities = classifier.predict_proba(test)
    predictions = classifier.predict(test)
    paths.update(save_predictions(test, test[label_column].astype(str), predictions, probabilities,
                                  classifier.classes_, "mlp", output_dir))

    explainer = LimeExplainer(classifier, train[feature_columns], n_bins=n_bins, random_state=seed)
    chosen = select_cases(test, classifier, n_cases, cases)
    logger.info("Explaining cases: %s", list(chosen.index))
    explanation = explainer.explain(chosen[feature_columns],
                                    n_labels=n_labels,
                                    n_features=n_features,
                                    n_permutations=n_permutations,
                                    feature_select=feature_select,
                                    dist_fun=dist_fun)
    table = support_table(explanation)

    paths['explanations'] = os.path.join(output_dir, "explanations.csv")
    explanation.to_csv(paths['explanations'], index=False)
    paths['support_table'] = os.path.join(output_dir, "support_table.csv")
    table.to_csv(paths['support_table'], index=False)

    paths['feature_plot'] = os.path.join(output_dir, "feature_plot.png")
    plot_features(explanation, ncol=2, save_path=paths['feature_plot'])
    paths['explanation_heatmap'] = os.path.join(output_dir, "explanation_heatmap.png")
    plot_explanations(explanation, save_path=paths['explanation_heatmap'])
    paths['feature_boxplots'] = os.path.join(output_dir, "feature_boxplots.png")
    plot_feature_boxplots(data, label_column, feature_columns, save_path=paths['feature_boxplots'])

    results_logger = ResultsLogger(output_dir)
    case_probabilities = classifier.predict_proba(chosen)
    for (case_id, case), probs in zip(chosen.iterrows(), case_probabilities):
        results_logger.log_explanation(case, explanation,
                                       dict(zip(map(str, classifier.classes_), probs)),
                                       method_name="LIME")

    for _, row in table.iterrows():
        logger.info("%s -> %s (p=%.2f, fit=%.2f) supports: %s | contradicts: %s",
                    row['case'], row['label'], row['probability'], row['explanation_fit'],
                    row['supports'] or '-', row['contradicts'] or '-')
    logger.info("Artifacts written to %s", output_dir)

    return {
        'explanation': explanation,
        'support_table': table,
        'classifier': classifier,
        'cases': chosen,
        'paths': paths
    }
