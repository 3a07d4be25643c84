#!/usr/bin/env python
"""
execute.py

Explains a happiness-level classifier with LIME.

  1. Loads the dataset (or generates a synthetic one when no file is given).
  2. Loads the trained MLP from --model, or tunes it by cross-validation
     across all CPU cores and saves it there.
  3. Explains six test cases and writes the feature plots, the explanation
     heatmap, the feature boxplots and the support/contradiction table.

Earlier outputs are moved to <output-dir>/archive/<timestamp>/ first.
All outputs are logged both to the terminal and to <output-dir>/execute.log.
"""

import argparse
import logging
import os

from lime_toolkit.data_generation import SEED
from lime_toolkit.explainers.feature_selection import FEATURE_SELECTION_METHODS
from lime_toolkit.pipeline import N_CASES, run_pipeline
from lime_toolkit.train import ST_NUM_EPOCHS
from lime_toolkit.utils import archive_old_results, setup_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Explain a happiness-level MLP classifier with LIME.")
    parser.add_argument("--data", default=None, help="Dataset file (.csv or .pkl); synthetic data if omitted")
    parser.add_argument("--model", default=None, help="Model file (.pt); trained and saved if missing")
    parser.add_argument("--output-dir", default="artifacts", help="Directory for plots, tables and logs")
    parser.add_argument("--n-features", type=int, default=4, help="Features per explanation")
    parser.add_argument("--n-labels", type=int, default=1, help="Most probable labels to explain per case")
    parser.add_argument("--n-permutations", type=int, default=5000, help="Perturbed samples per case")
    parser.add_argument("--feature-select", default="auto", choices=FEATURE_SELECTION_METHODS)
    parser.add_argument("--dist-fun", default="gower", help="'gower' or a scipy distance metric")
    parser.add_argument("--n-bins", type=int, default=4, help="Bins per continuous feature")
    parser.add_argument("--n-jobs", type=int, default=-1, help="Worker processes for training (-1: all cores)")
    parser.add_argument("--epochs", type=int, default=ST_NUM_EPOCHS, help="Maximum training epochs")
    parser.add_argument("--seed", type=int, default=SEED)
    parser.add_argument("--n-cases", type=int, default=N_CASES, help="Number of cases to explain")
    parser.add_argument("--cases", nargs="*", default=None, help="Explicit case names to explain")
    parser.add_argument("--no-archive", action="store_true", help="Do not archive earlier outputs")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    archive_dir = None
    if not args.no_archive:
        # The trained model is an input of the next run
        keep = ["model.pt"]
        if args.model and os.path.dirname(os.path.abspath(args.model)) == os.path.abspath(args.output_dir):
            keep.append(os.path.basename(args.model))
        archive_dir = archive_old_results(args.output_dir, keep=keep)
    logger = setup_logging(args.output_dir)
    if archive_dir:
        logger.info("Earlier results archived to %s", archive_dir)

    try:
        results = run_pipeline(data_path=args.data,
                               model_path=args.model,
                               output_dir=args.output_dir,
                               n_features=args.n_features,
                               n_labels=args.n_labels,
                               n_permutations=args.n_permutations,
                               feature_select=args.feature_select,
                               dist_fun=args.dist_fun,
                               n_bins=args.n_bins,
                               n_jobs=args.n_jobs,
                               num_epochs=args.epochs,
                               seed=args.seed,
                               cases=args.cases,
                               n_cases=args.n_cases)
    except Exception:
        logger.exception("Pipeline failed")
        raise

    logger.info("Written files:")
    for name, path in results['paths'].items():
        logger.info("  %s: %s", name, path)
    return results


if __name__ == "__main__":
    logging.captureWarnings(True)
    main()
