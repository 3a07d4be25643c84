import math
from typing import List, Optional, Sequence

import pandas as pd
import matplotlib
matplotlib.use('Agg')  # Use Agg backend
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
import seaborn as sns

SUPPORT_COLORS = {'Supports': '#4682B4', 'Contradicts': '#B22222'}


def _finish(fig: plt.Figure, save_path: Optional[str]) -> Optional[plt.Figure]:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches='tight', dpi=300)
        plt.close(fig)
        return None
    return fig


def plot_features(explanation: pd.DataFrame,
                  ncol: int = 2,
                  cases: Optional[Sequence] = None,
                  save_path: Optional[str] = None) -> Optional[plt.Figure]:
    """
    Plot one bar chart per (case, label) with the weight of every explaining
    feature, coloured by whether it supports or contradicts the label.
    """
    if len(explanation) == 0:
        raise ValueError("Nothing to plot: the explanation is empty")
    if cases is not None:
        explanation = explanation[explanation['case'].isin(list(cases))]
        if len(explanation) == 0:
            raise ValueError(f"None of the cases {list(cases)} are in the explanation")

    sns.set_style('whitegrid')
    panels = list(explanation.groupby(['case', 'label'], sort=False))
    n_rows = math.ceil(len(panels) / ncol)
    fig, axes = plt.subplots(n_rows, ncol, figsize=(6 * ncol, 3.5 * n_rows), squeeze=False)

    for ax, ((case, label), panel) in zip(axes.flat, panels):
        panel = panel.assign(abs_weight=panel['feature_weight'].abs()).sort_values('abs_weight')
        colors = [SUPPORT_COLORS['Supports'] if w >= 0 else SUPPORT_COLORS['Contradicts']
                  for w in panel['feature_weight']]
        ax.barh(panel['feature_desc'], panel['feature_weight'], color=colors)
        ax.axvline(0, color='black', linewidth=0.8)
        ax.set_xlabel('Weight')
        first = panel.iloc[0]
        ax.set_title(f"Case: {case}\nLabel: {label}\n"
                     f"Probability: {first['label_prob']:.2f}\n"
                     f"Explanation Fit: {first['model_r2']:.2f}",
                     loc='left', fontsize=9)

    for ax in list(axes.flat)[len(panels):]:
        ax.set_visible(False)

    handles = [mpatches.Patch(color=color, label=name) for name, color in SUPPORT_COLORS.items()]
    fig.legend(handles=handles, loc='lower center', ncol=2, bbox_to_anchor=(0.5, -0.02))
    return _finish(fig, save_path)


def plot_explanations(explanation: pd.DataFrame,
                      save_path: Optional[str] = None) -> Optional[plt.Figure]:
    """
    Heatmap of feature weights with one panel per label: cases along the
    x-axis, feature descriptions along the y-axis.
    """
    if len(explanation) == 0:
        raise ValueError("Nothing to plot: the explanation is empty")

    labels = list(dict.fromkeys(explanation['label']))
    fig, axes = plt.subplots(1, len(labels), figsize=(5 * len(labels), 6), squeeze=False)

    vmax = float(explanation['feature_weight'].abs().max()) or 1.0
    for ax, label in zip(axes[0], labels):
        subset = explanation[explanation['label'] == label]
        grid = subset.pivot_table(index='feature_desc', columns='case',
                                  values='feature_weight', aggfunc='mean', sort=False)
        sns.heatmap(grid,
                    ax=ax,
                    cmap='RdBu',
                    center=0,
                    vmin=-vmax,
                    vmax=vmax,
                    annot=False,
                    cbar=ax is axes[0][-1],
                    linewidths=0.5)
        ax.set_title(f"Label: {label}")
        ax.set_xlabel('Case')
        ax.set_ylabel('Feature' if ax is axes[0][0] else '')
        ax.tick_params(axis='x', rotation=45)

    return _finish(fig, save_path)


def plot_feature_boxplots(data: pd.DataFrame,
                          label_column: str,
                          feature_columns: Optional[List[str]] = None,
                          ncol: int = 3,
                          save_path: Optional[str] = None) -> Optional[plt.Figure]:
    """Boxplots of every feature's distribution, split by class."""
    if label_column not in data.columns:
        raise KeyError(f"Label column '{label_column}' not in data")
    if feature_columns is None:
        feature_columns = [c for c in data.columns
                           if c != label_column and pd.api.types.is_numeric_dtype(data[c])]

    sns.set_style('whitegrid')
    n_rows = math.ceil(len(feature_columns) / ncol)
    fig, axes = plt.subplots(n_rows, ncol, figsize=(4.5 * ncol, 3.5 * n_rows), squeeze=False)

    for ax, feature in zip(axes.flat, feature_columns):
        sns.boxplot(data=data, x=label_column, y=feature, hue=label_column,
                    palette='muted', legend=False, ax=ax)
        ax.set_title(feature)
        ax.set_xlabel('')
        ax.set_ylabel('')

    for ax in list(axes.flat)[len(feature_columns):]:
        ax.set_visible(False)

    return _finish(fig, save_path)


def support_table(explanation: pd.DataFrame) -> pd.DataFrame:
    """
    Summarize an explanation as one row per (case, label) listing the
    supporting and contradicting feature descriptions.
    """
    records = []
    for (case, label), group in explanation.groupby(['case', 'label'], sort=False):
        supports = group[group['feature_weight'] >= 0]
        contradicts = group[group['feature_weight'] < 0]
        records.append({
            'case': case,
            'label': label,
            'probability': group['label_prob'].iloc[0],
            'explanation_fit': group['model_r2'].iloc[0],
            'supports': '; '.join(supports['feature_desc']),
            'contradicts': '; '.join(contradicts['feature_desc']),
            'strongest_feature': group.loc[group['feature_weight'].abs().idxmax(), 'feature_desc']
        })
    return pd.DataFrame(records, columns=['case', 'label', 'probability', 'explanation_fit',
                                          'supports', 'contradicts', 'strongest_feature'])
