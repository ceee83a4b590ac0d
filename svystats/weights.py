"""
Design Weight Rescaling Module
==============================

Rescale probability (design/sampling) weights of survey data so they can be
used as weights in multilevel models, following Asparouhov (2006) and
Carle (2009).

References:
    Carle AC. Fitting multilevel models in complex survey data with design
    weights: Recommendations. BMC Medical Research Methodology 2009, 9(49).

    Asparouhov T. General Multi-Level Modeling with Sampling Weights.
    Communications in Statistics - Theory and Methods 2006, 35: 439-460.
"""

import pandas as pd
import numpy as np

from . import config
from .exceptions import InputError, DivisionByZeroError


def _check_columns(df: pd.DataFrame, columns: dict[str, str]) -> None:
    """Raise InputError for any argument whose column is not in df."""
    for arg, col in columns.items():
        if col not in df.columns:
            raise InputError(
                f"`{arg}` must name a column of `x`; column '{col}' not found. "
                f"Available columns: {list(df.columns)}"
            )


def scale_weights(
    x: pd.DataFrame,
    cluster_id: str,
    pweight: str
) -> pd.DataFrame:
    """
    Rescale design weights for multilevel analysis.

    For each cluster j with n_j rows and weight total sum_w_j:
    - svywght_a = w * n_j / sum_w_j   (sums to n_j within the cluster)
    - svywght_b = w / sum_w_j         (sums to one within the cluster)

    Parameters:
        x: Survey data
        cluster_id: Column indicating the grouping structure (strata)
        pweight: Column with the probability (design or sampling) weights

    Returns:
        Copy of x with the two rescaled weight columns appended,
        rows in their original order

    Raises:
        InputError: Column missing or weights not numeric
        DivisionByZeroError: A cluster's weights sum to zero
    """
    if not isinstance(x, pd.DataFrame):
        raise InputError(f"`x` must be a pandas DataFrame, got {type(x).__name__}.")

    _check_columns(x, {'cluster_id': cluster_id, 'pweight': pweight})

    if not pd.api.types.is_numeric_dtype(x[pweight]):
        raise InputError(
            f"`pweight` column '{pweight}' must be numeric, got dtype {x[pweight].dtype}."
        )

    df = x.copy()
    weights = df[pweight].astype(float)
    clusters = df.groupby(cluster_id, dropna=False, sort=False)[pweight]

    # Missing weights make the whole cluster total missing
    sum_w = clusters.transform(lambda w: w.sum(skipna=False)).astype(float)
    n_j = clusters.transform('size').astype(float)

    zero = (sum_w == 0).to_numpy()
    if zero.any():
        bad = pd.unique(df.loc[zero, cluster_id]).tolist()
        raise DivisionByZeroError(
            f"Design weights in `{pweight}` sum to zero for cluster(s) {bad} "
            f"of `{cluster_id}`; weights cannot be rescaled.",
            clusters=bad,
        )

    df[config.WEIGHT_A_COLUMN] = weights * n_j / sum_w
    df[config.WEIGHT_B_COLUMN] = weights / sum_w

    return df


def print_weight_summary(df: pd.DataFrame, cluster_id: str) -> None:
    """Print per-cluster totals of the rescaled weights."""
    cols = [config.WEIGHT_A_COLUMN, config.WEIGHT_B_COLUMN]
    _check_columns(df, {'cluster_id': cluster_id})
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise InputError(f"Run scale_weights() first; columns {missing} not found.")

    totals = df.groupby(cluster_id, dropna=False)[cols].sum()
    totals['n'] = df.groupby(cluster_id, dropna=False).size()

    print("\n" + "=" * 60)
    print("RESCALED DESIGN WEIGHTS")
    print("=" * 60)
    print(f"\nClusters: {len(totals):,}  Observations: {len(df):,}")

    print("\nPer-cluster totals:")
    print("-" * 50)
    for cluster, row in totals.iterrows():
        print(f"  {cluster}: n={int(row['n'])}  "
              f"sum({config.WEIGHT_A_COLUMN})={row[config.WEIGHT_A_COLUMN]:.3f}  "
              f"sum({config.WEIGHT_B_COLUMN})={row[config.WEIGHT_B_COLUMN]:.3f}")

    # a-weights should reproduce the cluster size
    off = np.abs(totals[config.WEIGHT_A_COLUMN] - totals['n']) > 1e-8
    print(f"\nClusters where sum({config.WEIGHT_A_COLUMN}) != n: {int(off.sum())}")
