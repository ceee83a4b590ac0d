"""
Principal Component Analysis Module
===================================

Tidy summary of a principal component analysis on the correlation matrix.

The summary keeps two pieces of metadata next to the table: the number of
components satisfying the Kaiser criterion and the (unrotated) loadings
matrix, which rotation.pca_rotate() reuses.
"""

from dataclasses import dataclass

import pandas as pd
import numpy as np
from sklearn.decomposition import PCA

from . import config
from .exceptions import InputError, TypeMismatchError


@dataclass(frozen=True, eq=False)
class PCASummary:
    """
    Summary of a principal component analysis.

    Attributes:
        table: Statistics x components (rows std.dev, eigen, prop.var, cum.var)
        kaiser: Number of components with eigenvalue >= 1
        loadings: Variables x components, rotation matrix scaled by std.dev
    """
    table: pd.DataFrame
    kaiser: int
    loadings: pd.DataFrame

    @property
    def eigenvalues(self) -> np.ndarray:
        return self.table.loc['eigen'].to_numpy()

    @property
    def n_components(self) -> int:
        return self.table.shape[1]


def component_names(n: int) -> list[str]:
    """Return PC1..PCn."""
    return [f'{config.COMPONENT_PREFIX}{i + 1}' for i in range(n)]


def complete_rows(x: pd.DataFrame) -> pd.DataFrame:
    """
    Validate a raw numeric table and keep rows without missing values.

    Parameters:
        x: Raw data (rows = observations, columns = variables)

    Returns:
        DataFrame with complete rows only
    """
    non_numeric = [c for c in x.columns if not pd.api.types.is_numeric_dtype(x[c])]
    if non_numeric:
        raise InputError(f"All columns of `x` must be numeric; non-numeric: {non_numeric}")

    data = x.dropna()
    if len(data) < 2:
        raise InputError(
            f"`x` needs at least 2 complete rows, found {len(data)} after dropping missing values."
        )
    return data


def standardize(data: pd.DataFrame) -> pd.DataFrame:
    """Center and scale each column to unit (n-1) variance."""
    sd = data.std(ddof=1)
    constant = sd.index[sd == 0].tolist()
    if constant:
        raise InputError(f"Cannot scale constant column(s) to unit variance: {constant}")
    return (data - data.mean()) / sd


def _fit_decomposition(data: pd.DataFrame) -> PCA:
    # Plain array: sklearn only keeps all-string column names
    decomposition = PCA(svd_solver='full')
    decomposition.fit(standardize(data).to_numpy())
    return decomposition


def _kaiser_count(eigen: np.ndarray, threshold: float) -> int:
    below = np.flatnonzero(eigen < threshold)
    if len(below) == 0:
        return len(eigen)
    return int(below[0])


def _summarize(decomposition: PCA, variables=None) -> PCASummary:
    if not hasattr(decomposition, 'components_'):
        raise InputError("`x` is an unfitted PCA object; call fit() first.")

    eigen = np.asarray(decomposition.explained_variance_, dtype=float)
    std_dev = np.sqrt(eigen)
    prop_var = eigen / eigen.sum()
    cum_var = np.cumsum(prop_var)

    comps = component_names(len(eigen))
    table = pd.DataFrame(
        [std_dev, eigen, prop_var, cum_var],
        index=config.SUMMARY_ROWS,
        columns=comps,
    )

    if variables is None:
        variables = getattr(decomposition, 'feature_names_in_', None)
    if variables is None:
        variables = [f'V{i + 1}' for i in range(decomposition.components_.shape[1])]

    loadings = pd.DataFrame(
        decomposition.components_.T * std_dev,
        index=list(variables),
        columns=comps,
    )

    return PCASummary(
        table=table,
        kaiser=_kaiser_count(eigen, config.KAISER_THRESHOLD),
        loadings=loadings,
    )


def pca(x) -> PCASummary:
    """
    Tidy summary of a principal component analysis.

    A data frame is reduced to its complete rows, standardized and decomposed
    (correlation-matrix PCA). A fitted sklearn PCA is summarized as is, and an
    existing PCASummary is returned unchanged.

    Parameters:
        x: DataFrame, fitted sklearn.decomposition.PCA, or PCASummary

    Returns:
        PCASummary with the component table, Kaiser count and loadings

    Raises:
        TypeMismatchError: x is none of the accepted types
        InputError: Non-numeric/constant columns, too few rows, unfitted PCA
    """
    if isinstance(x, PCASummary):
        return x
    if isinstance(x, pd.DataFrame):
        data = complete_rows(x)
        return _summarize(_fit_decomposition(data), variables=data.columns)
    if isinstance(x, PCA):
        return _summarize(x)

    raise TypeMismatchError(
        f"`x` must be a pandas DataFrame or a fitted sklearn PCA object, got {type(x).__name__}."
    )


def print_pca_summary(summary: PCASummary, digits: int = 3) -> None:
    """Print the component table and the Kaiser count."""
    print("\n" + "=" * 60)
    print("PRINCIPAL COMPONENTS")
    print("=" * 60)
    print()
    print(summary.table.round(digits).to_string())
    print(f"\nKaiser criterion (eigenvalue >= {config.KAISER_THRESHOLD:g}): "
          f"{summary.kaiser} component(s)")
