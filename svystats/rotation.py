"""
Component Rotation Module
=========================

Rotated loadings of a principal component analysis.

Varimax rotation reuses the loadings retained by pca.pca(), keeping the
Kaiser-criterion number of components unless nf is given. All other rotation
kinds re-fit a principal component solution from the raw data through a
rotator looked up in a registry, so callers can plug in routines for kinds
that have no default implementation.
"""

from dataclasses import dataclass
from typing import Callable

import pandas as pd
import numpy as np
from sklearn.decomposition import PCA
from factor_analyzer.rotator import Rotator

from . import config
from .exceptions import InputError, MissingDependencyError, TypeMismatchError
from .pca import PCASummary, pca, complete_rows, component_names

# (data, nf, rotation) -> loadings array (variables x factors)
RotatorFunc = Callable[[pd.DataFrame, int, str], np.ndarray]


@dataclass(frozen=True, eq=False)
class RotationResult:
    """
    Rotated loadings with explained-variance breakdown.

    Attributes:
        loadings: Variables x rotated components (PC1..PCnf)
        variance: Components x (prop.var, cum.var, prop.exp, cum.exp)
        rotation: Rotation kind used
    """
    loadings: pd.DataFrame
    variance: pd.DataFrame
    rotation: str

    @property
    def n_components(self) -> int:
        return self.loadings.shape[1]


def _principal_rotation(data: pd.DataFrame, nf: int, rotation: str) -> np.ndarray:
    """Principal component extraction with rotation via factor_analyzer."""
    try:
        from factor_analyzer import FactorAnalyzer
    except ImportError as exc:
        raise MissingDependencyError(
            f"Package `factor_analyzer` required for `{rotation}`-rotation.",
            capability=f'{rotation}-rotation',
        ) from exc

    kwargs = {'method': 'principal', 'rotation': None if rotation == 'none' else rotation}
    if nf is not None:
        kwargs['n_factors'] = nf

    fa = FactorAnalyzer(**kwargs)
    fa.fit(data)
    return np.asarray(fa.loadings_)


# Rotation kinds with a default implementation; simplimax and cluster have none
ROTATORS: dict[str, RotatorFunc] = {
    'quartimax': _principal_rotation,
    'promax': _principal_rotation,
    'oblimin': _principal_rotation,
    'none': _principal_rotation,
}


def register_rotator(rotation: str, func: RotatorFunc) -> None:
    """
    Register a routine for a non-varimax rotation kind.

    Parameters:
        rotation: One of config.ROTATIONS other than 'varimax'
        func: Callable (data, nf, rotation) -> loadings array
    """
    if rotation not in config.ROTATIONS or rotation == 'varimax':
        raise InputError(
            f"`rotation` must be one of {[r for r in config.ROTATIONS if r != 'varimax']}, "
            f"got '{rotation}'."
        )
    ROTATORS[rotation] = func


def varimax(loadings: np.ndarray) -> np.ndarray:
    """Varimax rotation with Kaiser normalization; single columns are returned as is."""
    loadings = np.asarray(loadings, dtype=float)
    if loadings.shape[1] < 2:
        return loadings.copy()

    rotator = Rotator(
        method='varimax',
        normalize=config.VARIMAX_NORMALIZE,
        max_iter=config.VARIMAX_MAX_ITER,
        tol=config.VARIMAX_TOL,
    )
    return rotator.fit_transform(loadings)


def explained_variance(loadings: pd.DataFrame) -> pd.DataFrame:
    """
    Variance explained by each rotated component.

    prop.var is the column sum of squared loadings over the number of
    variables; prop.exp rescales it to the variance explained by the kept
    components only.
    """
    prop_var = (loadings ** 2).sum(axis=0) / loadings.shape[0]
    prop_exp = prop_var / prop_var.sum()

    return pd.DataFrame({
        'prop.var': prop_var,
        'cum.var': prop_var.cumsum(),
        'prop.exp': prop_exp,
        'cum.exp': prop_exp.cumsum(),
    }, index=loadings.columns)


def _resolve_nf(nf, summary: PCASummary) -> int:
    if nf is None:
        nf = summary.kaiser
    if not isinstance(nf, (int, np.integer)) or isinstance(nf, bool):
        raise InputError(f"`nf` must be an integer, got {type(nf).__name__}.")
    if not 1 <= nf <= summary.n_components:
        raise InputError(
            f"`nf` must be between 1 and {summary.n_components} (number of components), got {nf}."
        )
    return int(nf)


def _rotate_varimax(x, nf) -> tuple[np.ndarray, list]:
    summary = pca(x)
    nf = _resolve_nf(nf, summary)
    retained = summary.loadings.iloc[:, :nf]
    return varimax(retained.to_numpy()), list(retained.index)


def _rotate_raw(x, nf, rotation: str, rotators: dict) -> tuple[np.ndarray, list]:
    if not isinstance(x, pd.DataFrame):
        raise InputError(
            f"`x` must be a data frame for `{rotation}`-rotation, got {type(x).__name__}."
        )

    func = rotators.get(rotation)
    if func is None:
        raise MissingDependencyError(
            f"No routine available for `{rotation}`-rotation; "
            f"register one with register_rotator('{rotation}', func).",
            capability=f'{rotation}-rotation',
        )

    data = complete_rows(x)
    return np.asarray(func(data, nf, rotation), dtype=float), list(data.columns)


def pca_rotate(
    x,
    nf: int = None,
    rotation: str = None,
    rotators: dict[str, RotatorFunc] = None
) -> RotationResult:
    """
    Rotated loadings matrix of a principal component analysis.

    Parameters:
        x: DataFrame, fitted sklearn PCA, or PCASummary. Rotations other
           than varimax need the raw DataFrame.
        nf: Number of components to keep. For varimax defaults to the
            Kaiser count; otherwise the rotation routine's own default
        rotation: One of config.ROTATIONS. Defaults to config.DEFAULT_ROTATION
        rotators: Optional mapping overriding the ROTATORS registry

    Returns:
        RotationResult with loadings and variance breakdown

    Raises:
        InputError: Unknown rotation, bad nf, or non-table input for a
            non-varimax rotation
        TypeMismatchError: x is not a table or decomposition
        MissingDependencyError: No routine available for the rotation kind
    """
    if rotation is None:
        rotation = config.DEFAULT_ROTATION
    if rotation not in config.ROTATIONS:
        raise InputError(f"`rotation` must be one of {list(config.ROTATIONS)}, got '{rotation}'.")

    if not isinstance(x, (pd.DataFrame, PCA, PCASummary)):
        raise TypeMismatchError(
            f"`x` must be a pandas DataFrame or a fitted sklearn PCA object, got {type(x).__name__}."
        )

    if rotation == 'varimax':
        rotated, variables = _rotate_varimax(x, nf)
    else:
        registry = {**ROTATORS, **(rotators or {})}
        rotated, variables = _rotate_raw(x, nf, rotation, registry)

    loadings = pd.DataFrame(rotated, index=variables, columns=component_names(rotated.shape[1]))

    return RotationResult(
        loadings=loadings,
        variance=explained_variance(loadings),
        rotation=rotation,
    )


def format_loadings(
    result: RotationResult,
    cutoff: float = None,
    digits: int = None
) -> pd.DataFrame:
    """
    Render loadings as strings, blanking small values.

    Parameters:
        result: Output of pca_rotate()
        cutoff: Loadings with absolute value below this are blank.
                Defaults to config.LOADING_CUTOFF
        digits: Decimal places. Defaults to config.LOADING_DIGITS

    Returns:
        DataFrame of formatted strings, same shape as result.loadings
    """
    if cutoff is None:
        cutoff = config.LOADING_CUTOFF
    if digits is None:
        digits = config.LOADING_DIGITS
    if not 0 <= cutoff <= 1:
        raise InputError(f"`cutoff` must be between 0 and 1, got {cutoff}.")

    rounded = result.loadings.round(digits)
    shown = rounded.map(lambda v: f"{v:.{digits}f}")
    return shown.where(result.loadings.abs() >= cutoff, '')


def print_rotation(result: RotationResult, cutoff: float = None) -> None:
    """Print rotated loadings and explained variance."""
    print("\n" + "=" * 60)
    print(f"ROTATED LOADINGS ({result.n_components} components, {result.rotation} rotation)")
    print("=" * 60)

    print()
    print(format_loadings(result, cutoff=cutoff).to_string())

    print("\nExplained Variance:")
    print("-" * 50)
    print(result.variance.T.round(3).to_string())
