import sys

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose
from sklearn.decomposition import PCA

from svystats import config
from svystats.exceptions import InputError, MissingDependencyError, TypeMismatchError
from svystats.pca import pca, standardize
from svystats.rotation import (
    ROTATORS,
    RotationResult,
    explained_variance,
    format_loadings,
    pca_rotate,
    print_rotation,
    register_rotator,
    varimax,
)


@pytest.fixture
def restore_registry():
    saved = dict(ROTATORS)
    yield
    ROTATORS.clear()
    ROTATORS.update(saved)


def test_varimax_defaults_to_kaiser_count(two_factor_items):
    result = pca_rotate(two_factor_items)

    assert result.rotation == 'varimax'
    assert list(result.loadings.columns) == ['PC1', 'PC2']
    assert list(result.loadings.index) == list(two_factor_items.columns)


def test_varimax_keeps_non_string_column_names(two_factor_items):
    df = two_factor_items.rename(columns={'a1': 1, 'b1': 4})
    result = pca_rotate(df)

    assert list(result.loadings.index) == [1, 'a2', 'a3', 4, 'b2', 'b3']
    assert_allclose(result.loadings.to_numpy(), pca_rotate(two_factor_items).loadings.to_numpy())


def test_varimax_recovers_simple_structure(two_factor_items):
    loadings = pca_rotate(two_factor_items).loadings.abs()
    dominant = loadings.idxmax(axis=1)

    assert dominant[['a1', 'a2', 'a3']].nunique() == 1
    assert dominant[['b1', 'b2', 'b3']].nunique() == 1
    assert dominant['a1'] != dominant['b1']
    assert (loadings.max(axis=1) > 0.8).all()


def test_varimax_preserves_communalities(two_factor_items):
    summary = pca(two_factor_items)
    result = pca_rotate(summary, nf=3)

    unrotated = (summary.loadings.iloc[:, :3] ** 2).sum(axis=1)
    rotated = (result.loadings ** 2).sum(axis=1)
    assert_allclose(rotated.to_numpy(), unrotated.to_numpy(), atol=1e-8)


def test_variance_breakdown(two_factor_items):
    summary = pca(two_factor_items)
    result = pca_rotate(summary)
    variance = result.variance

    assert list(variance.columns) == config.VARIANCE_COLUMNS
    assert variance['prop.exp'].sum() == pytest.approx(1.0)
    assert variance['cum.exp'].iloc[-1] == pytest.approx(1.0)
    expected = summary.eigenvalues[:2].sum() / two_factor_items.shape[1]
    assert variance['cum.var'].iloc[-1] == pytest.approx(expected)


def test_single_component_is_not_rotated(two_factor_items):
    summary = pca(two_factor_items)
    result = pca_rotate(summary, nf=1)

    assert_allclose(result.loadings['PC1'], summary.loadings['PC1'])


def test_varimax_accepts_fitted_decomposition(two_factor_items):
    fitted = PCA(svd_solver='full').fit(standardize(two_factor_items))

    assert_allclose(
        pca_rotate(fitted).loadings.to_numpy(),
        pca_rotate(two_factor_items).loadings.to_numpy(),
    )


def test_varimax_helper_single_column():
    loadings = np.array([[0.5], [0.7]])
    assert_allclose(varimax(loadings), loadings)


@pytest.mark.parametrize('nf', [0, 7, 2.0, True])
def test_invalid_nf(two_factor_items, nf):
    with pytest.raises(InputError, match='nf'):
        pca_rotate(two_factor_items, nf=nf)


def test_unknown_rotation(two_factor_items):
    with pytest.raises(InputError, match='rotation'):
        pca_rotate(two_factor_items, rotation='equamax')


def test_rejects_other_types():
    with pytest.raises(TypeMismatchError):
        pca_rotate({'a': [1, 2, 3]})


@pytest.mark.parametrize('rotation', ['oblimin', 'promax', 'none'])
def test_non_varimax_needs_raw_table(two_factor_items, rotation):
    fitted = PCA(svd_solver='full').fit(standardize(two_factor_items))

    with pytest.raises(InputError, match=f'data frame for `{rotation}`'):
        pca_rotate(fitted, rotation=rotation)
    with pytest.raises(InputError):
        pca_rotate(pca(two_factor_items), rotation=rotation)


@pytest.mark.parametrize('rotation', ['oblimin', 'quartimax', 'promax'])
def test_principal_rotation(two_factor_items, rotation):
    result = pca_rotate(two_factor_items, nf=2, rotation=rotation)

    assert result.rotation == rotation
    assert result.loadings.shape == (6, 2)
    assert list(result.loadings.columns) == ['PC1', 'PC2']
    assert result.variance['prop.exp'].sum() == pytest.approx(1.0)


def test_principal_rotation_drops_incomplete_rows(two_factor_items):
    df = two_factor_items.copy()
    df.iloc[0, 0] = np.nan
    result = pca_rotate(df, nf=2, rotation='oblimin')

    assert np.isfinite(result.loadings.to_numpy()).all()


@pytest.mark.parametrize('rotation', ['simplimax', 'cluster'])
def test_missing_rotation_routine(two_factor_items, rotation):
    with pytest.raises(MissingDependencyError) as excinfo:
        pca_rotate(two_factor_items, nf=2, rotation=rotation)

    assert excinfo.value.capability == f'{rotation}-rotation'


def test_missing_factor_analyzer(two_factor_items, monkeypatch):
    monkeypatch.setitem(sys.modules, 'factor_analyzer', None)

    with pytest.raises(MissingDependencyError, match='factor_analyzer'):
        pca_rotate(two_factor_items, nf=2, rotation='oblimin')


def test_injected_rotator(two_factor_items):
    calls = []

    def fixed(data, nf, rotation):
        calls.append((data.shape, nf, rotation))
        return np.eye(data.shape[1])[:, :nf]

    result = pca_rotate(two_factor_items, nf=2, rotation='cluster', rotators={'cluster': fixed})

    assert calls == [((400, 6), 2, 'cluster')]
    assert_allclose(result.variance['prop.var'], [1 / 6, 1 / 6])
    assert_allclose(result.variance['prop.exp'], [0.5, 0.5])


def test_register_rotator(two_factor_items, restore_registry):
    register_rotator('simplimax', lambda data, nf, rotation: np.ones((data.shape[1], 1)))
    result = pca_rotate(two_factor_items, rotation='simplimax')

    assert result.loadings.shape == (6, 1)
    assert result.variance['cum.var'].iloc[-1] == pytest.approx(1.0)


@pytest.mark.parametrize('rotation', ['varimax', 'geomin'])
def test_register_rotator_rejects_kind(rotation):
    with pytest.raises(InputError):
        register_rotator(rotation, lambda data, nf, rotation: None)


def _fixed_result():
    loadings = pd.DataFrame(
        [[0.05, 0.9], [0.5, -0.02], [-0.75, 0.3]],
        index=['q1', 'q2', 'q3'],
        columns=['PC1', 'PC2'],
    )
    return RotationResult(loadings=loadings, variance=explained_variance(loadings), rotation='none')


def test_format_loadings_blanks_small_values():
    shown = format_loadings(_fixed_result(), cutoff=0.1)

    assert shown.loc['q1', 'PC1'] == ''
    assert shown.loc['q1', 'PC2'] == '0.90'
    assert shown.loc['q2', 'PC2'] == ''
    assert shown.loc['q3', 'PC1'] == '-0.75'


def test_format_loadings_rejects_bad_cutoff():
    with pytest.raises(InputError, match='cutoff'):
        format_loadings(_fixed_result(), cutoff=1.5)


def test_print_rotation(capsys):
    print_rotation(_fixed_result(), cutoff=0.4)
    captured = capsys.readouterr().out

    assert 'ROTATED LOADINGS (2 components, none rotation)' in captured
    assert 'prop.exp' in captured
    assert '-0.75' in captured
