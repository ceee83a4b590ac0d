"""Shared fixtures: synthetic survey items, clustered weights and fitted models."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf


@pytest.fixture
def rng():
    return np.random.default_rng(20240209)


@pytest.fixture
def two_factor_items(rng):
    """Six items, three loading on each of two independent latent factors."""
    n = 400
    f1 = rng.normal(size=n)
    f2 = rng.normal(size=n)
    data = {}
    for i in range(3):
        data[f'a{i + 1}'] = f1 + 0.5 * rng.normal(size=n)
    for i in range(3):
        data[f'b{i + 1}'] = f2 + 0.5 * rng.normal(size=n)
    return pd.DataFrame(data)


@pytest.fixture
def collinear_items(rng):
    """Four items that are near-exact linear functions of one variable."""
    n = 200
    base = rng.normal(size=n)
    return pd.DataFrame({
        'x1': base + 1e-3 * rng.normal(size=n),
        'x2': 2 * base + 1e-3 * rng.normal(size=n),
        'x3': -0.5 * base + 1e-3 * rng.normal(size=n),
        'x4': 3 * base + 5 + 1e-3 * rng.normal(size=n),
    })


@pytest.fixture
def survey():
    return pd.DataFrame({
        'psu': ['A', 'A', 'A', 'B'],
        'weight': [1, 1, 2, 4],
        'score': [3.0, 4.0, 5.0, 6.0],
    })


@pytest.fixture
def clustered(rng):
    """Two-level data: 25 groups of 12 with a random intercept."""
    n_groups, per_group = 25, 12
    g = np.repeat(np.arange(n_groups), per_group)
    x = rng.normal(size=g.size)
    u = rng.normal(scale=1.0, size=n_groups)[g]
    y = 1.0 + 1.5 * x + u + rng.normal(scale=0.8, size=g.size)
    eta = -0.3 + 1.2 * x + 0.8 * u
    yb = rng.binomial(1, 1 / (1 + np.exp(-eta)))
    return pd.DataFrame({'g': g, 'x': x, 'y': y, 'yb': yb})


@pytest.fixture
def ols_fit(clustered):
    X = sm.add_constant(clustered[['x']])
    return sm.OLS(clustered['y'], X).fit()


@pytest.fixture
def logit_glm_fit(clustered):
    X = sm.add_constant(clustered[['x']])
    return sm.GLM(clustered['yb'], X, family=sm.families.Binomial()).fit()


@pytest.fixture
def mixed_fit(clustered):
    return smf.mixedlm('y ~ x', clustered, groups='g').fit()


@pytest.fixture
def mixed_null_fit(clustered):
    return smf.mixedlm('y ~ 1', clustered, groups='g').fit()
