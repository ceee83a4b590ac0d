"""
Goodness-of-Fit Module
======================

R-squared style statistics for fitted regression models.

Supported model kinds:
    linear              - statsmodels OLS/WLS/GLS: R2, adjusted R2
    generalized linear  - statsmodels GLM and discrete models: Cox & Snell,
                          Nagelkerke; Tjur's D for binary responses (cod)
    mixed               - statsmodels MixedLM and BayesMixedGLM: marginal
                          and conditional R2 (Nakagawa & Schielzeth)
    hierarchical        - MixedLM: squared fitted/observed correlation and
                          Omega-squared, or variance-component reductions
                          against a null model
    bayesian            - arviz InferenceData: Bayesian R2 over draws, or
                          LOO-adjusted R2

Any other object yields an UnsupportedModelWarning and None. No statistic
is clamped to [0, 1].
"""

import enum
import warnings
from dataclasses import dataclass, field

import pandas as pd
import numpy as np
from scipy import stats as scipy_stats
from statsmodels.regression.linear_model import RegressionResults
from statsmodels.regression.mixed_linear_model import MixedLMResults
from statsmodels.genmod.generalized_linear_model import GLMResults
from statsmodels.genmod.bayes_mixed_glm import BayesMixedGLMResults, BinomialBayesMixedGLM
from statsmodels.genmod import families
from statsmodels.discrete.discrete_model import DiscreteResults, BinaryModel

from . import config
from .exceptions import InputError, MissingDependencyError, UnsupportedModelWarning


class ModelKind(enum.Enum):
    LINEAR = 'linear'
    GENERALIZED_LINEAR = 'glm'
    MIXED = 'mixed'
    HIERARCHICAL = 'hierarchical'
    BAYESIAN = 'bayesian'
    UNSUPPORTED = 'unsupported'


@dataclass(frozen=True)
class FitStatistics:
    """
    Named goodness-of-fit statistics for one model.

    Attributes:
        kind: Model kind the statistics were computed for
        values: Statistic name -> value
        details: Supporting numbers (variance components, spread)
    """
    kind: ModelKind
    values: dict
    details: dict = field(default_factory=dict)

    def __getitem__(self, key: str) -> float:
        return self.values[key]

    def to_frame(self) -> pd.DataFrame:
        """One-row DataFrame of the statistics."""
        return pd.DataFrame([self.values])


# =============================================================================
# DISPATCH
# =============================================================================

def _unwrap(model):
    """statsmodels results wrappers keep the results instance in _results."""
    return getattr(model, '_results', model)


def _is_inference_data(model) -> bool:
    return type(model).__name__ == 'InferenceData' and type(model).__module__.startswith('arviz')


def classify_model(model) -> ModelKind:
    """
    Map a fitted model handle to its ModelKind.

    MixedLM fits classify as MIXED; HIERARCHICAL is only reached by request
    (kind argument or a null model passed to r2()).
    """
    res = _unwrap(model)
    if isinstance(res, RegressionResults):
        return ModelKind.LINEAR
    if isinstance(res, (GLMResults, DiscreteResults)):
        return ModelKind.GENERALIZED_LINEAR
    if isinstance(res, (MixedLMResults, BayesMixedGLMResults)):
        return ModelKind.MIXED
    if _is_inference_data(model):
        return ModelKind.BAYESIAN
    return ModelKind.UNSUPPORTED


def _unsupported(model, what: str = 'R2') -> None:
    warnings.warn(
        f"{what} is not defined for models of class `{type(model).__name__}`; returning None.",
        UnsupportedModelWarning,
        stacklevel=3,
    )
    return None


def _resolve_kind(model, kind) -> ModelKind:
    detected = classify_model(model)
    if kind is None:
        return detected

    try:
        requested = ModelKind(kind)
    except ValueError:
        raise InputError(
            f"`kind` must be one of {[k.value for k in ModelKind]}, got '{kind}'."
        ) from None

    if requested == detected:
        return requested
    if requested is ModelKind.HIERARCHICAL and isinstance(_unwrap(model), MixedLMResults):
        return requested
    raise InputError(
        f"`kind='{requested.value}'` does not apply to `{type(model).__name__}` "
        f"(detected '{detected.value}')."
    )


def r2(model, null_model=None, loo: bool = False, kind=None):
    """
    Compute R-squared style statistics for a fitted model.

    Parameters:
        model: Fitted model (statsmodels results or arviz InferenceData)
        null_model: Optional null MixedLM fit nested in model; switches to
                    variance-component pseudo-R2 and Omega-squared
        loo: For Bayesian models, compute the LOO-adjusted R2
        kind: Optional ModelKind (or its value) to force; only 'hierarchical'
              may override the detected kind, for MixedLM fits

    Returns:
        FitStatistics, or None for unsupported models

    Raises:
        InputError: kind contradicts the model, or the model lacks data
        MissingDependencyError: arviz not installed for Bayesian models
    """
    if null_model is not None:
        if not (isinstance(_unwrap(model), MixedLMResults)
                and isinstance(_unwrap(null_model), MixedLMResults)):
            return _unsupported(model, 'Null-model pseudo-R2')
        return _r2_null_model(_unwrap(model), _unwrap(null_model))

    resolved = _resolve_kind(model, kind)

    if resolved is ModelKind.LINEAR:
        return _r2_linear(_unwrap(model))
    if resolved is ModelKind.GENERALIZED_LINEAR:
        return _r2_glm(_unwrap(model))
    if resolved is ModelKind.MIXED:
        return _r2_mixed(_unwrap(model))
    if resolved is ModelKind.HIERARCHICAL:
        return _r2_hierarchical(_unwrap(model))
    if resolved is ModelKind.BAYESIAN:
        return _r2_bayes(model, loo=loo)
    return _unsupported(model)


# =============================================================================
# LINEAR AND GENERALIZED LINEAR MODELS
# =============================================================================

def _r2_linear(res) -> FitStatistics:
    return FitStatistics(
        kind=ModelKind.LINEAR,
        values={'r2': float(res.rsquared), 'adj_r2': float(res.rsquared_adj)},
    )


def _r2_glm(res) -> FitStatistics:
    n = float(res.nobs)
    ll_full = float(res.llf)
    ll_null = float(res.llnull)

    cox_snell = 1 - np.exp((2 / n) * (ll_null - ll_full))
    nagelkerke = cox_snell / (1 - np.exp((2 / n) * ll_null))

    return FitStatistics(
        kind=ModelKind.GENERALIZED_LINEAR,
        values={'cox_snell': float(cox_snell), 'nagelkerke': float(nagelkerke)},
        details={'llf': ll_full, 'llnull': ll_null, 'nobs': n},
    )


def tjur_d(observed, fitted) -> float:
    """
    Tjur's Coefficient of Discrimination.

    Mean fitted probability of the observations with outcome 1 minus that
    of the observations with outcome 0.

    Parameters:
        observed: Binary (0/1) outcomes
        fitted: Fitted probabilities, aligned with observed
    """
    y = np.asarray(observed, dtype=float).ravel()
    p = np.asarray(fitted, dtype=float).ravel()
    if y.shape != p.shape:
        raise InputError(
            f"`observed` and `fitted` must have the same length, got {len(y)} and {len(p)}."
        )
    if not np.isin(y, (0, 1)).all():
        raise InputError("`observed` must only contain 0 and 1 for Tjur's D.")
    if y.min() == y.max():
        raise InputError("`observed` must contain both outcomes (0 and 1) for Tjur's D.")

    return float(p[y == 1].mean() - p[y == 0].mean())


def _is_binomial(res) -> bool:
    if isinstance(res, GLMResults):
        return isinstance(res.model.family, families.Binomial)
    if isinstance(res, DiscreteResults):
        return isinstance(res.model, BinaryModel)
    return isinstance(res, BayesMixedGLMResults) and isinstance(res.model, BinomialBayesMixedGLM)


def _response_mean(res) -> np.ndarray:
    """
    Fitted values on the response scale.

    BayesMixedGLMResults.predict() only uses the fixed effects, so the
    posterior means of the random effects are added to the linear predictor
    here. Both Tjur's D and the mean response of the log-normal residual
    variance are therefore conditional on the grouping.
    """
    if isinstance(res, BayesMixedGLMResults):
        model = res.model
        linear = model.exog @ np.asarray(res.fe_mean)
        linear = linear + model.exog_vc.dot(np.asarray(res.vc_mean))
        return np.asarray(model.family.link.inverse(np.asarray(linear).ravel()))
    return np.asarray(res.predict())


def cod(model):
    """
    Tjur's Coefficient of Discrimination for binary-response models.

    Parameters:
        model: Fitted binomial GLM, Logit/Probit, or BinomialBayesMixedGLM

    Returns:
        FitStatistics with 'tjur_d', or None (with a warning) for other models
    """
    res = _unwrap(model)
    if not _is_binomial(res):
        return _unsupported(model, "Tjur's D")

    d = tjur_d(res.model.endog, _response_mean(res))
    return FitStatistics(kind=classify_model(model), values={'tjur_d': d})


# =============================================================================
# MIXED MODELS
# =============================================================================

def _fixed_variance(exog, params) -> float:
    linear_pred = np.asarray(exog) @ np.asarray(params, dtype=float)
    return float(np.var(linear_pred, ddof=1))


def _mixedlm_components(res) -> tuple[float, float, float]:
    model = res.model
    var_fixed = _fixed_variance(model.exog, res.fe_params)

    # mean over observations of z_i' Sigma z_i
    z = np.asarray(model.exog_re)
    sigma = np.asarray(res.cov_re)
    var_random = float(np.einsum('ij,jk,ik->i', z, sigma, z).mean())
    var_random += float(np.sum(getattr(res, 'vcomp', [])))

    return var_fixed, var_random, float(res.scale)


def _bayes_mixed_components(res) -> tuple[float, float, float]:
    model = res.model
    var_fixed = _fixed_variance(model.exog, res.fe_mean)
    # vcp_mean holds log standard deviations
    var_random = float(np.sum(np.exp(2 * np.asarray(res.vcp_mean))))

    # log-normal approximation of the distribution-specific variance
    mu_bar = float(np.mean(_response_mean(res)))
    var_residual = float(np.log1p(model.family.variance(mu_bar) / mu_bar ** 2))

    return var_fixed, var_random, var_residual


def _r2_mixed(res) -> FitStatistics:
    if isinstance(res, MixedLMResults):
        var_fixed, var_random, var_residual = _mixedlm_components(res)
    else:
        var_fixed, var_random, var_residual = _bayes_mixed_components(res)

    total = var_fixed + var_random + var_residual
    return FitStatistics(
        kind=ModelKind.MIXED,
        values={
            'marginal_r2': var_fixed / total,
            'conditional_r2': (var_fixed + var_random) / total,
        },
        details={
            'var_fixed': var_fixed,
            'var_random': var_random,
            'var_residual': var_residual,
        },
    )


def _r2_hierarchical(res) -> FitStatistics:
    observed = np.asarray(res.model.endog, dtype=float)
    fitted = np.asarray(res.fittedvalues, dtype=float)
    residuals = observed - fitted

    r = np.corrcoef(fitted, observed)[0, 1]
    omega_sq = 1 - np.var(residuals, ddof=1) / np.var(observed, ddof=1)

    return FitStatistics(
        kind=ModelKind.HIERARCHICAL,
        values={'r2': float(r ** 2), 'omega_sq': float(omega_sq)},
    )


def _random_variances(res) -> tuple[str, dict]:
    """Diagonal of cov_re keyed by name, and the name of the random intercept."""
    cov_re = res.cov_re
    if isinstance(cov_re, pd.DataFrame):
        names = list(cov_re.index)
    else:
        names = list(res.model.data.exog_re_names)
    diag = dict(zip(names, np.diag(np.asarray(cov_re))))

    z = np.asarray(res.model.exog_re)
    ones = [name for j, name in enumerate(names) if np.allclose(z[:, j], 1.0)]
    intercept = ones[0] if ones else None
    return intercept, diag


def _r2_null_model(res, null) -> FitStatistics:
    """Proportional reduction of each variance component (Kreft & de Leeuw)."""
    values = {}

    full_int, full_var = _random_variances(res)
    null_int, null_var = _random_variances(null)

    if full_int is not None and null_int is not None:
        tau00_null = null_var[null_int]
        values['pseudo_r2_tau00'] = float((tau00_null - full_var[full_int]) / tau00_null)

    for name, tau11 in full_var.items():
        if name == full_int or name not in null_var:
            continue
        values[f'pseudo_r2_tau11_{name}'] = float((null_var[name] - tau11) / null_var[name])

    values['omega_sq'] = float(1 - res.scale / null.scale)

    return FitStatistics(
        kind=ModelKind.HIERARCHICAL,
        values=values,
        details={'tau_full': full_var, 'tau_null': null_var,
                 'sigma2_full': float(res.scale), 'sigma2_null': float(null.scale)},
    )


# =============================================================================
# BAYESIAN MODELS
# =============================================================================

def _draws(idata, group: str, var_name: str, n_obs: int) -> np.ndarray:
    """Draws of one variable as a (samples x observations) array."""
    if group not in idata.groups():
        raise InputError(f"`model` has no `{group}` group.")
    dataset = getattr(idata, group)
    if var_name not in dataset:
        raise InputError(f"Variable '{var_name}' not found in the `{group}` group.")
    return np.asarray(dataset[var_name].values, dtype=float).reshape(-1, n_obs)


def _r2_bayes(idata, loo: bool = False, var_name: str = None) -> FitStatistics:
    try:
        import arviz as az
    except ImportError as exc:
        raise MissingDependencyError(
            "Package `arviz` required for R2 of Bayesian models.",
            capability='posterior-r2',
        ) from exc

    if 'observed_data' not in idata.groups():
        raise InputError("`model` has no `observed_data` group.")
    if var_name is None:
        var_name = list(idata.observed_data.data_vars)[0]

    y = np.asarray(idata.observed_data[var_name].values, dtype=float).ravel()
    ypred = _draws(idata, 'posterior_predictive', var_name, len(y))

    if loo:
        log_lik = _draws(idata, 'log_likelihood', var_name, len(y))
        log_weights, _ = az.psislw(-log_lik.T)
        ypred_loo = np.sum(np.exp(log_weights) * ypred.T, axis=1)
        loo_r2 = 1 - np.var(y - ypred_loo, ddof=1) / np.var(y, ddof=1)
        return FitStatistics(kind=ModelKind.BAYESIAN, values={'loo_r2': float(loo_r2)})

    draws = np.asarray(az.r2_samples(y, ypred), dtype=float)

    return FitStatistics(
        kind=ModelKind.BAYESIAN,
        values={'bayes_r2': float(np.median(draws))},
        details={'mad': float(scipy_stats.median_abs_deviation(draws, scale=config.MAD_SCALE)),
                 'n_draws': len(draws)},
    )


def print_fit_statistics(result: FitStatistics, digits: int = None) -> None:
    """Print goodness-of-fit statistics."""
    if digits is None:
        digits = config.FIT_DIGITS

    print("\n" + "=" * 60)
    print(f"GOODNESS OF FIT ({result.kind.value})")
    print("=" * 60)
    for name, value in result.values.items():
        print(f"  {name}: {value:.{digits}f}")

    scalars = {k: v for k, v in result.details.items() if np.isscalar(v)}
    if scalars:
        print("\n  Details:")
        for name, value in scalars.items():
            print(f"    {name}: {value:.{digits}f}" if isinstance(value, float) else f"    {name}: {value}")
