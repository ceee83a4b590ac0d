"""
svystats
========

Statistical convenience functions for social-science survey analysis.

Modules:
    config     - Global configuration parameters
    exceptions - Error taxonomy
    weights    - Rescaling of design weights for multilevel models
    pca        - Tidy principal component summaries
    rotation   - Rotated component loadings
    fit        - R-squared variants and Tjur's D for fitted models
"""

from . import config
from . import exceptions
from . import weights
from . import pca
from . import rotation
from . import fit

from .weights import scale_weights
from .pca import PCASummary
from .rotation import RotationResult, pca_rotate, register_rotator
from .fit import FitStatistics, ModelKind, classify_model, cod, r2, tjur_d

__version__ = '1.0.0'

__all__ = [
    'config',
    'exceptions',
    'weights',
    'pca',
    'rotation',
    'fit',
    'scale_weights',
    'PCASummary',
    'RotationResult',
    'pca_rotate',
    'register_rotator',
    'FitStatistics',
    'ModelKind',
    'classify_model',
    'cod',
    'r2',
    'tjur_d',
]
