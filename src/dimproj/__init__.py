from . import projections
from .dtypes import UnsupportedTypeError
from .parrays import ShapeMismatchError, as_parray, parray
from .pcubes import pcube

__all__ = [
    "ShapeMismatchError",
    "UnsupportedTypeError",
    "as_parray",
    "parray",
    "pcube",
    "projections",
]
