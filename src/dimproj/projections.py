"""Projection functions: one statistic per call, over selected dimensions.

Each function here takes:
    * `arr`: the input, a parray or anything numpy.asarray accepts.
    * `mask`: None, or a boolean parray/array of the same sizes as `arr`
      (or with singleton dimensions that can be broadcast to them).
      Only elements where the mask is True take part.
    * `out`: None, or a parray to be reforged and filled with the result
      (which is then also returned).
    * `process`: None or an empty sequence to collapse every dimension,
      else one boolean per dimension of `arr`, True meaning "collapse".

and returns a parray with the same dimensionality and channels as `arr`,
where every collapsed dimension has size 1. Call `.to_array()` on the
result for a NumPy view.

Functions with a `mode` arg also accept mode="directional", which treats
the values as angles in radians and computes circular statistics.

Errors (ValueError for a bad `process`, `mode` or `percentile`;
ShapeMismatchError for a mask that cannot be broadcast;
UnsupportedTypeError for an element type the statistic has no
definition for) are all raised before `out` is touched.
"""

from .pcubes import pcube


def sum(arr, mask=None, out=None, process=None):
    """Return the sum of `arr` over the processed dimensions."""
    return pcube(arr, mask, process).sum(out)


def mean(arr, mask=None, out=None, mode="", process=None):
    """Return the (possibly directional) mean of `arr`."""
    return pcube(arr, mask, process).mean(mode, out)


def product(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).product(out)


def mean_abs(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).mean_abs(out)


def sum_abs(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).sum_abs(out)


def mean_square(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).mean_square(out)


def sum_square(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).sum_square(out)


def variance(arr, mask=None, out=None, mode="", process=None):
    """Return the (possibly directional) variance of `arr`."""
    return pcube(arr, mask, process).variance(mode, out)


def standard_deviation(arr, mask=None, out=None, mode="", process=None):
    """Return the (possibly directional) standard deviation of `arr`."""
    return pcube(arr, mask, process).standard_deviation(mode, out)


def minimum(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).minimum(out)


def maximum(arr, mask=None, out=None, process=None):
    return pcube(arr, mask, process).maximum(out)


def percentile(arr, mask=None, out=None, percentile=50.0, process=None):
    """Return the given percentile (0 to 100) of `arr`.

    The 0th and 100th percentiles are the minimum and maximum, in the
    dtype of `arr`; percentiles between them are linearly interpolated.
    """
    return pcube(arr, mask, process).percentile(percentile, out)
