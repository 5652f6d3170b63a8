"""Projection (reduction) functions for dimproj.

These take a parray "block" as input and return a single NumPy scalar from
their `reduce` method. A pcube calls `reduce` once per output position,
passing a read-only view spanning exactly the dimensions being collapsed
(and a matching view of the mask, if any); the pfunc folds every element
of that block into one value.

Each pfunc is instantiated for one element type. The class attribute
`supported` names the family of dtypes (see dimproj.dtypes) it accepts;
constructing one for any other dtype raises UnsupportedTypeError, so that
callers fail before any output is allocated. The `out_dtype` attribute
is the dtype of the values `reduce` returns; when the output array holds
a different dtype, the pcube converts each value with dtypes.clamp_cast.

Masks select elements: where the mask is False, the corresponding input
element is skipped entirely, and does not count toward `n` for means.
A mask which selects nothing yields whatever the pfunc's empty state is:
0 for sums and means, 1 for products, the dtype's lowest (highest) value
for maximums (minimums), and so on. pfuncs themselves never raise once
constructed.

`reduce` is a pure function of its two views; it never mutates them and
holds no state between calls.
"""

import numpy

from . import dtypes
from .accumulators import (
    acc_directional,
    acc_max,
    acc_min,
    acc_product,
    acc_sum,
    acc_variance,
)

NaN = float("nan")


class pfunc:
    """A base class for projection functions."""

    supported = dtypes.ALL
    """The family of element dtypes this pfunc accepts."""

    def __init__(self, dtype):
        self.dtype = dtypes.check_dtype(dtype, self.supported, type(self).__name__)
        self.out_dtype = self.get_out_dtype()

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, self.dtype.name)

    def get_out_dtype(self):
        """Return the dtype of values returned from self.reduce."""
        return dtypes.flex_dtype(self.dtype)

    @staticmethod
    def elements(view, mask=None):
        """Return a 1-D array of the view's elements which the mask selects.

        Elements are returned in iteration order: dimension 0 fastest.
        """
        values = view.to_array().ravel(order="F")
        if mask is not None:
            values = values[mask.to_array().ravel(order="F")]
        return values

    def reduce(self, view, mask=None):
        """Return the single value summarizing the given view."""
        raise NotImplementedError


class pfunc_mean(pfunc):
    """Calculate the mean (or, if not `compute_mean`, the sum) of a block.

    Values are summed in flex_dtype(dtype). A block with no selected
    elements returns the raw sum (0), not NaN.
    """

    def __init__(self, dtype, compute_mean=True):
        pfunc.__init__(self, dtype)
        self.compute_mean = compute_mean

    def reduce(self, view, mask=None):
        acc = acc_sum(self.out_dtype)
        acc.push(self.elements(view, mask))
        if self.compute_mean:
            return acc.mean()
        return acc.sum


class pfunc_mean_directional(pfunc):
    """Calculate the directional (circular) mean of a block of angles.

    Each angle, in radians, becomes a unit vector; the result is the
    four-quadrant angle of their sum, in [-pi, pi].
    """

    supported = dtypes.FLOAT

    def get_out_dtype(self):
        return dtypes.float_dtype(self.dtype)

    def reduce(self, view, mask=None):
        acc = acc_directional()
        acc.push(self.elements(view, mask))
        return self.out_dtype.type(acc.mean())


class pfunc_product(pfunc):
    """Calculate the product of a block, seeded with 1."""

    def reduce(self, view, mask=None):
        acc = acc_product(self.out_dtype)
        acc.push(self.elements(view, mask))
        return acc.product


class pfunc_mean_abs(pfunc):
    """Calculate the mean (or sum) of the absolute values of a block.

    Complex values contribute their modulus. Unsigned dtypes have no use
    for this; use pfunc_mean for those instead.
    """

    supported = dtypes.SIGNED

    def __init__(self, dtype, compute_mean=True):
        pfunc.__init__(self, dtype)
        self.compute_mean = compute_mean

    def get_out_dtype(self):
        return dtypes.float_dtype(self.dtype)

    def reduce(self, view, mask=None):
        values = self.elements(view, mask)
        # Promote before abs so that e.g. int8(-128) does not overflow.
        values = numpy.abs(values.astype(dtypes.flex_dtype(self.dtype)))
        acc = acc_sum(self.out_dtype)
        acc.push(values)
        if self.compute_mean:
            return acc.mean()
        return acc.sum


class pfunc_mean_square(pfunc):
    """Calculate the mean (or sum) of the squares of a block.

    Complex values are squared as complex numbers (not as their modulus).
    Binary blocks have no use for this, since 0*0=0 and 1*1=1; use
    pfunc_mean for those instead.
    """

    supported = dtypes.NONBINARY

    def __init__(self, dtype, compute_mean=True):
        pfunc.__init__(self, dtype)
        self.compute_mean = compute_mean

    def reduce(self, view, mask=None):
        values = self.elements(view, mask).astype(self.out_dtype)
        acc = acc_sum(self.out_dtype)
        acc.push(values * values)
        if self.compute_mean:
            return acc.mean()
        return acc.sum


class pfunc_variance(pfunc):
    """Calculate the sample variance (or standard deviation) of a block.

    Uses a single-pass streaming accumulator in float64, and returns 0
    for blocks with fewer than two selected elements. The result is
    clamped into float_dtype(dtype).
    """

    supported = dtypes.NONCOMPLEX

    def __init__(self, dtype, compute_stddev=False):
        pfunc.__init__(self, dtype)
        self.compute_stddev = compute_stddev

    def get_out_dtype(self):
        return dtypes.float_dtype(self.dtype)

    def reduce(self, view, mask=None):
        acc = acc_variance()
        acc.push(self.elements(view, mask))
        if self.compute_stddev:
            return dtypes.clamp_cast(acc.stddev(), self.out_dtype)
        return dtypes.clamp_cast(acc.variance(), self.out_dtype)


class pfunc_variance_directional(pfunc):
    """Calculate the circular variance (or standard deviation) of angles.

    With R the length of the mean resultant vector (in [0, 1]), the
    variance is 1 - R and the standard deviation is sqrt(-2 ln R).
    A block with no selected elements has R = 0.
    """

    supported = dtypes.FLOAT

    def __init__(self, dtype, compute_stddev=False):
        pfunc.__init__(self, dtype)
        self.compute_stddev = compute_stddev

    def get_out_dtype(self):
        return dtypes.float_dtype(self.dtype)

    def reduce(self, view, mask=None):
        acc = acc_directional()
        acc.push(self.elements(view, mask))
        if self.compute_stddev:
            return self.out_dtype.type(acc.stddev())
        return self.out_dtype.type(acc.variance())


class pfunc_op_base(pfunc):
    """Calculate the running extremum self.acc_class tracks over a block.

    The result has the same dtype as the input.
    """

    supported = dtypes.NONCOMPLEX
    acc_class = None

    def get_out_dtype(self):
        return self.dtype

    def reduce(self, view, mask=None):
        acc = self.acc_class(self.dtype)
        acc.push(self.elements(view, mask))
        return acc.value


class pfunc_max(pfunc_op_base):
    """Calculate the maximum of a block.

    A block with no selected elements returns the lowest value of the dtype.
    """

    acc_class = acc_max


class pfunc_min(pfunc_op_base):
    """Calculate the minimum of a block.

    A block with no selected elements returns the highest value of the dtype.
    """

    acc_class = acc_min


class pfunc_percentile(pfunc):
    """Calculate the given percentile of a block.

    The `percentile` arg must be a number between 0 and 100 inclusive.
    Between closest ranks, values are linearly interpolated, exactly as
    numpy.percentile does by default. The result is in float_dtype(dtype);
    a block with no selected elements returns NaN.
    """

    supported = dtypes.NONCOMPLEX

    def __init__(self, dtype, percentile):
        pfunc.__init__(self, dtype)
        percentile = float(percentile)
        if not 0.0 <= percentile <= 100.0:
            raise ValueError(
                "percentile must be between 0 and 100, not %s." % (percentile,)
            )
        self.percentile = percentile

    def get_out_dtype(self):
        return dtypes.float_dtype(self.dtype)

    def reduce(self, view, mask=None):
        values = self.elements(view, mask)
        if not len(values):
            return self.out_dtype.type(NaN)
        return self.out_dtype.type(
            numpy.percentile(values.astype(numpy.float64), self.percentile)
        )
