"""Running statistics for dimproj reducers.

An accumulator is created fresh for each output position, fed one or more
1-D batches of element values via `push`, and then asked for its result.
None of them keep any state beyond the position they were created for.
"""

import numpy

from . import dtypes


def angle_to_vector(angles, dtype=None):
    """Return unit vectors (as complex numbers) pointing at the given angles.

    The result dtype is complex, with parts of float_dtype(angles.dtype)
    unless `dtype` is given; cos and sin are taken at that precision.
    """
    angles = numpy.asarray(angles)
    if dtype is None:
        dtype = dtypes.complex_dtype(angles.dtype)
    dtype = numpy.dtype(dtype)
    angles = angles.astype(dtypes.float_dtype(dtype))
    vectors = numpy.empty(angles.shape, dtype=dtype)
    vectors.real = numpy.cos(angles)
    vectors.imag = numpy.sin(angles)
    return vectors


class acc_sum:
    """Running sum and count, accumulated in the given dtype."""

    def __init__(self, dtype):
        self.dtype = numpy.dtype(dtype)
        self.sum = self.dtype.type(0)
        self.n = 0

    def push(self, values):
        if len(values):
            self.sum = self.dtype.type(self.sum + numpy.sum(values, dtype=self.dtype))
            self.n += len(values)

    def mean(self):
        """Return sum / n, or the (unmodified) sum if nothing was pushed."""
        if self.n > 0:
            return self.dtype.type(
                self.sum / dtypes.float_dtype(self.dtype).type(self.n)
            )
        return self.sum


class acc_product:
    """Running product, seeded with 1, accumulated in the given dtype."""

    def __init__(self, dtype):
        self.dtype = numpy.dtype(dtype)
        self.product = self.dtype.type(1)

    def push(self, values):
        if len(values):
            with numpy.errstate(over="ignore", invalid="ignore"):
                self.product = self.dtype.type(
                    self.product * numpy.prod(values, dtype=self.dtype)
                )


class acc_max:
    """Running maximum, seeded with the lowest value of the given dtype.

    NaN values never replace the running maximum.
    """

    def __init__(self, dtype):
        self.dtype = numpy.dtype(dtype)
        self.value = dtypes.lowest(self.dtype)

    def push(self, values):
        if len(values):
            candidate = numpy.fmax.reduce(values)
            if candidate > self.value:
                self.value = self.dtype.type(candidate)


class acc_min:
    """Running minimum, seeded with the highest value of the given dtype.

    NaN values never replace the running minimum.
    """

    def __init__(self, dtype):
        self.dtype = numpy.dtype(dtype)
        self.value = dtypes.highest(self.dtype)

    def push(self, values):
        if len(values):
            candidate = numpy.fmin.reduce(values)
            if candidate < self.value:
                self.value = self.dtype.type(candidate)


class acc_variance:
    """Streaming count, mean and sum of squared deviations (M2).

    Each pushed batch is summarized on its own and then merged into the
    running state with the pairwise update of Chan, Golub and LeVeque,
    so the result does not depend on how the elements were batched
    (beyond floating-point rounding). State is kept in float64.
    """

    def __init__(self):
        self.n = 0
        self.mean = 0.0
        self.m2 = 0.0

    def push(self, values):
        n_b = len(values)
        if not n_b:
            return
        values = numpy.asarray(values, dtype=numpy.float64)
        mean_b = values.mean()
        m2_b = numpy.sum((values - mean_b) ** 2)

        n = self.n + n_b
        delta = mean_b - self.mean
        self.mean += delta * n_b / n
        self.m2 += m2_b + delta * delta * self.n * n_b / n
        self.n = n

    def variance(self):
        """Return the sample variance (M2 / (n - 1)), or 0 if n < 2."""
        if self.n > 1:
            return self.m2 / (self.n - 1)
        return 0.0

    def stddev(self):
        return numpy.sqrt(self.variance())


class acc_directional:
    """Running sum of unit vectors for a set of angles (in radians).

    Vectors are computed and summed in complex128 whatever the input
    precision, so that a set of identical angles has R within rounding of 1.
    """

    def __init__(self):
        self.dtype = numpy.dtype(numpy.complex128)
        self.sum = self.dtype.type(0)
        self.n = 0

    def push(self, values):
        if len(values):
            self.sum = self.dtype.type(
                self.sum + angle_to_vector(values, self.dtype).sum()
            )
            self.n += len(values)

    def mean(self):
        """Return the angle of the resultant vector, in [-pi, pi]."""
        return numpy.arctan2(self.sum.imag, self.sum.real)

    def resultant_length(self):
        """Return R = |sum| / n, clamped to [0, 1]; 0 if nothing was pushed."""
        if not self.n:
            return 0.0
        return min(float(numpy.abs(self.sum)) / self.n, 1.0)

    def variance(self):
        """Return the circular variance, 1 - R."""
        return 1.0 - self.resultant_length()

    def stddev(self):
        """Return the circular standard deviation, sqrt(-2 ln R)."""
        with numpy.errstate(divide="ignore"):
            return numpy.sqrt(-2.0 * numpy.log(self.resultant_length()))
