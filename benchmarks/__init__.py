"""Benchmarks for dimproj, run by py.test like the rest of the suite.

Each benchmark times one projection of one synthetic image and prints the
elapsed time along with the image geometry it used, so that runs with
different geometry can be told apart. A benchmark that runs over its
threshold xfails rather than fails: thresholds only ever move down.

Keep benchmarks small and aimed at one code path each. The scan behaves
very differently depending on how many output positions there are:
    * single block: every dimension processed, one reducer call.
    * scan: some dimensions kept, one reducer call per output position,
      so per-call overhead dominates; shrink `sizes` for these.
    * channels: each channel projected on its own.
Do not add benchmarks that differ only in image size or channel count;
pick the worst case for the path and time that.
"""

import gc
import time
import unittest
from contextlib import contextmanager

import numpy
import pytest

from dimproj import parray


class ImageParameters(dict):
    """The geometry of the synthetic image a benchmark projects.

    A parameter is recorded (and so reported) only once it is read or set,
    so a single-channel benchmark never reports `channels`, for example.
    Reading an unset parameter records its default.
    """

    defaults = {
        # Sizes of the spatial dimensions.
        "sizes": (1000, 1000),
        "channels": 3,
        # Fraction of rows the mask selects.
        "density": 0.5,
    }

    def __getattr__(self, key):
        if key not in self.defaults:
            raise AttributeError("No image parameter named %r." % (key,))
        return self.setdefault(key, self.defaults[key])

    def __setattr__(self, key, value):
        if key not in self.defaults:
            raise AttributeError("No image parameter named %r." % (key,))
        self[key] = value

    def describe(self):
        return "\t".join("%s=%s" % (k, self[k]) for k in sorted(self))


class UnitBenchmark(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.params = ImageParameters()

    def tearDown(self):
        self.params = None
        super().tearDown()

    @contextmanager
    def bench(self, name, threshold_ms=None):
        """Time the wrapped block as benchmark `name`.

        If `threshold_ms` is given and the block takes longer, the test
        xfails with the measured time.
        """
        gc.collect()
        start = time.perf_counter()
        yield
        elapsed_ms = (time.perf_counter() - start) * 1000
        print("\n%10.3fms" % elapsed_ms, name, self.params.describe())

        if threshold_ms is not None and elapsed_ms > threshold_ms:
            pytest.xfail(
                "%s took %.3fms, over its threshold of %.3fms"
                % (name, elapsed_ms, threshold_ms)
            )

    def _ramp(self, shape, dtype):
        # Don't muck about with distributions; a ramp will do.
        count = int(numpy.prod(shape))
        return (numpy.arange(count) % 251).astype(dtype).reshape(shape)

    def image(self, dtype=numpy.float32):
        """Return a single-channel parray of self.params.sizes."""
        return parray.from_array(self._ramp(self.params.sizes, dtype))

    def color_image(self, dtype=numpy.uint8):
        """Return a parray of self.params.sizes and self.params.channels."""
        shape = self.params.sizes + (self.params.channels,)
        return parray.from_array(self._ramp(shape, dtype), channel_axis=-1)

    def mask(self):
        """Return a boolean mask of self.params.sizes, True for the first rows."""
        sizes = self.params.sizes
        data = numpy.zeros(sizes, dtype=bool)
        data[: int(sizes[0] * self.params.density)] = True
        return parray.from_array(data)
