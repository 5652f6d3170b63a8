import numpy

from dimproj import parray


def arr_eq(a, b):
    """Return True if the two array-likes are close, even with NaN values."""
    return numpy.allclose(a, b, equal_nan=True)


def rgb_image():
    """Return a 3x4x2 uint8 parray of 3 channels, all 1 but (0, 0, 0) = (2, 3, 4)."""
    img = numpy.ones((3, 4, 2, 3), dtype=numpy.uint8)
    img[0, 0, 0] = (2, 3, 4)
    return parray.from_array(img, channel_axis=-1)


def block(values, mask=None):
    """Return (view, mask view) parrays over the given array-likes, for pfuncs."""
    view = parray.from_array(numpy.asarray(values))
    if mask is not None:
        mask = parray.from_array(numpy.asarray(mask, dtype=bool))
    return view, mask
