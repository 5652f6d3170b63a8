"""Strided, multi-channel array views for dimproj.

A parray is a header over a flat NumPy buffer: an element offset, a tuple
of per-dimension sizes, and a matching tuple of per-dimension strides.
Strides and offset are counted in elements rather than bytes, and may be
zero (broadcast) or negative (reversed). An optional channel dimension
(for example, the three samples of an RGB pixel) has its own size and
stride and is never treated as an ordinary dimension unless explicitly
converted with `channels_to_spatial`.

Dimension 0 varies fastest wherever dimproj iterates over positions.
A freshly forged parray interleaves its channels (channel stride 1), then
lays out dimension 0, 1, ... in that order.

Creating a sub-view never copies: `view`, `quick_copy`, `squeeze`,
`expand_singletons` and friends return new headers over the same data.
"""

import operator
from functools import reduce

import numpy
from numpy.lib.stride_tricks import as_strided

from . import dtypes


class ShapeMismatchError(ValueError):
    """A mask cannot be broadcast to the sizes of the array it masks."""


def forge_strides(sizes, channels=1):
    """Return default element strides for a new array of the given sizes.

    Channels are interleaved, so dimension 0 steps over all of them:

        sizes=(3, 4), channels=2  ->  strides=(2, 6)
    """
    strides = []
    step = channels
    for size in sizes:
        strides.append(step)
        step *= size
    return tuple(strides)


def _flat_buffer(arr):
    """Return (buffer, offset, strides) describing `arr` in element units.

    The buffer is a 1-D view spanning every element `arr` can address, so
    that any view of `arr` can be rebuilt from it by offset and strides.
    Arrays whose byte strides are not a multiple of their itemsize (or which
    address no elements at all) are copied first.
    """
    itemsize = arr.dtype.itemsize
    if arr.size == 0 or any(s % itemsize for s in arr.strides):
        arr = numpy.array(arr, order="C")
    strides = tuple(s // itemsize for s in arr.strides)
    if arr.size == 0:
        return arr.reshape(-1), 0, strides

    low = sum((n - 1) * s for n, s in zip(arr.shape, strides) if s < 0)
    high = sum((n - 1) * s for n, s in zip(arr.shape, strides) if s > 0)

    # A view of `arr` whose first element sits at its lowest address.
    base = arr.reshape(1) if arr.ndim == 0 else arr
    corner = base[
        tuple(
            slice(n - 1, n) if s < 0 else slice(0, 1)
            for n, s in zip(arr.shape, strides)
        )
    ]
    buffer = as_strided(corner, shape=(high - low + 1,), strides=(itemsize,))
    return buffer, -low, strides


class parray:
    """An N-dimensional, multi-channel strided view over a flat NumPy buffer.

    `data` is a 1-D NumPy array (or None for an array that has been stripped
    and not yet forged again). `offset` is the index in `data` of the
    element at position (0, 0, ...) and channel 0.

    `pixel_size` (a tuple of physical sizes, one per dimension, or None)
    and `color_space` (a free-form label) are metadata which dimproj copies
    from input to output but never interprets.

    If `protected` is True, `reforge` keeps the current element type rather
    than switching to the one requested; results are then cast into it.
    """

    def __init__(
        self,
        data,
        sizes,
        strides=None,
        offset=0,
        channels=1,
        channel_stride=1,
        pixel_size=None,
        color_space="",
    ):
        self.sizes = tuple(int(s) for s in sizes)
        if strides is None:
            strides = forge_strides(self.sizes, channels)
        self.strides = tuple(int(s) for s in strides)
        if len(self.strides) != len(self.sizes):
            raise ValueError(
                "parray strides %s do not match sizes %s." % (self.strides, self.sizes)
            )
        self.data = data
        self.dtype = None
        if data is not None:
            self.dtype = dtypes.check_dtype(data.dtype, dtypes.ALL, "parray")
        self.offset = int(offset)
        self.channels = int(channels)
        self.channel_stride = int(channel_stride)
        self.pixel_size = pixel_size
        self.color_space = color_space
        self.protected = False

    @classmethod
    def forged(
        cls, sizes, channels=1, dtype=numpy.float64, pixel_size=None, color_space=""
    ):
        """Return a new parray with freshly allocated (zeroed) storage."""
        sizes = tuple(sizes)
        count = reduce(operator.mul, sizes, 1) * channels
        dtype = dtypes.check_dtype(dtype, dtypes.ALL, "parray")
        data = numpy.zeros(count, dtype=dtype)
        return cls(
            data,
            sizes,
            forge_strides(sizes, channels),
            0,
            channels,
            1,
            pixel_size,
            color_space,
        )

    @classmethod
    def from_array(cls, arr, channel_axis=None, pixel_size=None, color_space=""):
        """Return a parray viewing the given NumPy array without copying.

        If `channel_axis` is given, that axis of `arr` becomes the channel
        dimension; every other axis becomes an ordinary dimension, in order.
        """
        arr = numpy.asarray(arr)
        dtypes.check_dtype(arr.dtype, dtypes.ALL, "parray")
        data, offset, strides = _flat_buffer(arr)
        sizes = arr.shape
        channels, channel_stride = 1, 1
        if channel_axis is not None:
            axis = channel_axis % arr.ndim
            channels, channel_stride = sizes[axis], strides[axis]
            sizes = sizes[:axis] + sizes[axis + 1 :]
            strides = strides[:axis] + strides[axis + 1 :]
        return cls(
            data,
            sizes,
            strides,
            offset,
            channels,
            channel_stride,
            pixel_size,
            color_space,
        )

    def __repr__(self):
        return "parray(sizes=%s, strides=%s, offset=%s, channels=%s, dtype=%s)" % (
            self.sizes,
            self.strides,
            self.offset,
            self.channels,
            None if self.dtype is None else self.dtype.name,
        )

    # ------------------------------ geometry ------------------------------ #

    @property
    def ndim(self):
        return len(self.sizes)

    @property
    def size(self):
        """The number of positions (not counting channels)."""
        return reduce(operator.mul, self.sizes, 1)

    @property
    def is_forged(self):
        return self.data is not None

    def quick_copy(self):
        """Return a new header over the same data, with identical geometry."""
        other = parray(
            self.data,
            self.sizes,
            self.strides,
            self.offset,
            self.channels,
            self.channel_stride,
            self.pixel_size,
            self.color_space,
        )
        other.dtype = self.dtype
        return other

    def view(self, sizes):
        """Return a view starting at self's origin but spanning only `sizes`.

        Strides are kept, so `sizes` must not exceed self.sizes in any
        dimension; a size of 1 pins that dimension to the current origin.
        """
        sizes = tuple(sizes)
        if len(sizes) != self.ndim or any(s > n for s, n in zip(sizes, self.sizes)):
            raise ValueError("Cannot view sizes %s of %s." % (sizes, self.sizes))
        other = self.quick_copy()
        other.sizes = sizes
        return other

    def shift_origin(self, elements):
        """Move self's origin by the given number of elements (in place)."""
        self.offset += elements

    def squeeze(self):
        """Drop every dimension of size 1 (in place), and return self."""
        kept = [i for i, s in enumerate(self.sizes) if s != 1]
        self.sizes = tuple(self.sizes[i] for i in kept)
        self.strides = tuple(self.strides[i] for i in kept)
        return self

    def channels_to_spatial(self):
        """Return a view with the channel dimension inserted as dimension 0.

        The result has a single channel. A single-channel parray gains
        a leading dimension of size 1 and stride 0, which can then be
        broadcast over any number of channels.
        """
        other = self.quick_copy()
        if self.channels > 1:
            other.sizes = (self.channels,) + self.sizes
            other.strides = (self.channel_stride,) + self.strides
        else:
            other.sizes = (1,) + self.sizes
            other.strides = (0,) + self.strides
        other.channels = 1
        other.channel_stride = 1
        return other

    def expand_singletons(self, sizes):
        """Return a view broadcast to the given sizes.

        Missing trailing dimensions are added, and every dimension of size 1
        is stretched to the target size with a stride of 0.
        """
        sizes = tuple(sizes)
        if self.ndim > len(sizes):
            raise ShapeMismatchError(
                "Cannot expand sizes %s to %s." % (self.sizes, sizes)
            )
        missing = len(sizes) - self.ndim
        mine = self.sizes + (1,) * missing
        strides = list(self.strides + (0,) * missing)
        for i, (m, s) in enumerate(zip(mine, sizes)):
            if m != s:
                if m != 1:
                    raise ShapeMismatchError(
                        "Cannot expand sizes %s to %s." % (self.sizes, sizes)
                    )
                strides[i] = 0
        other = self.quick_copy()
        other.sizes = sizes
        other.strides = tuple(strides)
        return other

    def check_mask(self, sizes):
        """Return self, a mask, as a view broadcast to the given sizes.

        Raises TypeError if self is not boolean, and ShapeMismatchError if
        self has more than one channel or its sizes cannot be expanded.
        """
        if self.dtype not in dtypes.BINARY:
            raise TypeError(
                "Mask must be a boolean array, not %s."
                % (None if self.dtype is None else self.dtype.name)
            )
        if self.channels != 1:
            raise ShapeMismatchError(
                "Mask must have a single channel, not %s." % (self.channels,)
            )
        return self.expand_singletons(sizes)

    # ------------------------------- storage ------------------------------- #

    def strip(self):
        """Release self's storage; the next `reforge` will allocate anew."""
        self.data = None

    def shares_memory(self, other):
        """Return True if self and other (may) address the same storage."""
        if other is None or not self.is_forged or not other.is_forged:
            return False
        return numpy.may_share_memory(self.data, other.data)

    def reforge(self, sizes, channels=1, dtype=numpy.float64):
        """Make self an array of the given geometry and dtype (in place).

        Existing storage is reused if self already has exactly the requested
        sizes, channels and dtype; otherwise it is replaced. A protected
        parray keeps its current dtype regardless of the one requested.
        """
        sizes = tuple(sizes)
        dtype = numpy.dtype(dtype)
        if self.protected and self.dtype is not None:
            dtype = self.dtype

        if (
            self.is_forged
            and self.sizes == sizes
            and self.channels == channels
            and self.dtype == dtype
        ):
            return self

        self.data = numpy.zeros(
            reduce(operator.mul, sizes, 1) * channels,
            dtype=dtypes.check_dtype(dtype, dtypes.ALL, "parray"),
        )
        self.dtype = self.data.dtype
        self.sizes = sizes
        self.strides = forge_strides(sizes, channels)
        self.offset = 0
        self.channels = channels
        self.channel_stride = 1
        return self

    @property
    def origin(self):
        """The element at self's origin: position (0, 0, ...), channel 0."""
        return self.data[self.offset]

    @origin.setter
    def origin(self, value):
        self.data[self.offset] = value

    def to_array(self):
        """Return a NumPy view of self's elements.

        The shape is self.sizes, with a trailing channel axis appended when
        self has more than one channel.
        """
        shape = self.sizes
        strides = self.strides
        if self.channels > 1:
            shape = shape + (self.channels,)
            strides = strides + (self.channel_stride,)
        if 0 in shape:
            return numpy.empty(shape, dtype=self.dtype)
        itemsize = self.dtype.itemsize
        return as_strided(
            self.data[self.offset :],
            shape=shape,
            strides=tuple(s * itemsize for s in strides),
        )

    def copy_from(self, other):
        """Reforge self like `other` and copy its elements and metadata in."""
        self.reforge(other.sizes, other.channels, other.dtype)
        # A protected self may keep another dtype; convert as the scan does.
        numpy.copyto(self.to_array(), dtypes.clamp_array(other.to_array(), self.dtype))
        self.pixel_size = other.pixel_size
        self.color_space = other.color_space
        return self


def as_parray(arr):
    """Return the given parray, or a parray view over the given array-like."""
    if arr is None or isinstance(arr, parray):
        return arr
    return parray.from_array(arr)
