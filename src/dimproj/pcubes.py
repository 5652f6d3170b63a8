import time

from . import dtypes, pfuncs
from .parrays import as_parray, parray

MODES = ("", "directional")


def _check_mode(mode):
    if mode not in MODES:
        raise ValueError("Unknown mode %r; expected one of %r." % (mode, MODES))
    return mode == "directional"


class pcube:
    """An N-dimensional projection of a parray along selected dimensions.

    This object holds an input parray `arr`, an optional boolean `mask`
    of the same (or broadcastable) sizes, and a `process` selector: one
    boolean per dimension, True meaning "collapse this dimension". An empty
    or None selector means "collapse every dimension". Any dimension of
    size 1 is never collapsed (there is nothing to collapse), regardless
    of what the caller asked for.

    The pcube itself does not own the output; instead, use pfunc objects
    (or the shortcut methods on the pcube, like `mean`) to calculate it.
    The output has the same dimensionality as the input: every collapsed
    dimension has size 1, and every other dimension keeps its size.
    Channels are never collapsed: each channel is projected on its own.

    The core operation is a scan: for each output position, we form a view
    of the input spanning only the collapsed dimensions, hand it (and the
    matching view of the mask) to the pfunc, and store its single result.
    To move from one output position to the next, we shift the origins of
    the input, mask and output views along the non-collapsed dimensions,
    like the wheels of an odometer: dimension 0 turns fastest, and when it
    wraps around it carries into dimension 1, and so on.

    Each reduction reads a disjoint block and writes a distinct output
    element, so positions could be farmed out to a pool; this class
    visits them one at a time, in order.
    """

    debug = False
    check_interrupt = None

    def __init__(self, arr, mask=None, process=None):
        # A header of our own, so that an `out` which is the caller's input
        # can be stripped and reforged without losing the data we read.
        self.arr = arr = as_parray(arr).quick_copy()
        sizes = arr.sizes

        if process is None or not len(process):
            process = [True] * len(sizes)
        else:
            process = [bool(p) for p in process]
            if len(process) != len(sizes):
                raise ValueError(
                    "The process selector has %d elements, but the array has "
                    "%d dimensions." % (len(process), len(sizes))
                )
        self.process = tuple(p and s != 1 for p, s in zip(process, sizes))

        if mask is None:
            self.mask = None
        else:
            self.mask = as_parray(mask).check_mask(sizes)

        self.out_sizes = tuple(1 if p else s for p, s in zip(self.process, sizes))
        self._tracing = {}

    # ------------------------------ scanning ------------------------------ #

    def calculate(self, func, out=None):
        """Return a parray of func reduced over the processed dimensions.

        If `out` is given, it must be a parray; it is reforged in place to
        the output sizes and func.out_dtype (unless it is protected, in which
        case it keeps its dtype and results are cast into it), filled,
        and returned. If `out` shares storage with the input or mask,
        it is first given fresh storage.

        If no dimension is processed, the output is the input itself
        (a new header over the same data, or a copy into `out`) and the
        mask is ignored.
        """
        if out is not None and not isinstance(out, parray):
            raise TypeError("out must be a parray, not %s." % (type(out).__name__,))

        if self.debug:
            print("\npcube.calculate(%s):" % (func,))
            print("PROCESS:", self.process, "OUT SIZES:", self.out_sizes)

        arr = self.arr
        if not any(self.process):
            if self.debug:
                print("NOTHING TO PROCESS")
            if out is None:
                return arr.quick_copy()
            return out.copy_from(arr)

        mask = self.mask
        if out is None:
            out = parray(None, ())
        elif out.shares_memory(arr) or out.shares_memory(mask):
            out.strip()
        out.reforge(self.out_sizes, arr.channels, func.out_dtype)
        out.pixel_size = arr.pixel_size
        out.color_space = arr.color_space

        self._tracing[func] = {"elapsed": 0.0, "start": None, "count": 0}

        output = out.quick_copy()
        process = list(self.process)
        proc_sizes = [s if p else 1 for p, s in zip(process, arr.sizes)]
        if arr.channels > 1:
            arr = arr.channels_to_spatial()
            if mask is not None:
                mask = mask.channels_to_spatial().expand_singletons(arr.sizes)
            output = output.channels_to_spatial()
            process.insert(0, False)
            proc_sizes.insert(0, 1)
        out_sizes = output.sizes
        if 0 in out_sizes:
            return out

        if all(process):
            if self.debug:
                print("SINGLE BLOCK")
            self._reduce_one(func, arr, mask, output)
            return out

        # Views over just the processed dimensions, without singleton
        # dimensions, so that pfuncs never loop over those.
        block = arr.view(proc_sizes).squeeze()
        block_mask = None
        if mask is not None:
            block_mask = mask.view(proc_sizes).squeeze()

        # Keep only output dimensions we will actually step along,
        # and the matching strides of input, mask and output, in lockstep.
        sizes, in_strides, mask_strides, out_strides = [], [], [], []
        for dd, size in enumerate(out_sizes):
            if size > 1:
                sizes.append(size)
                in_strides.append(arr.strides[dd])
                mask_strides.append(0 if mask is None else mask.strides[dd])
                out_strides.append(output.strides[dd])
        ndims = len(sizes)
        cell = output.quick_copy()
        cell.sizes = ()
        cell.strides = ()

        if self.debug:
            print("BLOCK:", block)
            print("STEP SIZES:", sizes)
            print("STRIDES:", in_strides, mask_strides, out_strides)

        position = [0] * ndims
        while True:
            self._reduce_one(func, block, block_mask, cell)

            # Next output position.
            for dd in range(ndims):
                position[dd] += 1
                block.shift_origin(in_strides[dd])
                if block_mask is not None:
                    block_mask.shift_origin(mask_strides[dd])
                cell.shift_origin(out_strides[dd])
                if position[dd] != sizes[dd]:
                    break
                # Rewind along this dimension and carry into the next.
                block.shift_origin(-in_strides[dd] * position[dd])
                if block_mask is not None:
                    block_mask.shift_origin(-mask_strides[dd] * position[dd])
                cell.shift_origin(-out_strides[dd] * position[dd])
                position[dd] = 0
            else:
                break

        return out

    def _reduce_one(self, func, block, block_mask, cell):
        """Store func.reduce(block, block_mask) at the origin of `cell`."""
        if self.check_interrupt is not None:
            self.check_interrupt()

        start = time.time()
        value = func.reduce(block, block_mask)
        if cell.dtype != func.out_dtype:
            # The output was protected with a different dtype.
            value = dtypes.clamp_cast(value, cell.dtype)
        cell.origin = value

        bucket = self._tracing[func]
        bucket["elapsed"] += time.time() - start
        bucket["count"] += 1
        if bucket["start"] is None:
            bucket["start"] = start
        if self.debug:
            print(func, "@", cell.offset, ":=", value)

    # -------------------------------- pfuncs -------------------------------- #

    def sum(self, out=None):
        """Return the sums of self.arr over the processed dimensions.

        Any element type is accepted; the output is float_dtype (or its
        complex counterpart for complex input).
        """
        return self.calculate(pfuncs.pfunc_mean(self.arr.dtype, False), out)

    def mean(self, mode="", out=None):
        """Return the means of self.arr over the processed dimensions.

        If `mode` is "directional", the values are taken to be angles in
        radians, and their circular mean is returned instead; this requires
        a floating-point array. A block with no selected elements has a
        mean of 0 (the empty sum is not divided).
        """
        if _check_mode(mode):
            func = pfuncs.pfunc_mean_directional(self.arr.dtype)
        else:
            func = pfuncs.pfunc_mean(self.arr.dtype, True)
        return self.calculate(func, out)

    def product(self, out=None):
        """Return the products of self.arr over the processed dimensions."""
        return self.calculate(pfuncs.pfunc_product(self.arr.dtype), out)

    def _abs_func(self, compute_mean):
        dtype = self.arr.dtype
        if dtypes.is_unsigned(dtype):
            return pfuncs.pfunc_mean(dtype, compute_mean)
        return pfuncs.pfunc_mean_abs(dtype, compute_mean)

    def mean_abs(self, out=None):
        """Return the means of the absolute values of self.arr.

        Binary arrays are not supported.
        """
        return self.calculate(self._abs_func(True), out)

    def sum_abs(self, out=None):
        """Return the sums of the absolute values of self.arr.

        Binary arrays are not supported.
        """
        return self.calculate(self._abs_func(False), out)

    def _square_func(self, compute_mean):
        dtype = self.arr.dtype
        if dtypes.is_binary(dtype):
            return pfuncs.pfunc_mean(dtype, compute_mean)
        return pfuncs.pfunc_mean_square(dtype, compute_mean)

    def mean_square(self, out=None):
        """Return the means of the squares of self.arr."""
        return self.calculate(self._square_func(True), out)

    def sum_square(self, out=None):
        """Return the sums of the squares of self.arr."""
        return self.calculate(self._square_func(False), out)

    def _variance_func(self, mode, compute_stddev):
        dtype = self.arr.dtype
        if _check_mode(mode):
            return pfuncs.pfunc_variance_directional(dtype, compute_stddev)
        if dtypes.is_binary(dtype):
            # Binary input goes through the plain mean, as it always has.
            return pfuncs.pfunc_mean(dtype, True)
        return pfuncs.pfunc_variance(dtype, compute_stddev)

    def variance(self, mode="", out=None):
        """Return the sample variances of self.arr over the processed dimensions.

        If `mode` is "directional", the values are taken to be angles in
        radians, and the circular variance 1 - R is returned instead.
        Complex arrays are not supported.
        """
        return self.calculate(self._variance_func(mode, False), out)

    def standard_deviation(self, mode="", out=None):
        """Return the sample standard deviations of self.arr.

        If `mode` is "directional", the values are taken to be angles in
        radians, and the circular standard deviation sqrt(-2 ln R)
        is returned instead. Complex arrays are not supported.
        """
        return self.calculate(self._variance_func(mode, True), out)

    def maximum(self, out=None):
        """Return the maximums of self.arr, in its own dtype."""
        return self.calculate(pfuncs.pfunc_max(self.arr.dtype), out)

    def minimum(self, out=None):
        """Return the minimums of self.arr, in its own dtype."""
        return self.calculate(pfuncs.pfunc_min(self.arr.dtype), out)

    def percentile(self, percentile=50.0, out=None):
        """Return the given percentile of self.arr over the processed dimensions.

        The 0th percentile is exactly self.minimum() and the 100th exactly
        self.maximum(), in the input dtype. Any other percentile between
        them is linearly interpolated between closest ranks, in float_dtype.
        """
        percentile = float(percentile)
        if percentile == 0:
            return self.minimum(out)
        if percentile == 100:
            return self.maximum(out)
        return self.calculate(
            pfuncs.pfunc_percentile(self.arr.dtype, percentile), out
        )
