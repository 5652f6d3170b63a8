"""Element types and numeric promotion rules for dimproj.

Every parray stores one of a closed set of NumPy dtypes. Reducers declare
which family of those they accept, and which dtype their result takes;
the helpers here answer both questions.
"""

import numpy

BINARY = (numpy.dtype(numpy.bool_),)
UNSIGNED = tuple(
    numpy.dtype(t) for t in (numpy.uint8, numpy.uint16, numpy.uint32, numpy.uint64)
)
SIGNED_INTEGER = tuple(
    numpy.dtype(t) for t in (numpy.int8, numpy.int16, numpy.int32, numpy.int64)
)
FLOAT = (numpy.dtype(numpy.float32), numpy.dtype(numpy.float64))
COMPLEX = (numpy.dtype(numpy.complex64), numpy.dtype(numpy.complex128))

INTEGER = UNSIGNED + SIGNED_INTEGER
REAL = INTEGER + FLOAT
NONCOMPLEX = BINARY + REAL
NONBINARY = REAL + COMPLEX
SIGNED = SIGNED_INTEGER + FLOAT + COMPLEX
ALL = BINARY + NONBINARY

# Integer types too wide to be represented exactly by a float32.
_WIDE = (
    numpy.dtype(numpy.uint32),
    numpy.dtype(numpy.uint64),
    numpy.dtype(numpy.int32),
    numpy.dtype(numpy.int64),
    numpy.dtype(numpy.float64),
    numpy.dtype(numpy.complex128),
)


class UnsupportedTypeError(TypeError):
    """No reducer exists for the given element type."""


def check_dtype(dtype, family, name="array"):
    """Return numpy.dtype(dtype), raising UnsupportedTypeError if not in family."""
    dtype = numpy.dtype(dtype)
    if dtype not in family:
        raise UnsupportedTypeError(
            "%s does not support element type %s." % (name, dtype.name)
        )
    return dtype


def is_binary(dtype):
    return numpy.dtype(dtype) in BINARY


def is_unsigned(dtype):
    return numpy.dtype(dtype) in UNSIGNED


def is_complex(dtype):
    return numpy.dtype(dtype) in COMPLEX


def float_dtype(dtype):
    """Return the floating-point dtype suited to hold values of the given dtype.

    32- and 64-bit integers, float64 and complex128 need double precision;
    everything narrower (including binary) fits in a float32. Complex input
    maps to the dtype of its real part.
    """
    if numpy.dtype(dtype) in _WIDE:
        return numpy.dtype(numpy.float64)
    return numpy.dtype(numpy.float32)


def flex_dtype(dtype):
    """Return float_dtype(dtype), or its complex counterpart for complex input."""
    if is_complex(dtype):
        if float_dtype(dtype) == numpy.float64:
            return numpy.dtype(numpy.complex128)
        return numpy.dtype(numpy.complex64)
    return float_dtype(dtype)


def complex_dtype(dtype):
    """Return the complex dtype whose parts are float_dtype(dtype)."""
    if float_dtype(dtype) == numpy.float64:
        return numpy.dtype(numpy.complex128)
    return numpy.dtype(numpy.complex64)


def lowest(dtype):
    """Return the lowest finite value representable in the given dtype."""
    dtype = numpy.dtype(dtype)
    if dtype in BINARY:
        return numpy.bool_(False)
    if dtype in INTEGER:
        return dtype.type(numpy.iinfo(dtype).min)
    return dtype.type(numpy.finfo(dtype).min)


def highest(dtype):
    """Return the highest finite value representable in the given dtype."""
    dtype = numpy.dtype(dtype)
    if dtype in BINARY:
        return numpy.bool_(True)
    if dtype in INTEGER:
        return dtype.type(numpy.iinfo(dtype).max)
    return dtype.type(numpy.finfo(dtype).max)


def clamp_cast(value, dtype):
    """Return the scalar `value` converted to `dtype`, saturating if needed.

    Complex values cast to a real type yield their modulus. Integer targets
    clamp to their representable range and truncate toward zero; NaN maps
    to 0. Binary targets are True for any non-zero value.
    """
    dtype = numpy.dtype(dtype)
    if dtype in COMPLEX:
        return dtype.type(value)

    if numpy.iscomplexobj(value):
        value = numpy.abs(value)

    if dtype in BINARY:
        return numpy.bool_(value != 0)

    if dtype in INTEGER:
        if numpy.isnan(value):
            return dtype.type(0)
        info = numpy.iinfo(dtype)
        # Compare as Python ints/floats: numpy would wrap uint64/int64 bounds.
        if isinstance(value, (int, numpy.integer)):
            value = int(value)
        else:
            value = float(value)
        if value <= info.min:
            return dtype.type(info.min)
        if value >= info.max:
            return dtype.type(info.max)
        return dtype.type(int(value))

    with numpy.errstate(over="ignore"):
        return dtype.type(value)


def clamp_array(values, dtype):
    """Return the array `values` converted to `dtype` as clamp_cast would.

    This is the element-wise form of clamp_cast, for whole arrays.
    An array already of `dtype` is returned as is.
    """
    dtype = numpy.dtype(dtype)
    values = numpy.asarray(values)
    if values.dtype == dtype:
        return values
    if dtype in COMPLEX:
        return values.astype(dtype)

    if values.dtype in COMPLEX:
        values = numpy.abs(values)

    if dtype in BINARY:
        return values != 0

    if dtype in INTEGER:
        info = numpy.iinfo(dtype)
        result = numpy.zeros(values.shape, dtype=dtype)
        if values.dtype in FLOAT:
            # Bounds as floats; NaN compares False everywhere and stays 0.
            low = values <= float(info.min)
            high = values >= float(info.max)
            inside = ~(low | high | numpy.isnan(values))
        else:
            low = values <= info.min
            high = values >= info.max
            inside = ~(low | high)
        result[low] = info.min
        result[high] = info.max
        result[inside] = values[inside]
        return result

    with numpy.errstate(over="ignore"):
        return values.astype(dtype)
