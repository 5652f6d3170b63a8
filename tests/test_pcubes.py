import math

import numpy
import pytest

from dimproj import UnsupportedTypeError, parray, pcube, pfuncs, projections

from . import arr_eq, rgb_image


def single_spike():
    """Return a 4x6 float32 parray of zeros, but with a 1 at (0, 0)."""
    a = numpy.zeros((4, 6), dtype=numpy.float32)
    a[0, 0] = 1
    return parray.from_array(a)


class TestPcubeInit:
    def test_default_process_is_all(self):
        cube = pcube(numpy.zeros((3, 4)))
        assert cube.process == (True, True)
        assert cube.out_sizes == (1, 1)
        assert pcube(numpy.zeros((3, 4)), process=[]).process == (True, True)

    def test_singleton_dimensions_are_never_processed(self):
        cube = pcube(numpy.zeros((3, 1, 4)), process=[True, True, False])
        assert cube.process == (True, False, False)
        assert cube.out_sizes == (1, 1, 4)

    def test_process_length_mismatch(self):
        with pytest.raises(ValueError) as exc:
            pcube(numpy.zeros((3, 4)), process=[True])
        assert "1 elements" in str(exc.value)
        assert "2 dimensions" in str(exc.value)

    def test_mask_is_checked(self):
        with pytest.raises(ValueError):
            pcube(numpy.zeros((3, 4)), mask=numpy.ones((2, 4), dtype=bool))
        with pytest.raises(TypeError):
            pcube(numpy.zeros((3, 4)), mask=numpy.ones((3, 4), dtype=numpy.uint8))


class TestPcubeMaximum:
    def test_all_dimensions(self):
        result = pcube(rgb_image()).maximum()
        assert result.sizes == (1, 1, 1)
        assert result.channels == 3
        assert result.dtype == numpy.uint8
        assert result.to_array().tolist() == [[[[2, 3, 4]]]]

    def test_process_trailing_dimensions(self):
        result = pcube(rgb_image(), process=[False, True, True]).maximum()
        assert result.sizes == (3, 1, 1)
        out = result.to_array()
        assert out.shape == (3, 1, 1, 3)
        assert out[0, 0, 0].tolist() == [2, 3, 4]
        assert out[1, 0, 0].tolist() == [1, 1, 1]
        assert out[2, 0, 0].tolist() == [1, 1, 1]

    def test_process_outer_dimensions(self):
        result = pcube(rgb_image(), process=[True, False, True]).maximum()
        assert result.sizes == (1, 4, 1)
        out = result.to_array()
        assert out[0, 0, 0].tolist() == [2, 3, 4]
        for i in range(1, 4):
            assert out[0, i, 0].tolist() == [1, 1, 1]

    def test_minimum(self):
        result = pcube(rgb_image(), process=[False, True, False]).minimum()
        assert result.sizes == (3, 1, 2)
        assert (result.to_array() == 1).all()


class TestPcubeMean:
    def test_mean(self):
        result = pcube(single_spike()).mean()
        assert result.sizes == (1, 1)
        assert result.dtype == numpy.float32
        assert result.to_array()[0, 0] == pytest.approx(1 / 24)

    def test_directional_mean(self):
        result = pcube(single_spike()).mean("directional")
        assert result.dtype == numpy.float32
        expected = math.atan2(math.sin(1), math.cos(1) + 23)
        assert result.to_array()[0, 0] == pytest.approx(expected, rel=1e-6)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            pcube(single_spike()).mean("circular")
        with pytest.raises(ValueError):
            pcube(single_spike()).variance("Directional")

    def test_directional_requires_float(self):
        with pytest.raises(UnsupportedTypeError):
            pcube(rgb_image()).mean("directional")
        with pytest.raises(UnsupportedTypeError):
            pcube(numpy.zeros(3, dtype=numpy.int32)).standard_deviation("directional")

    def test_channels_are_projected_separately(self):
        result = pcube(rgb_image()).mean()
        assert result.dtype == numpy.float32
        assert arr_eq(result.to_array()[0, 0, 0], [25 / 24, 26 / 24, 27 / 24])


class TestPcubeMask:
    a = numpy.arange(12, dtype=numpy.float64).reshape(3, 4)

    def test_full_mask(self):
        mask = self.a % 2 == 0
        result = pcube(self.a, mask, [False, True]).sum()
        assert result.to_array()[:, 0].tolist() == [2.0, 10.0, 18.0]

    def test_broadcast_mask(self):
        mask = numpy.array([[True], [False], [True]])
        result = pcube(self.a, mask, [True, False]).mean()
        assert result.to_array()[0].tolist() == [4.0, 5.0, 6.0, 7.0]

        # Rows which the mask hides entirely have an empty (zero) mean.
        result = pcube(self.a, mask, [False, True]).mean()
        assert result.to_array()[:, 0].tolist() == [1.5, 0.0, 9.5]

    def test_mask_with_fewer_dimensions(self):
        mask = numpy.array([True, False, False])
        result = pcube(self.a, mask).maximum()
        assert result.to_array().tolist() == [[3.0]]

    def test_mask_over_channels(self):
        img = rgb_image()
        mask = numpy.ones((3, 4, 2), dtype=bool)
        mask[0, 0, 0] = False
        result = pcube(img, mask).maximum()
        assert result.to_array().tolist() == [[[[1, 1, 1]]]]
        result = pcube(img, mask, [False, True, True]).sum()
        assert result.to_array()[:, 0, 0].tolist() == [[7, 7, 7], [8, 8, 8], [8, 8, 8]]


class TestPcubeNothingToProcess:
    def test_returns_input(self):
        p = rgb_image()
        result = pcube(p, process=[False, False, False]).mean()
        assert result is not p
        assert result.data is p.data
        assert result.dtype == numpy.uint8
        assert result.sizes == p.sizes

    def test_mask_is_ignored(self):
        a = numpy.arange(5, dtype=numpy.float32).reshape(1, 5)
        mask = numpy.zeros((1, 5), dtype=bool)
        result = pcube(a, mask, [True, False]).sum()
        assert result.to_array().tolist() == a.tolist()

    def test_copies_into_out(self):
        a = numpy.arange(6, dtype=numpy.int16).reshape(2, 3)
        out = parray.forged((1,))
        result = pcube(a, process=[False, False]).maximum(out)
        assert result is out
        assert out.dtype == numpy.int16
        assert out.to_array().tolist() == a.tolist()
        assert not numpy.shares_memory(out.to_array(), a)


class TestPcubeOut:
    a = numpy.arange(12, dtype=numpy.float64).reshape(3, 4)

    def test_out_is_reused(self):
        out = parray.forged((1, 4), dtype=numpy.float64)
        data = out.data
        result = pcube(self.a, process=[True, False]).sum(out)
        assert result is out
        assert out.data is data
        assert out.to_array().tolist() == [[12.0, 15.0, 18.0, 21.0]]

    def test_out_is_reforged(self):
        out = parray.forged((7,), dtype=numpy.uint8)
        pcube(self.a, process=[False, True]).mean(out=out)
        assert out.sizes == (3, 1)
        assert out.dtype == numpy.float64
        assert out.to_array()[:, 0].tolist() == [1.5, 5.5, 9.5]

    def test_out_overlapping_input(self):
        a = self.a.copy()
        out = parray.from_array(a)
        pcube(a, process=[True, False]).sum(out)
        assert out.sizes == (1, 4)
        assert out.to_array().tolist() == [[12.0, 15.0, 18.0, 21.0]]
        assert a.tolist() == self.a.tolist()

    def test_protected_out_keeps_dtype(self):
        a = numpy.array([[250.0, -20.0], [350.0, -40.0]])
        out = parray.forged((1,), dtype=numpy.uint8)
        out.protected = True
        pcube(a, process=[True, False]).mean(out=out)
        assert out.dtype == numpy.uint8
        # Values are clamped into range.
        assert out.to_array().tolist() == [[255, 0]]

    def test_protected_out_nothing_to_process(self):
        a = numpy.array([[300.0, -5.0, float("nan"), 7.9]])
        out = parray.forged((1,), dtype=numpy.uint8)
        out.protected = True
        pcube(a, process=[False, False]).mean(out=out)
        assert out.dtype == numpy.uint8
        # Clamped exactly as a scan would, not wrapped around.
        assert out.to_array().tolist() == [[255, 0, 0, 7]]

    def test_out_is_the_input(self):
        p = parray.from_array(numpy.arange(12.0).reshape(3, 4))
        result = projections.sum(p, out=p, process=[True, False])
        assert result is p
        assert p.sizes == (1, 4)
        assert p.to_array().tolist() == [[12.0, 15.0, 18.0, 21.0]]

    def test_out_is_the_input_scanned_twice(self):
        a = numpy.arange(12.0).reshape(3, 4)
        p = parray.from_array(a)
        cube = pcube(p, process=[False, True])
        cube.maximum(p)
        assert p.to_array()[:, 0].tolist() == [3.0, 7.0, 11.0]
        # The cube still reads the original data.
        assert cube.minimum().to_array()[:, 0].tolist() == [0.0, 4.0, 8.0]
        assert a.tolist() == numpy.arange(12.0).reshape(3, 4).tolist()

    def test_out_is_the_mask(self):
        m = parray.from_array(numpy.array([[True, False], [True, True]]))
        a = numpy.array([[1.0, 2.0], [4.0, 8.0]])
        pcube(a, m, [False, True]).maximum(m)
        assert m.dtype == numpy.float64
        assert m.to_array()[:, 0].tolist() == [1.0, 8.0]

    def test_out_must_be_parray(self):
        with pytest.raises(TypeError):
            pcube(self.a).sum(numpy.zeros((1, 1)))

    def test_errors_leave_out_untouched(self):
        out = parray.forged((2,), dtype=numpy.int8)
        data = out.data
        with pytest.raises(UnsupportedTypeError):
            pcube(numpy.zeros(3, dtype=numpy.complex64)).maximum(out)
        assert out.data is data
        assert out.sizes == (2,)

    def test_metadata_passes_through(self):
        p = parray.from_array(
            self.a, pixel_size=(0.5, 2.0), color_space="grey"
        )
        result = pcube(p, process=[True, False]).sum()
        assert result.pixel_size == (0.5, 2.0)
        assert result.color_space == "grey"


class TestPcubeScan:
    def test_zero_sized_output(self):
        result = pcube(numpy.zeros((3, 0)), process=[True, False]).sum()
        assert result.sizes == (1, 0)
        assert result.to_array().shape == (1, 0)

    def test_zero_sized_block(self):
        result = pcube(numpy.zeros((0, 3)), process=[True, False]).maximum()
        assert result.sizes == (1, 3)
        assert (result.to_array() == -numpy.finfo(numpy.float64).max).all()

    def test_reversed_input(self):
        a = numpy.arange(24, dtype=numpy.int32).reshape(2, 3, 4)[::-1, :, ::-2]
        result = pcube(a, process=[False, True, False]).sum()
        assert arr_eq(result.to_array(), a.sum(axis=1, keepdims=True))

    def test_binary_variance_is_mean(self):
        a = numpy.array([[True, False, True, True]])
        result = pcube(a).variance()
        assert result.dtype == numpy.float32
        assert result.to_array().tolist() == [[0.75]]

    def test_binary_square_is_mean(self):
        a = numpy.array([True, False, True, True])
        assert pcube(a).sum_square().to_array().tolist() == [3.0]

    def test_unsigned_abs_is_mean(self):
        a = numpy.array([3, 5], dtype=numpy.uint16)
        assert pcube(a).mean_abs().to_array().tolist() == [4.0]
        assert pcube(a).sum_abs().to_array().tolist() == [8.0]

    def test_percentile_extremes_keep_dtype(self):
        a = numpy.array([[4, 9, 1], [7, 2, 8]], dtype=numpy.int16)
        low = pcube(a, process=[False, True]).percentile(0)
        high = pcube(a, process=[False, True]).percentile(100)
        assert low.dtype == high.dtype == numpy.int16
        assert low.to_array()[:, 0].tolist() == [1, 2]
        assert high.to_array()[:, 0].tolist() == [9, 8]

        median = pcube(a, process=[False, True]).percentile()
        assert median.dtype == numpy.float32
        assert median.to_array()[:, 0].tolist() == [4.0, 7.0]

        with pytest.raises(ValueError):
            pcube(a).percentile(101)

    def test_percentile_is_coerced_once(self):
        a = numpy.array([[4, 9, 1], [7, 2, 8]], dtype=numpy.int16)
        low = pcube(a, process=[False, True]).percentile("0")
        assert low.dtype == numpy.int16
        assert low.to_array()[:, 0].tolist() == [1, 2]
        high = pcube(a, process=[False, True]).percentile(numpy.float32(100))
        assert high.to_array()[:, 0].tolist() == [9, 8]
        with pytest.raises(ValueError):
            pcube(a).percentile("half")


class TestPcubeDebug:
    def test_debug_output(self, capsys):
        cube = pcube(numpy.arange(6.0).reshape(2, 3), process=[True, False])
        cube.debug = True
        cube.sum()
        captured = capsys.readouterr().out
        assert "pcube.calculate(pfunc_mean(float64)):" in captured
        assert "STEP SIZES: [3]" in captured

    def test_debug_single_block(self, capsys):
        cube = pcube(numpy.arange(6.0))
        cube.debug = True
        cube.maximum()
        assert "SINGLE BLOCK" in capsys.readouterr().out

    def test_tracing(self):
        cube = pcube(numpy.arange(12.0).reshape(3, 4), process=[True, False])
        func = pfuncs.pfunc_mean(numpy.float64)
        cube.calculate(func)
        trace = cube._tracing[func]
        assert trace["count"] == 4
        assert trace["elapsed"] >= 0
        assert trace["start"] is not None

    def test_check_interrupt(self):
        class Interrupted(Exception):
            pass

        calls = []

        def check():
            calls.append(1)
            if len(calls) == 3:
                raise Interrupted

        cube = pcube(numpy.arange(12.0).reshape(3, 4), process=[True, False])
        cube.check_interrupt = check
        with pytest.raises(Interrupted):
            cube.sum()
        assert len(calls) == 3
