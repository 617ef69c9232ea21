import pytest
import numpy as np
from morton_curve_framework import (
    BitCodec,
    deinterleave_reference,
    interleave_reference,
)


def test_known_small_values():
    """
    B=8, two 4-bit axes. Even key bits go to x, odd key bits to y:
        1 = 0b0001 -> x bit 0          -> (1, 0)
        2 = 0b0010 -> y bit 0          -> (0, 1)
        5 = 0b0101 -> x bits 0 and 1   -> (3, 0)
    """
    codec = BitCodec(bits=8)
    assert codec.encode(0) == (0, 0)
    assert codec.encode(1) == (1, 0)
    assert codec.encode(2) == (0, 1)
    assert codec.encode(3) == (1, 1)
    assert codec.encode(5) == (3, 0)
    assert codec.encode(10) == (0, 3)
    assert codec.encode(255) == (15, 15)

    for z in [0, 1, 2, 3, 5, 10, 255]:
        assert codec.encode(z) == deinterleave_reference(z, dims=2, bits=8)


def test_exhaustive_b8_against_reference():
    """Every 8-bit key, both directions, against the bit-by-bit definition."""
    codec = BitCodec(bits=8)
    for z in range(256):
        xy = codec.encode(z)
        assert xy == deinterleave_reference(z, dims=2, bits=8)
        assert codec.decode(*xy) == z
    for x in range(16):
        for y in range(16):
            assert codec.decode(x, y) == interleave_reference((x, y), dims=2)


@pytest.mark.parametrize("bits", [2, 4, 16, 32, 64])
def test_sampled_round_trip(bits):
    """Random keys at larger widths, including the top of the range."""
    codec = BitCodec(bits=bits)
    rng = np.random.default_rng(bits)
    samples = [0, 1, codec.key_limit - 1, codec.key_limit // 2]
    samples += [int(v) for v in rng.integers(0, codec.key_limit, 200,
                                             dtype=np.uint64)]
    for z in samples:
        xy = codec.encode(z)
        assert xy == deinterleave_reference(z, dims=2, bits=bits)
        assert all(0 <= c < codec.coord_limit for c in xy)
        assert codec.decode(*xy) == z


@pytest.mark.parametrize("bits,dims", [(9, 3), (30, 3), (63, 3), (16, 4), (64, 4), (60, 5)])
def test_higher_dimensions(bits, dims):
    """Generalized Morton order: axis j takes key bits j, j+D, j+2D, ..."""
    codec = BitCodec(bits=bits, dims=dims)
    rng = np.random.default_rng(bits * dims)
    for z in rng.integers(0, codec.key_limit, 100, dtype=np.uint64):
        z = int(z)
        coords = codec.encode(z)
        assert len(coords) == dims
        assert coords == deinterleave_reference(z, dims=dims, bits=bits)
        assert codec.decode(*coords) == z
        assert interleave_reference(coords, dims=dims) == z


def test_compact_spread_are_inverse():
    codec = BitCodec(bits=32)
    for v in [0, 1, 0xFFFF, 0xA5A5, 0x1234]:
        assert codec.compact(codec.spread(v)) == v
    # spread lands only on even positions
    assert codec.spread(0xFFFF) == 0x55555555


def test_masks_derived_from_width():
    """
    The lane masks are derived, not hard-coded, but for B=32 they must be
    the familiar constants.
    """
    codec = BitCodec(bits=32)
    assert codec.stages == 4
    assert codec.masks == (0x55555555, 0x33333333, 0x0F0F0F0F,
                           0x00FF00FF, 0x0000FFFF)

    codec64 = BitCodec(bits=64)
    assert codec64.stages == 5
    assert codec64.masks[0] == 0x5555555555555555
    assert codec64.masks[-1] == 0xFFFFFFFF

    # 3D, 10 bits per axis: the classic 0x09249249 layout
    codec3 = BitCodec(bits=30, dims=3)
    assert codec3.masks[0] == 0x09249249
    assert codec3.masks[-1] == 0x3FF


def test_array_path_matches_scalar_path():
    codec = BitCodec(bits=16)
    keys = np.arange(codec.key_limit, dtype=np.uint64)
    coords = codec.encode_array(keys)
    assert coords.shape == (codec.key_limit, 2)
    assert coords.dtype == np.uint64

    rng = np.random.default_rng(0)
    for i in rng.integers(0, codec.key_limit, 300):
        assert tuple(int(c) for c in coords[i]) == codec.encode(int(i))

    np.testing.assert_array_equal(codec.decode_array(coords), keys)


def test_array_path_full_width():
    """uint64 path at B=64 must not lose the top bits."""
    codec = BitCodec(bits=64)
    keys = np.array([0, 1, 2**64 - 1, 2**63, 0xDEADBEEFCAFEBABE], dtype=np.uint64)
    coords = codec.encode_array(keys)
    for z, row in zip(keys.tolist(), coords):
        assert tuple(int(c) for c in row) == codec.encode(z)
    np.testing.assert_array_equal(codec.decode_array(coords), keys)


def test_caller_owned_buffers():
    """Results are written into the buffers the caller passes in."""
    codec = BitCodec(bits=16)
    keys = np.arange(100, 200)
    out = np.full((100, 2), 7, dtype=np.uint64)
    result = codec.encode_array(keys, out=out)
    assert result is out
    assert tuple(int(c) for c in out[5]) == codec.encode(105)

    back = np.full(100, 7, dtype=np.uint64)
    result = codec.decode_array(out, out=back)
    assert result is back
    np.testing.assert_array_equal(back, keys)


def test_wrong_buffer_is_rejected():
    codec = BitCodec(bits=16)
    with pytest.raises(ValueError):
        codec.encode_array(np.arange(10), out=np.empty((10, 2), dtype=np.int64))
    with pytest.raises(ValueError):
        codec.encode_array(np.arange(10), out=np.empty((9, 2), dtype=np.uint64))


def test_coordinates_of_key_range():
    codec = BitCodec(bits=8)
    coords = codec.coordinates(0, 15)
    assert coords.shape == (16, 2)
    # first 16 keys fill the 4x4 block in Z order
    assert {tuple(int(c) for c in row) for row in coords} == \
        {(x, y) for x in range(4) for y in range(4)}
    assert codec.coordinates(10, 9).shape == (0, 2)


def test_configuration_idempotence():
    """Two codecs with the same configuration behave identically."""
    a, b = BitCodec(bits=32), BitCodec(bits=32)
    assert a == b
    assert hash(a) == hash(b)
    assert a != BitCodec(bits=16)
    assert a != BitCodec(bits=30, dims=3)
    rng = np.random.default_rng(7)
    for z in rng.integers(0, a.key_limit, 50, dtype=np.uint64):
        assert a.encode(int(z)) == b.encode(int(z))
    # using one codec does not change the other
    a.encode(123456)
    assert b.encode(123456) == BitCodec(bits=32).encode(123456)


def test_numpy_integer_inputs():
    codec = BitCodec(bits=np.int64(16))
    assert codec.bits == 16
    assert codec.encode(np.uint16(5)) == (3, 0)
    assert codec.decode(np.int32(3), np.int32(0)) == 5
