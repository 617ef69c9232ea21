import pytest
import numpy as np
from morton_curve_framework import (
    AdditivityGrid,
    AlgebraicPropertyChecker,
    BitCodec,
    DomainError,
    count_carry_free_pairs,
    deinterleave_reference,
)


def brute_force_holds(a, b, bits=8, dims=2):
    """holds per axis from the bit-by-bit reference, no SWAR code involved."""
    ea = deinterleave_reference(a, dims=dims, bits=bits)
    eb = deinterleave_reference(b, dims=dims, bits=bits)
    es = deinterleave_reference(a + b, dims=dims, bits=bits)
    return tuple(es[j] == ea[j] + eb[j] for j in range(dims))


def brute_force_carry_free(limit):
    return sum(1 for a in range(limit + 1) for b in range(limit + 1) if a & b == 0)


def test_grid_shape_and_values():
    checker = AlgebraicPropertyChecker(BitCodec(bits=8))
    grid = checker.check(15)
    assert grid.shape == (2, 16, 16)
    assert grid.holds.dtype == bool
    np.testing.assert_array_equal(grid.a_values, np.arange(16))
    np.testing.assert_array_equal(grid.b_values, np.arange(16))
    for a in range(16):
        for b in range(16):
            hx, hy = brute_force_holds(a, b)
            assert grid.plane(0)[a, b] == hx
            assert grid.plane(1)[a, b] == hy


def test_known_cells():
    """
    3 = (1,1), 1 = (1,0), 4 = (2,0): x holds (1+1 == 2), y fails (1+0 != 0).
    2 + 2 = 4: y carries into x, both fail.
    """
    grid = AlgebraicPropertyChecker(BitCodec(bits=8)).check(4)
    assert grid.plane(0)[3, 1] and not grid.plane(1)[3, 1]
    assert not grid.plane(0)[2, 2] and not grid.plane(1)[2, 2]
    # zero is the identity
    assert grid.holds[:, 0, :].all() and grid.holds[:, :, 0].all()


def test_grid_is_symmetric():
    """Addition commutes, so holds(a, b) == holds(b, a) on every axis."""
    grid = AlgebraicPropertyChecker(BitCodec(bits=16)).check(63)
    for axis in range(grid.dims):
        plane = grid.plane(axis)
        np.testing.assert_array_equal(plane, plane.T)
    assert not grid.joint().all(), "the codec should not be additive"


def test_joint_count_matches_carry_free_formula():
    """
    Domain [0,15]^2, B=8: every axis holds exactly when a & b == 0, and
    there are 3^4 = 81 such pairs.
    """
    grid = AlgebraicPropertyChecker(BitCodec(bits=8)).check(15)
    joint = grid.joint()
    assert int(joint.sum()) == 81 == 3 ** 4
    assert int(joint.sum()) == count_carry_free_pairs(15)
    a, b = np.meshgrid(np.arange(16), np.arange(16), indexing='ij')
    np.testing.assert_array_equal(joint, (a & b) == 0)


def test_joint_pattern_is_self_similar():
    """The 16x16 joint plane is four 8x8 copies with the bottom-right empty."""
    joint = AlgebraicPropertyChecker(BitCodec(bits=8)).check(15).joint()
    tl = joint[:8, :8]
    np.testing.assert_array_equal(joint[:8, 8:], tl)
    np.testing.assert_array_equal(joint[8:, :8], tl)
    assert not joint[8:, 8:].any()


@pytest.mark.parametrize("limit", [0, 1, 2, 5, 15, 16, 31, 100, 255])
def test_count_carry_free_pairs(limit):
    assert count_carry_free_pairs(limit) == brute_force_carry_free(limit)


def test_count_carry_free_powers_of_two():
    for k in range(1, 20):
        assert count_carry_free_pairs((1 << k) - 1) == 3 ** k
    assert count_carry_free_pairs(-1) == 0


@pytest.mark.parametrize("bits,dims,limit", [
    (8, 2, 15),
    (12, 2, 63),
    (16, 2, 127),
    (9, 3, 15),
    (12, 3, 40),
    (16, 4, 31),
])
def test_grid_matches_analytic_predicate(bits, dims, limit):
    """The carry rule predicts every cell without encoding a + b."""
    checker = AlgebraicPropertyChecker(BitCodec(bits=bits, dims=dims))
    grid = checker.check(limit)
    predicted = checker.predict_grid(limit)
    mismatches = np.argwhere(grid.holds != predicted.holds)
    assert len(mismatches) == 0, f"first mismatch (axis, a, b): {mismatches[:1]}"


def test_predict_single_pairs():
    checker = AlgebraicPropertyChecker(BitCodec(bits=8))
    assert checker.predict(3, 1) == (True, False)
    assert checker.predict(2, 2) == (False, False)
    assert checker.predict(5, 10) == (True, True)
    for a in range(16):
        for b in range(16):
            assert checker.predict(a, b) == brute_force_holds(a, b)


def test_axis_overflow_fails():
    """x sum past B/2 bits cannot be represented, so the axis fails."""
    checker = AlgebraicPropertyChecker(BitCodec(bits=8))
    a = 1 << 6  # x = 8, the top x bit
    hx, _ = checker.predict(a, a)
    assert not hx
    grid = checker.check_block([a], [a])
    assert not grid.plane(0)[0, 0]


def test_block_partition_reproduces_dense_grid():
    checker = AlgebraicPropertyChecker(BitCodec(bits=16))
    dense = checker.check(50)
    values = np.arange(51)
    blocks = [checker.check_block(rows, values)
              for rows in np.array_split(values, 4)]
    stacked = AdditivityGrid.concat(blocks)
    np.testing.assert_array_equal(stacked.a_values, dense.a_values)
    np.testing.assert_array_equal(stacked.holds, dense.holds)


def test_concat_rejects_mismatched_columns():
    checker = AlgebraicPropertyChecker(BitCodec(bits=16))
    g1 = checker.check_block([0, 1], [0, 1, 2])
    g2 = checker.check_block([2, 3], [0, 1])
    with pytest.raises(ValueError):
        AdditivityGrid.concat([g1, g2])
    with pytest.raises(ValueError):
        AdditivityGrid.concat([])


def test_cells_iteration():
    grid = AlgebraicPropertyChecker(BitCodec(bits=8)).check(3)
    cells = list(grid.cells())
    assert len(cells) == 2 * 4 * 4
    for a, b, axis, holds in cells:
        assert holds == brute_force_holds(a, b)[axis]


def test_domain_too_large_for_sum():
    """a + b must remain a valid key."""
    checker = AlgebraicPropertyChecker(BitCodec(bits=8))
    checker.check(127)  # 254 still fits
    with pytest.raises(DomainError):
        checker.check(128)
    with pytest.raises(DomainError):
        checker.predict(200, 100)
    with pytest.raises(DomainError):
        checker.check(-1)
