import pytest

from smartfill.errors import AppError, BAD_SPEC
from smartfill.models import ExplicitRows, RowPattern
from smartfill.transform import generate_indexes, resolve_rows


def test_generate_odd_even_all_from_zero():
    assert generate_indexes(10, "odd", 0) == [0, 2, 4, 6, 8]
    assert generate_indexes(10, "even", 0) == [1, 3, 5, 7, 9]
    assert generate_indexes(10, "all", 0) == list(range(10))


def test_generate_respects_start_index():
    assert generate_indexes(10, "all", 7) == [7, 8, 9]
    # parity follows the 1-based row number, not the distance from start
    assert generate_indexes(10, "odd", 3) == [4, 6, 8]
    assert generate_indexes(10, "even", 3) == [3, 5, 7, 9]


def test_generate_kind_is_case_insensitive():
    assert generate_indexes(4, "ODD") == [0, 2]
    assert generate_indexes(4, " Even ") == [1, 3]


def test_generate_empty_cases():
    assert generate_indexes(0, "all") == []
    assert generate_indexes(3, "all", 5) == []


def test_generate_unknown_kind_raises():
    with pytest.raises(AppError) as ei:
        generate_indexes(5, "prime")
    assert ei.value.code == BAD_SPEC


def test_resolve_explicit_rows_kept_in_given_order():
    assert resolve_rows(ExplicitRows((5, 1, 3)), 2) == [5, 1, 3]


def test_resolve_pattern():
    assert resolve_rows(RowPattern("even", 0), 5) == [1, 3]
    assert resolve_rows(RowPattern(), 3) == [0, 1, 2]


def test_resolve_unknown_selector_raises():
    with pytest.raises(AppError):
        resolve_rows([0, 1], 3)
