"""Unit tests for A1 cell addressing."""

from __future__ import annotations

import pytest

from wasilah.data.addressing import (
    cell_ref,
    column_index,
    column_letter,
    range_ref,
    sum_formula,
)

pytestmark = pytest.mark.unit


class TestColumnLetters:
    @pytest.mark.parametrize(
        "index, letters",
        [(1, "A"), (26, "Z"), (27, "AA"), (52, "AZ"), (53, "BA"), (702, "ZZ"), (703, "AAA")],
    )
    def test_column_letter(self, index, letters):
        assert column_letter(index) == letters
        assert column_index(letters) == index

    def test_lowercase_letters_accepted(self):
        assert column_index("ab") == 28

    @pytest.mark.parametrize("index", [0, -3])
    def test_invalid_index(self, index):
        with pytest.raises(ValueError):
            column_letter(index)

    @pytest.mark.parametrize("letters", ["", "A1", "$B"])
    def test_invalid_letters(self, letters):
        with pytest.raises(ValueError):
            column_index(letters)


class TestReferences:
    def test_cell_ref(self):
        assert cell_ref(2, 28) == "AB2"

    def test_cell_ref_rejects_row_zero(self):
        with pytest.raises(ValueError):
            cell_ref(0, 1)

    def test_range_ref(self):
        assert range_ref(1, 1, 1, 4) == "A1:D1"

    def test_sum_formula(self):
        assert sum_formula(2, 2, 4) == "SUM(B2:B4)"
        assert sum_formula(27, 2, 101) == "SUM(AA2:AA101)"
