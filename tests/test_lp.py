"""Tests for the GLOP LP backend."""
import pytest

from liftdispatch.branch_and_price.lp import GlopBackend, LPColumn, LPRow


def test_solves_small_lp():
    rows = [LPRow.equal("cover", 1.0), LPRow.at_most("cap", 0.75)]
    columns = [
        LPColumn("cheap", 1.0, {"cover": 1.0, "cap": 1.0}),
        LPColumn("dear", 3.0, {"cover": 1.0}),
    ]
    result = GlopBackend().solve(rows, columns)
    assert result is not None
    assert result.objective == pytest.approx(0.75 * 1.0 + 0.25 * 3.0)
    assert list(result.primal) == pytest.approx([0.75, 0.25])
    assert result.duals["cover"] == pytest.approx(3.0)
    assert result.duals["cap"] == pytest.approx(-2.0)


def test_infeasible_lp_returns_none():
    rows = [LPRow.equal("cover", 1.0)]
    columns = [LPColumn("x", 1.0, {"cover": 1.0}, upper=0.5)]
    assert GlopBackend().solve(rows, columns) is None


def test_row_without_columns_is_infeasible():
    assert GlopBackend().solve([LPRow.equal("cover", 1.0)], []) is None
