"""Tests for the Ok/Err result envelope."""

import json

from docvault.core.errors import CorruptedDataError
from docvault.core.result import Err, Ok, collect_results, partition_results, try_result


class TestOkErr:
    def test_ok(self):
        ok = Ok(2)
        assert ok.is_ok() and not ok.is_err()
        assert ok.map(lambda v: v * 2).unwrap() == 4

    def test_err_passes_through_map(self):
        err = Err(ValueError("x"))
        assert err.map(lambda v: v * 2).is_err()
        assert err.unwrap_or(7) == 7

    def test_err_unwrap_raises(self):
        err = Err(CorruptedDataError("bad"))
        try:
            err.unwrap()
        except CorruptedDataError as e:
            assert e.message == "bad"
        else:
            raise AssertionError("unwrap should raise")

    def test_pattern_matching(self):
        match Ok("v"):
            case Ok(value):
                assert value == "v"
            case Err():
                raise AssertionError("unexpected Err")


class TestHelpers:
    def test_try_result(self):
        assert try_result(lambda: json.loads('{"a": 1}')).unwrap() == {"a": 1}
        assert try_result(lambda: json.loads("{")).is_err()

    def test_try_result_maps_errors(self):
        result = try_result(lambda: json.loads("{"), lambda e: CorruptedDataError(str(e)))
        assert isinstance(result.error, CorruptedDataError)

    def test_collect_results_stops_at_first_err(self):
        boom = ValueError("boom")
        assert collect_results([Ok(1), Ok(2)]).unwrap() == [1, 2]
        assert collect_results([Ok(1), Err(boom), Ok(3)]).error is boom

    def test_partition(self):
        boom = ValueError("boom")
        values, errors = partition_results([Ok(1), Err(boom), Ok(3)])
        assert values == [1, 3]
        assert errors == [boom]
