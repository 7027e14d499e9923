"""Unit tests for severity routing."""

import pytest

from tracelog.routing import Severity, Verbosity, route


class NotFound(Exception):
    pass


def _not_found(error: BaseException) -> bool:
    return isinstance(error, NotFound)


class TestVerbosity:
    """Tests for verbosity ordering."""

    def test_info_permits_everything(self) -> None:
        assert all(Verbosity.INFO.permits(s) for s in Severity)

    def test_warn_permits_warning_and_error(self) -> None:
        assert Verbosity.WARN.permits(Severity.ERROR)
        assert Verbosity.WARN.permits(Severity.WARNING)
        assert not Verbosity.WARN.permits(Severity.INFO)

    def test_silent_permits_nothing(self) -> None:
        assert not any(Verbosity.SILENT.permits(s) for s in Severity)

    def test_parse_from_string(self) -> None:
        assert Verbosity("warn") is Verbosity.WARN


class TestRoute:
    """Tests for the routing decision."""

    def test_fast_success_is_info(self) -> None:
        assert route(10, 200) == Severity.INFO

    def test_threshold_boundary(self) -> None:
        assert route(200, 200) == Severity.INFO
        assert route(201, 200) == Severity.WARNING

    def test_no_threshold_never_slow(self) -> None:
        assert route(10_000, None) == Severity.INFO

    def test_error_is_error(self) -> None:
        assert route(10, 200, RuntimeError("boom")) == Severity.ERROR

    def test_slow_error_is_error(self) -> None:
        assert route(5_000, 200, RuntimeError("boom")) == Severity.ERROR

    def test_ignorable_error_suppressed(self) -> None:
        assert route(10, 200, NotFound(), is_ignorable=_not_found) is None

    def test_ignorable_error_suppressed_even_when_slow(self) -> None:
        assert route(5_000, 200, NotFound(), is_ignorable=_not_found) is None

    def test_other_errors_not_ignorable(self) -> None:
        assert route(10, 200, ValueError(), is_ignorable=_not_found) == Severity.ERROR

    def test_degraded_is_warning(self) -> None:
        assert route(10, None, degraded=True) == Severity.WARNING

    @pytest.mark.parametrize(
        "verbosity,expected",
        [
            (Verbosity.INFO, Severity.WARNING),
            (Verbosity.WARN, Severity.WARNING),
            (Verbosity.ERROR, None),
            (Verbosity.SILENT, None),
        ],
    )
    def test_slow_by_verbosity(self, verbosity, expected) -> None:
        assert route(500, 200, verbosity=verbosity) == expected

    @pytest.mark.parametrize(
        "verbosity,expected",
        [
            (Verbosity.INFO, Severity.ERROR),
            (Verbosity.ERROR, Severity.ERROR),
            (Verbosity.SILENT, None),
        ],
    )
    def test_error_by_verbosity(self, verbosity, expected) -> None:
        assert route(10, 200, RuntimeError(), verbosity=verbosity) == expected

    def test_fast_success_hidden_at_warn(self) -> None:
        assert route(10, 200, verbosity=Verbosity.WARN) is None
