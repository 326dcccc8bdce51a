"""Tests for the annowire exception hierarchy."""

from __future__ import annotations

import pytest

from annowire.container import Container
from annowire.exceptions import (
    AnnowireError,
    AnnowireInvalidMarkerError,
    AnnowirePropertyAssignmentError,
    AnnowireProxyResolutionError,
    AnnowireResolutionError,
    AnnowireScanError,
    AnnowireServiceNotRegisteredError,
)
from annowire.markers import Controller, Inject


class TestAnnowireInvalidMarkerError:
    def test_raised_for_property_marker_used_as_decorator(self) -> None:
        with pytest.raises(AnnowireInvalidMarkerError, match="supported targets: property"):

            @Inject()
            class Service:
                pass

    def test_raised_for_class_marker_on_function(self) -> None:
        with pytest.raises(AnnowireInvalidMarkerError):

            @Controller("/api")
            def handler() -> None: ...

    def test_is_a_type_error(self) -> None:
        assert issubclass(AnnowireInvalidMarkerError, TypeError)


class TestAnnowireServiceNotRegisteredError:
    def test_carries_the_missing_key(self) -> None:
        with pytest.raises(AnnowireServiceNotRegisteredError) as exc_info:
            Container().get("mailer")

        assert exc_info.value.key == "mailer"
        assert "is not registered" in str(exc_info.value)

    def test_can_be_caught_as_lookup_error(self) -> None:
        with pytest.raises(LookupError):
            Container().get(int)


class TestAnnowireResolutionError:
    def test_keeps_service_and_owner(self) -> None:
        error = AnnowireResolutionError("cannot build", service_id="mailer", owner="app.Service")

        assert str(error) == "cannot build"
        assert error.service_id == "mailer"
        assert error.owner == "app.Service"


@pytest.mark.parametrize(
    "error_type",
    [
        AnnowireInvalidMarkerError,
        AnnowireScanError,
        AnnowireResolutionError,
        AnnowirePropertyAssignmentError,
        AnnowireProxyResolutionError,
        AnnowireServiceNotRegisteredError,
    ],
)
def test_every_error_derives_from_annowire_error(error_type: type[Exception]) -> None:
    assert issubclass(error_type, AnnowireError)
