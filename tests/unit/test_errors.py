"""Unit tests for the service error taxonomy and caller identity."""

import pytest

from fleet_manager.auth import Identity, identity_from_claims, require_identity
from fleet_manager.errors import (
    ExternalProvisioningError,
    FailedToChangeDNSRecordsError,
    FailedToCreateSSOClientError,
    FailedToDeleteSSOClientError,
    GeneralError,
    InsufficientQuotaError,
    NotFoundError,
    ServiceError,
    TooManyInstancesError,
    UnauthenticatedError,
)


class TestServiceError:
    def test_default_reason(self):
        err = NotFoundError()
        assert str(err) == "Resource not found"
        assert err.error_code == "KAFKAS-MGMT-7"
        assert err.http_status == 404

    def test_cause_kept_out_of_public_reason(self):
        cause = RuntimeError("password=hunter2")
        err = GeneralError("failed to create kafka request", cause=cause)
        assert err.cause is cause
        assert "hunter2" not in str(err)
        assert "hunter2" not in repr(err)
        assert err.as_dict() == {
            "kind": "Error",
            "id": "9",
            "code": "KAFKAS-MGMT-9",
            "reason": "failed to create kafka request",
        }

    @pytest.mark.parametrize(
        ("error", "code", "status"),
        [
            (TooManyInstancesError, 24, 403),
            (InsufficientQuotaError, 120, 403),
            (FailedToCreateSSOClientError, 106, 500),
            (FailedToDeleteSSOClientError, 107, 500),
            (UnauthenticatedError, 15, 401),
        ],
    )
    def test_codes(self, error: type[ServiceError], code: int, status: int):
        assert error.code == code
        assert error.http_status == status

    def test_external_provisioning_family(self):
        for error in (
            FailedToCreateSSOClientError,
            FailedToDeleteSSOClientError,
            FailedToChangeDNSRecordsError,
        ):
            assert issubclass(error, ExternalProvisioningError)


class TestIdentity:
    def test_from_claims(self):
        identity = identity_from_claims(
            {"preferred_username": "alice", "rh-org-id": "13640203"},
            filter_by_organisation=True,
        )
        assert identity == Identity("alice", "13640203", True)

    def test_username_claim_preferred(self):
        identity = identity_from_claims({"username": "svc", "preferred_username": "x"})
        assert identity.username == "svc"
        assert identity.org_id == ""

    @pytest.mark.parametrize("claims", [None, {}, {"username": ""}, {"org_id": "1"}])
    def test_missing_username(self, claims):
        with pytest.raises(UnauthenticatedError):
            identity_from_claims(claims)

    def test_require_identity(self):
        with pytest.raises(UnauthenticatedError):
            require_identity(None)
        with pytest.raises(UnauthenticatedError):
            require_identity(Identity(username=""))
        alice = Identity("alice")
        assert require_identity(alice) is alice
