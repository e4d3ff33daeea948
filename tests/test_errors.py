import pytest

from scimcore.scim.errors import ERROR_SCHEMA, ErrorKind, SCIMError


@pytest.mark.parametrize(
    "error, status, scim_type",
    [
        (SCIMError.bad_request("bad"), 400, "invalidValue"),
        (SCIMError.bad_request("bad", "invalidSyntax"), 400, "invalidSyntax"),
        (SCIMError.conflict("taken"), 409, "uniqueness"),
        (SCIMError.not_found("gone"), 404, None),
        (SCIMError.not_implemented("later"), 501, None),
        (SCIMError.internal(), 500, None),
    ],
)
def test_kinds_map_to_status(error, status, scim_type):
    assert error.status == status
    assert error.scim_type == scim_type


def test_error_body():
    assert SCIMError.not_found("Group 1 not found").to_dict() == {
        "schemas": [ERROR_SCHEMA],
        "status": "404",
        "detail": "Group 1 not found",
    }


def test_internal_error_has_default_detail():
    error = SCIMError.internal()
    assert error.kind is ErrorKind.INTERNAL_ERROR
    assert str(error) == "Internal server error"
