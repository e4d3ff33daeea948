"""
SCIM 2.0 API routes.

Exposes every registered resource type under its endpoint (/Users, /Groups)
plus the discovery endpoints, delegating resource operations to
ResourceManager.
"""

import os
from typing import Optional

import flask

from .errors import SCIMError
from .manager import ResourceManager, SCIMResponse
from .schema import ResourceTypeSchema, get_registry
from .store import ResourceStore
from .utils import build_error_response, get_base_url, scim_json_response

URL_PREFIX = os.environ.get("URL_PREFIX", "auth")

# Create SCIM blueprint
scim_bp = flask.Blueprint("scim_bp", __name__, url_prefix="/" + URL_PREFIX + "/scim/v2")


def _resource_type_for(endpoint: str) -> ResourceTypeSchema:
    for resource_type in get_registry():
        if resource_type.endpoint.lstrip("/") == endpoint:
            return resource_type
    raise SCIMError.not_found(f"Endpoint /{endpoint} not found")


def _endpoint_url(resource_type: ResourceTypeSchema) -> Optional[str]:
    """
    Absolute URL of a resource endpoint.

    SCIM_ENDPOINT_BASE in the app config overrides the request-derived base;
    setting it to None leaves locations unresolved ("null/<id>").
    """
    config = flask.current_app.config
    if "SCIM_ENDPOINT_BASE" in config:
        base = config["SCIM_ENDPOINT_BASE"]
        return None if base is None else f"{base.rstrip('/')}{resource_type.endpoint}"
    return f"{get_base_url()}/v2{resource_type.endpoint}"


def _store() -> Optional[ResourceStore]:
    return flask.current_app.config.get("SCIM_STORE")


def _manager(endpoint: str) -> ResourceManager:
    resource_type = _resource_type_for(endpoint)
    return ResourceManager(resource_type.name, _endpoint_url(resource_type))


def _to_flask(response: SCIMResponse) -> flask.Response:
    return flask.Response(
        response.body or b"", status=response.status, headers=response.headers
    )


def _attribute_params():
    args = flask.request.args
    return args.get("attributes"), args.get("excludedAttributes")


@scim_bp.errorhandler(SCIMError)
def handle_scim_error(error: SCIMError):
    return build_error_response(error)


# ============================================================================
# Discovery Endpoints
# ============================================================================


@scim_bp.route("/ServiceProviderConfig", methods=["GET"])
def service_provider_config():
    """SCIM Service Provider Configuration endpoint."""
    base_url = get_base_url()

    return scim_json_response(
        {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:ServiceProviderConfig"],
            "patch": {"supported": False},
            "bulk": {"supported": False, "maxOperations": 0, "maxPayloadSize": 0},
            "filter": {"supported": False, "maxResults": 0},
            "changePassword": {"supported": False},
            "sort": {"supported": False},
            "etag": {"supported": False},
            "authenticationSchemes": [],
            "meta": {
                "location": f"{base_url}/v2/ServiceProviderConfig",
                "resourceType": "ServiceProviderConfig",
            },
        }
    )


@scim_bp.route("/ResourceTypes", methods=["GET"])
def resource_types():
    """SCIM Resource Types endpoint."""
    base_url = get_base_url()
    resources = [resource_type.to_scim(base_url) for resource_type in get_registry()]

    return scim_json_response(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:ListResponse"],
            "totalResults": len(resources),
            "Resources": resources,
        }
    )


@scim_bp.route("/Schemas", methods=["GET"])
def schemas():
    """SCIM Schemas endpoint."""
    base_url = get_base_url()
    resources = [definition.to_scim(base_url) for definition in get_registry().schema_definitions()]

    return scim_json_response(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:ListResponse"],
            "totalResults": len(resources),
            "Resources": resources,
        }
    )


@scim_bp.route("/Schemas/<schema_id>", methods=["GET"])
def get_schema(schema_id):
    """Get specific schema by URN."""
    definition = get_registry().find_schema(schema_id)
    if definition is None:
        raise SCIMError.not_found(f"Schema {schema_id} not found")
    return scim_json_response(definition.to_scim(get_base_url()))


# ============================================================================
# Resource Endpoints
# ============================================================================


@scim_bp.route("/<endpoint>", methods=["GET"])
def list_resources(endpoint):
    """Listing and filtering are not offered by this service."""
    _resource_type_for(endpoint)
    raise SCIMError.not_implemented(f"Listing /{endpoint} is not supported")


@scim_bp.route("/<endpoint>/<scim_id>", methods=["GET"])
def get_resource(endpoint, scim_id):
    """Get specific resource by SCIM ID."""
    attributes, excluded = _attribute_params()
    return _to_flask(_manager(endpoint).get(scim_id, _store(), attributes, excluded))


@scim_bp.route("/<endpoint>", methods=["POST"])
def create_resource(endpoint):
    """Create new resource."""
    attributes, excluded = _attribute_params()
    response = _manager(endpoint).create(
        flask.request.get_data(), _store(), attributes, excluded
    )
    return _to_flask(response)


@scim_bp.route("/<endpoint>/<scim_id>", methods=["PUT"])
def replace_resource(endpoint, scim_id):
    """Replace resource (full update)."""
    attributes, excluded = _attribute_params()
    response = _manager(endpoint).update_with_put(
        scim_id, flask.request.get_data(), _store(), attributes, excluded
    )
    return _to_flask(response)


@scim_bp.route("/<endpoint>/<scim_id>", methods=["DELETE"])
def delete_resource(endpoint, scim_id):
    """Delete resource."""
    return _to_flask(_manager(endpoint).delete(scim_id, _store()))
