"""
SCIM utility functions for ID generation, date handling and error responses.
"""

import json
import os
import uuid
from datetime import datetime, timezone
from typing import Optional

import flask

from .errors import SCIMError

SCIM_CONTENT_TYPE = "application/scim+json"


def generate_scim_id() -> str:
    """
    Generate a new SCIM resource id.

    Returns:
        Random UUID string
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """
    Format datetime to SCIM ISO 8601 format.

    Naive datetimes are taken to be UTC; aware ones are converted to UTC.

    Args:
        dt: Datetime object or None

    Returns:
        ISO 8601 string with a 'Z' suffix, or None
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat() + "Z"


def parse_datetime(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def build_error_response(error: SCIMError) -> flask.Response:
    """
    Build SCIM Error response.

    Args:
        error: The failure to report

    Returns:
        Flask Response with SCIM error format
    """
    response = flask.jsonify(error.to_dict())
    response.status_code = error.status
    response.headers["Content-Type"] = SCIM_CONTENT_TYPE
    return response


def scim_json_response(data: dict, status: int = 200) -> flask.Response:
    response = flask.Response(json.dumps(data), status=status)
    response.headers["Content-Type"] = SCIM_CONTENT_TYPE
    return response


def get_base_url() -> str:
    """
    Get base URL for SCIM endpoints (for meta.location).

    Returns:
        Base URL string (e.g., http://host:port/{URL_PREFIX}/scim)
    """
    base_url = os.environ.get("SCIM_BASE_URL")
    if base_url:
        return base_url.rstrip("/")

    # Blueprint is mounted at /{URL_PREFIX}/scim/v2; locations are
    # built as {base_url}/v2/{Endpoint}/{id}
    url_prefix = os.environ.get("URL_PREFIX", "auth")
    request_root = flask.request.url_root.rstrip("/")
    return f"{request_root}/{url_prefix}/scim"
