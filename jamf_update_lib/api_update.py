#!/usr/bin/env python3

from . import api_objects, api_request
from .errors import ApiRequestError, MetadataUpdateError


def create_package(jamf_url, pkg_data, token, verbosity=0):
    """Create a package record and return the new ID"""
    if verbosity > 1:
        print("Package metadata:")
        print(pkg_data)

    url = api_objects.object_url(jamf_url, "package")
    r = api_request.request("POST", url, token=token, verbosity=verbosity, json=pkg_data)
    api_request.status_check(r, ApiRequestError, "create package")

    try:
        obj_id = r.json().get("id")
    except (ValueError, AttributeError):
        obj_id = None
    if obj_id is None or str(obj_id) == "":
        raise ApiRequestError(
            "No package ID in create response", status_code=r.status_code, body=r.text
        )
    return str(obj_id)


def update_package(jamf_url, pkg_id, pkg_data, token, verbosity=0):
    """Replace the metadata of an existing package record in-place"""
    if verbosity > 1:
        print("Package metadata:")
        print(pkg_data)

    url = api_objects.object_url(jamf_url, "package", pkg_id)
    r = api_request.request(
        "PUT",
        url,
        token=token,
        verbosity=verbosity,
        error_class=MetadataUpdateError,
        json=pkg_data,
    )
    api_request.status_check(r, MetadataUpdateError, "update package metadata")


def trigger_reindex(jamf_url, token, verbosity=0):
    """Ask Jamf Pro to recalculate the checksums of the packages in the JCDS.
    Success only means the request was accepted."""
    url = api_objects.object_url(jamf_url, "jcds", "refresh-inventory")
    r = api_request.request("POST", url, token=token, verbosity=verbosity)
    api_request.status_check(r, ApiRequestError, "refresh JCDS inventory")
