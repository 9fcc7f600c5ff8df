#!/usr/bin/env python3

from urllib.parse import quote

from . import api_objects, api_request
from .digest import snapshot_from_payload
from .errors import ApiRequestError, NotFoundError, PolicyScanError
from .models import package_from_api

SEARCH_PAGE_SIZE = 100


def encode_filter_value(value):
    """percent-encode a value for use inside a quoted RSQL filter expression.
    Reserved characters (% space " # & + and friends) are all escaped."""
    return quote(value, safe="")


def package_search_url(jamf_url, pkg_name):
    """URL to search the first page of packages for an exact package name"""
    url = api_objects.object_url(jamf_url, "package")
    return (
        f"{url}?page=0&page-size={SEARCH_PAGE_SIZE}"
        f"&filter=packageName%3D%3D%22{encode_filter_value(pkg_name)}%22"
    )


def find_package_by_name(jamf_url, pkg_name, token, verbosity=0):
    """Return the PackageRecord for a package name, or None if there is none"""
    url = package_search_url(jamf_url, pkg_name)
    r = api_request.request("GET", url, token=token, verbosity=verbosity)
    api_request.status_check(r, ApiRequestError, "search packages")

    try:
        results = r.json().get(api_objects.object_list_types("package")) or []
    except (ValueError, AttributeError) as e:
        raise ApiRequestError(
            "Failed to parse package search response",
            status_code=r.status_code,
            body=r.text,
        ) from e
    if verbosity > 2:
        print("\nAPI object list:")
        print(results)

    if not results:
        return None
    return package_from_api(results[0])


def get_package_detail(jamf_url, pkg_id, token, verbosity=0):
    """Return the raw JSON detail of a package"""
    url = api_objects.object_url(jamf_url, "package", pkg_id)
    r = api_request.request("GET", url, token=token, verbosity=verbosity)
    if r.status_code == 404:
        raise NotFoundError(
            f"Package {pkg_id} not found", status_code=r.status_code, body=r.text
        )
    api_request.status_check(r, ApiRequestError, f"read package {pkg_id} details")
    try:
        return r.json()
    except ValueError as e:
        raise ApiRequestError(
            "Failed to parse package details response",
            status_code=r.status_code,
            body=r.text,
        ) from e


def get_digest_snapshot(jamf_url, pkg_id, token, verbosity=0):
    """Return the DigestSnapshot currently reported for a package, or None if the
    package detail carries no checksum or size fields at all"""
    payload = get_package_detail(jamf_url, pkg_id, token, verbosity)
    if verbosity > 2:
        print("\nPackage detail:")
        print(payload)
    return snapshot_from_payload(payload)


def list_policies(jamf_url, token, verbosity=0):
    """Return (id, name) for every policy"""
    url = api_objects.object_url(jamf_url, "policy")
    r = api_request.request(
        "GET", url, token=token, verbosity=verbosity, error_class=PolicyScanError
    )
    api_request.status_check(r, PolicyScanError, "list policies")

    try:
        policies = r.json().get(api_objects.object_list_types("policy")) or []
        policy_list = [(policy["id"], policy["name"]) for policy in policies]
    except (ValueError, AttributeError, KeyError, TypeError) as e:
        raise PolicyScanError(
            "Failed to parse policy list response",
            status_code=r.status_code,
            body=r.text,
        ) from e
    if verbosity > 2:
        print("\nAPI object list:")
        print(policies)
    return policy_list


def get_policy_xml(jamf_url, policy_id, token, verbosity=0):
    """Return the full XML of a single policy"""
    url = api_objects.object_url(jamf_url, "policy", "id", policy_id)
    r = api_request.request(
        "GET",
        url,
        token=token,
        verbosity=verbosity,
        accept="application/xml",
        error_class=PolicyScanError,
    )
    api_request.status_check(
        r, PolicyScanError, f"fetch policy {policy_id}", policy_id=policy_id
    )
    return r.text
