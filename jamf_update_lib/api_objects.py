#!/usr/bin/env python3


def api_endpoints(object_type):
    """Return the endpoint path for an object type"""
    # Jamf Pro API endpoints are JSON, the JSSResource ones belong to the Classic API
    api_endpoints = {
        "jcds": "api/v1/jcds",
        "oauth": "api/oauth/token",
        "package": "api/v1/packages",
        "policy": "JSSResource/policies",
    }
    return api_endpoints[object_type]


def object_list_types(object_type):
    """return the key that holds the list in a GET request of all objects"""
    object_list_types = {
        "package": "results",
        "policy": "policies",
    }
    return object_list_types[object_type]


def object_url(jamf_url, object_type, *parts):
    """Build a full URL for an object type, with any extra path components"""
    url = f"{jamf_url}/{api_endpoints(object_type)}"
    for part in parts:
        url += f"/{part}"
    return url
