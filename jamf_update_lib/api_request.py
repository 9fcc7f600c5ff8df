#!/usr/bin/env python3

"""
HTTP transport for the Jamf Pro API.

Every call gets its own requests Session. The bearer token is passed in by the
caller for each request, nothing is cached here.

Additional requests tools added based on:
https://findwork.dev/blog/advanced-usage-python-requests-timeouts-retries-hooks/
"""

import requests
from requests_toolbelt.utils import dump

from .errors import ApiRequestError

# seconds, for everything except the package upload
DEFAULT_TIMEOUT = 60
# uploads of large installers can legitimately take tens of minutes
UPLOAD_TIMEOUT = 3600


def logging_hook(response, *args, **kwargs):
    """print the raw request and response"""
    data = dump.dump_all(response)
    print(data.decode("utf-8", errors="replace"))


def get_session(verbosity, dump_hook=True):
    """return a requests Session, with the dump hook attached at high verbosity"""
    http = requests.Session()
    if verbosity > 2 and dump_hook:
        http.hooks["response"] = [logging_hook]
    return http


def request(
    method,
    url,
    token="",
    verbosity=0,
    accept="application/json",
    timeout=DEFAULT_TIMEOUT,
    error_class=ApiRequestError,
    dump_hook=True,
    headers=None,
    **kwargs,
):
    """send a request to Jamf Pro and return the response.

    Transport failures (DNS, TLS, timeouts...) are raised as `error_class` without
    a status code. HTTP error statuses are returned to the caller, use
    `status_check` to turn them into errors."""
    request_headers = {"accept": accept}
    if token:
        request_headers["authorization"] = f"Bearer {token}"
    if headers:
        request_headers.update(headers)

    if verbosity:
        print(f"{method} {url}")

    http = get_session(verbosity, dump_hook)
    try:
        r = http.request(
            method, url, headers=request_headers, timeout=timeout, **kwargs
        )
    except requests.exceptions.RequestException as e:
        raise error_class(f"{method} {url} failed", body=str(e)) from e
    finally:
        http.close()

    if verbosity:
        print(f"HTTP response: {r.status_code}")
    return r


def is_success(r):
    """True for any 2xx response"""
    return 200 <= r.status_code < 300


def is_server_error(r):
    return 500 <= r.status_code < 600


def status_check(r, error_class, action, **error_kwargs):
    """raise error_class with the status code and response body for a non-2xx response"""
    if is_success(r):
        return
    raise error_class(
        f"Failed to {action}", status_code=r.status_code, body=r.text, **error_kwargs
    )
