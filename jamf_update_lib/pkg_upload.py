#!/usr/bin/env python3

import os.path

from time import sleep

from requests_toolbelt import MultipartEncoder

from . import api_objects, api_request
from .errors import UploadError, ValidationError

MAX_ATTEMPTS = 3
# seconds between attempts, fixed
RETRY_DELAY = 10


class DeclaredLengthReader(object):
    """File reader for the multipart encoder which reports the length declared
    before the upload started, rather than asking the filesystem again"""

    def __init__(self, fd, length):
        self._fd = fd
        self._remaining = length

    @property
    def len(self):
        return self._remaining

    def read(self, size=-1):
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        chunk = self._fd.read(size)
        if chunk:
            self._remaining -= len(chunk)
        else:
            # file is shorter than declared, stop here
            self._remaining = 0
        return chunk


def multipart_body(pkg_name, fd, file_size):
    """single multipart part named 'file' carrying the package bytes"""
    return MultipartEncoder(
        fields={
            "file": (
                pkg_name,
                DeclaredLengthReader(fd, file_size),
                "application/octet-stream",
            )
        }
    )


def upload_package_file(
    jamf_url,
    pkg_id,
    pkg_path,
    token,
    verbosity=0,
    timeout=api_request.UPLOAD_TIMEOUT,
    max_attempts=MAX_ATTEMPTS,
    retry_delay=RETRY_DELAY,
):
    """Upload a package file to an existing package record using the v1/packages
    endpoint.

    Server errors (5xx) are retried up to max_attempts in total, with a fixed
    delay in between. Anything else fails straight away. Returns the successful
    response, raises UploadError with the last status and body otherwise."""
    url = api_objects.object_url(jamf_url, "package", pkg_id, "upload")
    pkg_name = os.path.basename(pkg_path)
    # the file must not change while it is being uploaded, so this is read once
    try:
        file_size = os.path.getsize(pkg_path)
    except OSError as e:
        raise ValidationError(f"Cannot read package file {pkg_path}: {e}") from e
    if verbosity:
        print(f"Uploading {pkg_name} ({file_size} bytes) to package ID {pkg_id}")

    count = 0
    while True:
        count += 1
        if verbosity > 1:
            print(f"Package upload attempt {count}")

        try:
            fd = open(pkg_path, "rb")
        except OSError as e:
            raise ValidationError(f"Cannot read package file {pkg_path}: {e}") from e
        with fd:
            encoder = multipart_body(pkg_name, fd, file_size)
            try:
                r = api_request.request(
                    "POST",
                    url,
                    token=token,
                    verbosity=verbosity,
                    timeout=timeout,
                    error_class=UploadError,
                    dump_hook=False,
                    headers={"content-type": encoder.content_type},
                    data=encoder,
                )
            except UploadError as e:
                e.attempts = count
                raise

        if api_request.is_success(r):
            return r

        retryable = api_request.is_server_error(r)
        if retryable and count < max_attempts:
            print(
                f"WARNING: Upload attempt {count}/{max_attempts} failed "
                f"(HTTP {r.status_code}), retrying in {retry_delay}s..."
            )
            sleep(retry_delay)
            continue

        if retryable:
            message = f"Failed to upload package after {count} attempts"
        else:
            message = "Failed to upload package"
        raise UploadError(
            message,
            status_code=r.status_code,
            body=r.text,
            retryable=retryable,
            attempts=count,
        )
