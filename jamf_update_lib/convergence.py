#!/usr/bin/env python3

"""
Wait for Jamf Pro to finish reprocessing an uploaded package.

The server recalculates checksums asynchronously and does not tell us when it has
finished, so the only signal is the digest reported in the package detail.
Both waits poll a fixed number of times at a fixed interval, sleeping before
each poll.
"""

import time

from time import sleep

from . import api_get
from .digest import describe, hashes_match, md5sum
from .errors import ContentMismatchError, ConvergenceTimeoutError

POLL_ATTEMPTS = 12
# seconds
POLL_INTERVAL = 5


def wait_for_digest_change(
    jamf_url,
    pkg_id,
    pkg_path,
    previous,
    token,
    verbosity=0,
    attempts=POLL_ATTEMPTS,
    interval=POLL_INTERVAL,
):
    """Poll until the package digest differs from `previous`, and return it.

    If it never changes, the local file is hashed and compared with the last MD5
    the server reported: a rebuilt but byte-identical package keeps its digest,
    so a match counts as success. Otherwise ContentMismatchError is raised, or
    ConvergenceTimeoutError if the server never reported an MD5 at all."""
    start = time.monotonic()
    latest = None

    for attempt in range(1, attempts + 1):
        sleep(interval)
        snapshot = api_get.get_digest_snapshot(jamf_url, pkg_id, token, verbosity)
        if snapshot is None:
            print(f"  Attempt {attempt}/{attempts}: no package digest available yet")
            continue
        latest = snapshot
        if snapshot.differs_from(previous):
            print(f"Package digest changed: {snapshot.display_line()}")
            return snapshot
        print(f"  Attempt {attempt}/{attempts}: package digest unchanged")
        if verbosity:
            print(f"    {snapshot.display_line()}")

    elapsed = time.monotonic() - start
    reference = latest if latest is not None else previous
    local_hash = md5sum(pkg_path)
    remote_hash = reference.remote_md5()
    if hashes_match(local_hash, remote_hash):
        print(
            "Package digest did not change, but the MD5 on the server matches the "
            f"uploaded file ({local_hash})"
        )
        return reference

    diagnostic = (
        f"previous digest: {previous.display_line()}; "
        f"latest digest: {describe(latest)}; "
        f"local md5: {local_hash}; "
        f"remote md5: {remote_hash or 'unknown'}; "
        f"waited {elapsed:.0f}s"
    )
    if remote_hash is None:
        raise ConvergenceTimeoutError(
            f"Package digest did not change after {attempts} attempts ({diagnostic})"
        )
    raise ContentMismatchError(
        "Package digest did not change and the MD5 on the server does not match "
        f"the uploaded file ({diagnostic})"
    )


def wait_for_digest(
    jamf_url,
    pkg_id,
    token,
    verbosity=0,
    attempts=POLL_ATTEMPTS,
    interval=POLL_INTERVAL,
):
    """Poll until the package reports a digest with verifiable content, and
    return it. Used when there is no earlier digest to compare with."""
    start = time.monotonic()
    latest = None

    for attempt in range(1, attempts + 1):
        sleep(interval)
        snapshot = api_get.get_digest_snapshot(jamf_url, pkg_id, token, verbosity)
        if snapshot is not None:
            latest = snapshot
            if snapshot.has_verifiable_content():
                print(f"Package digest available: {snapshot.display_line()}")
                return snapshot
        print(f"  Attempt {attempt}/{attempts}: package digest not available yet")
        if verbosity:
            print(f"    {describe(snapshot)}")

    elapsed = time.monotonic() - start
    raise ConvergenceTimeoutError(
        f"No verifiable package digest after {attempts} attempts "
        f"(latest digest: {describe(latest)}; waited {elapsed:.0f}s)"
    )
