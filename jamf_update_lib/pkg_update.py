#!/usr/bin/env python3

"""
The package update workflow.

Replaces the payload of a package in Jamf Pro while keeping its ID, metadata and
policy assignments, then waits until the server shows evidence that the new
payload was taken. The steps run strictly in order:

    resolve -> validate -> load credentials -> authenticate -> locate
    existing package: read digest -> equivalence check -> scan policies -> update metadata
    new package:      create
    -> upload -> reindex -> converge -> done

The only short cut is the equivalence check: if the server already holds a
package with the same MD5 as the local file, nothing is changed at all.
"""

import os.path

from enum import Enum

from . import (
    api_connect,
    api_get,
    api_request,
    api_update,
    convergence,
    pkg_upload,
    policy_scan,
)
from .digest import hashes_match, md5sum
from .errors import ValidationError
from .models import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    STATUS_CREATED,
    STATUS_UP_TO_DATE,
    STATUS_UPDATED,
    UpdateResult,
    new_package_request,
    update_request_from_package,
)

ALLOWED_EXTENSIONS = (".pkg", ".dmg")


class WorkflowState(Enum):
    RESOLVE = "resolve"
    VALIDATE = "validate"
    LOAD_CREDENTIALS = "load credentials"
    AUTHENTICATE = "authenticate"
    LOCATE = "locate package"
    READ_PRIOR_DIGEST = "read prior digest"
    CHECK_EQUIVALENCE = "check equivalence"
    SCAN_POLICIES = "scan policies"
    UPDATE_METADATA = "update metadata"
    CREATE = "create package"
    UPLOAD = "upload"
    REINDEX = "reindex"
    CONVERGE = "converge"
    DONE = "done"


def enter(state, verbosity):
    """report a workflow transition"""
    if verbosity > 1:
        print(f"--> {state.value}")


def plural(count, singular="policy", multiple="policies"):
    return singular if count == 1 else multiple


def resolve_names(pkg_path, name=None):
    """Return (package name, file name). The package name defaults to the file
    name without its extension"""
    file_name = os.path.basename(pkg_path)
    if not file_name:
        raise ValidationError(f"Invalid file path: {pkg_path}")
    pkg_name = name if name else os.path.splitext(file_name)[0]
    return pkg_name, file_name


def validate_package_file(pkg_path, priority=None):
    """fail before any remote call if the local file cannot be used"""
    extension = os.path.splitext(pkg_path)[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"File must be a .pkg or .dmg (got {extension or 'no extension'})"
        )
    if not os.path.isfile(pkg_path):
        raise ValidationError(f"File not found: {pkg_path}")
    if priority is not None and not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ValidationError(
            f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY} (got {priority})"
        )


def upload_and_reindex(jamf_url, pkg_id, pkg_path, file_name, token, verbosity, timeout):
    enter(WorkflowState.UPLOAD, verbosity)
    print(f"Uploading {file_name}...")
    pkg_upload.upload_package_file(
        jamf_url, pkg_id, pkg_path, token, verbosity=verbosity, timeout=timeout
    )
    print("Upload complete.")

    enter(WorkflowState.REINDEX, verbosity)
    print("Refreshing package inventory (recalculating checksums)...")
    api_update.trigger_reindex(jamf_url, token, verbosity)
    print("Inventory refresh requested.")


def create_new_package(
    jamf_url, pkg_name, file_name, pkg_path, priority, token, verbosity, timeout
):
    """new package path: create, upload, wait for a digest to appear"""
    enter(WorkflowState.CREATE, verbosity)
    print(f"Package '{pkg_name}' not found, creating it...")
    pkg_data = new_package_request(pkg_name, file_name, priority)
    pkg_id = api_update.create_package(jamf_url, pkg_data, token, verbosity)
    print(f"Created package '{pkg_name}' (ID: {pkg_id})")

    upload_and_reindex(jamf_url, pkg_id, pkg_path, file_name, token, verbosity, timeout)

    enter(WorkflowState.CONVERGE, verbosity)
    print("Waiting for Jamf Pro to report the package checksum...")
    snapshot = convergence.wait_for_digest(jamf_url, pkg_id, token, verbosity)

    enter(WorkflowState.DONE, verbosity)
    return UpdateResult(STATUS_CREATED, pkg_id, pkg_name, [], snapshot)


def update_existing_package(
    jamf_url, package, pkg_name, file_name, pkg_path, priority, token, verbosity, timeout
):
    """existing package path: check, scan, update metadata, upload, wait for the
    digest to change"""
    pkg_id = package.id
    print(f"Found package '{pkg_name}' (ID: {pkg_id}, file: {package.file_name})")

    enter(WorkflowState.READ_PRIOR_DIGEST, verbosity)
    previous = api_get.get_digest_snapshot(jamf_url, pkg_id, token, verbosity)
    if previous is None:
        print("No checksum is currently reported for this package")
    elif verbosity:
        print(f"Current digest: {previous.display_line()}")

    enter(WorkflowState.CHECK_EQUIVALENCE, verbosity)
    local_hash = md5sum(pkg_path)
    if verbosity:
        print(f"Local MD5: {local_hash}")
    if previous is not None and hashes_match(local_hash, previous.remote_md5()):
        enter(WorkflowState.DONE, verbosity)
        return UpdateResult(STATUS_UP_TO_DATE, pkg_id, pkg_name, [], None)

    enter(WorkflowState.SCAN_POLICIES, verbosity)
    print("Scanning policies...")
    affected = policy_scan.find_policies_with_package(
        jamf_url, pkg_name, package.file_name, token, verbosity
    )
    print(
        f"Found {len(affected)} {plural(len(affected))} referencing this package."
    )
    for policy in affected:
        print(f"  - {policy.name} (ID: {policy.id})")

    enter(WorkflowState.UPDATE_METADATA, verbosity)
    print("Updating package metadata...")
    pkg_data = update_request_from_package(package, file_name, priority)
    api_update.update_package(jamf_url, pkg_id, pkg_data, token, verbosity)
    print("Metadata updated.")

    upload_and_reindex(jamf_url, pkg_id, pkg_path, file_name, token, verbosity, timeout)

    enter(WorkflowState.CONVERGE, verbosity)
    if previous is None:
        print("Waiting for Jamf Pro to report the package checksum...")
        snapshot = convergence.wait_for_digest(jamf_url, pkg_id, token, verbosity)
    else:
        print("Waiting for Jamf Pro to report the new package checksum...")
        snapshot = convergence.wait_for_digest_change(
            jamf_url, pkg_id, pkg_path, previous, token, verbosity
        )

    enter(WorkflowState.DONE, verbosity)
    return UpdateResult(STATUS_UPDATED, pkg_id, pkg_name, affected, snapshot)


def run_update(
    pkg_path,
    name=None,
    priority=None,
    prefs_file="",
    credentials=None,
    verbosity=0,
    timeout=api_request.UPLOAD_TIMEOUT,
):
    """Create or update a package in Jamf Pro from a local .pkg or .dmg file.

    Returns an UpdateResult. Any failure is raised as a JamfUpdateError."""
    enter(WorkflowState.RESOLVE, verbosity)
    pkg_name, file_name = resolve_names(pkg_path, name)

    enter(WorkflowState.VALIDATE, verbosity)
    validate_package_file(pkg_path, priority)
    print(f"Package name: {pkg_name}")
    print(f"File: {pkg_path}")

    enter(WorkflowState.LOAD_CREDENTIALS, verbosity)
    if credentials is None:
        credentials = api_connect.load_credentials(prefs_file, verbosity)
    jamf_url = credentials.url.rstrip("/")
    print(f"Jamf Pro URL: {jamf_url}")

    enter(WorkflowState.AUTHENTICATE, verbosity)
    print("Authenticating...")
    token = api_connect.authenticate(
        jamf_url, credentials.client_id, credentials.client_secret, verbosity
    )
    print("Authenticated.")

    enter(WorkflowState.LOCATE, verbosity)
    print(f"Searching for package '{pkg_name}'...")
    package = api_get.find_package_by_name(jamf_url, pkg_name, token, verbosity)

    if package is None:
        return create_new_package(
            jamf_url, pkg_name, file_name, pkg_path, priority, token, verbosity, timeout
        )
    return update_existing_package(
        jamf_url,
        package,
        pkg_name,
        file_name,
        pkg_path,
        priority,
        token,
        verbosity,
        timeout,
    )
