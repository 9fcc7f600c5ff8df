#!/usr/bin/env python3

from collections import namedtuple

# boolean installation-behaviour flags of a package record, in API key form
PACKAGE_FLAGS = (
    "fillUserTemplate",
    "fillExistingUsers",
    "rebootRequired",
    "osInstall",
    "suppressUpdates",
    "suppressFromDock",
    "suppressEula",
    "suppressRegistration",
)

# free-text metadata which the record keeps but the update never changes
PASSTHROUGH_FIELDS = ("info", "notes", "osRequirements", "uninstall")

DEFAULT_CATEGORY_ID = "-1"
DEFAULT_PRIORITY = 3
MIN_PRIORITY = 0
MAX_PRIORITY = 20

Credentials = namedtuple("Credentials", ["client_id", "client_secret", "url"])

AffectedPolicy = namedtuple("AffectedPolicy", ["id", "name"])

PackageRecord = namedtuple(
    "PackageRecord",
    [
        "id",
        "package_name",
        "file_name",
        "category_id",
        "priority",
        "flags",
        "extra",
    ],
)

UpdateResult = namedtuple(
    "UpdateResult",
    ["status", "pkg_id", "package_name", "affected_policies", "snapshot"],
)

STATUS_UP_TO_DATE = "up_to_date"
STATUS_CREATED = "created"
STATUS_UPDATED = "updated"


def package_from_api(obj):
    """Build a PackageRecord from a v1/packages JSON object"""
    category_id = obj.get("categoryId")
    if category_id is None or category_id == "":
        category_id = DEFAULT_CATEGORY_ID
    priority = obj.get("priority")
    if priority is None:
        priority = DEFAULT_PRIORITY
    return PackageRecord(
        id=str(obj["id"]),
        package_name=obj.get("packageName", ""),
        file_name=obj.get("fileName", ""),
        category_id=str(category_id),
        priority=int(priority),
        flags={flag: bool(obj.get(flag, False)) for flag in PACKAGE_FLAGS},
        extra={key: obj[key] for key in PASSTHROUGH_FIELDS if key in obj},
    )


def new_package_request(package_name, file_name, priority=None):
    """Package metadata for a package record which does not exist yet"""
    pkg_data = {
        "packageName": package_name,
        "fileName": file_name,
        "categoryId": DEFAULT_CATEGORY_ID,
        "priority": DEFAULT_PRIORITY if priority is None else priority,
    }
    for flag in PACKAGE_FLAGS:
        pkg_data[flag] = False
    return pkg_data


def update_request_from_package(package, file_name, priority=None):
    """Package metadata for an in-place update of an existing record.

    Only the file name, and the priority if one is given, are changed. The
    category, the flags and the PASSTHROUGH_FIELDS are copied from the existing
    record so that nothing is lost in the PUT. Other fields of the record, such
    as the hashes the server calculates, are left out."""
    pkg_data = dict(package.extra)
    pkg_data.update(
        {
            "packageName": package.package_name,
            "fileName": file_name,
            "categoryId": package.category_id,
            "priority": package.priority if priority is None else priority,
        }
    )
    pkg_data.update(package.flags)
    return pkg_data
