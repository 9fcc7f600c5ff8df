#!/usr/bin/env python3

"""
Digest snapshots: the checksum and size evidence which Jamf Pro reports for the
payload of a package.

The package detail schema is not consistent about the names and the nesting
depth of these fields, so each field is looked up with a depth-first pre-order
search over the JSON document. At every object level the keys are tried in the
order listed below before any nested value is searched, and nested values are
searched in document order (arrays in index order). The first match wins, so a
field found at a shallower level always beats one further down, and of two
nested objects carrying the same key the one that comes first in the document
wins.
"""

import hashlib

from collections import namedtuple

from .errors import ValidationError

MD5_KEYS = ("md5Hash", "md5", "md5Checksum", "md5Sum", "MD5")
HASH_TYPE_KEYS = ("hashType", "checksumType")
HASH_VALUE_KEYS = ("hashValue", "checksum", "hash")
FILE_SIZE_KEYS = ("fileSize", "size", "fileSizeBytes")


class DigestSnapshot(
    namedtuple("DigestSnapshot", ["md5_hash", "hash_type", "hash_value", "file_size"])
):
    """Checksum/size fields of a package as last reported by the server.

    Every field is optional. A snapshot with no fields at all is "empty", which is
    a different state from a snapshot whose fields did not change."""

    __slots__ = ()

    def __new__(cls, md5_hash=None, hash_type=None, hash_value=None, file_size=None):
        return super().__new__(cls, md5_hash, hash_type, hash_value, file_size)

    def is_empty(self):
        return all(field is None for field in self)

    def differs_from(self, other):
        """True if any field present in both snapshots has a different value.

        A field which is absent on either side never counts as a difference."""
        return (
            _field_changed(other.md5_hash, self.md5_hash, _normalise_hash)
            or _field_changed(other.hash_type, self.hash_type, _normalise_hash)
            or _field_changed(other.hash_value, self.hash_value, _normalise_hash)
            or _field_changed(other.file_size, self.file_size)
        )

    def has_verifiable_content(self):
        """True once the snapshot carries a hash we can compare a file against:
        either an MD5, or a hash type together with its value. A file size on its
        own is not enough."""
        if self.md5_hash is not None:
            return True
        return self.hash_type is not None and self.hash_value is not None

    def remote_md5(self):
        """the MD5 reported by the server, if there is one"""
        if self.md5_hash is not None:
            return self.md5_hash
        if self.hash_type is not None and self.hash_type.upper() == "MD5":
            return self.hash_value
        return None

    def display_line(self):
        md5 = self.md5_hash if self.md5_hash is not None else "unknown"
        hash_type = self.hash_type if self.hash_type is not None else "unknown"
        hash_value = self.hash_value if self.hash_value is not None else "unknown"
        file_size = self.file_size if self.file_size is not None else "unknown"
        return f"md5={md5}, hash={hash_type} {hash_value}, file_size={file_size}"


def describe(snapshot):
    """display line for an optional snapshot"""
    if snapshot is None:
        return "none"
    return snapshot.display_line()


def _normalise_hash(value):
    return value.lower()


def _field_changed(old, new, normalise=None):
    if old is None or new is None:
        return False
    if normalise:
        return normalise(old) != normalise(new)
    return old != new


def value_to_string(value):
    """non-empty strings and numbers, as text"""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value if value else None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def value_to_int(value):
    """non-negative integers, including numeric-looking strings"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value >= 0 else None
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            return int(value)
    return None


def find_first(value, keys, coerce):
    """depth-first, pre-order search for the first usable value of any of keys"""
    if isinstance(value, dict):
        for key in keys:
            if key in value:
                found = coerce(value[key])
                if found is not None:
                    return found
        for nested in value.values():
            found = find_first(nested, keys, coerce)
            if found is not None:
                return found
    elif isinstance(value, list):
        for item in value:
            found = find_first(item, keys, coerce)
            if found is not None:
                return found
    return None


def snapshot_from_payload(payload):
    """Extract a DigestSnapshot from a package detail document.
    Returns None if none of the digest fields appear anywhere in it."""
    snapshot = DigestSnapshot(
        md5_hash=find_first(payload, MD5_KEYS, value_to_string),
        hash_type=find_first(payload, HASH_TYPE_KEYS, value_to_string),
        hash_value=find_first(payload, HASH_VALUE_KEYS, value_to_string),
        file_size=find_first(payload, FILE_SIZE_KEYS, value_to_int),
    )
    if snapshot.is_empty():
        return None
    return snapshot


def md5sum(filename):
    """calculate the MD5 hash of the package
    (see https://stackoverflow.com/a/44873382)"""
    h = hashlib.md5()
    b = bytearray(128 * 1024)
    mv = memoryview(b)
    try:
        with open(filename, "rb", buffering=0) as f:
            for n in iter(lambda: f.readinto(mv), 0):
                h.update(mv[:n])
    except OSError as e:
        raise ValidationError(f"Cannot read package file {filename}: {e}") from e
    return h.hexdigest()


def hashes_match(local_hash, remote_hash):
    """case-insensitive hash comparison, False if either is missing"""
    if not local_hash or not remote_hash:
        return False
    return local_hash.lower() == remote_hash.lower()
