#!/usr/bin/env python3

import sys

from xml.sax.saxutils import escape

from . import api_get
from .errors import PolicyScanError
from .models import AffectedPolicy

PACKAGE_SECTION = "package_configuration"


def extract_section(xml, tag):
    """Return the text from the first <tag> to the first </tag>, inclusive,
    or None if either marker is missing"""
    open_tag = f"<{tag}>"
    close_tag = f"</{tag}>"
    start = xml.find(open_tag)
    end = xml.find(close_tag)
    if start == -1 or end == -1 or end < start:
        return None
    return xml[start : end + len(close_tag)]


def policy_references_package(policy_xml, pkg_name, file_name):
    """True if the package section of a policy names the package, either by its
    display name or by its file name. Each name is matched both as
    given and with &, < and > escaped"""
    section = extract_section(policy_xml, PACKAGE_SECTION)
    if section is None:
        return False
    candidates = set()
    for name in (pkg_name, file_name):
        if name:
            candidates.update((name, escape(name)))
    return any(f"<name>{name}</name>" in section for name in candidates)


def find_policies_with_package(jamf_url, pkg_name, file_name, token, verbosity=0):
    """Return an AffectedPolicy for every policy which references the package.

    Every policy is read in turn. A failure to read any one of them aborts the
    whole scan, there is no partial result."""
    policies = api_get.list_policies(jamf_url, token, verbosity)
    total = len(policies)
    affected = []

    for count, (policy_id, policy_name) in enumerate(policies, start=1):
        sys.stdout.write(f"\r  Scanning policy {count}/{total}...")
        sys.stdout.flush()

        try:
            policy_xml = api_get.get_policy_xml(jamf_url, policy_id, token, verbosity)
        except PolicyScanError as e:
            print()
            if e.policy_id is None:
                e.policy_id = policy_id
            raise
        if policy_references_package(policy_xml, pkg_name, file_name):
            affected.append(AffectedPolicy(policy_id, policy_name))
    if total:
        print()

    return affected
