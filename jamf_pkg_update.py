#!/usr/bin/env python3

"""
** Jamf Package Update Script

Replaces the installer of a package in Jamf Pro while keeping the package ID, its
metadata and every policy that uses it, then waits until Jamf Pro reports the
checksum of the new installer. If no package of that name exists yet, it is
created.

API client credentials are taken from the JAMF_CLIENT_ID, JAMF_CLIENT_SECRET and
JAMF_URL environment variables, or from a prefs file (plist or JSON) containing
JSS_URL, CLIENT_ID and CLIENT_SECRET, or from the keyring, where they can be
stored with the `auth` subcommand.

For usage, run jamf_pkg_update.py --help
"""


import argparse
import sys

from jamf_update_lib import api_connect, api_request, models, pkg_update
from jamf_update_lib.errors import JamfUpdateError


def priority_value(value):
    """argparse type for a package priority"""
    try:
        priority = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"{value} is not an integer") from e
    if not models.MIN_PRIORITY <= priority <= models.MAX_PRIORITY:
        raise argparse.ArgumentTypeError(
            f"Acceptable priority range is {models.MIN_PRIORITY}-{models.MAX_PRIORITY}"
        )
    return priority


def get_args(argv=None):
    """Parse any command line arguments"""
    parser = argparse.ArgumentParser(
        prog="jamf_pkg_update.py",
        description="Simplify package updates in Jamf Pro",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="print verbose output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    auth_parser = subparsers.add_parser(
        "auth", help="Store Jamf Pro API client credentials in the keyring"
    )
    auth_parser.add_argument(
        "--client-id", required=True, help="Jamf Pro API client ID",
    )
    auth_parser.add_argument(
        "--client-secret", required=True, help="Jamf Pro API client secret",
    )
    auth_parser.add_argument(
        "--url",
        required=True,
        help="Jamf Pro instance URL (e.g. https://example.jamfcloud.com)",
    )

    update_parser = subparsers.add_parser(
        "update",
        help=(
            "Update a package in Jamf Pro, keeping it assigned to all policies "
            "that use it"
        ),
    )
    update_parser.add_argument("path", help="Path to a .pkg or .dmg file")
    update_parser.add_argument(
        "--name",
        default="",
        help="Package name to match in Jamf Pro (defaults to the file name without extension)",
    )
    update_parser.add_argument(
        "--priority",
        type=priority_value,
        default=None,
        help=(
            f"Package priority ({models.MIN_PRIORITY}-{models.MAX_PRIORITY}). "
            "Overrides the existing value for updates and the default "
            f"({models.DEFAULT_PRIORITY}) for new packages"
        ),
    )
    update_parser.add_argument(
        "--prefs",
        default="",
        help=(
            "full path to a prefs file (plist or JSON) containing "
            "JSS_URL, CLIENT_ID and CLIENT_SECRET"
        ),
    )
    update_parser.add_argument(
        "--timeout",
        type=int,
        default=api_request.UPLOAD_TIMEOUT,
        help="set timeout in seconds for the package upload request",
    )
    update_parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        dest="update_verbose",
        help="print verbose output",
    )
    return parser.parse_args(argv)


def report(result):
    """print the final confirmation for a finished run"""
    if result.status == models.STATUS_UP_TO_DATE:
        print(
            f"Package '{result.package_name}' (ID: {result.pkg_id}) is already up to date."
        )
    elif result.status == models.STATUS_CREATED:
        print(
            f"Package '{result.package_name}' (ID: {result.pkg_id}) created and "
            "uploaded successfully."
        )
    else:
        count = len(result.affected_policies)
        print(
            f"Package '{result.package_name}' (ID: {result.pkg_id}) updated successfully."
        )
        print(
            f"{count} {pkg_update.plural(count)} will automatically use the new package."
        )


def main(argv=None):
    """Do the main thing here"""
    args = get_args(argv)

    try:
        if args.command == "auth":
            api_connect.store_credentials(args.client_id, args.client_secret, args.url)
            print("Credentials stored successfully.")
            return 0

        verbosity = args.verbose + args.update_verbose
        print("\n** Jamf package update script")
        result = pkg_update.run_update(
            args.path,
            name=args.name or None,
            priority=args.priority,
            prefs_file=args.prefs,
            verbosity=verbosity,
            timeout=args.timeout,
        )
    except JamfUpdateError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nERROR: Interrupted", file=sys.stderr)
        return 130

    report(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
