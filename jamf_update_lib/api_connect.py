#!/usr/bin/env python3

import json
import os
import plistlib

import keyring
from keyring.errors import KeyringError

from . import api_objects, api_request
from .errors import AuthenticationError, CredentialsError
from .models import Credentials

KEYRING_SERVICE = "jamf-package-updater"

ENV_CLIENT_ID = "JAMF_CLIENT_ID"
ENV_CLIENT_SECRET = "JAMF_CLIENT_SECRET"
ENV_URL = "JAMF_URL"


def get_credentials(prefs_file):
    """return credentials from a prefs_file"""
    try:
        if prefs_file.endswith(".plist"):
            with open(prefs_file, "rb") as pl:
                prefs = plistlib.load(pl)
        elif prefs_file.endswith((".json", ".env")):
            with open(prefs_file) as js:
                prefs = json.load(js)
        else:
            raise CredentialsError(
                f"Unsupported prefs file '{prefs_file}' (expected .plist, .json or .env)"
            )
    # JSONDecodeError and plistlib.InvalidFileException are both ValueErrors
    except (OSError, ValueError) as e:
        raise CredentialsError(f"Cannot read prefs file {prefs_file}: {e}") from e
    if not isinstance(prefs, dict):
        raise CredentialsError(
            f"Cannot read prefs file {prefs_file}: expected a dictionary of settings"
        )

    try:
        jamf_url = prefs["JSS_URL"]
    except KeyError:
        jamf_url = ""
    try:
        client_id = prefs["CLIENT_ID"]
    except KeyError:
        client_id = ""
    try:
        client_secret = prefs["CLIENT_SECRET"]
    except KeyError:
        client_secret = ""
    return jamf_url, client_id, client_secret


def get_env_credentials():
    """return credentials from the environment, or None unless all three are set"""
    client_id = os.environ.get(ENV_CLIENT_ID)
    client_secret = os.environ.get(ENV_CLIENT_SECRET)
    jamf_url = os.environ.get(ENV_URL)
    if client_id and client_secret and jamf_url:
        return Credentials(client_id, client_secret, jamf_url.rstrip("/"))
    return None


def get_keyring_credentials():
    """return credentials stored in the platform secret store, or None"""
    try:
        client_id = keyring.get_password(KEYRING_SERVICE, "client_id")
        client_secret = keyring.get_password(KEYRING_SERVICE, "client_secret")
        jamf_url = keyring.get_password(KEYRING_SERVICE, "url")
    except KeyringError as e:
        raise CredentialsError(f"Failed to access keyring: {e}") from e
    if client_id and client_secret and jamf_url:
        return Credentials(client_id, client_secret, jamf_url.rstrip("/"))
    return None


def load_credentials(prefs_file="", verbosity=0):
    """Return the API client credentials for this run.

    Environment variables win over a prefs file, which wins over the keyring."""
    creds = get_env_credentials()
    if creds:
        if verbosity > 1:
            print("Using API client credentials from the environment")
        return creds

    if prefs_file:
        jamf_url, client_id, client_secret = get_credentials(prefs_file)
        if jamf_url and client_id and client_secret:
            if verbosity > 1:
                print(f"Using API client credentials from {prefs_file}")
            return Credentials(client_id, client_secret, jamf_url.rstrip("/"))
        print(f"WARNING: {prefs_file} does not contain JSS_URL, CLIENT_ID and CLIENT_SECRET")

    creds = get_keyring_credentials()
    if creds:
        if verbosity > 1:
            print("Using API client credentials found in keyring")
        return creds

    raise CredentialsError(
        "No credentials found. Run `jamf_pkg_update.py auth` first or set "
        f"{ENV_CLIENT_ID}, {ENV_CLIENT_SECRET} and {ENV_URL} environment variables."
    )


def store_credentials(client_id, client_secret, jamf_url):
    """save the API client credentials in the platform secret store"""
    jamf_url = jamf_url.rstrip("/")
    try:
        keyring.set_password(KEYRING_SERVICE, "client_id", client_id)
        keyring.set_password(KEYRING_SERVICE, "client_secret", client_secret)
        keyring.set_password(KEYRING_SERVICE, "url", jamf_url)
    except KeyringError as e:
        raise CredentialsError(f"Failed to store credentials in keyring: {e}") from e
    return Credentials(client_id, client_secret, jamf_url)


def authenticate(jamf_url, client_id, client_secret, verbosity=0):
    """get a token for the Jamf Pro API using an OAuth client credentials grant"""
    url = api_objects.object_url(jamf_url, "oauth")
    r = api_request.request(
        "POST",
        url,
        verbosity=verbosity,
        error_class=AuthenticationError,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "client_credentials",
        },
    )
    api_request.status_check(r, AuthenticationError, "authenticate with Jamf Pro")

    try:
        output = r.json()
    except ValueError as e:
        raise AuthenticationError(
            "Failed to parse authentication response",
            status_code=r.status_code,
            body=r.text,
        ) from e

    token = output.get("access_token") if isinstance(output, dict) else None
    if not token:
        raise AuthenticationError(
            "No token received", status_code=r.status_code, body=r.text
        )

    print("Session token received")
    if verbosity > 1:
        print(f"Expires in: {output.get('expires_in', 'unknown')} seconds")
    return str(token)
