import pytest

from conftest import JAMF_URL, FakeResponse

from jamf_update_lib import pkg_update
from jamf_update_lib.digest import md5sum
from jamf_update_lib.errors import (
    ApiRequestError,
    ContentMismatchError,
    MetadataUpdateError,
    ValidationError,
)
from jamf_update_lib.models import (
    STATUS_CREATED,
    STATUS_UP_TO_DATE,
    STATUS_UPDATED,
    AffectedPolicy,
    Credentials,
)

CREDENTIALS = Credentials("client", "secret", JAMF_URL + "/")

OAUTH = "/api/oauth/token"
PACKAGES = "/api/v1/packages"
DETAIL = "/api/v1/packages/42"
UPLOAD = "/api/v1/packages/42/upload"
REINDEX = "/api/v1/jcds/refresh-inventory"
POLICIES = "/JSSResource/policies"

EXISTING_PACKAGE = {
    "id": "42",
    "packageName": "Firefox",
    "fileName": "Firefox-1.0.pkg",
    "categoryId": "7",
    "priority": 10,
    "rebootRequired": True,
    "notes": "keep me",
    "md5": "0123456789abcdef0123456789abcdef",
}

POLICY_XML = """<policy><package_configuration><packages>
<package><id>42</id><name>Firefox-1.0.pkg</name></package>
</packages></package_configuration></policy>"""


def authenticated(fake_jamf):
    fake_jamf.add(
        "POST", OAUTH, FakeResponse(200, {"access_token": "abc", "expires_in": 60})
    )


def test_new_package_is_created(fake_jamf, sleeps, pkg_file):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET", PACKAGES, FakeResponse(200, {"totalCount": 0, "results": []})
    )
    fake_jamf.add("POST", PACKAGES, FakeResponse(201, {"id": "42", "href": "x"}))
    fake_jamf.add("POST", UPLOAD, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", REINDEX, FakeResponse(204))
    fake_jamf.add(
        "GET",
        DETAIL,
        FakeResponse(200, {"id": "42"}),
        FakeResponse(200, {"id": "42", "md5": "feed", "fileSize": 21}),
    )

    result = pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert result.status == STATUS_CREATED
    assert result.pkg_id == "42"
    assert result.package_name == "Firefox"
    assert result.affected_policies == []
    assert result.snapshot.md5_hash == "feed"

    create = fake_jamf.calls_to("POST", PACKAGES)[0][2]["json"]
    assert create["packageName"] == "Firefox"
    assert create["fileName"] == "Firefox.pkg"
    assert create["categoryId"] == "-1"
    assert create["priority"] == 3
    assert create["rebootRequired"] is False
    assert fake_jamf.calls_to("POST", UPLOAD)
    assert fake_jamf.calls_to("POST", REINDEX)
    assert not fake_jamf.calls_to("GET", POLICIES)
    # requests carry the token from the oauth response
    search = fake_jamf.calls_to("GET", PACKAGES)[0]
    assert search[2]["token"] == "abc"
    assert search[1].startswith(JAMF_URL + "/api/v1/packages?")
    assert len(sleeps) == 2


def test_unchanged_payload_is_left_alone(fake_jamf, sleeps, pkg_file):
    local_hash = md5sum(pkg_file)
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET",
        PACKAGES,
        FakeResponse(200, {"totalCount": 1, "results": [EXISTING_PACKAGE]}),
    )
    fake_jamf.add(
        "GET", DETAIL, FakeResponse(200, {"id": "42", "md5": local_hash.upper()})
    )

    result = pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert result.status == STATUS_UP_TO_DATE
    assert result.pkg_id == "42"
    assert not fake_jamf.calls_to("PUT", DETAIL)
    assert not fake_jamf.calls_to("POST", UPLOAD)
    assert not fake_jamf.calls_to("POST", REINDEX)
    assert not fake_jamf.calls_to("GET", POLICIES)
    assert sleeps == []


def test_existing_package_is_updated_in_place(fake_jamf, sleeps, pkg_file, capsys):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET",
        PACKAGES,
        FakeResponse(200, {"totalCount": 1, "results": [EXISTING_PACKAGE]}),
    )
    fake_jamf.add(
        "GET",
        DETAIL,
        FakeResponse(200, {"id": "42", "md5": "old", "fileSize": 100}),
        FakeResponse(200, {"id": "42", "md5": "old", "fileSize": 100}),
        FakeResponse(200, {"id": "42", "md5": "new", "fileSize": 21}),
    )
    fake_jamf.add(
        "GET",
        POLICIES,
        FakeResponse(
            200,
            {"policies": [{"id": 5, "name": "Install Firefox"}, {"id": 6, "name": "Other"}]},
        ),
    )
    fake_jamf.add("GET", "/JSSResource/policies/id/5", FakeResponse(200, text=POLICY_XML))
    fake_jamf.add(
        "GET", "/JSSResource/policies/id/6", FakeResponse(200, text="<policy/>")
    )
    fake_jamf.add("PUT", DETAIL, FakeResponse(200, EXISTING_PACKAGE))
    fake_jamf.add("POST", UPLOAD, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", REINDEX, FakeResponse(204))

    result = pkg_update.run_update(
        str(pkg_file), name="Firefox", priority=15, credentials=CREDENTIALS
    )

    assert result.status == STATUS_UPDATED
    assert result.pkg_id == "42"
    assert result.affected_policies == [AffectedPolicy(5, "Install Firefox")]
    assert result.snapshot.md5_hash == "new"

    put = fake_jamf.calls_to("PUT", DETAIL)[0][2]["json"]
    assert put["packageName"] == "Firefox"
    assert put["fileName"] == "Firefox.pkg"
    assert put["categoryId"] == "7"
    assert put["priority"] == 15
    assert put["rebootRequired"] is True
    assert put["notes"] == "keep me"
    assert "md5" not in put
    assert not fake_jamf.calls_to("POST", PACKAGES)

    # metadata, then payload, then reindex
    methods = [(method, url.split("?")[0]) for method, url, _ in fake_jamf.calls]
    put_index = methods.index(("PUT", JAMF_URL + DETAIL))
    upload_index = methods.index(("POST", JAMF_URL + UPLOAD))
    reindex_index = methods.index(("POST", JAMF_URL + REINDEX))
    assert put_index < upload_index < reindex_index

    out = capsys.readouterr().out
    assert "Found 1 policy referencing this package." in out
    assert len(sleeps) == 2


def test_metadata_failure_stops_before_upload(fake_jamf, sleeps, pkg_file):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET",
        PACKAGES,
        FakeResponse(200, {"totalCount": 1, "results": [EXISTING_PACKAGE]}),
    )
    fake_jamf.add("GET", DETAIL, FakeResponse(200, {"id": "42", "md5": "old"}))
    fake_jamf.add("GET", POLICIES, FakeResponse(200, {"policies": []}))
    fake_jamf.add("PUT", DETAIL, FakeResponse(409, text="conflict"))

    with pytest.raises(MetadataUpdateError) as excinfo:
        pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert excinfo.value.status_code == 409
    assert not fake_jamf.calls_to("POST", UPLOAD)


def test_unchanged_digest_after_upload_is_a_mismatch(fake_jamf, sleeps, pkg_file):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET",
        PACKAGES,
        FakeResponse(200, {"totalCount": 1, "results": [EXISTING_PACKAGE]}),
    )
    fake_jamf.add("GET", DETAIL, FakeResponse(200, {"id": "42", "md5": "old"}))
    fake_jamf.add("GET", POLICIES, FakeResponse(200, {"policies": []}))
    fake_jamf.add("PUT", DETAIL, FakeResponse(200, EXISTING_PACKAGE))
    fake_jamf.add("POST", UPLOAD, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", REINDEX, FakeResponse(204))

    with pytest.raises(ContentMismatchError):
        pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert len(sleeps) == 12


def test_existing_package_without_digest_waits_for_one(fake_jamf, sleeps, pkg_file):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET",
        PACKAGES,
        FakeResponse(200, {"totalCount": 1, "results": [EXISTING_PACKAGE]}),
    )
    fake_jamf.add(
        "GET",
        DETAIL,
        FakeResponse(200, {"id": "42"}),
        FakeResponse(200, {"id": "42", "hashType": "SHA_512", "hashValue": "ab"}),
    )
    fake_jamf.add("GET", POLICIES, FakeResponse(200, {"policies": []}))
    fake_jamf.add("PUT", DETAIL, FakeResponse(200, EXISTING_PACKAGE))
    fake_jamf.add("POST", UPLOAD, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", REINDEX, FakeResponse(204))

    result = pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert result.status == STATUS_UPDATED
    assert result.snapshot.hash_value == "ab"


def test_failed_digest_read_while_waiting_aborts(fake_jamf, sleeps, pkg_file):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET",
        PACKAGES,
        FakeResponse(200, {"totalCount": 1, "results": [EXISTING_PACKAGE]}),
    )
    fake_jamf.add(
        "GET",
        DETAIL,
        FakeResponse(200, {"id": "42", "md5": "old"}),
        FakeResponse(503, text="maintenance"),
    )
    fake_jamf.add("GET", POLICIES, FakeResponse(200, {"policies": []}))
    fake_jamf.add("PUT", DETAIL, FakeResponse(200, EXISTING_PACKAGE))
    fake_jamf.add("POST", UPLOAD, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", REINDEX, FakeResponse(204))

    with pytest.raises(ApiRequestError) as excinfo:
        pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert excinfo.value.status_code == 503
    assert excinfo.value.body == "maintenance"
    assert "read package 42 details" in str(excinfo.value)
    # the first failed poll ends the wait
    assert len(sleeps) == 1
    assert len(fake_jamf.calls_to("GET", DETAIL)) == 2


def test_failed_reindex_aborts_before_waiting(fake_jamf, sleeps, pkg_file):
    authenticated(fake_jamf)
    fake_jamf.add(
        "GET", PACKAGES, FakeResponse(200, {"totalCount": 0, "results": []})
    )
    fake_jamf.add("POST", PACKAGES, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", UPLOAD, FakeResponse(201, {"id": "42"}))
    fake_jamf.add("POST", REINDEX, FakeResponse(403, text="missing privilege"))

    with pytest.raises(ApiRequestError) as excinfo:
        pkg_update.run_update(str(pkg_file), credentials=CREDENTIALS)

    assert excinfo.value.status_code == 403
    assert excinfo.value.body == "missing privilege"
    assert "refresh JCDS inventory" in str(excinfo.value)
    assert sleeps == []
    assert not fake_jamf.calls_to("GET", DETAIL)


@pytest.mark.parametrize("file_name", ["Firefox.zip", "Firefox"])
def test_wrong_extension_is_rejected(fake_jamf, tmp_path, file_name):
    path = tmp_path / file_name
    path.write_bytes(b"x")

    with pytest.raises(ValidationError):
        pkg_update.run_update(str(path), credentials=CREDENTIALS)
    assert fake_jamf.calls == []


def test_missing_file_is_rejected(fake_jamf, tmp_path):
    with pytest.raises(ValidationError) as excinfo:
        pkg_update.run_update(str(tmp_path / "missing.pkg"), credentials=CREDENTIALS)
    assert "File not found" in str(excinfo.value)
    assert fake_jamf.calls == []


def test_out_of_range_priority_is_rejected(fake_jamf, pkg_file):
    with pytest.raises(ValidationError):
        pkg_update.run_update(str(pkg_file), priority=21, credentials=CREDENTIALS)
    assert fake_jamf.calls == []


def test_extension_check_ignores_case(tmp_path):
    path = tmp_path / "Installer.DMG"
    path.write_bytes(b"x")
    pkg_update.validate_package_file(str(path))


def test_resolve_names():
    assert pkg_update.resolve_names("/tmp/Firefox 120.0.pkg") == (
        "Firefox 120.0",
        "Firefox 120.0.pkg",
    )
    assert pkg_update.resolve_names("/tmp/Firefox-120.pkg", "Firefox") == (
        "Firefox",
        "Firefox-120.pkg",
    )
