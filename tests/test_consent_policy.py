import pytest

from consentledger.permissions.catalog import ScopeCatalog, ScopeDescription
from consentledger.permissions.consent import ConsentLedger, ConsentRecord
from consentledger.permissions.policy import is_consent_required

APP = "admin/app-x"


@pytest.fixture(name="catalog")
def catalog_fixture():
    return ScopeCatalog([ScopeDescription(scope="read"), ScopeDescription(scope="write")])


@pytest.fixture(name="records")
def records_fixture():
    return [ConsentRecord(application=APP, granted_scopes=["read"])]


@pytest.mark.parametrize("scope,required", [
    ("read", False),
    ("read write", True),
    ("write", True),
    ("write read", True),
    ("  read   ", False),
])
def test_subset_check(catalog, records, scope, required):
    assert is_consent_required(records, APP, catalog, scope) is required


def test_empty_catalog_never_requires_consent():
    assert is_consent_required([], APP, ScopeCatalog(), "read write admin") is False


def test_unknown_tokens_are_ignored(records):
    catalog = ScopeCatalog([ScopeDescription(scope="read")])
    assert is_consent_required(records, APP, catalog, "read unknownscope") is False


def test_only_unknown_tokens_do_not_require_consent(catalog):
    assert is_consent_required([], APP, catalog, "openid profile") is False


def test_no_record_requires_consent(catalog):
    assert is_consent_required([], APP, catalog, "read") is True


def test_records_for_other_applications_do_not_count(catalog):
    records = [ConsentRecord(application="admin/app-y", granted_scopes=["read", "write"])]
    assert is_consent_required(records, APP, catalog, "read") is True


def test_any_matching_duplicate_record_satisfies(catalog):
    records = [
        ConsentRecord(application=APP, granted_scopes=["read"]),
        ConsentRecord(application=APP, granted_scopes=["read", "write"]),
    ]
    assert is_consent_required(records, APP, catalog, "read write") is False


def test_revoke_all_behaves_as_never_granted(catalog):
    ledger = ConsentLedger()
    ledger.grant(APP, ["read", "write"])
    assert is_consent_required(ledger.records(), APP, catalog, "read") is False
    ledger.revoke(APP, ["read", "write"])
    assert is_consent_required(ledger.records(), APP, catalog, "read") is True
