import pytest

from consentledger.permissions.consent import ConsentLedger, ConsentRecord
from consentledger.permissions.errors import InvalidRequestError


def record(application, *scopes):
    return ConsentRecord(application=application, granted_scopes=list(scopes))


def test_grant_creates_deduplicated_record():
    ledger = ConsentLedger()
    assert ledger.grant("admin/app-x", ["read", "write", "read"]) == ["read", "write"]
    assert ledger.records() == [record("admin/app-x", "read", "write")]


def test_grant_appends_new_scopes_after_existing_ones():
    ledger = ConsentLedger.from_records([record("admin/app-x", "b", "a")])
    assert ledger.grant("admin/app-x", ["c", "a", "d"]) == ["c", "d"]
    assert ledger.records() == [record("admin/app-x", "b", "a", "c", "d")]


def test_grant_is_idempotent():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["read", "write"])
    once = ledger.records()
    assert ledger.grant("admin/app-x", ["read", "write"]) == []
    assert ledger.records() == once


def test_grant_with_no_scopes_creates_no_record():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", [])
    assert ledger.records() == []


def test_partial_revoke_preserves_remainder_order():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["a", "b", "c"])
    assert ledger.revoke("admin/app-x", ["b"]) == ["b"]
    assert ledger.records() == [record("admin/app-x", "a", "c")]


def test_revoke_all_deletes_record():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["a", "b"])
    ledger.revoke("admin/app-x", ["a", "b"])
    assert ledger.records() == []


def test_revoke_is_idempotent():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["a", "b", "c"])
    ledger.revoke("admin/app-x", ["a"])
    once = ledger.records()
    assert ledger.revoke("admin/app-x", ["a"]) == []
    assert ledger.records() == once


def test_revoke_unknown_application_is_noop():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["a"])
    assert ledger.revoke("admin/app-z", ["a"]) == []
    assert ledger.records() == [record("admin/app-x", "a")]


def test_revoke_leaves_other_applications_untouched():
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["a", "b"])
    ledger.grant("admin/app-y", ["a", "b"])
    ledger.revoke("admin/app-x", ["a", "b"])
    assert ledger.records() == [record("admin/app-y", "a", "b")]


def test_revoke_carries_other_records_forward_as_loaded():
    """Duplicate or empty records of other applications survive a revoke unchanged."""
    ledger = ConsentLedger.from_records([
        record("admin/app-y", "a"),
        record("admin/app-y", "b"),
        record("admin/app-z"),
        record("admin/app-x", "c"),
    ])
    ledger.revoke("admin/app-x", ["c"])
    assert ledger.records() == [
        record("admin/app-y", "a"),
        record("admin/app-y", "b"),
        record("admin/app-z"),
    ]


def test_revoke_applies_to_every_record_of_the_target():
    ledger = ConsentLedger.from_records([
        record("admin/app-x", "a", "b"),
        record("admin/app-y", "a"),
        record("admin/app-x", "a"),
    ])
    assert ledger.revoke("admin/app-x", ["a"]) == ["a"]
    assert ledger.records() == [record("admin/app-x", "b"), record("admin/app-y", "a")]


def test_grant_merges_into_first_record_of_the_target():
    ledger = ConsentLedger.from_records([record("admin/app-x", "a"), record("admin/app-x", "b")])
    ledger.grant("admin/app-x", ["c"])
    assert ledger.records() == [record("admin/app-x", "a", "c"), record("admin/app-x", "b")]


@pytest.mark.parametrize("application,scopes", [("", ["a"]), ("admin/app-x", [])])
def test_revoke_rejects_empty_input(application, scopes):
    ledger = ConsentLedger()
    ledger.grant("admin/app-x", ["a"])
    with pytest.raises(InvalidRequestError):
        ledger.revoke(application, scopes)
    assert ledger.records() == [record("admin/app-x", "a")]


def test_record_serializes_with_camel_case_keys():
    parsed = ConsentRecord.model_validate({"application": "admin/app-x", "grantedScopes": ["a"]})
    assert parsed.model_dump(by_alias=True) == {"application": "admin/app-x", "grantedScopes": ["a"]}
