import pytest

from consentledger.permissions.catalog import (
    UNDEFINED_SCOPE_DESCRIPTION,
    ScopeCatalog,
    ScopeDescription,
    suggest_default_scopes,
    validate_custom_scopes,
)
from consentledger.permissions.errors import InvalidScopeError


@pytest.fixture(name="catalog")
def catalog_fixture():
    return ScopeCatalog([
        ScopeDescription(scope="read", display_name="Read", description="Read your files"),
        ScopeDescription(scope="write"),
    ])


def test_filter_keeps_only_declared_scopes(catalog: ScopeCatalog):
    assert catalog.filter(["openid", "write", "read", "write"]).to_list() == ["write", "read"]


def test_describe_falls_back_for_unknown_scopes(catalog: ScopeCatalog):
    described = catalog.describe(["read", "write", "openid"])
    assert [d.scope for d in described] == ["read", "write", "openid"]
    assert described[0].display_name == "Read"
    assert described[1].display_name == "write"
    assert described[2].description == UNDEFINED_SCOPE_DESCRIPTION


def test_scope_description_accepts_camel_case():
    item = ScopeDescription.model_validate({"scope": "read", "displayName": "Read"})
    assert item.display_name == "Read"
    assert item.model_dump(by_alias=True)["displayName"] == "Read"


@pytest.mark.parametrize("scopes", [
    [ScopeDescription(scope="  ")],
    [ScopeDescription(scope="read"), None],
    [ScopeDescription(scope="read"), ScopeDescription(scope="read")],
])
def test_validate_custom_scopes_rejects_bad_catalogs(scopes):
    with pytest.raises(InvalidScopeError):
        validate_custom_scopes(scopes)


def test_validate_custom_scopes_accepts_valid_catalog():
    validate_custom_scopes([ScopeDescription(scope="read"), ScopeDescription(scope="write")])


def test_suggest_default_scopes_skips_declared_ones():
    catalog = ScopeCatalog([ScopeDescription(scope=" OpenID "), ScopeDescription(scope="email")])
    suggested = [s.scope for s in suggest_default_scopes(catalog)]
    assert suggested == ["profile", "address", "phone", "offline_access"]
