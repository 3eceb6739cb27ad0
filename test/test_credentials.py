import pytest

from conftest import create_jwt_json, create_refresh_json
from pinjected_google_auth.credentials import (
    CredentialKind,
    api_key_credential,
    compute_credential,
    credential_from_json,
    iam_credential,
)
from pinjected_google_auth.exceptions import InvalidCredentialFormat, TokenRefreshFailed


def test_service_account_json_creates_key_credential(collaborators):
    json = create_jwt_json()
    credential = credential_from_json(json, collaborators)

    assert credential.kind is CredentialKind.SERVICE_ACCOUNT_KEY
    assert credential.email == json["client_email"]
    assert credential.private_key == json["private_key"]
    assert credential.scopes is None
    assert credential.subject is None
    assert credential.eager_refresh_threshold_millis == 300000


def test_eager_refresh_threshold_can_be_configured(collaborators):
    credential = credential_from_json(
        create_jwt_json(), collaborators, eager_refresh_threshold_millis=5000
    )
    assert credential.eager_refresh_threshold_millis == 5000


def test_single_scope_string_becomes_a_list(collaborators):
    credential = credential_from_json(
        create_jwt_json(), collaborators, scopes="http://examples.com/is/a/scope"
    )
    assert credential.scopes == ["http://examples.com/is/a/scope"]


@pytest.mark.parametrize("field", ["client_email", "private_key"])
def test_service_account_json_requires_field(collaborators, field):
    json = create_jwt_json()
    del json[field]
    with pytest.raises(InvalidCredentialFormat, match=field):
        credential_from_json(json, collaborators)


@pytest.mark.parametrize("field", ["client_id", "client_secret", "refresh_token"])
def test_authorized_user_json_requires_field(collaborators, field):
    json = create_refresh_json()
    del json[field]
    with pytest.raises(InvalidCredentialFormat, match=field):
        credential_from_json(json, collaborators)


@pytest.mark.parametrize("json", [None, {}, "not-a-dict"])
def test_invalid_json_payloads_are_rejected(collaborators, json):
    with pytest.raises(InvalidCredentialFormat):
        credential_from_json(json, collaborators)


def test_unknown_type_is_rejected(collaborators):
    json = dict(create_jwt_json(), type="external_account")
    with pytest.raises(InvalidCredentialFormat, match="external_account"):
        credential_from_json(json, collaborators)


def test_refresh_json_creates_user_credential(collaborators):
    json = create_refresh_json()
    credential = credential_from_json(json, collaborators, eager_refresh_threshold_millis=100)

    assert credential.kind is CredentialKind.USER_REFRESH_TOKEN
    assert credential.info.client_id == json["client_id"]
    assert credential.info.client_secret == json["client_secret"]
    assert credential.info.refresh_token == json["refresh_token"]
    assert credential.email is None
    assert credential.private_key is None
    assert credential.eager_refresh_threshold_millis == 100


def test_kind_cannot_be_reassigned(collaborators):
    credential = credential_from_json(create_jwt_json(), collaborators)
    with pytest.raises(AttributeError):
        credential.kind = CredentialKind.API_KEY


def test_api_key_credential(collaborators):
    credential = api_key_credential("test-123", collaborators, eager_refresh_threshold_millis=100)
    assert credential.kind is CredentialKind.API_KEY
    assert credential.eager_refresh_threshold_millis == 100


@pytest.mark.parametrize("api_key", [None, ""])
def test_api_key_credential_requires_a_key(collaborators, api_key):
    with pytest.raises(InvalidCredentialFormat):
        api_key_credential(api_key, collaborators)


@pytest.mark.asyncio
async def test_api_key_credential_has_no_access_token(collaborators):
    credential = api_key_credential("test-123", collaborators)
    with pytest.raises(TokenRefreshFailed):
        await credential.a_get_access_token()
    assert await credential.a_get_request_headers() == {}


@pytest.mark.asyncio
async def test_iam_credential_passes_selector_and_token(collaborators):
    credential = iam_credential("a-test-selector", "a-test-token", collaborators)
    headers = await credential.a_get_request_headers()

    assert headers["x-goog-iam-authority-selector"] == "a-test-selector"
    assert headers["x-goog-iam-authorization-token"] == "a-test-token"


def test_describe_names_the_identity(collaborators):
    assert "hello@youarecool.com" in credential_from_json(create_jwt_json(), collaborators).describe()
    assert "default" in compute_credential(collaborators).describe()
