import base64
import json

import httpx
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from conftest import FIXED_PROJECT_ID, SERVICE_ACCOUNTS_URL, TOKEN_URL, create_jwt_json, create_refresh_json
from pinjected_google_auth.credentials import (
    api_key_credential,
    compute_credential,
    credential_from_json,
)
from pinjected_google_auth.exceptions import (
    InvalidCredentialFormat,
    ProjectIdNotFound,
    RequestError,
    SigningUnavailable,
)
from pinjected_google_auth.metadata import MetadataClient
from pinjected_google_auth.signer import Signer, sign_blob_url, sign_locally

EMAIL = "service-account@example.iam.gserviceaccount.com"
SIGN_BLOB_URL = sign_blob_url(FIXED_PROJECT_ID, EMAIL)


def make_signer(collaborators, project_id=FIXED_PROJECT_ID) -> Signer:
    async def a_project_id():
        if project_id is None:
            raise ProjectIdNotFound("no project")
        return project_id

    return Signer(collaborators, MetadataClient(collaborators), a_project_id)


def test_sign_blob_url():
    assert SIGN_BLOB_URL == (
        "https://iam.googleapis.com/v1/projects/my-awesome-project"
        "/serviceAccounts/service-account@example.iam.gserviceaccount.com:signBlob"
    )


def test_local_signature_matches_rsa_sha256(private_key, private_key_pem):
    expected = private_key.sign(b"abc123", padding.PKCS1v15(), hashes.SHA256())
    assert sign_locally(private_key_pem, "abc123") == base64.b64encode(expected).decode("ascii")
    assert sign_locally(private_key_pem, b"abc123") == base64.b64encode(expected).decode("ascii")


def test_unloadable_key_is_a_format_error():
    with pytest.raises(InvalidCredentialFormat):
        sign_locally("privatekey", "abc123")


@pytest.mark.asyncio
async def test_key_credential_signs_without_network(collaborators, server, private_key, private_key_pem):
    credential = credential_from_json(dict(create_jwt_json(), private_key=private_key_pem), collaborators)

    signature = await make_signer(collaborators).a_sign(credential, "abc123")

    expected = private_key.sign(b"abc123", padding.PKCS1v15(), hashes.SHA256())
    assert base64.b64decode(signature) == expected
    assert server.calls == []


@pytest.mark.asyncio
async def test_compute_credential_signs_through_iam(collaborators, server):
    server.add("GET", SERVICE_ACCOUNTS_URL, httpx.Response(200, json={"default": {"email": EMAIL}}))
    server.add("GET", TOKEN_URL, httpx.Response(200, json={"access_token": "abc123", "expires_in": 3600}))
    server.add("POST", SIGN_BLOB_URL, httpx.Response(200, json={"signature": "c2lnbmVk"}))

    signature = await make_signer(collaborators).a_sign(compute_credential(collaborators), "payload")

    assert signature == "c2lnbmVk"
    assert len(server.calls_to(TOKEN_URL)) == 1
    (sign_call,) = server.calls_to(SIGN_BLOB_URL)
    assert sign_call.headers["Authorization"] == "Bearer abc123"
    assert json.loads(sign_call.content) == {"bytesToSign": base64.b64encode(b"payload").decode("ascii")}
    assert server.calls_to(SERVICE_ACCOUNTS_URL)[0].url.params["recursive"] == "true"
    server.assert_all_consumed()


@pytest.mark.asyncio
async def test_sign_blob_error_propagates(collaborators, server):
    server.add("GET", SERVICE_ACCOUNTS_URL, httpx.Response(200, json={"default": {"email": EMAIL}}))
    server.add("GET", TOKEN_URL, httpx.Response(200, json={"access_token": "abc123"}))
    server.add(
        "POST",
        SIGN_BLOB_URL,
        httpx.Response(403, json={"error": {"code": 403, "message": "denied", "errors": [{"message": "denied"}]}}),
    )

    with pytest.raises(RequestError) as e:
        await make_signer(collaborators).a_sign(compute_credential(collaborators), "payload")
    assert e.value.status == 403


@pytest.mark.asyncio
async def test_compute_without_project_cannot_sign(collaborators, server):
    with pytest.raises(SigningUnavailable):
        await make_signer(collaborators, project_id=None).a_sign(compute_credential(collaborators), "x")
    assert server.calls == []


@pytest.mark.asyncio
async def test_compute_without_email_cannot_sign(collaborators, server):
    server.add("GET", SERVICE_ACCOUNTS_URL, httpx.Response(200, json={"default": {}}))
    with pytest.raises(SigningUnavailable):
        await make_signer(collaborators).a_sign(compute_credential(collaborators), "x")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "make_credential",
    [
        lambda c: credential_from_json(create_refresh_json(), c),
        lambda c: api_key_credential("test-123", c),
    ],
)
async def test_credentials_without_key_or_delegation_cannot_sign(collaborators, server, make_credential):
    with pytest.raises(SigningUnavailable):
        await make_signer(collaborators).a_sign(make_credential(collaborators), "x")
    assert server.calls == []


@pytest.mark.asyncio
async def test_sign_blob_response_without_signature(collaborators, server):
    server.add("GET", SERVICE_ACCOUNTS_URL, httpx.Response(200, json={"default": {"email": EMAIL}}))
    server.add("GET", TOKEN_URL, httpx.Response(200, json={"access_token": "abc123"}))
    server.add("POST", SIGN_BLOB_URL, httpx.Response(200, json={"keyId": "k"}))

    with pytest.raises(SigningUnavailable, match="signature"):
        await make_signer(collaborators).a_sign(compute_credential(collaborators), "payload")
