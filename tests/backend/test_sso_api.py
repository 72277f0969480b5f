"""Tests for the SAML configuration API."""

from __future__ import annotations
from fastapi import status
from fastapi.testclient import TestClient


def _sso_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "ownerId": "org-1",
        "authProvider": "okta-saml",
        "entryPoint": "https://example.okta.com/app/x/sso/saml",
        "issuer": "http://www.okta.com/xxx",
        "cert": "CERT",
    }
    payload.update(overrides)
    return payload


def test_put_sso_config_creates_inactive_config(api_client: TestClient) -> None:
    """Saving the SSO form stores the config inactive with SP URLs."""

    response = api_client.put("/api/sso-config", json=_sso_payload())

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["ownerId"] == "org-1"
    assert body["authProvider"] == "okta-saml"
    assert body["isActive"] is False
    assert body["acsUrl"] == f"https://auth.example.com/api/v1/sso/saml2/{body['id']}"
    assert body["entityId"] == "https://auth.example.com"

    fetched = api_client.get("/api/sso-config", params={"ownerId": "org-1"})
    assert fetched.json() == body


def test_put_sso_config_keeps_id_and_resets_activation(
    api_client: TestClient,
) -> None:
    """Updating an active config leaves it inactive again."""

    created = api_client.put("/api/sso-config", json=_sso_payload()).json()
    activated = api_client.patch(
        f"/api/sso-config/{created['id']}/activation", json={"isActive": True}
    )
    assert activated.json()["isActive"] is True

    updated = api_client.put(
        "/api/sso-config", json=_sso_payload(issuer="http://www.okta.com/yyy")
    ).json()

    assert updated["id"] == created["id"]
    assert updated["issuer"] == "http://www.okta.com/yyy"
    assert updated["isActive"] is False


def test_activation_requires_complete_config(api_client: TestClient) -> None:
    """Activating a config without a certificate is a validation error."""

    created = api_client.put("/api/sso-config", json=_sso_payload(cert="")).json()

    response = api_client.patch(
        f"/api/sso-config/{created['id']}/activation", json={"isActive": True}
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
    assert response.json()["detail"]["code"] == "config.invalid"


def test_get_missing_sso_config(api_client: TestClient) -> None:
    """Unknown owners return 404 with a structured detail."""

    response = api_client.get("/api/sso-config", params={"ownerId": "ghost"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"]["code"] == "not_found"


def test_profile_labels_and_urls(api_client: TestClient) -> None:
    """Profiles carry vendor labels and, once configured, the SP URLs."""

    generic = api_client.get("/api/sso-config/profile", params={"authProvider": "x"})
    assert generic.json()["acsUrlLabel"] == "ACS URL"
    assert generic.json()["acsUrl"] is None

    created = api_client.put(
        "/api/sso-config", json=_sso_payload(authProvider="azure-saml")
    ).json()
    profile = api_client.get(
        "/api/sso-config/profile",
        params={"authProvider": "azure-saml", "ownerId": "org-1"},
    ).json()

    assert profile["entryPointLabel"] == "Login URL"
    assert profile["acsUrl"] == created["acsUrl"]


def test_list_providers(api_client: TestClient) -> None:
    """All supported vendors are listed with display names."""

    response = api_client.get("/api/sso-config/providers")

    assert {"label": "Google SAML", "value": "google-saml"} in response.json()
