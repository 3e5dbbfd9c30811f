import json
import logging
import time

from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

LOG = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
IAM_CREDENTIALS_URL = "https://iamcredentials.googleapis.com/v1"
JWT_EXPIRATION_SECONDS = 600


def load_service_account(credentials_path: str) -> service_account.Credentials:
    LOG.info("getting service account credential file")
    return service_account.Credentials.from_service_account_file(
        credentials_path, scopes=[CLOUD_PLATFORM_SCOPE]
    )


def generate_signed_jwt(
    credentials: service_account.Credentials,
    role: str,
    session: AuthorizedSession | None = None,
) -> str:
    """Returns a JWT signed by the service account for a Vault GCP login.

    The audience has to be vault/<role> to be accepted by Vault.
    """
    LOG.info("generating signed JWT with IAM")
    email = credentials.service_account_email
    payload = {
        "sub": email,
        "aud": f"vault/{role}",
        "exp": int(time.time()) + JWT_EXPIRATION_SECONDS,
    }
    if session is None:
        session = AuthorizedSession(credentials)
    response = session.post(
        f"{IAM_CREDENTIALS_URL}/projects/-/serviceAccounts/{email}:signJwt",
        json={"payload": json.dumps(payload)},
    )
    response.raise_for_status()
    return response.json()["signedJwt"]
