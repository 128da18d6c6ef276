"""Access-token providers for the Vertex AI backend."""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Optional, Sequence

import google.auth
import google.auth.credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request

from .base import AccessToken, CredentialsProvider
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class GoogleCredentialsProvider:
    """Obtains tokens from Application Default Credentials.

    Credentials are resolved once and refreshed whenever the cached token is
    missing or expired.
    """

    def __init__(self, scopes: Sequence[str] = (CLOUD_PLATFORM_SCOPE,)):
        self.scopes = list(scopes)
        self._credentials = None
        self._lock = threading.Lock()

    def _get_credentials(self):
        """Lazy resolution of Application Default Credentials."""
        if self._credentials is None:
            try:
                self._credentials, _ = google.auth.default(scopes=self.scopes)
            except GoogleAuthError as e:
                raise AuthenticationError(
                    f"Could not load Google credentials: {e}. "
                    "Run: gcloud auth application-default login"
                ) from e
        return self._credentials

    def get_access_token(self) -> AccessToken:
        """Return a valid bearer token.

        Raises:
            AuthenticationError: If credentials cannot be loaded or refreshed.
        """
        with self._lock:
            credentials = self._get_credentials()
            if not credentials.valid:
                logger.debug("Refreshing Google access token")
                try:
                    credentials.refresh(Request())
                except GoogleAuthError as e:
                    raise AuthenticationError(f"Failed to refresh access token: {e}") from e

            expiry = None
            if credentials.expiry is not None:
                # google-auth reports expiry as a naive UTC datetime.
                expiry = credentials.expiry.replace(tzinfo=timezone.utc).timestamp()
            return AccessToken(token=credentials.token, expiry=expiry)


class StaticTokenProvider:
    """Serves a pre-issued access token."""

    def __init__(self, token: str):
        if not token:
            raise AuthenticationError("Access token must not be empty")
        self._token = AccessToken(token=token)

    def get_access_token(self) -> AccessToken:
        return self._token

    @classmethod
    def from_env(cls) -> Optional[StaticTokenProvider]:
        """Create a provider from VERTEX_ACCESS_TOKEN, or None if it is unset."""
        token = os.getenv("VERTEX_ACCESS_TOKEN")
        return cls(token) if token else None


class ProviderCredentials(google.auth.credentials.Credentials):
    """google-auth credentials that draw tokens from a CredentialsProvider.

    Lets the google-genai SDK authenticate with the same token source as the
    REST transport.
    """

    def __init__(self, provider: CredentialsProvider):
        super().__init__()
        self.provider = provider

    def refresh(self, request) -> None:
        access_token = self.provider.get_access_token()
        self.token = access_token.token
        if access_token.expiry is None:
            self.expiry = None
        else:
            # google-auth compares against a naive UTC datetime.
            self.expiry = datetime.fromtimestamp(access_token.expiry, tz=timezone.utc).replace(
                tzinfo=None
            )
