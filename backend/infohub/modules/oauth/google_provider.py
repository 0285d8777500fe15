"""Google sign-in for staff and parent accounts."""

import httpx
from typing import Optional, Dict, Any
from urllib.parse import urlencode
from google.auth import exceptions as google_exceptions
from google.oauth2 import id_token
from google.auth.transport import requests as google_requests

from infohub.core.config import settings
from infohub.core.logging_config import logger

VALID_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


def _profile(info: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "google_id": info.get("sub"),
        "email": info.get("email"),
        "email_verified": info.get("email_verified", False),
        "full_name": info.get("name", ""),
        "avatar_url": info.get("picture", ""),
        "given_name": info.get("given_name", ""),
        "family_name": info.get("family_name", ""),
    }


class GoogleOAuthProvider:
    """Authorization-code flow and ID-token verification against Google."""

    GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

    def __init__(self, client_id: str = None, client_secret: str = None,
                 redirect_uri: str = None, transport: httpx.AsyncBaseTransport = None):
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "online",
            "prompt": "select_account",
        }
        if state:
            params["state"] = state
        return f"{self.GOOGLE_AUTH_URL}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=10.0)

    async def exchange_code_for_tokens(self, code: str) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(
                self.GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
            response.raise_for_status()
            return response.json()

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(
                self.GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            return response.json()

    def verify_id_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify the credential posted by the Google Sign-In button.

        Returns the profile, or None when the token is invalid.
        """
        try:
            idinfo = id_token.verify_oauth2_token(token, google_requests.Request(), self.client_id)
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.warning(f"[GoogleOAuth] Invalid ID token: {e}")
            return None

        if idinfo.get("iss") not in VALID_ISSUERS:
            logger.warning("[GoogleOAuth] Invalid token issuer")
            return None
        return _profile(idinfo)

    async def authenticate(self, code: str) -> Optional[Dict[str, Any]]:
        """
        Exchange the authorization code and fetch the profile.

        Returns None if Google rejects the code or cannot be reached.
        """
        try:
            tokens = await self.exchange_code_for_tokens(code)
            access_token = tokens.get("access_token")
            if not access_token:
                logger.error("[GoogleOAuth] No access token received from token exchange")
                return None
            return _profile(await self.get_user_info(access_token))
        except httpx.HTTPStatusError as e:
            logger.error(f"[GoogleOAuth] HTTP error during authentication: {e.response.status_code} - {e.response.text}")
            return None
        except httpx.RequestError as e:
            logger.error(f"[GoogleOAuth] Request error during authentication: {e}")
            return None


google_oauth = GoogleOAuthProvider()
