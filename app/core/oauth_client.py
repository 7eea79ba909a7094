"""
Google OAuth client.
Exchanges an authorization code for tokens and fetches the user's profile.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class OAuthProviderError(Exception):
    """Raised when Google rejects the code or cannot be reached."""
    pass


@dataclass
class GoogleProfile:
    """What a Google login tells us about the user."""
    provider_account_id: str
    email: str
    name: Optional[str]
    image: Optional[str]
    access_token: Optional[str]
    refresh_token: Optional[str]
    id_token: Optional[str]
    scope: Optional[str]


class GoogleOAuthClient:
    """
    Client for Google's OAuth 2.0 token and userinfo endpoints.

    Example:
        ```python
        profile = await google_oauth_client.fetch_profile(code)
        ```
    """

    provider = "google"

    def __init__(self):
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.redirect_uri = settings.google_redirect_uri
        self.token_url = settings.google_token_url
        self.userinfo_url = settings.google_userinfo_url
        self.timeout = settings.oauth_timeout

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        code: str,
        redirect_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        response = await client.post(
            self.token_url,
            data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": redirect_uri or self.redirect_uri,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )

        if not response.is_success:
            raise OAuthProviderError(
                f"Token exchange failed (status {response.status_code}): {response.text[:200]}"
            )

        token_data = response.json()
        if "access_token" not in token_data:
            raise OAuthProviderError("Token exchange returned no access token")
        return token_data

    async def get_userinfo(self, client: httpx.AsyncClient, access_token: str) -> Dict[str, Any]:
        response = await client.get(
            self.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
        )

        if not response.is_success:
            raise OAuthProviderError(
                f"Userinfo request failed (status {response.status_code}): {response.text[:200]}"
            )

        return response.json()

    async def fetch_profile(self, code: str, redirect_uri: Optional[str] = None) -> GoogleProfile:
        """
        Run the full code exchange.

        Args:
            code: Authorization code from the consent redirect
            redirect_uri: Redirect URI used to obtain the code (defaults to settings)

        Returns:
            GoogleProfile

        Raises:
            OAuthProviderError: If Google rejects the code, the profile has no
                verified email, or the request fails
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                token_data = await self.exchange_code(client, code, redirect_uri)
                userinfo = await self.get_userinfo(client, token_data["access_token"])
            except httpx.HTTPError as e:
                logger.warning("Google OAuth request failed: %s", e)
                raise OAuthProviderError(f"Google OAuth request failed: {e}") from e

        email = userinfo.get("email")
        if not userinfo.get("sub"):
            raise OAuthProviderError("Google profile has no subject identifier")
        if not email or userinfo.get("email_verified") is False:
            raise OAuthProviderError("Google account has no verified email")

        return GoogleProfile(
            provider_account_id=str(userinfo["sub"]),
            email=email.lower(),
            name=userinfo.get("name"),
            image=userinfo.get("picture"),
            access_token=token_data.get("access_token"),
            refresh_token=token_data.get("refresh_token"),
            id_token=token_data.get("id_token"),
            scope=token_data.get("scope"),
        )


# Global client instance
google_oauth_client = GoogleOAuthClient()
