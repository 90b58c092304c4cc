import asyncio
import logging

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from finko.core.config import config
from finko.core.exceptions import ConfigurationError, GmailAPIError

logger = logging.getLogger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"


class GmailAuth:
    """
    Google OAuth for the web consent flow and refresh-token credentials.

    Access tokens are never cached: every Gmail call derives a fresh one from
    the stored refresh token.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
    ):
        self.client_id = client_id if client_id is not None else config.google_client_id
        self.client_secret = (
            client_secret if client_secret is not None else config.google_client_secret
        )
        self.redirect_uri = (
            redirect_uri if redirect_uri is not None else config.gmail_auth_redirect_uri
        )

    def _flow(self) -> Flow:
        if not self.client_id or not self.client_secret or not self.redirect_uri:
            raise ConfigurationError(
                "Google OAuth is not configured. Set GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GMAIL_AUTH_REDIRECT_URI"
            )
        client_config = {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }
        # The callback runs on a fresh Flow, so no PKCE verifier can be carried over
        flow = Flow.from_client_config(
            client_config, scopes=GMAIL_SCOPES, autogenerate_code_verifier=False
        )
        flow.redirect_uri = self.redirect_uri
        return flow

    def generate_auth_url(self, state: str) -> str:
        url, _ = self._flow().authorization_url(
            access_type="offline", prompt="consent", state=state
        )
        return url

    async def exchange_code(self, code: str) -> str:
        """Trade the callback code for a refresh token."""

        def _exchange() -> str:
            flow = self._flow()
            flow.fetch_token(code=code)
            refresh_token = flow.credentials.refresh_token
            if not refresh_token:
                raise GmailAPIError("Google did not return a refresh token")
            return refresh_token

        try:
            return await asyncio.to_thread(_exchange)
        except (OAuth2Error, GoogleAuthError) as e:
            logger.error(f"OAuth code exchange failed: {e}")
            raise GmailAPIError(f"code exchange failed: {e}")

    def credentials(self, refresh_token: str) -> Credentials:
        """Blocking: refreshes right away so each call starts with a fresh access token."""
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            token_uri=TOKEN_URI,
            scopes=GMAIL_SCOPES,
        )
        try:
            creds.refresh(Request())
        except GoogleAuthError as e:
            logger.error(f"Could not refresh Gmail access token: {e}")
            raise GmailAPIError(f"token refresh failed: {e}")
        return creds
