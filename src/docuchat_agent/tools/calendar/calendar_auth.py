import asyncio

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from loguru import logger

from docuchat_agent.errors import CalendarNotConnectedError
from docuchat_agent.tools.calendar.token_store import TokenStore

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class CalendarServiceFactory:
    """Builds a Calendar API client from the tokens stored for a session."""

    def __init__(self, token_store: TokenStore, client_id: str, client_secret: str):
        self._token_store = token_store
        self._client_id = client_id
        self._client_secret = client_secret

    async def get_service(self, session_id: str):
        token = self._token_store.get(session_id)
        if token is None:
            raise CalendarNotConnectedError()

        creds = Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=SCOPES,
            expiry=token.expiry,
        )

        if not creds.valid and creds.refresh_token:
            logger.info(f"Refreshing Google token for session {session_id}")
            await asyncio.to_thread(creds.refresh, Request())
            self._token_store.save(
                session_id,
                access_token=creds.token,
                refresh_token=creds.refresh_token,
                expiry=creds.expiry,
            )

        return build("calendar", "v3", credentials=creds, cache_discovery=False)


def create_oauth_flow(client_id: str, client_secret: str, redirect_uri: str) -> Flow:
    client_config = {
        "web": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [redirect_uri],
        }
    }
    # The callback builds a fresh Flow, so no PKCE verifier can be carried over.
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=redirect_uri,
        autogenerate_code_verifier=False,
    )


def authorization_url(client_id: str, client_secret: str, redirect_uri: str, session_id: str) -> str:
    flow = create_oauth_flow(client_id, client_secret, redirect_uri)
    url, _ = flow.authorization_url(
        access_type="offline",
        prompt="consent",
        state=session_id,
    )
    return url


def exchange_code(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    code: str,
    session_id: str,
    token_store: TokenStore,
) -> None:
    """Trade an authorization code for tokens and store them under ``session_id``."""
    flow = create_oauth_flow(client_id, client_secret, redirect_uri)
    flow.fetch_token(code=code)
    creds = flow.credentials
    token_store.save(
        session_id,
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expiry=creds.expiry,
    )
    logger.info(f"Stored Google Calendar tokens for session {session_id}")
