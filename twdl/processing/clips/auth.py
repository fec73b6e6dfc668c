import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

import requests
from pydantic import ValidationError

from twdl.config import Settings, settings as default_settings
from twdl.errors import AuthError, ConfigError
from twdl.models import AccessToken, Credentials

logger = logging.getLogger(__name__)


def load_credentials(path: Optional[Union[str, Path]] = None,
                     settings: Optional[Settings] = None) -> Credentials:
    """
    Read credentials from a JSON file {"client_id": ..., "client_secret": ...}.
    Without a path, fall back to TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET.
    """
    settings = settings or default_settings
    if path is None:
        if settings.twitch_client_id and settings.twitch_client_secret:
            return Credentials(client_id=settings.twitch_client_id,
                               client_secret=settings.twitch_client_secret)
        raise ConfigError(
            "Twitch credentials are required: pass a credentials file or set "
            "TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET"
        )

    path = Path(path)
    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"could not read credentials file {path}: {e}") from e

    try:
        return Credentials.model_validate_json(contents)
    except ValidationError as e:
        raise ConfigError(f"credentials file {path} has invalid formatting: {e}") from e


class TokenManager:
    """Exchanges client credentials for an app access token, once per process."""

    def __init__(self, http: Optional[requests.Session] = None, settings: Optional[Settings] = None):
        self.http = http or requests.Session()
        self.settings = settings or default_settings
        self._tokens: dict[str, AccessToken] = {}

    def acquire(self, credentials: Credentials) -> AccessToken:
        """Return the cached token for these credentials, fetching it on first use."""
        cached = self._tokens.get(credentials.client_id)
        if cached is not None:
            return cached

        token = self._exchange(credentials)
        self._tokens[credentials.client_id] = token
        return token

    def _exchange(self, credentials: Credentials) -> AccessToken:
        """Obtain OAuth token using client credentials flow."""
        try:
            resp = self.http.post(
                self.settings.twitch_token_url,
                params={
                    "client_id": credentials.client_id,
                    "client_secret": credentials.client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=self.settings.request_timeout,
            )
            resp.raise_for_status()
        except requests.HTTPError as e:
            logger.error("Twitch rejected the client credentials: %s", e)
            raise AuthError(f"token exchange rejected: {e}") from e
        except requests.RequestException as e:
            logger.error("Error obtaining Twitch token: %s", e)
            raise AuthError(f"token exchange failed: {e}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise AuthError("token endpoint returned malformed JSON") from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise AuthError("No access_token returned from Twitch")

        expires_at = None
        expires_in = body.get("expires_in")
        if isinstance(expires_in, (int, float)):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

        logger.info("Obtained app access token (expires %s)", expires_at.isoformat() if expires_at else "never")
        return AccessToken(value=access_token, client_id=credentials.client_id, expires_at=expires_at)
