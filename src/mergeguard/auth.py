import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import Callable, Dict, Optional

import jwt

from mergeguard.errors import AuthError, UpstreamError
from mergeguard.github.model import TokenResponse

logger = logging.getLogger("mergeguard")

# cached tokens this close to expiry are treated as missing
TOKEN_SAFETY_MARGIN = timedelta(seconds=30)
JWT_BACKDATE = timedelta(seconds=30)
JWT_LIFETIME = timedelta(seconds=120)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_jwt(client_id: str, private_key: str, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    payload = {
        "iat": int((now - JWT_BACKDATE).timestamp()),
        "exp": int((now + JWT_LIFETIME).timestamp()),
        "iss": client_id,
    }
    try:
        return jwt.encode(payload, private_key, algorithm="RS256")
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise AuthError(f"Failed to create JWT token: {e}") from e


class TokenCache:
    """
    Installation access tokens keyed by installation id.

    The lock only guards the map. Minting happens outside of it, so two
    concurrent misses for the same installation may both mint a token; the
    last one stored wins.
    """

    lock: asyncio.Lock
    tokens: Dict[int, TokenResponse]

    def __init__(
        self,
        gateway,
        client_id: str,
        private_key: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.gateway = gateway
        self.client_id = client_id
        self.private_key = private_key
        self.clock = clock
        self.lock = asyncio.Lock()
        self.tokens = {}

    async def get_cached_token(self, installation_id: int) -> Optional[str]:
        async with self.lock:
            token = self.tokens.get(installation_id)
            if token is None:
                return None
            if self.clock() + TOKEN_SAFETY_MARGIN < token.expires_at:
                logger.debug(
                    "Using cached token for installation ID: %d", installation_id
                )
                return token.token
            logger.debug(
                "Cached token for installation ID %d is expired, fetching a new one",
                installation_id,
            )
            return None

    async def get_token(self, installation_id: int) -> str:
        if (token := await self.get_cached_token(installation_id)) is not None:
            return token

        logger.debug("Getting NEW installation access token for %d", installation_id)
        assertion = make_jwt(self.client_id, self.private_key, now=self.clock())
        try:
            token = await self.gateway.mint_installation_token(
                assertion, installation_id
            )
        except AuthError:
            raise
        except UpstreamError as e:
            raise AuthError(
                f"Failed to get installation token for {installation_id}: {e}",
                status_code=e.status_code,
            ) from e

        async with self.lock:
            self.tokens[installation_id] = token

        return token.token
