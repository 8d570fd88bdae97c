from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt

from aqua_tracker.application.ports.request_executor_port import FormBody, RequestExecutorPort
from aqua_tracker.domain.errors import AuthenticationError
from aqua_tracker.domain.model import EXPIRY_SAFETY_MARGIN, AuthToken, Credential, Session
from aqua_tracker.domain.outcomes import AuthFailure, RequestOutcome, Success, describe
from aqua_tracker.metrics import TOKEN_EVENTS

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class AuthTokenManager:
    """Per-session token state machine: cached token, then refresh, then password login.

    At most one refresh and one login are attempted per call. A failed refresh
    falls through to login; a failed login is terminal.
    """

    def __init__(
        self,
        executor: RequestExecutorPort,
        *,
        clock: Clock | None = None,
        expiry_margin: timedelta = EXPIRY_SAFETY_MARGIN,
    ) -> None:
        self.executor = executor
        self.clock = clock or SystemClock()
        self.expiry_margin = expiry_margin

    @staticmethod
    def token_url(session: Session) -> str:
        return f"{session.credentials.api_url}/token"

    async def get_authorization(self, session: Session) -> Credential:
        now = self.clock.now()
        token = session.token_state
        if token is not None and token.is_valid(now):
            TOKEN_EVENTS.labels(event="cached").inc()
            return token.credential()

        if token is not None:
            refreshed = await self._refresh(session, token)
            if refreshed is not None:
                return refreshed.credential()

        return (await self._login(session)).credential()

    def invalidate(self, session: Session) -> None:
        """Forces the next get_authorization into refresh-or-login, keeping the refresh token."""
        if session.token_state is not None:
            session.token_state = session.token_state.expired()

    async def _refresh(self, session: Session, token: AuthToken) -> AuthToken | None:
        username = session.credentials.username
        logger.info("Refreshing Tracker token for user %s", username)
        outcome = await self.executor.execute(
            self.token_url(session),
            "POST",
            None,
            FormBody({"grant_type": "refresh_token", "refresh_token": token.refresh_token}),
        )
        if isinstance(outcome, Success):
            try:
                new_token = AuthToken.from_token_response(
                    outcome.payload,
                    now=self.clock.now(),
                    previous_refresh_token=token.refresh_token,
                    margin=self.expiry_margin,
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Token refresh for %s returned a malformed body: %s", username, e)
            else:
                session.token_state = new_token
                TOKEN_EVENTS.labels(event="refreshed").inc()
                return new_token
        else:
            logger.warning(
                "Token refresh failed for %s, will attempt to log in again: %s", username, describe(outcome)
            )
        TOKEN_EVENTS.labels(event="refresh_failed").inc()
        return None

    async def _login(self, session: Session) -> AuthToken:
        creds = session.credentials
        logger.info("Performing full Tracker login for user %s", creds.username)
        outcome = await self.executor.execute(
            self.token_url(session),
            "POST",
            None,
            FormBody({"grant_type": "password", "username": creds.username, "password": creds.password}),
        )
        if isinstance(outcome, Success):
            try:
                token = AuthToken.from_token_response(
                    outcome.payload, now=self.clock.now(), margin=self.expiry_margin
                )
            except (KeyError, TypeError, ValueError) as e:
                session.token_state = None
                TOKEN_EVENTS.labels(event="login_failed").inc()
                raise AuthenticationError(
                    f"Tracker login for {creds.username} returned a malformed token response: {e}",
                    payload=outcome.payload,
                ) from e
            session.token_state = token
            TOKEN_EVENTS.labels(event="login").inc()
            return token

        logger.error("Failed to acquire Tracker token via login for %s: %s", creds.username, describe(outcome))
        session.token_state = None
        TOKEN_EVENTS.labels(event="login_failed").inc()
        raise AuthenticationError(
            f"Failed to authenticate {creds.username} with the Tracker",
            status=getattr(outcome, "status", None),
            payload=getattr(outcome, "payload", None),
        )


def _is_auth_failure(outcome: RequestOutcome) -> bool:
    return isinstance(outcome, AuthFailure)


def _last_outcome(retry_state: RetryCallState) -> RequestOutcome:
    return retry_state.outcome.result()


class AuthorizedRequester:
    """Runs one Tracker request with a valid credential.

    A 401 on a credential believed valid triggers exactly one forced
    refresh-or-login and one retry; a second 401 is handed back to the caller.
    """

    def __init__(self, tokens: AuthTokenManager) -> None:
        self.tokens = tokens

    async def call(
        self,
        session: Session,
        request: Callable[[Credential], Awaitable[RequestOutcome]],
    ) -> RequestOutcome:
        async def attempt() -> RequestOutcome:
            credential = await self.tokens.get_authorization(session)
            return await request(credential)

        def force_reauthorization(retry_state: RetryCallState) -> None:
            logger.info("Tracker access token rejected for %s, re-authorizing", session.credentials.username)
            self.tokens.invalidate(session)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(2),
            retry=retry_if_result(_is_auth_failure),
            before_sleep=force_reauthorization,
            retry_error_callback=_last_outcome,
        )
        return await retrying(attempt)
