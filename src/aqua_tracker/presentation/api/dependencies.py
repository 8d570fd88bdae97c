from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from aqua_tracker.application.use_cases.auth_token_manager import AuthorizedRequester, AuthTokenManager
from aqua_tracker.config import Settings, settings
from aqua_tracker.infrastructure.adapters.aquacloud.client import AquaCloudClient
from aqua_tracker.infrastructure.adapters.http.httpx_executor import HttpxRequestExecutor
from aqua_tracker.infrastructure.adapters.session.memory_store import InMemorySessionStore


@dataclass
class Container:
    executor: HttpxRequestExecutor
    tokens: AuthTokenManager
    tracker: AquaCloudClient
    store: InMemorySessionStore


def build_container(cfg: Settings = settings, executor: HttpxRequestExecutor | None = None) -> Container:
    # Single executor shared by every session
    executor = executor or HttpxRequestExecutor(timeout=cfg.http_timeout)
    tokens = AuthTokenManager(executor, expiry_margin=timedelta(seconds=cfg.token_expiry_margin_seconds))
    tracker = AquaCloudClient(executor, AuthorizedRequester(tokens))
    store = InMemorySessionStore(idle_ttl_hours=cfg.session_idle_hours)
    return Container(executor=executor, tokens=tokens, tracker=tracker, store=store)
