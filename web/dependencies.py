"""
Request Dependencies - Services, identity and client metadata for routes.

Services are built once per application on first use, so importing the
app does not open the record store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, Request

from core.identity.auth import AuthService, TokenService, resolve_user
from core.management import MasterDataService, UserService
from core.schema import Actor
from core.stats import StatsService
from core.store.database import Database, get_database
from core.workflow import ClientMeta, NotificationService, NotificationSink, WorkflowEngine
from utils.config import Config

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a route handler needs, wired to one database."""

    config: Config
    database: Database
    tokens: TokenService
    auth: AuthService
    engine: WorkflowEngine
    notifications: NotificationService
    users: UserService
    master_data: MasterDataService
    stats: StatsService

    @classmethod
    def build(
        cls,
        config: Config,
        database: Optional[Database] = None,
        sink: Optional[NotificationSink] = None,
    ) -> "Services":
        database = database or get_database(config.database_url)
        tokens = TokenService(config.token_secret, config.token_ttl_hours)
        return cls(
            config=config,
            database=database,
            tokens=tokens,
            auth=AuthService(database, tokens),
            engine=WorkflowEngine(database, sink, config.file_code_prefix),
            notifications=NotificationService(database),
            users=UserService(database),
            master_data=MasterDataService(database),
            stats=StatsService(database),
        )


def services_for(app) -> Services:
    """The services attached to an application, built on first use."""
    state = app.state
    if getattr(state, "services", None) is None:
        state.services = Services.build(state.config, state.database, state.sink)
    return state.services


def get_services(request: Request) -> Services:
    return services_for(request.app)


def client_meta(request: Request) -> ClientMeta:
    return ClientMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@dataclass(frozen=True)
class Principal:
    """The authenticated account: its actor context and public profile."""

    actor: Actor
    profile: dict


def current_principal(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> Principal:
    with services.database.session_scope() as session:
        user = resolve_user(session, services.tokens, authorization)
        return Principal(actor=user.to_actor(), profile=user.to_public_dict())


def current_actor(principal: Principal = Depends(current_principal)) -> Actor:
    """
    Identity context for core operations.

    Raises:
        Unauthenticated: On a missing, invalid or expired credential, or an
            inactive account
    """
    return principal.actor
