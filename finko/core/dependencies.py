"""
Centralized dependency management
Singletons for stateless services, per-request for DB sessions
"""

from functools import lru_cache
from typing import AsyncGenerator, Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import Depends

from finko.core.auth import AuthenticatedUser, get_current_user, require_admin
from finko.core.db.engine import get_db_util
from finko.integrations.bancochile.client import BancoChileClient
from finko.integrations.gmail.auth import GmailAuth
from finko.integrations.gmail.client import GmailClient
from finko.integrations.llm.service import LLMService
from finko.intelligence.extraction.extractor import TransactionExtractor
from finko.modules.bancochile.identity import IdentityResolver
from finko.modules.bancochile.parser import CloudEventParser
from finko.modules.bancochile.service import IdentityKeyService
from finko.modules.bank_profiles.service import BankProfilesService
from finko.modules.gmail.service import GmailConnectionService
from finko.modules.ledger.service import LedgerService
from finko.modules.users.service import UsersService
from finko.pipeline.orchestrator import IngestionOrchestrator


# ============================================================================
# PER-REQUEST DEPENDENCIES (New instance per request)
# ============================================================================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database session - NEW per request
    Automatically commits/rollbacks and closes
    """
    async for session in get_db_util():
        yield session


# ============================================================================
# INTEGRATIONS (Singletons)
# ============================================================================


@lru_cache()
def get_llm_service():
    """LLM service - SINGLETON (stateless)"""
    return LLMService()


@lru_cache()
def get_gmail_auth():
    """Google OAuth helper - SINGLETON"""
    return GmailAuth()


@lru_cache()
def get_gmail_client():
    """Gmail API wrapper - SINGLETON, credentials derived per call"""
    return GmailClient(auth=get_gmail_auth())


@lru_cache()
def get_bancochile_client():
    """Banco de Chile sandbox client - SINGLETON"""
    return BancoChileClient()


# ============================================================================
# SERVICE LAYER (Singletons that accept DB session)
# ============================================================================


@lru_cache()
def get_user_service():
    """User service - SINGLETON"""
    return UsersService()


@lru_cache()
def get_ledger_service():
    """
    Ledger service - SINGLETON
    Takes DB session as method parameter, not in constructor
    """
    return LedgerService()


@lru_cache()
def get_identity_key_service():
    return IdentityKeyService()


@lru_cache()
def get_bank_profiles_service():
    return BankProfilesService()


@lru_cache()
def get_gmail_connection_service():
    return GmailConnectionService()


# ============================================================================
# INTELLIGENCE LAYER (Singletons)
# ============================================================================


@lru_cache()
def get_transaction_extractor():
    """Transaction extractor - SINGLETON"""
    return TransactionExtractor(llm_service=get_llm_service())


@lru_cache()
def get_identity_resolver():
    return IdentityResolver(
        keys_service=get_identity_key_service(),
        users_service=get_user_service(),
    )


# ============================================================================
# ORCHESTRATOR (Singleton that uses all dependencies)
# ============================================================================


@lru_cache()
def get_orchestrator():
    """
    Ingestion orchestrator - SINGLETON
    Holds the per-mailbox locks, so there must be exactly one
    """
    return IngestionOrchestrator(
        parser=CloudEventParser(),
        identity_resolver=get_identity_resolver(),
        ledger_service=get_ledger_service(),
        connection_service=get_gmail_connection_service(),
        profiles_service=get_bank_profiles_service(),
        gmail_client=get_gmail_client(),
        extractor=get_transaction_extractor(),
    )


# ============================================================================
# FASTAPI DEPENDENCY TYPE ALIASES
# ============================================================================

# Database dependencies
DatabaseDep = Annotated[AsyncSession, Depends(get_db)]

# Auth dependencies
CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]
AdminUserDep = Annotated[AuthenticatedUser, Depends(require_admin)]

# Service dependencies
UserServiceDep = Annotated[UsersService, Depends(get_user_service)]
LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]
IdentityKeyServiceDep = Annotated[IdentityKeyService, Depends(get_identity_key_service)]
BankProfilesServiceDep = Annotated[BankProfilesService, Depends(get_bank_profiles_service)]
GmailConnectionServiceDep = Annotated[
    GmailConnectionService, Depends(get_gmail_connection_service)
]
OrchestratorDep = Annotated[IngestionOrchestrator, Depends(get_orchestrator)]

# Integration dependencies
GmailAuthDep = Annotated[GmailAuth, Depends(get_gmail_auth)]
GmailClientDep = Annotated[GmailClient, Depends(get_gmail_client)]
BancoChileClientDep = Annotated[BancoChileClient, Depends(get_bancochile_client)]
