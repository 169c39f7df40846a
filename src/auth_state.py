"""Identity-keyed credential table for the source-control provider."""
from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from logging_utils import logger
from models import CredentialRecord


class TokenStore(Protocol):
    """Key-value store of credential records, keyed by identity."""

    def get(self, identity: str) -> Optional[CredentialRecord]:
        ...

    def put(self, identity: str, record: CredentialRecord) -> None:
        ...

    def remove(self, identity: str) -> None:
        ...

    def list_identities(self) -> List[str]:
        ...


class InMemoryTokenStore:
    """Process-local store; nothing survives a restart."""

    def __init__(self) -> None:
        self._records: Dict[str, CredentialRecord] = {}

    def get(self, identity: str) -> Optional[CredentialRecord]:
        return self._records.get(identity)

    def put(self, identity: str, record: CredentialRecord) -> None:
        self._records[identity] = record

    def remove(self, identity: str) -> None:
        self._records.pop(identity, None)

    def list_identities(self) -> List[str]:
        return list(self._records.keys())


class AuthorizationState:
    """
    Sole owner of credential records.

    A record's presence for an identity means that identity is authorized.
    Several accounts may be connected at once; callers decide which identity a
    request runs as.
    """

    def __init__(self, store: Optional[TokenStore] = None) -> None:
        self.store: TokenStore = store if store is not None else InMemoryTokenStore()

    def has_credential(self, identity: str) -> bool:
        return self.store.get(identity) is not None

    def get(self, identity: str) -> Optional[CredentialRecord]:
        return self.store.get(identity)

    def put(self, identity: str, record: CredentialRecord) -> None:
        self.store.put(identity, record)
        logger.info("Credential stored", extra={"extra": {"identity": identity, "scope": record.token_scope}})

    def remove(self, identity: str) -> None:
        self.store.remove(identity)
        logger.info("Credential removed", extra={"extra": {"identity": identity}})

    def connected_identities(self) -> List[str]:
        return self.store.list_identities()


_default_state = AuthorizationState()


def default_authorization_state() -> AuthorizationState:
    """The process-wide authorization table."""
    return _default_state
