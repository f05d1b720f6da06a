"""External collaborator contracts and the default in-process implementations.

The engines only talk to these abstract interfaces. The concrete chat-platform client
is deployment specific; the in-memory adapters below back local development and tests,
and ``LocalBlobStore`` keeps uploaded files on disk.
"""
from __future__ import annotations
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from flask import current_app
from werkzeug.utils import secure_filename

log = logging.getLogger(__name__)


@dataclass
class SyncResult:
    success: bool
    error: Optional[str] = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None) -> 'SyncResult':
        return cls(True, None, value)

    @classmethod
    def failed(cls, error: str) -> 'SyncResult':
        return cls(False, error)


class RoleMembershipStore(ABC):
    @abstractmethod
    def get_member_roles(self, external_id: str) -> List[str]:
        ...

    @abstractmethod
    def set_member_roles(self, external_id: str, add: Iterable[str], remove: Iterable[str]) -> SyncResult:
        ...


class IdentitySync(ABC):
    @abstractmethod
    def update_display_name(self, external_id: str, new_name: str) -> bool:
        ...

    @abstractmethod
    def kick_member(self, external_id: str, reason: str) -> SyncResult:
        ...

    @abstractmethod
    def create_invite_link(self, ttl_seconds: int, max_uses: int) -> SyncResult:
        ...


class BlobStore(ABC):
    @abstractmethod
    def store(self, filename: str, data: bytes) -> str:
        ...

    @abstractmethod
    def retrieve(self, path: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, path: str) -> None:
        ...


class InMemoryRoleStore(RoleMembershipStore):
    """Role membership kept in a dict; ``fail_with`` makes the next batch fail."""

    def __init__(self, members: Optional[Dict[str, Iterable[str]]] = None):
        self.members: Dict[str, Set[str]] = {k: set(v) for k, v in (members or {}).items()}
        self.fail_with: Optional[str] = None
        self.calls: List[Dict[str, Any]] = []

    def get_member_roles(self, external_id: str) -> List[str]:
        return sorted(self.members.get(external_id, set()))

    def set_member_roles(self, external_id: str, add: Iterable[str], remove: Iterable[str]) -> SyncResult:
        add, remove = list(add), list(remove)
        self.calls.append({'external_id': external_id, 'add': add, 'remove': remove})
        if self.fail_with:
            error, self.fail_with = self.fail_with, None
            return SyncResult.failed(error)
        roles = self.members.setdefault(external_id, set())
        roles.difference_update(remove)
        roles.update(add)
        return SyncResult.ok(sorted(roles))


class InMemoryIdentitySync(IdentitySync):
    def __init__(self, invite_base_url: str = 'https://discord.gg/'):
        self.invite_base_url = invite_base_url
        self.display_names: Dict[str, str] = {}
        self.kicked: Dict[str, str] = {}
        self.available = True

    def update_display_name(self, external_id: str, new_name: str) -> bool:
        if not self.available:
            return False
        self.display_names[external_id] = new_name
        return True

    def kick_member(self, external_id: str, reason: str) -> SyncResult:
        if not self.available:
            return SyncResult.failed('identity platform unavailable')
        self.kicked[external_id] = reason
        return SyncResult.ok()

    def create_invite_link(self, ttl_seconds: int, max_uses: int) -> SyncResult:
        if not self.available:
            return SyncResult.failed('identity platform unavailable')
        return SyncResult.ok(f'{self.invite_base_url}{uuid.uuid4().hex[:10]}')


class LocalBlobStore(BlobStore):
    """Files stored under ``root``; paths handed out are relative to it."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _resolve(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([full, self.root]) != self.root:
            raise ValueError(f'Blob path escapes storage root: {path}')
        return full

    def store(self, filename: str, data: bytes) -> str:
        ext = os.path.splitext(secure_filename(filename or ''))[1].lower()[:10]
        rel = f'{uuid.uuid4().hex}{ext}'
        os.makedirs(self.root, exist_ok=True)
        with open(self._resolve(rel), 'wb') as fh:
            fh.write(data)
        return rel

    def retrieve(self, path: str) -> bytes:
        with open(self._resolve(path), 'rb') as fh:
            return fh.read()

    def delete(self, path: str) -> None:
        full = self._resolve(path)
        if os.path.exists(full):
            os.remove(full)
        else:
            log.warning('Blob %s already absent', path)


@dataclass
class Integrations:
    roles: RoleMembershipStore
    identity: IdentitySync
    blobs: BlobStore


def build_default_integrations(config) -> Integrations:
    return Integrations(
        roles=InMemoryRoleStore(),
        identity=InMemoryIdentitySync(),
        blobs=LocalBlobStore(config['BLOB_STORAGE_DIR']),
    )


def get_integrations() -> Integrations:
    return current_app.extensions['personnel']


__all__ = [
    'SyncResult', 'RoleMembershipStore', 'IdentitySync', 'BlobStore', 'InMemoryRoleStore',
    'InMemoryIdentitySync', 'LocalBlobStore', 'Integrations', 'build_default_integrations',
    'get_integrations',
]
