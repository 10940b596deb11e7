from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from shared.protocol import CellMachine, MountConflict, MountPoint, NeedBand, NotMountOwner, UnknownSession
from shared.utils.common import generate_session_id, utc_timestamp

from .bands import BandLink, BandPool
from .connection import ConnectionContext

logger = logging.getLogger(__name__)

MOUNT_POLICY_REJECT = "reject"
MOUNT_POLICY_SUPERSEDE = "supersede"
MOUNT_POLICIES = (MOUNT_POLICY_REJECT, MOUNT_POLICY_SUPERSEDE)


def _prefix_matches(prefix: str, path: str) -> bool:
    return prefix == "/" or path == prefix or path.startswith(prefix + "/")


class MountTable:
    """Owner of every (host, path) mount, shared by all sessions."""

    def __init__(self, policy: str = MOUNT_POLICY_REJECT) -> None:
        if policy not in MOUNT_POLICIES:
            raise ValueError(f"Unknown mount policy {policy!r}")
        self.policy = policy
        self._owners: Dict[MountPoint, str] = {}
        self._lock = threading.Lock()

    def register(self, mount: MountPoint, session_id: str) -> Optional[str]:
        """Bind `mount` to a session; returns the superseded owner, if any."""
        key = mount.normalized()
        with self._lock:
            current = self._owners.get(key)
            if current is not None and current != session_id:
                if self.policy == MOUNT_POLICY_REJECT:
                    raise MountConflict(f"Mount {key.host}{key.path} is owned by another session")
            self._owners[key] = session_id
        return current if current != session_id else None

    def unregister(self, mount: MountPoint, session_id: str) -> None:
        key = mount.normalized()
        with self._lock:
            if self._owners.get(key) != session_id:
                raise NotMountOwner(f"Session does not own mount {key.host}{key.path}")
            del self._owners[key]

    def release_session(self, session_id: str) -> List[MountPoint]:
        with self._lock:
            released = [key for key, owner in self._owners.items() if owner == session_id]
            for key in released:
                del self._owners[key]
        return released

    def owner(self, mount: MountPoint) -> Optional[str]:
        with self._lock:
            return self._owners.get(mount.normalized())

    def resolve(self, host: str, path: str) -> Optional[str]:
        """Longest path-prefix match on the host, falling back to host-less mounts."""
        host = (host or "").lower()
        path = path or "/"
        with self._lock:
            for candidate_host in (host, ""):
                best: Optional[MountPoint] = None
                for key in self._owners:
                    if key.host != candidate_host or not _prefix_matches(key.path, path):
                        continue
                    if best is None or len(key.path) > len(best.path):
                        best = key
                if best is not None:
                    return self._owners[best]
        return None

    def snapshot(self) -> Dict[MountPoint, str]:
        with self._lock:
            return dict(self._owners)


@dataclass
class Session:
    session_id: str
    cell: ConnectionContext
    machine: CellMachine
    band_batch: int = 1
    bands: BandPool = field(default_factory=BandPool)
    created_at: int = field(default_factory=utc_timestamp)

    async def request_bands(self, count: Optional[int] = None) -> None:
        """Ask the cell to open more bands."""
        count = count or self.band_batch
        logger.debug("Requesting %s bands from session %s", count, self.session_id)
        await self.cell.send(NeedBand(count=count))


class SessionRegistry:
    """Tracks live sessions and the mounts they own."""

    def __init__(self, mount_policy: str = MOUNT_POLICY_REJECT, band_batch: int = 1) -> None:
        self.mounts = MountTable(mount_policy)
        self.band_batch = band_batch
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, ctx: ConnectionContext, machine: CellMachine) -> Session:
        session = Session(
            session_id=generate_session_id(),
            cell=ctx,
            machine=machine,
            band_batch=self.band_batch,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Session %s created for %s", session.session_id, ctx.peername)
        return session

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def require(self, session_id: Optional[str]) -> Session:
        session = self.get(session_id)
        if session is None:
            raise UnknownSession(f"No live session {session_id!r}")
        return session

    def sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def attach_band(self, session_id: str, band: BandLink) -> Session:
        session = self.require(session_id)
        session.bands.add(band)
        logger.debug("Band %s attached to session %s (%s bands)", band.ctx.peername, session_id, len(session.bands))
        return session

    def register_mount(self, session_id: str, mount: MountPoint) -> None:
        mount = mount.normalized()
        previous = self.mounts.register(mount, session_id)
        if previous is not None:
            loser = self.get(previous)
            if loser is not None:
                loser.machine.forget_mount(mount)
            logger.info("Mount %s%s moved from session %s to %s", mount.host, mount.path, previous, session_id)
        else:
            logger.info("Session %s mounted %s%s", session_id, mount.host, mount.path)

    def unregister_mount(self, session_id: str, mount: MountPoint) -> None:
        self.mounts.unregister(mount, session_id)
        logger.info("Session %s unmounted %s%s", session_id, mount.host, mount.path)

    def route(self, host: str, path: str) -> Optional[Session]:
        return self.get(self.mounts.resolve(host, path))

    async def close(self, session_id: str) -> Optional[Session]:
        """Tear a session down: release its mounts and close its bands."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.machine.close()
        released = self.mounts.release_session(session_id)
        await session.bands.close_all()
        logger.info("Session %s closed, released %s mounts", session_id, len(released))
        return session
