"""Durable per-user leases.

A lease is a row in `sync_leases` keyed by (scope, owner_key). Acquisition is
either an INSERT guarded by the unique constraint or a conditional UPDATE that
only matches an expired row, so two workers (threads, processes or hosts)
can never both hold the same lease. Leases carry a TTL so a crashed holder
does not block the user forever.

Leases run on their own session so that committing or releasing a lease never
commits the caller's unit of work.
"""
from __future__ import annotations
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional

from sqlalchemy import update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import models
from ..errors import LeaseBusy

logger = logging.getLogger(__name__)

SCOPE_SYNC = "sync"
SCOPE_TOKEN_REFRESH = "token_refresh"


class LeaseManager:
    def __init__(self, ttl_seconds: int = 120, clock: Optional[Callable[[], datetime]] = None):
        self.ttl_seconds = ttl_seconds
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def acquire(self, db: Session, scope: str, owner_key: str) -> str:
        """Take the lease or raise LeaseBusy. Returns the holder token."""
        holder = str(uuid.uuid4())
        now = self.clock()
        expires_at = now + timedelta(seconds=self.ttl_seconds)
        with Session(bind=db.get_bind()) as lease_db:
            taken = lease_db.execute(
                update(models.SyncLease)
                .where(
                    models.SyncLease.scope == scope,
                    models.SyncLease.owner_key == owner_key,
                    models.SyncLease.expires_at < now,
                )
                .values(holder=holder, expires_at=expires_at)
            )
            if taken.rowcount == 1:
                lease_db.commit()
                logger.info("Took over expired %s lease for %s", scope, owner_key)
                return holder
            lease_db.add(
                models.SyncLease(scope=scope, owner_key=owner_key, holder=holder, expires_at=expires_at)
            )
            try:
                lease_db.commit()
            except IntegrityError:
                lease_db.rollback()
                raise LeaseBusy(scope)
        return holder

    def release(self, db: Session, scope: str, owner_key: str, holder: str) -> None:
        with Session(bind=db.get_bind()) as lease_db:
            lease_db.execute(
                delete(models.SyncLease).where(
                    models.SyncLease.scope == scope,
                    models.SyncLease.owner_key == owner_key,
                    models.SyncLease.holder == holder,
                )
            )
            lease_db.commit()

    @contextmanager
    def hold(self, db: Session, scope: str, owner_key: str) -> Iterator[str]:
        """Hold the lease for the block. Uncommitted work is rolled back on error."""
        holder = self.acquire(db, scope, owner_key)
        try:
            yield holder
        except BaseException:
            db.rollback()
            raise
        finally:
            self.release(db, scope, owner_key, holder)
