# Overview: Concurrency helpers; compare-and-swap claims and retry on optimistic-lock conflicts.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Supplier
from ..time_utils import utcnow, seconds_ago


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks) and StaleDataError (version_id
    conflicts). func must re-read whatever it mutates.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def claim_integration(supplier_id: int, *, ttl_seconds: int, statuses=None) -> bool:
    """
    Atomically claim the right to call Sienge for a supplier.

    Single conditional UPDATE: succeeds only while no creditor id is stored
    and no other live claim exists. Claims older than ttl_seconds are
    considered abandoned (crashed worker) and can be taken over.
    When statuses is given the supplier must also still be in one of them.

    Returns True if this caller owns the claim.
    """
    now = utcnow()
    query = db.session.query(Supplier).filter(
        Supplier.id == supplier_id,
        Supplier.sienge_creditor_id.is_(None),
        db.or_(
            Supplier.integration_claimed_at.is_(None),
            Supplier.integration_claimed_at < seconds_ago(ttl_seconds, now),
        ),
    )
    if statuses is not None:
        query = query.filter(Supplier.status.in_(sorted(statuses)))
    updated = query.update(
        {
            Supplier.integration_claimed_at: now,
            Supplier.version_id: Supplier.version_id + 1,
        },
        synchronize_session=False,
    )
    db.session.commit()
    return updated == 1


def release_integration(supplier_id: int) -> None:
    """Drop a claim without recording an outcome."""
    db.session.query(Supplier).filter(Supplier.id == supplier_id).update(
        {
            Supplier.integration_claimed_at: None,
            Supplier.version_id: Supplier.version_id + 1,
        },
        synchronize_session=False,
    )
    db.session.commit()
