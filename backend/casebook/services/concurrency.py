# Overview: Service-layer transaction helpers shared by every composite write.

from __future__ import annotations

from contextlib import contextmanager

import sqlalchemy as sa

from ..extensions import db


@contextmanager
def unit_of_work():
    """
    Run a group of writes as one transaction on the request session.

    Commits when the block exits normally. Any exception rolls the whole
    group back and is re-raised unchanged; nothing is retried.
    """
    try:
        yield db.session
        db.session.commit()
    except BaseException:
        db.session.rollback()
        raise


def guarded_update(model, *, where, values: dict) -> int:
    """
    Single-row conditional UPDATE, returning the number of rows changed.

    Used for one-way transitions (voucher redemption, visit invalidation):
    when two callers race, the row only matches `where` for the first, so
    exactly one of them sees a rowcount of 1.
    """
    result = db.session.execute(
        sa.update(model).where(*where).values(**values).execution_options(synchronize_session=False)
    )
    return result.rowcount
