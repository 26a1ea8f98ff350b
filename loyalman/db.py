"""Transaction helper shared by the services."""

import logging
from contextlib import contextmanager

from django.db import DatabaseError, transaction

from loyalman.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


@contextmanager
def atomic_unit(operation: str, **context):
    """
    Run the block in transaction.atomic(); storage faults become PersistenceFailure.

    The transaction is rolled back before the error leaves the block, so
    neither ledger entries nor cached customer fields are ever half applied.
    LoyalmanError raised inside the block propagates unchanged (after the
    same rollback).
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.exception("Persistence failure in %s %s", operation, context)
        raise PersistenceFailure(operation=operation, **context) from exc
