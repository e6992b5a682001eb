# memberhub/database/transactions.py

from contextlib import contextmanager

from memberhub import db


@contextmanager
def atomic():
    """Run the block as one unit: commit on success, roll back everything on error."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


@contextmanager
def serializable_transaction():
    """Like ``atomic`` but at SERIALIZABLE isolation.

    Isolation can only be chosen when the transaction begins, so any read
    transaction already open on the session is committed first.
    """
    if db.session().in_transaction():
        db.session.commit()
    db.session.connection(execution_options={'isolation_level': 'SERIALIZABLE'})
    with atomic() as session:
        yield session


def is_serialization_failure(exc):
    """True when the store aborted a transaction to keep it serializable (SQLSTATE 40001)."""
    orig = getattr(exc, 'orig', None)
    code = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    return code == '40001'
