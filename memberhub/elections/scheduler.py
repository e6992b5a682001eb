# memberhub/elections/scheduler.py

# Periodic election status sweep: DRAFT -> OPEN once started,
# OPEN -> CLOSED once ended. COMPLETED is only ever set by an administrator.

import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from memberhub import db
from memberhub.database.models import Election, ElectionStatus, utcnow

logger = logging.getLogger(__name__)


def _transition(elections, source, target, label):
    """Move each ``(id, name)`` from ``source`` to ``target``; returns how many moved.

    The update is conditional on the status the election was found in, so an
    election an administrator moved on in the meantime is left alone.
    """
    done = 0
    for election_id, name in elections:
        # One commit per election so a failure does not block the rest
        try:
            result = db.session.execute(
                update(Election)
                .where(Election.id == election_id, Election.status == source)
                .values(status=target)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Could not mark election %s as %s", election_id, target.value)
            continue
        if result.rowcount:
            done += 1
            logger.info("Auto-%s election: %s (%s)", label, name, election_id)
        else:
            logger.info("Election %s is no longer %s, left as is", election_id, source.value)
    return done


def sweep_election_statuses(now=None):
    """Run one sweep; returns ``(opened, closed)``."""
    now = now or utcnow()
    try:
        to_open = db.session.execute(
            select(Election.id, Election.name)
            .where(Election.status == ElectionStatus.DRAFT, Election.start_date <= now)
        ).all()
        opened = _transition(to_open, ElectionStatus.DRAFT, ElectionStatus.OPEN, 'opened')

        # Queried after opening so an election already past its end closes in the same sweep
        to_close = db.session.execute(
            select(Election.id, Election.name)
            .where(Election.status == ElectionStatus.OPEN, Election.end_date <= now)
        ).all()
        closed = _transition(to_close, ElectionStatus.OPEN, ElectionStatus.CLOSED, 'closed')
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error updating election statuses")
        return 0, 0

    if to_open or to_close:
        logger.info("Election status check: %d opened, %d closed", opened, closed)
    return opened, closed


def start_scheduler(app, blocking=False):
    """Schedule the sweep every ``SCHEDULER_INTERVAL_SECONDS``.

    In the web process a background thread is used. ``blocking`` runs the
    scheduler in the foreground for a dedicated process (``flask run-scheduler``),
    which is how multi-worker deployments keep to a single sweeper.
    """
    scheduler_cls = BlockingScheduler if blocking else BackgroundScheduler
    scheduler = scheduler_cls(timezone="UTC")

    def run_sweep():
        with app.app_context():
            try:
                sweep_election_statuses()
            finally:
                db.session.remove()

    scheduler.add_job(run_sweep, "interval", seconds=app.config['SCHEDULER_INTERVAL_SECONDS'],
                      id='election-status-sweep', max_instances=1, coalesce=True)
    logger.info("Election scheduler started (every %ss)", app.config['SCHEDULER_INTERVAL_SECONDS'])
    if not blocking:
        atexit.register(lambda: scheduler.shutdown(wait=False))
    scheduler.start()
    return scheduler
