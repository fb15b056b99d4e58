import logging
import os
import time

from apscheduler.schedulers.background import BackgroundScheduler

from adlinkton.extensions import db
from adlinkton.models import Link
from adlinkton.services.favicons import get_favicon_store


logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def refetch_missing_favicons(timeout: float, limit: int | None = None, delay: float = 0.0):
    """Fill ``favicon_path`` for links that have none. Returns (updated, failed)."""
    store = get_favicon_store()
    query = Link.query.filter(
        (Link.favicon_path.is_(None)) | (Link.favicon_path == "")
    ).order_by(Link.id.asc())
    if limit:
        query = query.limit(limit)
    links = query.all()

    updated = 0
    failed = 0
    for index, link in enumerate(links):
        favicon_path = store.fetch(link.url, timeout=timeout)
        if favicon_path:
            link.favicon_path = favicon_path
            updated += 1
        else:
            failed += 1
        if delay and index + 1 < len(links):
            time.sleep(delay)

    db.session.commit()
    return updated, failed


def run_favicon_sweep(app):
    with app.app_context():
        updated, failed = refetch_missing_favicons(
            timeout=app.config["FAVICON_FETCH_TIMEOUT"], limit=50
        )
        if updated or failed:
            logger.info("Favicon sweep: %s updated, %s failed", updated, failed)


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = app.config["FAVICON_REFETCH_INTERVAL_MINUTES"]
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_favicon_sweep,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="favicon_sweep",
            replace_existing=True,
        )
        scheduler.start()
