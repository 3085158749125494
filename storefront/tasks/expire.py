# storefront/tasks/expire.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.data.models.cart import CartModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def expire_anonymous_carts(db: Session, now: datetime | None = None) -> int:
    """Delete anonymous carts past their expiry. User carts are never collected."""
    now = now or datetime.now(timezone.utc)

    carts = (
        db.query(CartModel)
        .filter(
            CartModel.user_id.is_(None),
            CartModel.expires_at < now,
        )
        .all()
    )

    logger.info(f"Found {len(carts)} anonymous carts to expire")

    for cart in carts:
        # lines go with the cart (delete-orphan)
        db.delete(cart)

    db.commit()
    return len(carts)


@celery_app.task(name="storefront.tasks.expire.expire_carts_task")
def expire_carts_task():
    logger.info("Expire carts task started")

    db = SessionLocal()
    try:
        removed = expire_anonymous_carts(db)
    except Exception:
        db.rollback()
        logger.exception("Expire carts task failed")
        raise
    finally:
        db.close()

    logger.info(f"Expire carts task finished, {removed} carts removed")
    return removed
