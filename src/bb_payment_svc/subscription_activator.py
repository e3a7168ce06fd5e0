import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from bb_payment_svc.config import get_settings
from bb_payment_svc.models.user_subscription import (
    SUBSCRIPTION_ACTIVE,
    SUBSCRIPTION_CANCELLED,
    UserSubscription,
)


def activate_subscription(
    db: Session,
    user_id: str,
    plan_id: str,
    payment_id: Optional[str],
    commit: bool = True,
    now: Optional[datetime] = None,
) -> UserSubscription:
    """
    Replace the user's active subscription with a new one for plan_id.

    Cancelling the previous rows and inserting the new one happen in the same
    transaction. With commit=False the caller owns the transaction and must
    commit or roll back.

    :param db: SQLAlchemy Session instance.
    :param user_id: Owner of the subscription.
    :param plan_id: Plan being activated.
    :param payment_id: Payment that paid for the subscription.
    :param commit: Whether to commit before returning.
    :param now: Start of the subscription window, defaults to the current UTC time.
    :return: The new active subscription.
    """
    now = now or datetime.now(timezone.utc)
    period = timedelta(days=get_settings().subscription_period_days)
    try:
        cancelled = db.execute(
            update(UserSubscription)
            .where(UserSubscription.user_id == user_id, UserSubscription.status == SUBSCRIPTION_ACTIVE)
            .values(status=SUBSCRIPTION_CANCELLED, cancelled_at=now)
            .execution_options(synchronize_session='evaluate')
        ).rowcount

        subscription = UserSubscription(
            user_id=user_id,
            plan_id=plan_id,
            status=SUBSCRIPTION_ACTIVE,
            start_date=now,
            end_date=now + period,
            payment_id=payment_id,
        )
        db.add(subscription)
        db.flush()
        if commit:
            db.commit()
    except Exception as e:
        if commit:
            db.rollback()
        logging.error(f"Failed to activate plan {plan_id} for user {user_id}: {e}", exc_info=True)
        raise

    logging.info(f"Subscription to plan {plan_id} activated for user {user_id} ({cancelled} previous cancelled).")
    return subscription


def get_active_subscription(db: Session, user_id: str) -> Optional[UserSubscription]:
    return (
        db.query(UserSubscription)
        .filter(UserSubscription.user_id == user_id, UserSubscription.status == SUBSCRIPTION_ACTIVE)
        .order_by(UserSubscription.start_date.desc())
        .first()
    )
