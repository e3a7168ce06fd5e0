from fastapi import APIRouter, Depends, HTTPException, status

from bb_payment_svc.models.base import get_db
from bb_payment_svc.models.plan import Plan
from bb_payment_svc.subscription_activator import get_active_subscription

router = APIRouter()


@router.get("/plans", status_code=200)
async def list_plans(db=Depends(get_db)):
    plans = db.query(Plan).order_by(Plan.price.asc()).all()
    return {
        "success": True,
        "plans": [
            {
                "id": plan.id,
                "name": plan.name,
                "display_name": plan.display_name,
                "price": float(plan.price),
                "max_ads": plan.max_ads,
            }
            for plan in plans
        ],
    }


@router.get("/subscriptions/active", status_code=200)
async def active_subscription(userId: str, db=Depends(get_db)):
    subscription = get_active_subscription(db, userId)
    if subscription is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active subscription")
    return {
        "success": True,
        "subscription": {
            "id": subscription.id,
            "plan_id": subscription.plan_id,
            "status": subscription.status,
            "start_date": subscription.start_date,
            "end_date": subscription.end_date,
            "payment_id": subscription.payment_id,
        },
    }
