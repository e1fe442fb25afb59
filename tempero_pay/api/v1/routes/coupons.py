# tempero_pay/api/v1/routes/coupons.py
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from tempero_pay.core.security import admin_claims, optional_bearer
from tempero_pay.database.session import get_db
from tempero_pay.schemas.coupon import CouponIn, ManageCouponsRequest
from tempero_pay.services import coupons as coupon_service

router = APIRouter()


@router.post("/manage-coupons")
def manage_coupons(
    body: ManageCouponsRequest,
    db: Session = Depends(get_db),
    creds: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
):
    # validate é público (checkout); o resto exige admin
    if body.action == "validate":
        if not body.code:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Código do cupom é obrigatório")
        check = coupon_service.validate_coupon(db, body.code, Decimal(str(body.order_total)))
        return check.as_response()

    claims, err = admin_claims(creds)
    if claims is None:
        raise HTTPException(status.HTTP_403_FORBIDDEN, err)

    if body.action == "list":
        return {"coupons": [coupon_service.coupon_to_dict(c) for c in coupon_service.list_coupons(db)]}

    if body.action == "create":
        coupon = coupon_service.create_coupon(db, body.coupon or CouponIn())
        return {"success": True, "coupon": coupon_service.coupon_to_dict(coupon)}

    if body.coupon_id is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "ID do cupom é obrigatório")

    if body.action == "update":
        coupon = coupon_service.update_coupon(db, body.coupon_id, body.coupon or CouponIn())
        return {"success": True, "coupon": coupon_service.coupon_to_dict(coupon)}

    coupon_service.delete_coupon(db, body.coupon_id)
    return {"success": True}
