# tempero_pay/database/init_db.py
from sqlalchemy.engine import Engine

from tempero_pay.database.base import Base
from tempero_pay.database.session import engine as default_engine

def init_db(engine: Engine | None = None) -> None:
    # Importa as models para registrar no metadata antes do create_all
    from tempero_pay.models.user import User                    # noqa: F401
    from tempero_pay.models.order import Order                  # noqa: F401
    from tempero_pay.models.payment_title import PaymentTitle   # noqa: F401
    from tempero_pay.models.store_setting import StoreSetting   # noqa: F401
    from tempero_pay.models.coupon import DiscountCoupon        # noqa: F401
    from tempero_pay.models.audit_log import AuditLog           # noqa: F401

    Base.metadata.create_all(bind=engine or default_engine)
