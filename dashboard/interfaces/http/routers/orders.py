import structlog
from fastapi import APIRouter, Depends, Query, HTTPException, Response, status
from sqlalchemy.orm import Session
from ....infrastructure.db import get_db
from ....infrastructure.models import Order, Product, UserORM
from ....infrastructure.metrics import db_queries_total
from ..authz import get_current_user, require_admin
from ..schemas import OrderCreate, OrderOut, OrderUpdate
from .products import invalidate_product_cache

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

def reserve_stock(db: Session, product_id: int, quantity: int) -> bool:
    """Take `quantity` off the shelf in one conditional UPDATE. False when stock is short."""
    taken = (db.query(Product)
             .filter(Product.id == product_id, Product.stock >= quantity)
             .update({Product.stock: Product.stock - quantity}, synchronize_session=False))
    return taken == 1

def release_stock(db: Session, product_id: int, quantity: int) -> None:
    db.query(Product).filter(Product.id == product_id).update(
        {Product.stock: Product.stock + quantity}, synchronize_session=False)

def _get_visible_order(order_id: int, user: UserORM, db: Session) -> Order:
    """Owners see their own orders, admins see all; anything else is a 404."""
    row = db.get(Order, order_id)
    if not row or (user.role != "admin" and row.user_id != user.id):
        raise HTTPException(404, "order not found")
    return row

@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate,
                 user: UserORM = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    db_queries_total.inc()
    product = db.get(Product, payload.product_id)
    if not product: raise HTTPException(404, "product not found")
    if not reserve_stock(db, product.id, payload.quantity):
        db.rollback()
        raise HTTPException(status.HTTP_409_CONFLICT, "insufficient stock")

    row = Order(
        user_id=user.id,
        product_id=product.id,
        quantity=payload.quantity,
        unit_price=product.price,
        total=product.price * payload.quantity,
        status="pending",
    )
    db.add(row); db.commit(); db.refresh(row)
    invalidate_product_cache(product.id)
    logger.info("order_created", order_id=row.id, user_id=user.id, product_id=product.id, quantity=row.quantity)
    return row

@router.get("", response_model=list[OrderOut])
def list_orders(user: UserORM = Depends(get_current_user),
                db: Session = Depends(get_db),
                limit: int = Query(10, ge=1, le=100),
                offset: int = Query(0, ge=0)):
    db_queries_total.inc()
    q = db.query(Order)
    if user.role != "admin":
        q = q.filter(Order.user_id == user.id)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset).all()

@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int,
              user: UserORM = Depends(get_current_user),
              db: Session = Depends(get_db)):
    return _get_visible_order(order_id, user, db)

# --- Admin-only:

@router.patch("/{order_id}", response_model=OrderOut)
def update_order_status(order_id: int, payload: OrderUpdate,
                        admin: UserORM = Depends(require_admin),
                        db: Session = Depends(get_db)):
    row = _get_visible_order(order_id, admin, db)
    if row.status == payload.status:
        return row
    if row.status == "cancelled":
        raise HTTPException(status.HTTP_409_CONFLICT, "order is cancelled")
    restock = payload.status == "cancelled"
    if restock:
        release_stock(db, row.product_id, row.quantity)
    row.status = payload.status
    db.commit(); db.refresh(row)
    if restock:
        invalidate_product_cache(row.product_id)
    logger.info("order_status_changed", order_id=row.id, status=row.status)
    return row

@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(order_id: int,
                 admin: UserORM = Depends(require_admin),
                 db: Session = Depends(get_db)):
    row = _get_visible_order(order_id, admin, db)
    product_id, restock = row.product_id, row.status != "cancelled"
    if restock:
        release_stock(db, product_id, row.quantity)
    db.delete(row); db.commit()
    if restock:
        invalidate_product_cache(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
