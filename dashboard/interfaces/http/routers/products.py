from fastapi import APIRouter, Depends, Query, HTTPException, Response, status
from sqlalchemy.orm import Session
from ....infrastructure.db import get_db
from ....infrastructure.models import Product, Order
from ....infrastructure.cache import get_cache, set_cache, delete_cache, delete_cache_pattern
from ....infrastructure.metrics import cache_hits_total, cache_misses_total, db_queries_total
from ..schemas import ProductOut, ProductCreate, ProductUpdate
from ..authz import require_admin

router = APIRouter(prefix="/api/products", tags=["products"])

def invalidate_product_cache(product_id: int | None = None) -> None:
    delete_cache_pattern("products:list:*")
    if product_id is not None:
        delete_cache(f"product:{product_id}")

@router.get("", response_model=list[ProductOut])
def list_products(db: Session = Depends(get_db),
                  limit: int = Query(10, ge=1, le=100),
                  offset: int = Query(0, ge=0)):
    cache_key = f"products:list:{limit}:{offset}"
    cached = get_cache(cache_key)
    if cached is not None:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    db_queries_total.inc()
    rows = db.query(Product).order_by(Product.id).limit(limit).offset(offset).all()
    result = [ProductOut.model_validate(row) for row in rows]
    set_cache(cache_key, [r.model_dump(mode="json") for r in result])
    return result

@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    cache_key = f"product:{product_id}"
    cached = get_cache(cache_key)
    if cached is not None:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    db_queries_total.inc()
    row = db.get(Product, product_id)
    if not row: raise HTTPException(404, "product not found")
    result = ProductOut.model_validate(row)
    set_cache(cache_key, result.model_dump(mode="json"))
    return result

# --- Admin-only CRUD:

@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    row = Product(name=payload.name, description=payload.description, price=payload.price, stock=payload.stock)
    db.add(row); db.commit(); db.refresh(row)
    invalidate_product_cache()
    return row

@router.put("/{product_id}", response_model=ProductOut, dependencies=[Depends(require_admin)])
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    row = db.get(Product, product_id)
    if not row: raise HTTPException(404, "product not found")
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(row, field, value)
    db.commit(); db.refresh(row)
    invalidate_product_cache(product_id)
    return row

@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_product(product_id: int, db: Session = Depends(get_db)):
    row = db.get(Product, product_id)
    if not row: raise HTTPException(404, "product not found")
    if db.query(Order.id).filter(Order.product_id == product_id).first():
        raise HTTPException(status.HTTP_409_CONFLICT, "product has orders")
    db.delete(row); db.commit()
    invalidate_product_cache(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
