import logging
from contextlib import asynccontextmanager
from typing import Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from config import Config, setup_logging
from database import OrderStore, db, get_order_store
from geocoding import AddressResolver
from order_history import prioritize
from orders import ValidationError, build_order_document, order_code, persist_order
from schemas import OrderCreate, OrderStatusUpdate, ProductCategory

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        try:
            get_order_store().ensure_indexes()
        except Exception as e:
            logger.error(f"Could not create indexes: {e}")
    yield


app = FastAPI(title="Food Ordering API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Utility to convert Mongo documents

def serialize_doc(doc):
    if not doc:
        return doc
    d = dict(doc)
    _id = d.get("_id")
    if isinstance(_id, ObjectId):
        d["id"] = str(_id)
        del d["_id"]
    return d


def get_store() -> OrderStore:
    try:
        return get_order_store()
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))


def get_resolver() -> AddressResolver:
    return AddressResolver()


SAMPLE_MENU = [
    {"name": "Family Offer", "description": "4 sandwiches, 2 fries and 4 drinks", "price": 220, "category": ProductCategory.OFFERS.value, "image": "https://images.unsplash.com/photo-1561758033-d89a9ad46330"},
    {"name": "Chicken Shawarma", "description": "Garlic sauce and pickles", "price": 65, "category": ProductCategory.SANDWICHES.value, "image": "https://images.unsplash.com/photo-1529006557810-274b9b2fc783"},
    {"name": "Beef Burger", "description": "Cheddar, lettuce and house sauce", "price": 85, "category": ProductCategory.SANDWICHES.value, "image": "https://images.unsplash.com/photo-1568901346375-23c9450c58cd"},
    {"name": "Nutella Crepe", "description": "Nutella with banana", "price": 55, "category": ProductCategory.CREPES.value, "image": "https://images.unsplash.com/photo-1519676867240-f03562e64548"},
    {"name": "Mix Box", "description": "Chicken strips, fries and coleslaw", "price": 120, "category": ProductCategory.BOXES.value, "image": "https://images.unsplash.com/photo-1562967914-608f82629710"},
    {"name": "French Fries", "description": "Large portion", "price": 30, "category": ProductCategory.EXTRAS.value, "image": "https://images.unsplash.com/photo-1573080496219-bb080dd4f877"},
    {"name": "Grilled Chicken Meal", "description": "Half chicken with rice and salad", "price": 150, "category": ProductCategory.MEALS.value, "image": "https://images.unsplash.com/photo-1598103442097-8b74394b95c6"},
]


# Seed data route (idempotent) to populate the menu
@app.post("/seed")
def seed(store: OrderStore = Depends(get_store)):
    try:
        inserted = store.seed_products([dict(p, available=True) for p in SAMPLE_MENU])
        return {"status": "ok", "inserted": inserted}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/")
def read_root():
    return {"message": "Food Ordering API is running"}


@app.get("/products")
def list_products(category: Optional[ProductCategory] = None, previous: Optional[str] = None,
                  store: OrderStore = Depends(get_store)):
    try:
        products = [serialize_doc(p) for p in store.list_products(category.value if category else None)]
        previous_ids = [p.strip() for p in (previous or "").split(",") if p.strip()]
        return prioritize(products, previous_ids)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/orders")
def list_orders(limit: Optional[int] = Query(None, ge=1), store: OrderStore = Depends(get_store)):
    try:
        return [serialize_doc(d) for d in store.list_orders(limit)]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/orders/summary")
def orders_summary(store: OrderStore = Depends(get_store)):
    try:
        return [serialize_doc(d) for d in store.orders_with_total()]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/orders/{order_id}")
def get_order(order_id: str, store: OrderStore = Depends(get_store)):
    try:
        doc = store.get_order(order_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_doc(doc)


@app.post("/orders", status_code=201)
def place_order(payload: OrderCreate, store: OrderStore = Depends(get_store)):
    required = {
        "customerName": payload.customer_name,
        "customerPhone": payload.customer_phone,
        "customerAddress": payload.customer_address,
    }
    missing = [name for name, value in required.items() if not value or not value.strip()]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

    try:
        order_doc = build_order_document(
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            customer_address=payload.customer_address,
            items=payload.items,
            location=payload.location,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = persist_order(order_doc, store)
    if not result.success:
        raise HTTPException(status_code=500, detail=f"Failed to create order: {result.error}")

    order = serialize_doc(result.raw)
    order["code"] = order_code(order["id"])
    return order


@app.put("/orders/{order_id}")
def update_order(order_id: str, payload: OrderStatusUpdate, store: OrderStore = Depends(get_store)):
    try:
        doc = store.update_status(order_id, payload.status.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not doc:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_doc(doc)


@app.get("/geocode/reverse")
def reverse_geocode(lat: float = Query(..., ge=-90, le=90), lng: float = Query(..., ge=-180, le=180),
                    resolver: AddressResolver = Depends(get_resolver)):
    return {"lat": lat, "lng": lng, "address": resolver.resolve(lat, lng)}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name if hasattr(db, 'name') else "✅ Connected"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if Config.DATABASE_URL else "❌ Not Set"
    response["database_name"] = "✅ Set" if Config.DATABASE_NAME else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.PORT)
