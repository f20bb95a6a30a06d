# product_service/main.py
from fastapi import FastAPI, HTTPException, Query

app = FastAPI(title="Product Service (dev mock)")

# katalog tylko do lokalnego developmentu, shop czyta price/stock/status
PRODUCTS = {
    1: {"id": 1, "name": "Keyboard", "price": 199.99, "stock": 25, "status": "active"},
    2: {"id": 2, "name": "Mouse", "price": 49.50, "stock": 100, "status": "active"},
    3: {"id": 3, "name": "Monitor", "price": 899.00, "stock": 3, "status": "active"},
    4: {"id": 4, "name": "Webcam", "price": 129.00, "stock": 0, "status": "inactive"},
}


@app.get("/products")
def list_products(status: str | None = Query(None)):
    return [p for p in PRODUCTS.values() if status is None or p["status"] == status]


@app.get("/products/{product_id}")
def get_product(product_id: int):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
