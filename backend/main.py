from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum
from config import ENVIRONMENT

from routers.auth.auth import router as auth_router
from routers.users.users import router as users_router
from routers.suppliers.suppliers import router as suppliers_router
from routers.vendors.vendors import router as vendors_router
from routers.products.products import router as products_router
from routers.orders.orders import router as orders_router
from routers.reviews.reviews import router as reviews_router
from routers.notifications.notifications import router as notifications_router
from routers.ai.ai import router as ai_router

IS_PRODUCTION = ENVIRONMENT == "prod"

app = FastAPI(
    title="SourceSavvy API",
    description="Marketplace API connecting street-food vendors with nearby raw-material suppliers.",
    version="1.0.0",
    root_path="/Prod" if IS_PRODUCTION else "",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    servers=[
        {"url": "https://your-aws-api.execute-api.region.amazonaws.com/Prod", "description": "Production Server"},
        {"url": "http://localhost:8000", "description": "Local Development Server"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(suppliers_router)
app.include_router(vendors_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(reviews_router)
app.include_router(notifications_router)
app.include_router(ai_router)


@app.get("/api/health", tags=["Health"])
async def health():
    return {"status": "ok", "environment": ENVIRONMENT}


@app.get("/", include_in_schema=False)
async def index():
    """Service banner with pointers to the API documentation"""
    return {
        "name": app.title,
        "version": app.version,
        "docs": ["/docs", "/redoc", "/openapi.json"],
    }


handler = Mangum(app)
