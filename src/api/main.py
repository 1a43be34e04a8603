"""
FastAPI application entry point.
"""
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from config.settings import get_settings
from src.api.routes import health, price_checks
from src.utils.logging import configure_logging
from src.utils.metrics import registry

settings = get_settings()
configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

app = FastAPI(
    title="Stock Calls API",
    description="Position evaluation engine for user-submitted stock calls",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(price_checks.router, tags=["Price Checks"])

@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Stock Calls API",
        "version": "1.0.0",
        "docs": "/docs"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
