"""HealthSaga Snapshot API - FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routes import snapshot, metrics, reminders

settings = get_settings()

app = FastAPI(
    title="HealthSaga Snapshot API",
    description="Durable copy of record for the HealthSaga client",
    version="1.0.0",
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include routers
app.include_router(snapshot.router)
app.include_router(metrics.router)
app.include_router(reminders.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for the API."""
    return {"status": "healthy", "service": "snapshot-api"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "server.snapshot_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
