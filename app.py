import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import ALLOWED_ORIGINS, LOG_LEVEL
from database.supabase_client import get_supabase
from routes.payroll import router as payroll_router
from routes.requests import router as requests_router
from routes.rota import router as rota_router

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI
app = FastAPI(
    title="Care Rota API",
    description="Staff and client scheduling with pay forecasting",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===== ROUTES =====
app.include_router(rota_router)
app.include_router(requests_router)
app.include_router(payroll_router)


@app.get("/")
async def root():
    return {
        "message": "Care Rota API v1.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        result = get_supabase().table("recurring_shift_patterns").select("id").limit(1).execute()
        db_status = "connected" if result.data is not None else "disconnected"

        return {
            "status": "healthy",
            "database": db_status,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e)
        }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
