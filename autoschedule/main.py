import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .database import Base, engine
from .routes import events, schedule, tasks
from .services.scheduler_service import reconciliation_service

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    reconciliation_service.start()
    logger.info("Reconciliation scheduler started")
    yield
    reconciliation_service.shutdown()
    logger.info("Reconciliation scheduler stopped")


# Create FastAPI app
app = FastAPI(
    title="Auto-Schedule API",
    description="Places tasks as time blocks inside working hours and keeps the calendar in sync",
    version="1.0.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(tasks.router)
app.include_router(events.router, prefix="/events", tags=["events"])
app.include_router(schedule.router)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": "Welcome to the Auto-Schedule API",
        "version": "1.0.0",
        "endpoints": {
            "preview": "GET /users/{user_id}/schedule/preview - Plan without applying",
            "auto": "POST /users/{user_id}/schedule/auto - Auto-Schedule now",
            "notify": "POST /users/{user_id}/schedule/notify - Debounced change hint",
            "working_hours": "GET /tasks/{task_id}/schedule - Effective working hours",
            "project_status": "GET /users/{user_id}/projects/{project_id}/scheduling-status",
            "events": "CRUD /events/* - Calendar events",
        },
        "swagger_ui": "/docs - Interactive API documentation",
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}


# This allows running the app directly with: python -m autoschedule.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("autoschedule.main:app", host="0.0.0.0", port=8000, reload=True)
