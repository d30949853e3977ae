"""
Upload Reminder Engine - FastAPI Application

Main entry point for the upload reminder backend.

Architecture:
- UploadEvent history -> PatternClassifier -> DocumentPattern
- DocumentPattern -> MissingDocumentDetector -> MissingDocument
- MissingDocument -> ReminderGenerator -> DocumentReminder
- DocumentReminder -> ReminderDispatcher -> notifier channels
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import init_db
from .routers import scheduler_router, upload_patterns_router

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Upload Reminder Engine",
    description="""
    Upload Reminder Engine - Document Upload Pattern Learning

    Learns when each source (bank, company, employer) usually delivers a
    document, detects documents that have not arrived, and sends escalating
    reminders.

    ## Pipeline
    1. **Pattern Classifier**: upload history -> DocumentPattern
    2. **Missing Document Detector**: DocumentPattern -> MissingDocument
    3. **Reminder Generator**: MissingDocument -> DocumentReminder
    4. **Dispatcher**: DocumentReminder -> app / push / email
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(upload_patterns_router)
app.include_router(scheduler_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Upload Reminder Engine",
        "version": "1.0.0",
        "description": "Document upload pattern learning and missing-document reminders",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m upload_reminders.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
