"""Main FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sentinel.database import engine, Base
from sentinel.api.routes import router
from sentinel.observability import configure_logging
# Import models to register them with SQLAlchemy Base
from sentinel.models.domain import SafeguardingCase, MeetingLog, Student
from sentinel.models.audit import AuditEvent

configure_logging()

# Create database tables
Base.metadata.create_all(bind=engine)

# Create FastAPI app
app = FastAPI(
    title="Sentinel - Safeguarding Case Engine",
    description="Creates, scores, correlates and redacts child-safeguarding case files.",
    version="0.1.0"
)

# Enable CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # For MVP - restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api", tags=["Safeguarding"])


# Health check
@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "Sentinel"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
