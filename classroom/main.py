import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi

from classroom.api import auth, classrooms, attendance, assignments
from classroom.config import settings
from classroom.database import engine, Base
from classroom.middleware.logging import setup_logging, add_logging_middleware
from classroom.services.scheduler import scheduler

# Initialize FastAPI app
app = FastAPI(
    title="Classroom API",
    description="API for classrooms with geofenced attendance check-ins and assignments",
    version="1.0.0",
    docs_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup logging
setup_logging()
add_logging_middleware(app)
logger = logging.getLogger(__name__)

# Custom exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )

# Create database tables
@app.on_event("startup")
async def startup():
    import classroom.models  # noqa: F401  registers every table on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created or verified")

@app.on_event("shutdown")
async def shutdown():
    await scheduler.shutdown()
    await engine.dispose()

# Include routers
app.include_router(auth.router, prefix="/api", tags=["Authentication"])
app.include_router(classrooms.router, prefix="/api", tags=["Classrooms"])
app.include_router(attendance.router, prefix="/api", tags=["Attendance"])
app.include_router(assignments.router, prefix="/api", tags=["Assignments"])

# Custom OpenAPI schema for documentation
@app.get("/api/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    return get_swagger_ui_html(
        openapi_url="/api/openapi.json",
        title="Classroom API Documentation",
        swagger_ui_parameters={"defaultModelsExpandDepth": -1},
    )

@app.get("/api/openapi.json", include_in_schema=False)
async def get_openapi_endpoint():
    return get_openapi(
        title="Classroom API",
        version="1.0.0",
        description="API for classrooms with geofenced attendance check-ins and assignments",
        routes=app.routes,
    )

@app.get("/", tags=["Root"])
async def root():
    return {"message": "Welcome to the Classroom API. Visit /api/docs for documentation."}

# Run the server
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("classroom.main:app", host="0.0.0.0", port=8000, reload=True)
