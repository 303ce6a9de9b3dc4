from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.config import settings
from app.database import engine, Base
from app.errors import AppError
from app.init_admin import create_admin
from app.logging_config import configure_logging

# Register every model on Base.metadata before create_all
from app import models  # noqa: F401

from app.api import (
    admin, auth, materials, notifications, question_bank, question_papers,
    quizzes, students, subjects, tests, videos, websocket
)

logger = configure_logging()

def startup_tasks():
    # Create database tables
    Base.metadata.create_all(bind=engine)
    # Create admin user
    create_admin()

app = FastAPI(
    title="Exam Platform API",
    description="Tests, attempts, scoring and leaderboards for batches of students",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Validation failed", "errors": errors}
    )

# Include routers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(subjects.router)
app.include_router(question_bank.router)
app.include_router(question_bank.qp_code_router)
app.include_router(question_papers.router)
app.include_router(tests.router)
app.include_router(quizzes.router)
app.include_router(notifications.router)
app.include_router(videos.router)
app.include_router(materials.router)
app.include_router(students.router)
app.include_router(websocket.router)

@app.on_event("startup")
async def startup_event():
    startup_tasks()

@app.get("/")
async def root():
    return {"message": "Exam Platform API", "docs": "/docs"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
