from fastapi import FastAPI

from . import (
    applications,
    assignments,
    attempts,
    credits,
    health,
    milestones,
    questions,
    reviews,
    templates,
)


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the FastAPI application."""
    app.include_router(health.router)
    app.include_router(templates.router)
    app.include_router(questions.router)
    app.include_router(attempts.router)
    app.include_router(credits.router)
    app.include_router(assignments.router)
    app.include_router(applications.router)
    app.include_router(milestones.router)
    app.include_router(reviews.router)
