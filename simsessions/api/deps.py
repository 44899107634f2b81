"""FastAPI dependencies shared by the route modules."""

from fastapi import Request

from simsessions.services import Services


def get_services(request: Request) -> Services:
    """The process-wide service container built in the app lifespan."""
    return request.app.state.services
