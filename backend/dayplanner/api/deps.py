from fastapi import Request
from dayplanner.core.container import Services

def get_services(request: Request) -> Services:
    """Returns the collaborators the application was started with."""
    return request.app.state.services
