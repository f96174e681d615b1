from fastapi import Depends, Request

from .container import ApplicationContainer


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Application container not initialised.")
    return container


def get_settings(container: ApplicationContainer = Depends(get_container)):
    return container.settings


def get_auth_service(container: ApplicationContainer = Depends(get_container)):
    return container.auth_service


def throttle(name: str):
    """Dependency applying the named request throttle from the container."""

    async def _apply(request: Request, container: ApplicationContainer = Depends(get_container)) -> None:
        await container.throttles[name](request)

    return _apply
