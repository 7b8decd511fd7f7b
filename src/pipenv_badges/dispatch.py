"""
Service registry and request dispatch.

Turns a request path into a badge: find the matching service, run its
handler with the injected fetcher, and render failures as error badges.
"""

from typing import Any, Dict, List, Optional, Tuple, Type

from .badges import BadgeData, render_error_badge
from .error_handling import ErrorCategory, get_error_handler
from .errors import BadgeError, NotFound
from .github_client import RepoFileFetcher
from .services import DependencyVersionBadge, PythonVersionBadge
from .structured_logging import (
    clear_request_context,
    log_badge_failed,
    log_badge_rendered,
    set_request_context,
)

SERVICES: List[Type[Any]] = [PythonVersionBadge, DependencyVersionBadge]

# Route placeholder names that differ from handler argument names.
PARAM_NAMES = {"packageName": "package_name"}


def resolve_route(path: str) -> Tuple[Type[Any], Dict[str, str]]:
    """
    Find the service for a request path.

    Returns:
        The service class and its handler keyword arguments

    Raises:
        NotFound: If no service route matches
    """
    for service in SERVICES:
        params = service.route.match(path)
        if params is not None:
            return service, {PARAM_NAMES.get(k, k): v for k, v in params.items()}
    raise NotFound("route not found")


async def invoke(
    service: Type[Any], fetcher: RepoFileFetcher, **params: Optional[str]
) -> BadgeData:
    """
    Run one service handler and always return a badge.

    Badge failures become error badges; any other exception propagates.
    """
    set_request_context(
        service=service.name,
        user=params.get("user"),
        repo=params.get("repo"),
        branch=params.get("branch"),
    )
    try:
        badge = await service(fetcher).handle(**params)
    except BadgeError as e:
        get_error_handler().warning(
            ErrorCategory.LOOKUP,
            f"{service.name}: {e.pretty_message}",
            "dispatch",
            "invoke",
            exception=e,
        )
        log_badge_failed(service.name, e)
        return render_error_badge(e, service.default_badge_data["label"])
    finally:
        clear_request_context()

    log_badge_rendered(service.name, badge.label, badge.message, badge.color)
    return badge


async def handle_request(path: str, fetcher: RepoFileFetcher) -> BadgeData:
    """Dispatch a full route path such as ``github/pipenv/locked/python-version/u/r``."""
    try:
        service, params = resolve_route(path)
    except NotFound as e:
        return render_error_badge(e, "badge")
    return await invoke(service, fetcher, **params)
