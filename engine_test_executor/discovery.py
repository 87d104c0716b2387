"""Finding routes in the engine component tree and selecting which ones to test."""

import fnmatch
import logging
import re
from typing import Optional

from .models import Component, Route

logger = logging.getLogger(__name__)

ROUTE_TYPE = "ROUTE"


def find_all_routes(tree: dict) -> list[Route]:
    """
    Collect every route of a component tree.

    Args:
        tree: Payload of /api/components; the folder hierarchy lives under "data"
              (a bare root folder is accepted as well)

    Returns:
        Routes in tree order, each with its folder path and filters
    """
    root = tree.get("data", tree) if isinstance(tree, dict) else {}
    return _walk(root or {}, [])


def _walk(folder: dict, path: list[str]) -> list[Route]:
    routes = []
    folder_path = "/".join(path)
    for child in folder.get("childComponents") or []:
        if isinstance(child, dict) and str(child.get("type")) == ROUTE_TYPE:
            routes.append(Route.from_tree(child, folder_path))

    for sub in folder.get("childFolders") or []:
        routes.extend(_walk(sub, path + [str(sub.get("name", ""))]))
    return routes


def split_patterns(patterns: Optional[str]) -> list[str]:
    """Split newline or comma separated glob patterns, dropping blanks."""
    if not patterns:
        return []
    return [p.strip() for p in re.split(r"[\n,]", patterns) if p.strip()]


def _compile(patterns: list[str]) -> list[re.Pattern]:
    return [re.compile(fnmatch.translate(p), re.IGNORECASE) for p in patterns]


def _matches(regexes: list[re.Pattern], name: str) -> bool:
    return any(r.match(name or "") for r in regexes)


def select_components(routes: list[Route], route_patterns: str, filter_patterns: Optional[str] = None) -> list[Component]:
    """
    Pick the components to test.

    A route whose name matches a route pattern is tested as a whole, unless
    filter patterns are given: then only its filters matching a filter
    pattern are tested. Matching is case-insensitive on the whole name.

    Raises:
        ValueError: route_patterns is blank
    """
    route_regex = _compile(split_patterns(route_patterns))
    if not route_regex:
        raise ValueError("Route patterns must not be blank")
    filter_regex = _compile(split_patterns(filter_patterns))

    selected: list[Component] = []
    for route in routes:
        if not _matches(route_regex, route.name):
            continue
        if filter_regex:
            selected.extend(f for f in route.filters if _matches(filter_regex, f.name))
        else:
            selected.append(route)

    logger.debug(f"Selected {len(selected)} components out of {len(routes)} routes")
    return selected
