"""HTTP surface of the token authority, mounted per API version."""

from __future__ import annotations

from collections.abc import Iterable

from flask import Blueprint, Flask


def join_prefix(*segments: str) -> str:
    """Join URL segments into one absolute prefix without doubled slashes.

    >>> join_prefix("/api/", "v1", "/auth")
    '/api/v1/auth'
    >>> join_prefix("/api", "v1", "")
    '/api/v1'
    """
    parts = [s.strip("/") for s in segments if s and s.strip("/")]
    return "/" + "/".join(parts)


def mount_version(app: Flask, version: str, registry: Iterable[tuple[Blueprint, str]]) -> None:
    """Register every ``(blueprint, relative_prefix)`` of one API version.

    :param app: Application receiving the blueprints.
    :param version: Version segment, e.g. ``"v1"``.
    :param registry: Blueprints with their prefix relative to the version root.
    """
    api_base = app.config.get("API_BASE_PREFIX", "/api")
    for bp, rel_prefix in registry:
        app.register_blueprint(bp, url_prefix=join_prefix(api_base, version, rel_prefix))


def init_app(app: Flask) -> None:
    from authority.api.v1 import API_VERSION, REGISTRY

    mount_version(app, API_VERSION, REGISTRY)


__all__ = ["init_app", "join_prefix", "mount_version"]
