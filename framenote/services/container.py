from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .realtime import RealtimePublisher

EXTENSION_KEY = "framenote.services"


@dataclass
class ServiceContainer:
    """Collaborators the routes reach through the app, so tests can swap them."""

    realtime: RealtimePublisher

    @classmethod
    def from_env(cls) -> ServiceContainer:
        return cls(realtime=RealtimePublisher())


def init_services(app, services: ServiceContainer | None = None) -> ServiceContainer:
    app.extensions[EXTENSION_KEY] = services or ServiceContainer.from_env()
    return app.extensions[EXTENSION_KEY]


def get_services() -> ServiceContainer:
    services = current_app.extensions.get(EXTENSION_KEY)
    if services is None:
        services = init_services(current_app)
    return services
