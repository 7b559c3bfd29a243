"""FastAPI dependencies resolving the relay objects held on ``app.state``."""

from fastapi import Request

from driftchat.services.entity_store import EntityStore


def get_store(request: Request) -> EntityStore:
    """Return the entity store built by the application lifespan."""

    return request.app.state.store
