from fastapi import Request

from ..store import TimeStore


def get_store(request: Request) -> TimeStore:
    """Return the store the application was created with"""
    return request.app.state.store
