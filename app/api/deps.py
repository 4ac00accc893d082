from starlette.requests import HTTPConnection

from app.core.exceptions import MediaBackendUnavailable
from app.services.media_backend import YouTubeBackend
from app.services.relay_system import RelaySystem


def get_relay_system(conn: HTTPConnection) -> RelaySystem:
    return conn.app.state.relay_system


def get_media_backend(conn: HTTPConnection) -> YouTubeBackend | None:
    return getattr(conn.app.state, "media_backend", None)


def require_backend(backend: YouTubeBackend | None) -> YouTubeBackend:
    if backend is None:
        raise MediaBackendUnavailable("media backend not initialised")
    return backend
