"""
HTTP page responses for the port 80 channel.

    from netstress.http import page_response, NOT_FOUND

    header, body = page_response()
"""

from .response import (
    NOT_FOUND,
    build_body,
    build_header,
    page_color,
    page_response,
)

__all__ = [
    "NOT_FOUND",
    "build_body",
    "build_header",
    "page_color",
    "page_response",
]
