"""
=============================================================================
PAGE RESPONSE BUILDER
=============================================================================

Builds the two responses the HTTP channel ever sends.

=============================================================================
THE 200 RESPONSE
=============================================================================

Sent as two writes, header first, then body:

    HTTP/1.1 200 OK
    Date: Mon, 01 Jan 1970 00:00:01 GMT        <- static, never the real time
    Server: ...
    Last-Modified: ...
    Content-Type: text/html; charset=UTF-8
    Content-Length: <len(body)>                <- the only dynamic header
    Accept-Ranges: bytes
    Connection: close

    <html>...<h1 style="color: #3af">...</html>

The header text is fixed, including its unusual spacing and bare "\n" line
endings, because load-test clients compare against it. Content-Length is
the byte length of the encoded body.

=============================================================================
THE 404 RESPONSE
=============================================================================

Anything that does not contain "GET / " gets NOT_FOUND, byte for byte.

=============================================================================
PAGE COLOR
=============================================================================

Each page carries one 3-digit hex color drawn from a process-wide
random.Random, seeded once at import from a high-resolution counter. It is
cosmetic only, never use it for anything that needs real randomness.

=============================================================================
"""

import random
import time
from typing import Optional, Tuple

NOT_FOUND = "HTTP/1.1 404 Not Found \n Connection: close\n\n"

SERVER_NAME = "netstress prototype 4.0"

_FONT_MEDIUM = "font-family: 'Ubuntu', sans-serif; font-weight: 500; "
_FONT_LIGHT = "font-family: 'Ubuntu', sans-serif; font-weight: 300; "

# Shared page color generator, advanced on every build_body() call
_page_rng = random.Random(time.perf_counter_ns())


def build_header(content_length: int) -> str:
    """
    Build the fixed 200 header for a body of content_length bytes.

    Args:
        content_length: Byte length of the body that follows.

    Returns:
        Header text, terminated by the blank line.
    """
    return (
        "HTTP/1.1 200 OK \n "
        "Date: Mon, 01 Jan 1970 00:00:01 GMT \n"
        f"Server: {SERVER_NAME} \n"
        "Last-Modified: Wed, 08 Jan 2003 23:11:55 GMT \n"
        "Content-Type: text/html; charset=UTF-8 \n"
        f"Content-Length: {content_length}\n"
        "Accept-Ranges: bytes\n"
        "Connection: close\n\n"
    )


def page_color(rng: Optional[random.Random] = None) -> str:
    """Draw the next page color as three lowercase hex digits, e.g. "3af"."""
    generator = rng if rng is not None else _page_rng
    return f"{generator.getrandbits(12):03x}"


def build_body(rng: Optional[random.Random] = None) -> str:
    """
    Build the HTML page.

    Args:
        rng: Generator for the page color. Defaults to the shared one.

    Returns:
        HTML text starting with "<html>".
    """
    color = page_color(rng)
    return (
        "<html><head>"
        "<link href='https://fonts.googleapis.com/css?family=Ubuntu:500,300' "
        "rel='stylesheet' type='text/css'>"
        "</head><body>"
        f'<h1 style= "color: #{color}">'
        f'<span style="{_FONT_MEDIUM}">net</span>'
        f'<span style="{_FONT_LIGHT}">stress</span> </h1>'
        "<h2>Now speaks TCP!</h2>"
        "<p> This is improvised http, but proper stuff is in the works. </p>"
        "<footer><hr /> &copy; netstress @ 60&deg; north </footer>"
        "</body></html>\n"
    )


def page_response(rng: Optional[random.Random] = None) -> Tuple[bytes, bytes]:
    """
    Build the encoded (header, body) pair for one page.

    Content-Length is computed from the encoded body, not the text length.
    """
    body = build_body(rng).encode("utf-8")
    header = build_header(len(body)).encode("utf-8")
    return header, body
