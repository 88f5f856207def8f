"""CORS handling for the storage API."""

from __future__ import annotations

from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send


class StorageCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that answers every OPTIONS request with 204.

    Browser preflights and bare OPTIONS requests alike get the preflight
    headers and no body, whatever headers the preflight asks for. Other
    responses always carry the allow-origin header, with or without an
    ``Origin`` request header.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=204, headers=dict(self.preflight_headers))
            await response(scope, receive, send)
            return

        if "origin" in Headers(scope=scope):
            await super().__call__(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).update(self.simple_headers)
            await send(message)

        await self.app(scope, receive, send_with_cors)
