"""Channel transport for the client. The default is a `websockets` connection."""

from typing import Awaitable, Callable, Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed


class ChannelClosed(Exception):
    """The underlying transport went away."""


class Channel(Protocol):
    async def send(self, text: str) -> None: ...

    async def recv(self) -> str: ...

    async def close(self) -> None: ...


# open(url) -> Channel
ChannelFactory = Callable[[str], Awaitable[Channel]]


class WebSocketChannel:
    """Adapts a `websockets` client connection to the Channel protocol."""

    def __init__(self, connection: ClientConnection):
        self._connection = connection

    async def send(self, text: str) -> None:
        try:
            await self._connection.send(text)
        except ConnectionClosed as e:
            raise ChannelClosed(str(e)) from e

    async def recv(self) -> str:
        try:
            message = await self._connection.recv()
        except ConnectionClosed as e:
            raise ChannelClosed(str(e)) from e
        if isinstance(message, bytes):
            return message.decode("utf-8")
        return message

    async def close(self) -> None:
        await self._connection.close()


async def open_websocket(url: str) -> WebSocketChannel:
    # The connection manager bounds the whole attempt with its own timeout
    connection = await connect(url, open_timeout=None)
    return WebSocketChannel(connection)
