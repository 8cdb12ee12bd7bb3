import asyncio
import logging

from websockets.asyncio import client
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from lazyfeed.conduit.base import ABNORMAL_CLOSURE, ConduitOpenError, DefaultConduit

logger = logging.getLogger(__name__)


class _Close:
    """ queued behind any pending messages to close the session once they are sent. """
    def __init__(self, code, reason):
        self.code = code
        self.reason = reason


class WebSocketConduit(DefaultConduit):
    """
    A conduit that exchanges text frames with a WebSocket server.

    A reader task fires each inbound frame and then the close event once the connection is gone.
    A writer task drains the outbound queue, so send() and close() don't block.
    :param connection: The open websockets client connection
    :param target: The uri the connection was opened to
    """

    # passed to websockets.asyncio.client.connect()
    open_timeout = 10
    ping_interval = 20
    ping_timeout = 20
    close_timeout = 10

    def __init__(self, connection, target):
        super().__init__(target)
        self.connection = connection
        self._outbox = asyncio.Queue()
        self._reader = asyncio.ensure_future(self._read_loop())
        self._writer = asyncio.ensure_future(self._write_loop())

    @classmethod
    async def connect(cls, target, **connect_args):
        """
        Opens a WebSocket session to the target uri.
        :param target: the ws:// or wss:// uri to connect to
        :param connect_args: overrides for the keyword arguments passed to websockets connect()
        :raises ConduitOpenError: when the session cannot be established
        """
        args = dict(open_timeout=cls.open_timeout, ping_interval=cls.ping_interval,
                    ping_timeout=cls.ping_timeout, close_timeout=cls.close_timeout)
        args.update(connect_args)
        try:
            connection = await client.connect(target, **args)
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            logger.warning("error opening websocket to %s: %s" % (target, e))
            raise ConduitOpenError("unable to open %s" % target) from e
        logger.info("opened websocket to %s" % target)
        return cls(connection, target)

    def _send(self, data):
        self._outbox.put_nowait(data)

    def _close(self, code, reason):
        self._outbox.put_nowait(_Close(code, reason))

    async def _write_loop(self):
        connection = self.connection
        try:
            while True:
                item = await self._outbox.get()
                if isinstance(item, _Close):
                    await connection.close(item.code, item.reason)
                    return
                await connection.send(item)
        except ConnectionClosed:
            # the reader reports how the session ended
            logger.debug("websocket to %s closed with %d messages unsent" % (self.target, self._outbox.qsize()))

    def _do(self, callme, *args):
        """ runs a message handler and logs any exception, so one failing handler doesn't end the session """
        try:
            callme(*args)
        except Exception as e:
            logger.exception(e)

    async def _read_loop(self):
        connection = self.connection
        try:
            async for data in connection:
                self._do(self._message, data)
        except ConnectionClosed as e:
            logger.debug("websocket to %s lost: %s" % (self.target, e))
        await connection.wait_closed()
        self._writer.cancel()
        code = connection.close_code
        reason = connection.close_reason or ''
        logger.info("websocket to %s closed: %s %s" % (self.target, code, reason))
        self._session_closed(code if code is not None else ABNORMAL_CLOSURE, reason)
