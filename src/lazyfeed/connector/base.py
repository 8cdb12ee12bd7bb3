import asyncio
import logging
from collections import namedtuple
from enum import Enum

from lazyfeed.conduit.base import ABNORMAL_CLOSURE, NORMAL_CLOSURE, PROTOCOL_ERROR, CloseEvent, Conduit, \
    ConduitOpenError
from lazyfeed.conduit.websocket_conduit import WebSocketConduit

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ Indicates an error condition with a connection. """

    def __init__(self, message=None, code=None, reason=None):
        super().__init__(message)
        self.code = code
        self.reason = reason

    @property
    def abrupt(self) -> bool:
        """ True if the connection was lost without a closing handshake. """
        return self.code == ABNORMAL_CLOSURE


class HandshakeError(ConnectorError):
    """ The connection was not acknowledged: it could not be opened, closed early or sent something else. """


class ConnectionClosedError(ConnectorError):
    """ The connection ended with a close code other than normal closure. """

    def __init__(self, code, reason=''):
        super().__init__("connection closed: %s %s" % (code, reason), code, reason)


class TerminalState(Enum):
    ALIVE = 'alive'
    COMPLETED = 'completed'
    CLOSED = 'closed'


class TerminalSignal:
    """
    The final outcome of one connection. Starts ALIVE and settles once, when the connection ends,
    to COMPLETED (normal closure) or CLOSED (anything else). Later settlements are ignored, so every
    observer sees the same outcome.
    """

    def __init__(self):
        self._state = TerminalState.ALIVE
        self._close_event = None
        self._future = asyncio.get_running_loop().create_future()
        # observed outcomes are retrieved so an unobserved failure isn't reported as never retrieved
        self._future.add_done_callback(lambda f: f.cancelled() or f.exception())

    @property
    def state(self) -> TerminalState:
        return self._state

    @property
    def settled(self) -> bool:
        return self._state is not TerminalState.ALIVE

    @property
    def close_event(self) -> CloseEvent:
        return self._close_event

    def settle(self, event: CloseEvent):
        """
        Settles the signal from how the connection closed.
        :return: True if this call settled the signal.
        """
        if self.settled:
            return False
        self._close_event = event
        if event.code == NORMAL_CLOSURE:
            self._state = TerminalState.COMPLETED
            self._future.set_result(None)
        else:
            self._state = TerminalState.CLOSED
            self._future.set_exception(ConnectionClosedError(event.code, event.reason))
        return True

    def add_done_callback(self, fn):
        """ calls fn with this signal once settled. """
        self._future.add_done_callback(lambda f: fn(self))

    async def wait(self):
        """ returns when the connection completed normally, raises ConnectionClosedError otherwise. """
        await asyncio.shield(self._future)

    def __await__(self):
        return self.wait().__await__()


Connection = namedtuple('Connection', ['conduit', 'complete', 'terminal'])
Connection.__doc__ = """ An acknowledged connection: the conduit, a function that completes it normally and the
    TerminalSignal reporting how it ended. """


class Connector:
    """
    Opens conduits to a target and confirms each with the acknowledgment handshake: the first message
    received must be the acknowledgment literal.

    :param conduit_factory: coroutine function called with the target that opens the conduit.
    """

    ack_message = 'ack'
    complete_reason = 'Normal Closure'

    def __init__(self, conduit_factory=None):
        self.conduit_factory = conduit_factory or WebSocketConduit.connect

    async def connect(self, target) -> Connection:
        """
        Opens a conduit to target and waits for it to be acknowledged.
        :return: a Connection (conduit, complete, terminal)
        :raises HandshakeError: if the conduit could not be opened, closed, or the first message was not
            the acknowledgment.
        """
        try:
            conduit = await self.conduit_factory(target)
        except ConduitOpenError as e:
            raise HandshakeError("unable to open %s" % target) from e

        terminal = TerminalSignal()
        conduit.closed.add(terminal.settle)
        if conduit.close_event is not None:
            terminal.settle(conduit.close_event)

        try:
            await self._handshake(conduit)
        except HandshakeError as e:
            logger.warning("handshake with %s failed: %s" % (target, e))
            raise
        logger.info("connection to %s acknowledged" % target)

        def complete():
            conduit.close(NORMAL_CLOSURE, self.complete_reason)

        return Connection(conduit, complete, terminal)

    async def _handshake(self, conduit: Conduit):
        acknowledged = asyncio.get_running_loop().create_future()

        def on_message(data):
            if acknowledged.done():
                return
            if self.is_ack(data):
                acknowledged.set_result(None)
            else:
                acknowledged.set_exception(HandshakeError("Didn't acknowledge!"))

        def on_close(event: CloseEvent):
            if not acknowledged.done():
                acknowledged.set_exception(HandshakeError("closed before acknowledgment: %s %s" %
                                                          (event.code, event.reason), event.code, event.reason))

        conduit.messages.add(on_message)
        conduit.closed.add(on_close)
        if conduit.close_event is not None:
            on_close(conduit.close_event)
        try:
            await acknowledged
        except HandshakeError:
            conduit.close(PROTOCOL_ERROR, "Didn't acknowledge!")
            raise
        except asyncio.CancelledError:
            conduit.close(NORMAL_CLOSURE, self.complete_reason)
            raise
        finally:
            conduit.messages.remove(on_message)
            conduit.closed.remove(on_close)

    def is_ack(self, data):
        if isinstance(data, (bytes, bytearray)):
            data = data.decode('utf-8', 'replace')
        return str(data) == self.ack_message
