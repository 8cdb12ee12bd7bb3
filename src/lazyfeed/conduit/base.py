from abc import abstractmethod

from lazyfeed.support.events import EventSource
from lazyfeed.support.mixins import CommonEqualityMixin, StringerMixin

# well known close codes
NORMAL_CLOSURE = 1000
PROTOCOL_ERROR = 1002
ABNORMAL_CLOSURE = 1006


class ConduitOpenError(ConnectionError):
    """ Indicates the session to the endpoint could not be opened. """


class CloseEvent(CommonEqualityMixin, StringerMixin):
    """ Describes how a session ended. Reported exactly once per conduit. """

    def __init__(self, code, reason=''):
        self.code = code
        self.reason = reason

    @property
    def normal(self) -> bool:
        return self.code == NORMAL_CLOSURE

    @property
    def abrupt(self) -> bool:
        return self.code == ABNORMAL_CLOSURE


class Conduit:
    """
    A conduit allows two-way communication with an endpoint. Outbound messages are queued with send(),
    inbound messages are fired from the `messages` event source and the end of the session is fired from the
    `closed` event source with a CloseEvent.
    """

    @property
    @abstractmethod
    def target(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def messages(self) -> EventSource:
        """ fired with each inbound message, in the order received. """
        raise NotImplementedError

    @property
    @abstractmethod
    def closed(self) -> EventSource:
        """ fired once with a CloseEvent when the session has ended. """
        raise NotImplementedError

    @property
    @abstractmethod
    def close_event(self) -> CloseEvent:
        """ how the session ended, or None while it is alive. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, messages can be sent. """
        raise NotImplementedError

    @abstractmethod
    def send(self, data):
        """ Queues a message for sending. Messages are sent in the order queued. """
        raise NotImplementedError

    @abstractmethod
    def close(self, code=NORMAL_CLOSURE, reason=''):
        """
        Starts closing the session once previously queued messages are sent. Closing a closed conduit does nothing.
        The outcome is reported via the closed event, which carries the code the endpoint actually reported.
        """
        raise NotImplementedError


class DefaultConduit(Conduit):
    """ provides the event sources and the close bookkeeping for concrete conduits. """

    def __init__(self, target=None):
        self._target = target
        self._messages = EventSource()
        self._closed = EventSource()
        self._close_event = None
        self._closing = False

    @property
    def target(self):
        return self._target

    @property
    def messages(self) -> EventSource:
        return self._messages

    @property
    def closed(self) -> EventSource:
        return self._closed

    @property
    def close_event(self) -> CloseEvent:
        """ the event describing how the session ended, or None while the session is alive. """
        return self._close_event

    @property
    def open(self):
        return not self._closing and self._close_event is None

    def send(self, data):
        if not self.open:
            return
        self._send(data)

    def close(self, code=NORMAL_CLOSURE, reason=''):
        if not self.open:
            return
        self._closing = True
        self._close(code, reason)

    def _message(self, data):
        """ called by subclasses for each inbound message """
        self._messages.fire(data)

    def _session_closed(self, code, reason=''):
        """ called by subclasses when the session has ended. Only the first call is reported. """
        if self._close_event is not None:
            return
        self._close_event = CloseEvent(code, reason)
        self._closed.fire(self._close_event)

    @abstractmethod
    def _send(self, data):
        raise NotImplementedError

    @abstractmethod
    def _close(self, code, reason):
        raise NotImplementedError
