import logging

from lazyfeed.conduit.base import Conduit
from lazyfeed.protocol.envelope import Complete, EnvelopeError, Response, decode
from lazyfeed.support.events import EventSource

logger = logging.getLogger(__name__)


class EnvelopeDispatcher:
    """
    Routes the envelopes arriving on one conduit to the subscriptions sharing it.

    Each inbound message is decoded once. Responses and completions are passed to the handler registered
    for their subscription id. Envelopes for ids nobody registered are fired on `unmatched`.
    Messages that are not envelopes are logged, fired on `invalid` and otherwise dropped.

    The dispatcher listens to the conduit only while at least one handler is registered.

    :param conduit: The conduit whose messages are dispatched
    """

    def __init__(self, conduit: Conduit):
        self._conduit = conduit
        self._handlers = {}
        self.unmatched = EventSource()
        self.invalid = EventSource()

    @property
    def conduit(self):
        return self._conduit

    @property
    def attached(self):
        return bool(self._handlers)

    def register(self, subscription_id, handler):
        """
        :param handler: called with each Response or Complete envelope for the subscription id
        """
        if subscription_id in self._handlers:
            raise ValueError("subscription %s is already registered" % subscription_id)
        if not self._handlers:
            self._conduit.messages.add(self.process_message)
        self._handlers[subscription_id] = handler

    def unregister(self, subscription_id):
        if self._handlers.pop(subscription_id, None) is None:
            return
        if not self._handlers:
            self._conduit.messages.remove(self.process_message)

    def process_message(self, data):
        try:
            envelope = decode(data)
        except EnvelopeError as e:
            logger.warning("ignoring message on %s: %s" % (self._conduit.target, e))
            self.invalid.fire(data)
            return None
        return self.process_envelope(envelope)

    def process_envelope(self, envelope):
        handler = None
        if isinstance(envelope, (Response, Complete)):
            handler = self._handlers.get(envelope.subscription_id)
        if handler is None:
            logger.debug("no subscription for %s" % (envelope,))
            self.unmatched.fire(envelope)
        else:
            try:
                handler(envelope)
            except Exception as e:
                logger.exception(e)
        return envelope
