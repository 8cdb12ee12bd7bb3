import asyncio
import itertools
import logging
import weakref
from enum import Enum

from lazyfeed.connector.base import ConnectorError
from lazyfeed.connector.lazy import LazyConnectionManager
from lazyfeed.protocol.dispatch import EnvelopeDispatcher
from lazyfeed.protocol.envelope import Complete, Request, encode
from lazyfeed.support.retry_strategy import retry_strategy_for

logger = logging.getLogger(__name__)


class SubscriptionState(Enum):
    PENDING = 'pending'         # waiting for a lease
    ACTIVE = 'active'           # request sent, listening for responses
    RETRYING = 'retrying'       # the connection was lost abruptly, about to try again
    COMPLETED = 'completed'
    FAILED = 'failed'


class Subscription:
    """
    One request whose responses are passed to a listener until either side completes it.

    Each attempt leases the shared connection, takes a new id from the multiplexer and sends the request.
    If the connection is lost abruptly, before or after it was acknowledged, the attempt is repeated.
    Otherwise the subscription ends, normally when it was completed or by raising the connection error.

    `complete()` can be called at any time. Before the request is sent it only marks the subscription
    completed, so the next lease is released straight away and nothing is sent.
    """

    def __init__(self, multiplexer, manager: LazyConnectionManager, request, listener):
        self.multiplexer = multiplexer
        self.manager = manager
        self.request = request
        self.listener = listener
        self.id = None
        self.attempts = 0
        self.state = SubscriptionState.PENDING
        self.done = None
        self._completed = False
        self._completer = self._complete_pending
        self._retry_strategy = retry_strategy_for(multiplexer.retry_period)

    @property
    def completed(self):
        """ True once complete() has been called. """
        return self._completed

    def start(self):
        if self.done is None:
            self.done = asyncio.ensure_future(self._run())
        return self.done

    def complete(self):
        self._completer()

    def _complete_pending(self):
        self._completed = True

    async def _run(self):
        while True:
            self.state = SubscriptionState.PENDING
            try:
                await self._attempt()
            except ConnectorError as e:
                if not e.abrupt:
                    self.state = SubscriptionState.FAILED
                    raise
                self.state = SubscriptionState.RETRYING
                logger.info("subscription %s lost its connection to %s, retrying" % (self.id, self.manager.target))
                await self._pace()
                continue
            except BaseException:
                self.state = SubscriptionState.FAILED
                raise
            self.state = SubscriptionState.COMPLETED
            return

    async def _pace(self):
        loop = asyncio.get_running_loop()
        delay = self._retry_strategy(loop.time())
        while delay > 0:
            await asyncio.sleep(delay)
            delay = self._retry_strategy(loop.time())

    async def _attempt(self):
        lease = await self.manager.lease()
        self.attempts += 1
        if self._completed:
            lease.release()
            await lease.done
            return

        conduit = lease.conduit
        subscription_id = self.id = self.multiplexer.next_id()
        dispatcher = self.multiplexer.dispatcher(conduit)

        def on_envelope(envelope):
            if isinstance(envelope, Complete):
                logger.debug("subscription %s completed by %s" % (subscription_id, conduit.target))
                lease.release()
            elif not self._completed:
                self.listener(envelope.response)

        def complete():
            if self._completed:
                return
            self._completed = True
            conduit.send(encode(Complete(subscription_id)))
            lease.release()

        dispatcher.register(subscription_id, on_envelope)
        self._completer = complete
        self.state = SubscriptionState.ACTIVE
        try:
            conduit.send(encode(Request(subscription_id, self.request)))
            await asyncio.shield(lease.done)
        except asyncio.CancelledError:
            complete()
            raise
        finally:
            self._completer = self._complete_pending
            self.multiplexer.unregister(dispatcher, subscription_id)


class SubscriptionMultiplexer:
    """
    Runs subscriptions over lazily shared connections. Ids are allocated from this instance, one per attempt,
    and never reused.

    :param ids: an iterable of subscription ids. Defaults to counting from 0.
    """

    retry_period = 0        # the minimum time between retries of a subscription, in seconds

    def __init__(self, ids=None):
        self._ids = iter(ids) if ids is not None else itertools.count()
        self._dispatchers = weakref.WeakKeyDictionary()

    def next_id(self):
        return next(self._ids)

    def dispatcher(self, conduit) -> EnvelopeDispatcher:
        """ the dispatcher for the conduit, created when first needed. """
        dispatcher = self._dispatchers.get(conduit)
        if dispatcher is None:
            dispatcher = self._dispatchers[conduit] = EnvelopeDispatcher(conduit)
        return dispatcher

    def unregister(self, dispatcher: EnvelopeDispatcher, subscription_id):
        dispatcher.unregister(subscription_id)
        if not dispatcher.attached and self._dispatchers.get(dispatcher.conduit) is dispatcher:
            del self._dispatchers[dispatcher.conduit]

    def open(self, manager: LazyConnectionManager, request, listener) -> Subscription:
        """ creates and starts a subscription. """
        subscription = Subscription(self, manager, request, listener)
        subscription.start()
        return subscription

    def subscribe(self, manager: LazyConnectionManager, request, listener):
        """
        Subscribes to the responses to a request sent over the manager's shared connection.
        :param listener: called with the payload of each response
        :return: (complete, done). complete() ends the subscription, done is a task that finishes when
            the subscription completes, or raises the error that ended it.
        """
        subscription = self.open(manager, request, listener)
        return subscription.complete, subscription.done


# the multiplexer bound to each connection manager
_multiplexers = weakref.WeakKeyDictionary()


def bind_multiplexer(manager: LazyConnectionManager, multiplexer: SubscriptionMultiplexer):
    """ makes multiplexer the one used by subscribe() for the manager's connection. """
    _multiplexers[manager] = multiplexer
    return multiplexer


def multiplexer_for(manager: LazyConnectionManager) -> SubscriptionMultiplexer:
    """ the multiplexer shared by subscriptions on the manager's connection, created when first needed. """
    multiplexer = _multiplexers.get(manager)
    if multiplexer is None:
        multiplexer = bind_multiplexer(manager, SubscriptionMultiplexer())
    return multiplexer


def subscribe(manager: LazyConnectionManager, request, listener):
    return multiplexer_for(manager).subscribe(manager, request, listener)
