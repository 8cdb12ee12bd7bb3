"""

Shared feed connections

- Conduit: abstraction of a bi-directional, message oriented session. Messages are sent without blocking,
  inbound messages and the final close are fired as events. WebSocketConduit is a websocket client session.
- Connector: opens a conduit and waits for the server's acknowledgment before handing it out.
  The result is the conduit, a complete() function that closes it normally, and a terminal signal
  that reports how the connection ended - completed (code 1000) or closed with some other code.
- LazyConnectionManager - shares one connection between many leases. The first lease opens it, further
  leases reuse it, and it is completed when the last lease is released.
- SubscriptionMultiplexer - runs subscriptions over a manager's connection. Each subscription sends a request
  with a fresh id, and responses/completions with that id are routed back to it. When the connection is lost
  abruptly (code 1006) the subscription quietly starts over with a new id; other closures end it with an error.


## Scheduling

Everything runs on one asyncio event loop. Event handlers are plain callables fired synchronously from the
conduit's reader task, so a handler sees messages in the order they arrived.
Shared state in the manager is read and updated without an await in between.


Usage:

    manager = make_lazy_connection_manager('ws://localhost:8080/feed')
    complete, done = subscribe(manager, 'givemewaves', print)
    ...
    complete()
    await done

"""
from functools import partial

from lazyfeed.conduit.websocket_conduit import WebSocketConduit
from lazyfeed.config.config import apply_conf, load_config
from lazyfeed.connector.base import ConnectionClosedError, Connector, ConnectorError, HandshakeError
from lazyfeed.connector.lazy import LazyConnectionManager
from lazyfeed.protocol import subscription

__all__ = ['connect', 'make_lazy_connection_manager', 'subscribe', 'configured_connector',
           'ConnectorError', 'HandshakeError', 'ConnectionClosedError']


def configured_connector(config=None) -> Connector:
    """ a websocket connector with the settings from the configuration files. """
    config = config or load_config()
    conduit_factory = partial(WebSocketConduit.connect, **config.conduit.model_dump())
    return apply_conf(config.connector, Connector(conduit_factory))


async def connect(target):
    """
    Opens an acknowledged connection to target.
    :return: (conduit, complete, terminal)
    """
    return await configured_connector().connect(target)


def make_lazy_connection_manager(target) -> LazyConnectionManager:
    config = load_config()
    manager = LazyConnectionManager(target, configured_connector(config))
    subscription.bind_multiplexer(manager, apply_conf(config.subscription, subscription.SubscriptionMultiplexer()))
    return manager


def subscribe(manager: LazyConnectionManager, request, listener):
    """
    Subscribes to the responses to request over the manager's shared connection.
    :return: (complete, done)
    """
    return subscription.subscribe(manager, request, listener)
