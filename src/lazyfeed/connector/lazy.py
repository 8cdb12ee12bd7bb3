import asyncio
import logging
from collections import namedtuple

from lazyfeed.connector.base import Connection, Connector

logger = logging.getLogger(__name__)


Lease = namedtuple('Lease', ['conduit', 'release', 'done'])
Lease.__doc__ = """ A claim on a shared connection: the conduit, a single-fire release function and a task that
    finishes when the lease is released or the connection ends, raising if the connection failed. """


class _Generation:
    """ One physical connection attempt and the leases riding on it. """

    def __init__(self, connecting: asyncio.Future):
        self.connecting = connecting
        self.locks = 0
        self.closing = False
        self.settled = asyncio.Event()

    @property
    def connection(self) -> Connection:
        """ the connection, once the attempt has succeeded. """
        c = self.connecting
        if c.done() and not c.cancelled() and c.exception() is None:
            return c.result()
        return None


class LazyConnectionManager:
    """
    Shares one connection to a target between any number of leases. The connection is opened by the first
    lease, reused by every lease taken while it is open, and completed once the last lease is released.

    At most one physical connection exists at a time. Once the connection ends, or the attempt fails,
    the next lease starts a new one.

    :param target: The endpoint passed to the connector.
    :param connector: The connector that opens and acknowledges connections.
    """

    def __init__(self, target, connector: Connector=None):
        self.target = target
        self.connector = connector or Connector()
        self._generation = None

    @property
    def locks(self):
        """ the number of outstanding leases on the current connection. """
        generation = self._generation
        return generation.locks if generation else 0

    @property
    def connected(self):
        generation = self._generation
        return generation is not None and generation.connection is not None

    async def lease(self) -> Lease:
        """
        Claims the shared connection, opening it if needed.
        :return: a Lease (conduit, release, done)
        :raises ConnectorError: if the connection attempt failed. Every lease waiting on that attempt
            receives the same error.
        """
        while True:
            generation = self._generation
            if generation is None:
                generation = self._start()
            if not generation.closing:
                break
            # the last lease was released and the connection is completing; don't share it
            await generation.settled.wait()
        generation.locks += 1

        try:
            connection = await asyncio.shield(generation.connecting)
        except BaseException:
            self._unlock(generation)
            raise

        released = asyncio.Event()
        done = asyncio.ensure_future(self._hold(connection, released))
        done.add_done_callback(lambda _: self._unlock(generation))
        return Lease(connection.conduit, released.set, done)

    def _start(self):
        connecting = asyncio.ensure_future(self.connector.connect(self.target))
        generation = self._generation = _Generation(connecting)
        logger.debug("connecting to %s" % self.target)

        def connected(f):
            if f.cancelled() or f.exception() is not None:
                self._forget(generation)
                return
            connection = f.result()
            connection.terminal.add_done_callback(lambda terminal: self._forget(generation))
            if generation.closing:
                connection.complete()

        connecting.add_done_callback(connected)
        return generation

    def _forget(self, generation):
        """ the generation's connection has ended; later leases start a new one. """
        generation.settled.set()
        if self._generation is generation:
            self._generation = None
            logger.debug("connection to %s ended" % self.target)

    def _unlock(self, generation):
        generation.locks -= 1
        logger.debug("released lease on %s, %d remaining" % (self.target, generation.locks))
        if generation.locks:
            return
        generation.closing = True
        connection = generation.connection
        if connection is not None and not connection.terminal.settled:
            logger.debug("completing connection to %s" % self.target)
            connection.complete()

    async def _hold(self, connection, released):
        """ waits for the lease to be released or the connection to end, whichever comes first. """
        release = asyncio.ensure_future(released.wait())
        terminal = asyncio.ensure_future(connection.terminal.wait())
        try:
            await asyncio.wait((release, terminal), return_when=asyncio.FIRST_COMPLETED)
            if not released.is_set():
                await terminal
        finally:
            release.cancel()
            terminal.cancel()


def make_lazy_connection_manager(target, connector: Connector=None) -> LazyConnectionManager:
    return LazyConnectionManager(target, connector)
