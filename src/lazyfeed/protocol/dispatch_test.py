import unittest
from unittest.mock import Mock

from lazyfeed.conduit.base_test import FakeConduit
from lazyfeed.protocol.dispatch import EnvelopeDispatcher
from lazyfeed.protocol.envelope import Complete, Request, Response


class EnvelopeDispatcherTest(unittest.TestCase):

    def setUp(self):
        self.conduit = FakeConduit()
        self.sut = EnvelopeDispatcher(self.conduit)

    def test_listens_only_while_registered(self):
        self.assertFalse(self.sut.attached)
        self.assertEqual(len(self.conduit.messages), 0)
        self.sut.register(0, Mock())
        self.sut.register(1, Mock())
        self.assertTrue(self.sut.attached)
        self.assertEqual(len(self.conduit.messages), 1)
        self.sut.unregister(0)
        self.assertEqual(len(self.conduit.messages), 1)
        self.sut.unregister(1)
        self.assertFalse(self.sut.attached)
        self.assertEqual(len(self.conduit.messages), 0)

    def test_unregister_unknown_id(self):
        self.sut.unregister(5)
        self.assertFalse(self.sut.attached)

    def test_duplicate_registration(self):
        self.sut.register(0, Mock())
        self.assertRaises(ValueError, self.sut.register, 0, Mock())

    def test_routes_by_id(self):
        first, second = Mock(), Mock()
        self.sut.register(0, first)
        self.sut.register(1, second)
        self.conduit.receive({'id': 1, 'response': 'b'})
        self.conduit.receive({'id': 0, 'response': 'a'})
        self.conduit.receive({'complete': 1})
        first.assert_called_once_with(Response(0, 'a'))
        self.assertEqual([c.args[0] for c in second.call_args_list], [Response(1, 'b'), Complete(1)])

    def test_unmatched_envelopes(self):
        unmatched = Mock()
        self.sut.unmatched.add(unmatched)
        self.sut.register(0, Mock())
        self.conduit.receive({'id': 9, 'response': 'x'})
        self.conduit.receive({'id': 0, 'request': 'echo'})
        self.assertEqual([c.args[0] for c in unmatched.call_args_list], [Response(9, 'x'), Request(0, 'echo')])

    def test_invalid_messages_are_dropped(self):
        handler, invalid = Mock(), Mock()
        self.sut.invalid.add(invalid)
        self.sut.register(0, handler)
        with self.assertLogs('lazyfeed.protocol.dispatch', 'WARNING'):
            self.assertIsNone(self.sut.process_message('not json'))
        self.conduit.receive({'id': 0, 'response': 'still here'})
        invalid.assert_called_once_with('not json')
        handler.assert_called_once_with(Response(0, 'still here'))

    def test_handler_errors_are_logged(self):
        self.sut.register(0, Mock(side_effect=RuntimeError('oops')))
        after = Mock()
        self.sut.register(1, after)
        with self.assertLogs('lazyfeed.protocol.dispatch', 'ERROR'):
            self.conduit.receive({'id': 0, 'response': 'a'})
        self.conduit.receive({'id': 1, 'response': 'b'})
        after.assert_called_once_with(Response(1, 'b'))

    def test_handler_may_unregister_while_dispatching(self):
        def handler(envelope):
            self.sut.unregister(0)
        self.sut.register(0, handler)
        self.conduit.receive({'complete': 0})
        self.assertFalse(self.sut.attached)


if __name__ == '__main__':  # pragma no cover
    unittest.main()
