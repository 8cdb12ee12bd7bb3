"""
The envelopes multiplexed over a shared connection, and their JSON text encoding.

    Request:    {"id": <integer>, "request": <string>}
    Response:   {"id": <integer>, "response": <string>}
    Complete:   {"complete": <integer>}

The id ties a response or completion to the subscription that sent the request.
"""
import json

from lazyfeed.support.mixins import CommonEqualityMixin, StringerMixin


class EnvelopeError(ValueError):
    """ A message that is not a well formed envelope. """


class Envelope(CommonEqualityMixin, StringerMixin):
    """ base class for envelopes. """

    @property
    def subscription_id(self):
        """ the id of the subscription this envelope is addressed to. """
        raise NotImplementedError

    def to_json(self) -> dict:
        raise NotImplementedError


class Request(Envelope):
    def __init__(self, id, request):
        self.id = id
        self.request = request

    @property
    def subscription_id(self):
        return self.id

    def to_json(self):
        return {'id': self.id, 'request': self.request}


class Response(Envelope):
    def __init__(self, id, response):
        self.id = id
        self.response = response

    @property
    def subscription_id(self):
        return self.id

    def to_json(self):
        return {'id': self.id, 'response': self.response}


class Complete(Envelope):
    def __init__(self, complete):
        self.complete = complete

    @property
    def subscription_id(self):
        return self.complete

    def to_json(self):
        return {'complete': self.complete}


def encode(envelope: Envelope) -> str:
    """
    >>> encode(Complete(0))
    '{"complete":0}'
    """
    return json.dumps(envelope.to_json(), separators=(',', ':'), ensure_ascii=False)


def _is_id(value):
    return isinstance(value, int) and not isinstance(value, bool)


def decode(data) -> Envelope:
    """
    Decodes an envelope from its JSON text.
    :raises EnvelopeError: if the data is not JSON or not one of the envelope shapes.
    >>> decode('{"id": 3, "response": "hi"}')
    Response{'id': '3', 'response': 'hi'}
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise EnvelopeError("envelope is not utf-8 text") from e
    try:
        msg = json.loads(data)
    except (TypeError, ValueError) as e:
        raise EnvelopeError("envelope is not JSON: %r" % (data,)) from e
    if not isinstance(msg, dict):
        raise EnvelopeError("envelope is not an object: %r" % (data,))

    if 'complete' in msg:
        if _is_id(msg['complete']):
            return Complete(msg['complete'])
    elif _is_id(msg.get('id')):
        if isinstance(msg.get('response'), str):
            return Response(msg['id'], msg['response'])
        if isinstance(msg.get('request'), str):
            return Request(msg['id'], msg['request'])
    raise EnvelopeError("unrecognized envelope: %r" % (data,))
