class EventSource(object):
    """
    A list of handlers that are called synchronously, in registration order, each time the source fires.
    Handlers may add or remove handlers while the source is firing; the change applies to the next fire.
    """

    def __init__(self):
        self._handlers = []

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        for handler in self.handlers():
            handler(*args, **kwargs)
