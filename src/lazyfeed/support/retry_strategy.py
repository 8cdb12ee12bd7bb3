import time

from lazyfeed.support.mixins import CommonEqualityMixin


class RetryStrategy:
    """ Retries immediately. """
    def __call__(self, current_time=None):
        return 0


class PeriodRetryStrategy(RetryStrategy, CommonEqualityMixin):

    def __init__(self, retry_period, last_tried=None):
        """
        :param retry_period: The minimum time between two attempts, in seconds.
        """
        self.last_tried = last_tried         # the time last tried
        self.retry_period = retry_period

    def __call__(self, current_time=None):
        """return the length of time until an operation should be retried
            :param current_time: the current time, in the same units as the period. Defaults to time.monotonic()
        """
        if current_time is None:
            current_time = time.monotonic()
        result = self._time_to_retry(current_time)
        if result <= 0:
            self.last_tried = current_time
        return result

    def _time_to_retry(self, current_time):
        """
        Determines how long until the next try
        :param current_time: The current time.
        :return: the delay until the next try. Zero or less means try now.
        """
        return 0 if self.last_tried is None else self.retry_period - (current_time - self.last_tried)


def retry_strategy_for(retry_period):
    """
    Selects the strategy for a configured retry period. A period of zero or less retries immediately.
    """
    return PeriodRetryStrategy(retry_period) if retry_period and retry_period > 0 else RetryStrategy()
