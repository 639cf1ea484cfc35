"""Background thread that reports the Sun's position at a fixed interval"""

import logging
import threading
import time

from .ephemeris import sun_position
from .formatting import build_report
from .model import Settings, SinkFn

logger = logging.getLogger(__name__)


class SunPoller:
    """
    Calls the sun-position pipeline every ``settings.poll_interval_s`` seconds
    and hands each report to ``sink``. The first poll happens after
    ``settings.initial_delay_s``.
    """
    def __init__(self, settings: Settings, sink: SinkFn, clock=time.time):
        self._settings = settings
        self._sink = sink
        self._clock = clock
        self._wait_condition = threading.Condition()
        self._stop_requested = False
        self._thread = None
        self.polls = 0

    def poll_once(self):
        """Compute one report for the current clock time and send it to the sink"""
        s = self._settings
        t = self._clock()
        position = sun_position(t, s.site, backend=s.backend, refraction=s.refraction)
        report = build_report(position, s)
        self._sink(report)
        self.polls += 1
        return report

    def start(self):
        if self._thread is not None:
            raise RuntimeError('poller already started')

        self._stop_requested = False
        self._thread = threading.Thread(target=self.__loop, name='heliotrope-poller')
        self._thread.daemon = True
        self._thread.start()
        logger.info('Poller started (interval %.1fs, first poll in %.1fs)',
                    self._settings.poll_interval_s, self._settings.initial_delay_s)

    def stop(self, timeout=None):
        """Wake the loop, ask it to exit and wait for the thread"""
        with self._wait_condition:
            self._stop_requested = True
            self._wait_condition.notify_all()

        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info('Poller stopped after %d polls', self.polls)

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def __wait(self, delay):
        """Sleep for delay seconds unless stop() is called; returns False on stop"""
        with self._wait_condition:
            if not self._stop_requested:
                self._wait_condition.wait(delay)
            return not self._stop_requested

    def __loop(self):
        if not self.__wait(self._settings.initial_delay_s):
            return

        while True:
            try:
                self.poll_once()
            except Exception:
                # Keep polling; the next tick may succeed (e.g. sink I/O).
                logger.exception('Poll failed')

            if not self.__wait(self._settings.poll_interval_s):
                return
