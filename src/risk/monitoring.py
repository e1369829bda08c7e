from datetime import datetime
import threading
import time
from typing import Callable, Dict, Optional
import psutil
from utils.logger import TradingLogger


class FeedHealthMonitor:
    """Tracks whether the event feed is usable for new buy decisions.

    The feed reports connects, disconnects and every received event. It is
    unhealthy while disconnected or when no event has arrived within
    `stale_after` seconds. A daemon thread samples process resources with psutil.
    """

    def __init__(self, logger: TradingLogger, stale_after: float = 90.0,
                 heartbeat_interval: int = 30, clock: Callable[[], float] = time.monotonic):
        self.logger = logger
        self.stale_after = stale_after
        self.heartbeat_interval = heartbeat_interval
        self.clock = clock

        self.connected = False
        self.last_event_at: Optional[float] = None
        self.disconnects = 0
        self.last_disconnect_reason = ""

        self.is_running = False
        self.monitor_thread: Optional[threading.Thread] = None
        self.system_metrics: Dict = {}
        self._stop_event = threading.Event()

    def on_connected(self):
        if not self.connected:
            self.logger.info("Event feed connected")
        self.connected = True
        self.last_event_at = self.clock()

    def on_disconnected(self, reason: str = ""):
        if self.connected:
            self.logger.warning(f"Event feed disconnected: {reason}; new buys paused")
        self.connected = False
        self.disconnects += 1
        self.last_disconnect_reason = reason

    def on_event(self):
        self.last_event_at = self.clock()

    @property
    def healthy(self) -> bool:
        if not self.connected or self.last_event_at is None:
            return False
        return self.clock() - self.last_event_at <= self.stale_after

    def get_status(self) -> Dict:
        last = None if self.last_event_at is None else round(self.clock() - self.last_event_at, 1)
        return {
            'healthy': self.healthy,
            'connected': self.connected,
            'seconds_since_event': last,
            'disconnects': self.disconnects,
            'metrics': self.system_metrics,
        }

    def start_monitoring(self):
        """Start the resource sampling thread"""
        self.logger.info("Starting feed health monitor")
        self.is_running = True
        self._stop_event.clear()
        self.monitor_thread = threading.Thread(
            target=self._monitor_loop,
            daemon=True,
            name='FeedHealthMonitor'
        )
        self.monitor_thread.start()

    def _monitor_loop(self):
        while self.is_running:
            try:
                self._update_system_metrics()
                self._verify_system_health()
            except Exception as e:
                self.logger.error(f"Monitor loop error: {str(e)}")
            self._stop_event.wait(self.heartbeat_interval)

    def _update_system_metrics(self):
        process = psutil.Process()
        self.system_metrics = {
            'timestamp': datetime.now(),
            'cpu_usage': psutil.cpu_percent(),
            'memory_usage': psutil.virtual_memory().percent,
            'process_rss_mb': process.memory_info().rss / (1024 * 1024),
        }

    def _verify_system_health(self):
        if self.system_metrics['cpu_usage'] > 80:
            self.logger.warning(f"High CPU usage: {self.system_metrics['cpu_usage']}%")
        if self.system_metrics['memory_usage'] > 80:
            self.logger.warning(f"High memory usage: {self.system_metrics['memory_usage']}%")
        if self.connected and not self.healthy:
            self.logger.warning(f"No feed events for over {self.stale_after:.0f}s; new buys paused")
        self.logger.debug(f"Feed status: {self.get_status()}")

    def stop_monitoring(self):
        self.logger.info("Stopping feed health monitor")
        self.is_running = False
        self._stop_event.set()
        if self.monitor_thread:
            self.monitor_thread.join(timeout=5.0)
