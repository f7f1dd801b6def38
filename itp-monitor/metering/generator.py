import threading
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .context import TelemetryContext
from .errors import TelemetryStoreError
from .readings import (
    Building, ColdWaterReading, HotWaterReading, PumpReading, TemperatureReading,
)
from .synthetic import SyntheticValueModel

logger = logging.getLogger("TelemetryGenerator")

# task name -> parameter holding its interval
TASK_INTERVALS = {
    'water': 'water_interval',
    'temperature': 'temperature_interval',
    'pump': 'pump_interval',
    'broadcast': 'broadcast_interval',
}


class ContinuousTelemetryGenerator:
    """
    Multi-rate background simulator for buildings without real meters.

    Each telemetry category runs in its own thread on its own interval.
    All threads of one run share a single stop event; a tick checks it
    before touching the store and the wait between ticks wakes on it.
    """

    def __init__(self, context: TelemetryContext, model: SyntheticValueModel = None):
        self._context = context
        self._model = model or SyntheticValueModel(context.parameters)
        self._lock = threading.Lock()
        self._running = False
        self._stop_event: Optional[threading.Event] = None
        self._threads: List[threading.Thread] = []

    @property
    def is_running(self) -> bool:
        return self._running

    def active_threads(self) -> List[str]:
        """Names of the task threads currently alive."""
        return [t.name for t in self._threads if t.is_alive()]

    def start(self) -> bool:
        """Start all tasks. Returns False if already running."""
        with self._lock:
            if self._running:
                logger.info("Telemetry generator already running")
                return False
            stop_event = threading.Event()
            ticks: Dict[str, Callable[[threading.Event], int]] = {
                'water': self.tick_water,
                'temperature': self.tick_temperature,
                'pump': self.tick_pump,
                'broadcast': self.tick_broadcast,
            }
            threads = []
            for name, tick in ticks.items():
                threads.append(threading.Thread(
                    target=self._task_loop,
                    args=(name, tick, stop_event),
                    name=f"telemetry-{name}",
                    daemon=True,
                ))
            self._stop_event = stop_event
            self._threads = threads
            self._running = True
            for thread in threads:
                thread.start()
        logger.info("Telemetry generator started")
        return True

    def stop(self, timeout: float = None) -> bool:
        """
        Stop all tasks and wait for in-flight ticks to finish, so nothing is
        written after this returns. Returns False if it was not running.
        """
        with self._lock:
            if not self._running:
                return False
            self._running = False
            self._stop_event.set()
            if timeout is None:
                timeout = max(self._context.parameters.get(key) for key in TASK_INTERVALS.values())
            for thread in self._threads:
                thread.join(timeout)
                if thread.is_alive():
                    logger.warning(f"Task thread {thread.name} did not finish within {timeout}s")
            self._threads = []
        logger.info("Telemetry generator stopped")
        return True

    def _task_loop(self, name: str, tick: Callable[[threading.Event], int],
                   stop_event: threading.Event) -> None:
        interval_key = TASK_INTERVALS[name]
        while not stop_event.is_set():
            try:
                written = tick(stop_event)
                logger.debug(f"{name} tick wrote {written} records")
            except Exception:
                # Keep the schedule running
                logger.exception(f"Unhandled error in {name} task")
            stop_event.wait(self._context.parameters.get(interval_key))
        logger.debug(f"{name} task exited")

    def _buildings(self) -> List[Building]:
        try:
            return self._context.store.list_buildings()
        except TelemetryStoreError as e:
            logger.error(f"Error getting buildings: {e}")
            return []

    def _write(self, kind: str, insert: Callable, reading) -> int:
        try:
            insert(reading)
            return 1
        except TelemetryStoreError as e:
            logger.error(f"Error inserting {kind} reading: {e}")
            return 0

    @staticmethod
    def _cancelled(stop_event: Optional[threading.Event]) -> bool:
        return stop_event is not None and stop_event.is_set()

    # --- Periodic tasks ---

    def tick_water(self, stop_event: threading.Event = None) -> int:
        """Write one hot and one cold reading per building."""
        if self._cancelled(stop_event):
            return 0
        store = self._context.store
        now = self._context.clock.now()
        written = 0
        for building in self._buildings():
            if self._cancelled(stop_event):
                break
            try:
                substation_id = store.ensure_substation(building.id)
            except TelemetryStoreError as e:
                logger.warning(f"Skipping building {building.id} this tick: {e}")
                continue

            hot1, hot2, cold = self._model.water_sample(now.astimezone())
            written += self._write("hot water", store.insert_hot_water_reading,
                                   HotWaterReading(building.id, hot1, hot2, now))
            written += self._write("cold water", store.insert_cold_water_reading,
                                   ColdWaterReading(substation_id, cold, now))
        return written

    def tick_temperature(self, stop_event: threading.Event = None) -> int:
        if self._cancelled(stop_event):
            return 0
        store = self._context.store
        now = self._context.clock.now()
        written = 0
        for building in self._buildings():
            if self._cancelled(stop_event):
                break
            supply, ret = self._model.temperature_sample(now.astimezone())
            reading = TemperatureReading(building.id, supply, ret, now, delta_temp=supply - ret)
            written += self._write("temperature", store.insert_temperature_reading, reading)
        return written

    def tick_pump(self, stop_event: threading.Event = None) -> int:
        if self._cancelled(stop_event):
            return 0
        store = self._context.store
        now = self._context.clock.now()
        written = 0
        for building in self._buildings():
            if self._cancelled(stop_event):
                break
            age_days = building_age_days(building, now)
            for label, base_hours in self._model.pump_fleet(building.id):
                status, hours, p_in, p_out, vibration = self._model.pump_sample(base_hours, age_days)
                reading = PumpReading(building.id, label, status, hours, p_in, p_out, vibration, now)
                written += self._write("pump", store.insert_pump_reading, reading)
        return written

    def tick_broadcast(self, stop_event: threading.Event = None) -> int:
        if self._cancelled(stop_event):
            return 0
        self._context.notifier.notify({
            'type': 'data_update',
            'message': 'New data available',
            'timestamp': self._context.clock.now().isoformat(),
        })
        return 0


def building_age_days(building: Building, at: datetime) -> float:
    return max(0.0, (at - building.created_at).total_seconds() / 86400.0)
