"""Camera heartbeat tracking.

Every accepted reading counts as a heartbeat for the camera that sent
it. A camera that has not reported for longer than ``timeout`` seconds
is considered offline. `sync` writes status changes back to the store
so the dashboard's "active cameras" figure follows the feeds.

Cameras an operator has put into ``maintenance`` are left alone.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from schemas import CameraStatus
from storage.database_store import CrowdDataStore


class CameraHealthMonitor:
    """Monitors the liveness of reporting cameras.

    Parameters
    ----------
    timeout : float
        Number of seconds after which a camera is considered offline if
        no reading has been received.
    clock : callable, optional
        Returns the current epoch time in seconds; injected by tests.
    """

    def __init__(self, timeout: float = 300.0, clock: Callable[[], float] = time.time) -> None:
        self.timeout = timeout
        self.clock = clock
        self.last_seen: Dict[str, float] = {}
        self.status: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def update(self, camera_id: str, timestamp: Optional[float] = None) -> None:
        """Record that a reading has been received from a camera."""
        with self._lock:
            self.last_seen[camera_id] = timestamp if timestamp is not None else self.clock()

    def load_from(self, store: CrowdDataStore) -> None:
        """Seed last-seen times from readings already in the store."""
        with self._lock:
            for camera_id, ts in store.latest_reading_times().items():
                seen = ts.timestamp()
                if seen > self.last_seen.get(camera_id, float("-inf")):
                    self.last_seen[camera_id] = seen

    def is_down(self, camera_id: str) -> bool:
        last = self.last_seen.get(camera_id)
        if last is None:
            return True
        return (self.clock() - last) > self.timeout

    def evaluate(self, camera_id: str) -> Tuple[bool, bool]:
        """Return (healthy, changed) for the given camera."""
        with self._lock:
            healthy = not self.is_down(camera_id)
            prev = self.status.get(camera_id)
            changed = prev is None or prev != healthy
            self.status[camera_id] = healthy
        return healthy, changed

    def sync(self, store: CrowdDataStore) -> List[str]:
        """Push online/offline changes to the store.

        Returns the ids of cameras whose stored status was changed.
        """
        changed_ids: List[str] = []
        for camera in store.list_cameras():
            if camera.status is CameraStatus.MAINTENANCE:
                continue
            healthy, _ = self.evaluate(camera.id)
            wanted = CameraStatus.ONLINE if healthy else CameraStatus.OFFLINE
            if camera.status is not wanted:
                store.update_camera(camera.id, status=wanted)
                changed_ids.append(camera.id)
        return changed_ids

    def get_down_cameras(self) -> list[str]:
        """Return the ids of tracked cameras that are currently down."""
        with self._lock:
            return [cid for cid in self.last_seen if self.is_down(cid)]
