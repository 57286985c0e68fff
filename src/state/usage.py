import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Set


@dataclass
class UsageSnapshot:
    total_requests: int
    active_clients: int
    errors: int
    uptime_seconds: int
    providers: Dict[str, bool] = field(default_factory=dict)

    def usage_dict(self) -> Dict[str, int]:
        return {
            "totalRequests": self.total_requests,
            "activeIPs": self.active_clients,
            "errors": self.errors,
        }

    def providers_dict(self) -> Dict[str, str]:
        return {name: "configured" if ok else "not configured" for name, ok in self.providers.items()}


class UsageTracker:
    """In-memory request/error counters for the lifetime of the process.

    The client set is never pruned; it only feeds the ``activeIPs`` figure.
    """

    def __init__(
        self,
        providers: Mapping[str, bool],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._providers = dict(providers)
        self._clock = clock
        self._lock = threading.Lock()
        self._total_requests = 0
        self._clients: Set[str] = set()
        self._errors = 0
        self._started = clock()

    def record(self, client_id: str) -> None:
        with self._lock:
            self._total_requests += 1
            self._clients.add(client_id)

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    def snapshot(self) -> UsageSnapshot:
        with self._lock:
            total, clients, errors = self._total_requests, len(self._clients), self._errors
        return UsageSnapshot(
            total_requests=total,
            active_clients=clients,
            errors=errors,
            uptime_seconds=int(self._clock() - self._started),
            providers=dict(self._providers),
        )
