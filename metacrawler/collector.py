from threading import Lock

from .models import ErrorEntry, MetadataRecord, SkipEntry


class ResultCollector:
    """
    Append-only accumulators for one crawl run, kept in arrival order.
    Each append is a single locked insert.
    """

    def __init__(self):
        self._results: list[MetadataRecord] = []
        self._skipped: list[SkipEntry] = []
        self._errors: list[ErrorEntry] = []
        self._lock = Lock()

    def record(self, record: MetadataRecord) -> None:
        with self._lock:
            self._results.append(record)

    def skip(self, entry: SkipEntry) -> None:
        with self._lock:
            self._skipped.append(entry)

    def error(self, entry: ErrorEntry) -> None:
        with self._lock:
            self._errors.append(entry)

    @property
    def results(self) -> tuple[MetadataRecord, ...]:
        with self._lock:
            return tuple(self._results)

    @property
    def skipped(self) -> tuple[SkipEntry, ...]:
        with self._lock:
            return tuple(self._skipped)

    @property
    def errors(self) -> tuple[ErrorEntry, ...]:
        with self._lock:
            return tuple(self._errors)

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "results": len(self._results),
                "skipped": len(self._skipped),
                "errors": len(self._errors),
            }
