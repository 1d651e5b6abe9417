"""Batch printing: several jobs of one kind, spaced out for the printer."""
import logging
import time
from contextlib import nullcontext
from typing import Callable, List, Optional

from washprint.printer.documents import PrintBatch, PrintJob, PrintResult
from washprint.printer.exceptions import PreconditionError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
# Runs one job; the second argument is the held device writer, or None
JobExecutor = Callable[[PrintJob, Optional[Callable[[bytes], None]]], PrintResult]


class BatchPrinter:
    """Runs the jobs of a batch in order with a fixed delay between them."""

    def __init__(self, manager, executor: JobExecutor, delay: float = 5.0,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize batch printer.

        Args:
            manager: ConnectionManager that owns the device
            executor: Renders and delivers a single job
            delay: Seconds to wait after every job except the last
            sleep: Blocking wait, replaceable in tests
        """
        self.manager = manager
        self.executor = executor
        self.delay = delay
        self.sleep = sleep

    def print_batch(self, batch: PrintBatch,
                    on_progress: Optional[ProgressCallback] = None,
                    executor: Optional[JobExecutor] = None) -> List[PrintResult]:
        """Print every job of the batch.

        Direct batches check the connection before anything runs and hold the
        device for the whole batch. The first failure aborts the rest; jobs
        already printed stay printed.
        """
        if batch.requires_direct and not self.manager.is_connected():
            raise PreconditionError("Printer not connected", {"jobs": len(batch)})

        run = executor or self.executor
        total = len(batch)
        results = []
        slot = self.manager.exclusive() if batch.requires_direct else nullcontext()
        with slot as write:
            for index, job in enumerate(batch, start=1):
                if on_progress:
                    on_progress(index, total)
                logger.info("Printing %s %d of %d via %s", job.kind.value, index, total, job.transport.value)
                results.append(run(job, write))
                if index < total and self.delay > 0:
                    self.sleep(self.delay)
        return results
