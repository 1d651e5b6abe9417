"""Tests for batch printing."""
from unittest.mock import Mock

import pytest

from washprint.printer.batch import BatchPrinter
from washprint.printer.documents import BagLabel, DocumentKind, PrintBatch, PrintResult, TransportStrategy
from washprint.printer.exceptions import PreconditionError, PrinterBusyError, TransportExecutionError


def labels(count):
    return [BagLabel(order_id=100, bag_number=i, number_of_bags=f"{i} of {count}") for i in range(1, count + 1)]


def direct_batch(count):
    return PrintBatch.of(DocumentKind.BAG_LABEL, labels(count), TransportStrategy.DIRECT)


@pytest.fixture
def executed():
    return []


@pytest.fixture
def batch_printer(manager, sleep, executed):
    def executor(job, write):
        if write is not None:
            write(b"job %d" % job.payload.bag_number)
        executed.append(job)
        return PrintResult(job.kind, job.transport)

    return BatchPrinter(manager, executor, delay=5.0, sleep=sleep)


class TestBatchPrinter:

    def test_delays_between_jobs(self, manager, batch_printer, sleep):
        manager.connect()
        batch_printer.print_batch(direct_batch(3))

        assert sleep.calls == [5.0, 5.0]
        assert sleep.total == 10.0

    def test_progress_reports_each_job(self, manager, batch_printer):
        manager.connect()
        progress = Mock()

        results = batch_printer.print_batch(direct_batch(4), on_progress=progress)

        assert len(results) == 4
        assert [c.args for c in progress.call_args_list] == [(1, 4), (2, 4), (3, 4), (4, 4)]

    def test_jobs_run_in_order(self, manager, batch_printer, factory):
        manager.connect()
        batch_printer.print_batch(direct_batch(3))
        assert factory.last.writes[1:] == [b"job 1", b"job 2", b"job 3"]

    def test_single_job_has_no_delay(self, manager, batch_printer, sleep):
        manager.connect()
        batch_printer.print_batch(direct_batch(1))
        assert sleep.calls == []

    def test_precondition_failure_runs_nothing(self, batch_printer, executed, sleep):
        progress = Mock()

        with pytest.raises(PreconditionError, match="not connected"):
            batch_printer.print_batch(direct_batch(3), on_progress=progress)

        assert executed == []
        progress.assert_not_called()
        assert sleep.calls == []

    def test_failure_aborts_remaining_jobs(self, manager, sleep):
        manager.connect()
        calls = []

        def executor(job, write):
            calls.append(job)
            if len(calls) == 2:
                raise TransportExecutionError("paper out")
            return PrintResult(job.kind, job.transport)

        printer = BatchPrinter(manager, executor, delay=5.0, sleep=sleep)
        with pytest.raises(TransportExecutionError):
            printer.print_batch(direct_batch(4))

        assert len(calls) == 2
        assert sleep.calls == [5.0]
        assert not manager.is_busy

    def test_holds_printer_for_whole_batch(self, manager, sleep):
        manager.connect()
        seen_busy = []

        def executor(job, write):
            seen_busy.append(manager.is_busy)
            with pytest.raises(PrinterBusyError):
                with manager.exclusive():
                    pass
            return PrintResult(job.kind, job.transport)

        BatchPrinter(manager, executor, delay=5.0, sleep=sleep).print_batch(direct_batch(2))
        assert seen_busy == [True, True]
        assert not manager.is_busy

    def test_visual_batch_needs_no_connection(self, batch_printer, executed, sleep):
        batch = PrintBatch.of(DocumentKind.BAG_LABEL, labels(3), TransportStrategy.VISUAL)
        results = batch_printer.print_batch(batch)

        assert len(results) == 3
        assert len(executed) == 3
        assert sleep.calls == [5.0, 5.0]

    def test_executor_override(self, manager, batch_printer):
        manager.connect()
        override = Mock(side_effect=lambda job, write: PrintResult(job.kind, job.transport))
        batch_printer.print_batch(direct_batch(2), executor=override)
        assert override.call_count == 2


class TestPrintBatch:

    def test_mixed_kinds_rejected(self):
        from washprint.printer.documents import AssignmentReceipt, PrintJob

        with pytest.raises(ValueError):
            PrintBatch((
                PrintJob(DocumentKind.BAG_LABEL, BagLabel(order_id=1), TransportStrategy.VISUAL),
                PrintJob(DocumentKind.ASSIGNMENT_RECEIPT, AssignmentReceipt(), TransportStrategy.VISUAL),
            ))

    def test_payload_must_match_kind(self):
        from washprint.printer.documents import AssignmentReceipt, PrintJob

        with pytest.raises(TypeError):
            PrintJob(DocumentKind.BAG_LABEL, AssignmentReceipt(), TransportStrategy.VISUAL)
