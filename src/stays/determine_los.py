"""
Script to determine acute inpatient stays and their length of stay.

Runs every patient through segment building, nested segment removal,
contiguity merging of both segment streams, overlap resolution and length of
stay calculation, and forwards the finalized stays to a sink. Patients are
processed in parallel worker processes; the calling thread is the only sink
writer.
"""

import argparse
import signal
import sys
import threading
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from tqdm import tqdm

from utils import get_data_path, get_logger, get_stay_settings, load_config

from .classification import SpecialtyClassifier
from .exceptions import DuplicateBeginAmbiguityError, SinkWriteError
from .los import compute_length_of_stay
from .merging import DEFAULT_LAG_HOURS, merge_contiguous, validate_lag_hours
from .model import FinalStay, RawEvent
from .nesting import remove_nested_segments
from .overlap import resolve_overlaps
from .segments import SegmentBuilder

logger = get_logger(__name__)

# Seconds between checks of the stop signal while waiting on workers
_POLL_INTERVAL = 0.5


@dataclass
class PatientResult:
    """Finalized stays of one patient plus any data-quality flags."""

    patient_id: str
    stays: List[FinalStay] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Outcome of a batch run."""

    written_patients: Set[str] = field(default_factory=set)
    empty_patients: Set[str] = field(default_factory=set)
    stays_written: int = 0
    failures: Dict[str, str] = field(default_factory=dict)
    review: Dict[str, str] = field(default_factory=dict)
    cancelled: Set[str] = field(default_factory=set)
    flags: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def patients_processed(self) -> int:
        return len(self.written_patients) + len(self.failures) + len(self.review)


def process_patient(
    patient_id: str,
    events: Iterable[RawEvent],
    classifier: SpecialtyClassifier,
    lag_hours: float = DEFAULT_LAG_HOURS,
) -> PatientResult:
    """
    Reconstruct the acute stays of one patient.

    Args:
        patient_id (str): Patient identifier.
        events (Iterable[RawEvent]): Every event of the patient.
        classifier (SpecialtyClassifier): Specialty classification table.
        lag_hours (float, optional): Lag threshold in hours. Defaults to 24.

    Returns:
        PatientResult: Finalized stays; an empty list when no acute segment survives.

    Raises:
        DuplicateBeginAmbiguityError: If more than two segments share a begin.
        ResidualNestingError: If nested segments could not be resolved.
    """
    streams = SegmentBuilder(classifier).build(events)
    result = PatientResult(patient_id)
    if streams.invalid:
        result.flags.append(f"{streams.invalid} invalid segment(s) excluded")
    if streams.is_empty():
        return result

    transfer_stays = merge_contiguous(remove_nested_segments(streams.transfer), lag_hours)
    other_stays = merge_contiguous(remove_nested_segments(streams.non_transfer), lag_hours)
    stays = resolve_overlaps(transfer_stays, other_stays, lag_hours)

    result.stays, los_flags = compute_length_of_stay(stays)
    result.flags.extend(los_flags)
    return result


def _ignore_interrupts() -> None:
    # Workers finish their patient; the parent decides what to drain
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def _record(result: PatientResult, sink, batch: BatchResult) -> None:
    try:
        sink.write(result.patient_id, result.stays)
    except SinkWriteError:
        raise
    except Exception as e:
        raise SinkWriteError(
            f"Failed to write stays for patient {result.patient_id}: {e}",
            batch.written_patients,
        ) from e
    batch.written_patients.add(result.patient_id)
    batch.stays_written += len(result.stays)
    if not result.stays:
        batch.empty_patients.add(result.patient_id)
    if result.flags:
        batch.flags[result.patient_id] = result.flags


def _record_failure(patient_id: str, error: BaseException, batch: BatchResult) -> None:
    if isinstance(error, DuplicateBeginAmbiguityError):
        logger.warning(f"Patient {patient_id} needs manual review: {error}")
        batch.review[patient_id] = str(error)
    else:
        logger.error(f"Error processing patient {patient_id}: {error}", exc_info=error)
        batch.failures[patient_id] = f"{type(error).__name__}: {error}"


def _run_inline(patients, classifier, sink, lag_hours, stop_event, progress, batch):
    for position, (patient_id, events) in enumerate(patients):
        if stop_event is not None and stop_event.is_set():
            batch.cancelled.update(pid for pid, _ in patients[position:])
            break
        try:
            result = process_patient(patient_id, events, classifier, lag_hours)
        except Exception as e:
            _record_failure(patient_id, e, batch)
        else:
            _record(result, sink, batch)
        progress.update(1)


def _run_pool(patients, classifier, sink, lag_hours, workers, stop_event, progress, batch):
    with ProcessPoolExecutor(max_workers=workers, initializer=_ignore_interrupts) as executor:
        pending = {
            executor.submit(process_patient, patient_id, events, classifier, lag_hours): patient_id
            for patient_id, events in patients
        }
        draining = False
        try:
            while pending:
                if not draining and stop_event is not None and stop_event.is_set():
                    draining = True
                    logger.warning("Stop requested; finishing in-flight patients only")
                    # Only queued futures can be cancelled; running ones finish
                    for future, patient_id in pending.items():
                        if future.cancel():
                            batch.cancelled.add(patient_id)

                # Wake up periodically so a stop request is seen between completions
                done, _ = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    patient_id = pending.pop(future)
                    if future.cancelled():
                        batch.cancelled.add(patient_id)
                        continue
                    error = future.exception()
                    if error is not None:
                        _record_failure(patient_id, error, batch)
                    else:
                        _record(future.result(), sink, batch)
                    progress.update(1)
        except BaseException:
            # Sink failure or interrupt: drop whatever has not started
            for future in pending:
                future.cancel()
            raise


def determine_los(
    events_by_patient: Mapping[str, List[RawEvent]],
    classifier: SpecialtyClassifier,
    sink,
    lag_hours: float = DEFAULT_LAG_HOURS,
    workers: int = 1,
    stop_event: Optional[threading.Event] = None,
    show_progress: bool = False,
) -> BatchResult:
    """
    Process every patient and write the finalized stays to the sink.

    A failure in one patient is recorded and the batch continues. A failure of
    the sink is fatal: the sink is aborted so no partial output remains, and
    the error is raised with the patients the sink had accepted so far.

    Args:
        events_by_patient (Mapping[str, List[RawEvent]]): Events keyed by patient.
        classifier (SpecialtyClassifier): Specialty classification table.
        sink: Object with `write(patient_id, stays)`, `close()` and `abort()`,
            such as a `data.sinks.BaseStaySink`. It is closed on success.
        lag_hours (float, optional): Lag threshold in hours. Defaults to 24.
        workers (int, optional): Worker processes; 1 runs inline. Defaults to 1.
        stop_event (Optional[threading.Event], optional): When set, patients
            not yet started are cancelled and in-flight ones finish.
        show_progress (bool, optional): Show a progress bar. Defaults to False.

    Returns:
        BatchResult: Written, empty, failed, review and cancelled patients.

    Raises:
        SinkWriteError: If the sink fails to accept or persist rows.
        ValueError: If lag_hours is not positive or workers is below 1.
    """
    lag_hours = validate_lag_hours(lag_hours)
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")

    patients = list(events_by_patient.items())
    batch = BatchResult()
    logger.info(
        f"Determining acute stays for {len(patients)} patient(s) "
        f"with a {lag_hours:g} hour lag threshold on {workers} worker(s)"
    )

    try:
        with tqdm(total=len(patients), desc="Patients", disable=not show_progress) as progress:
            if workers == 1 or len(patients) <= 1:
                _run_inline(patients, classifier, sink, lag_hours, stop_event, progress, batch)
            else:
                _run_pool(
                    patients, classifier, sink, lag_hours, workers, stop_event, progress, batch
                )
        sink.close()
    except SinkWriteError as e:
        # Accepted by the sink but never persisted
        e.accepted_patients = set(batch.written_patients)
        logger.error(
            f"Sink failure after {len(batch.written_patients)} patient(s); output discarded: {e}"
        )
        sink.abort()
        raise

    logger.info(
        f"Wrote {batch.stays_written} stay(s) for {len(batch.written_patients)} patient(s); "
        f"{len(batch.empty_patients)} without acute stays, {len(batch.failures)} failed, "
        f"{len(batch.review)} for manual review, {len(batch.cancelled)} cancelled"
    )
    return batch


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main execution function for the stay determination script.

    Loads the configuration, the specialty classification table and the
    encounter events, then runs `determine_los` writing to the configured (or
    given) output file. SIGINT and SIGTERM trigger a graceful drain.

    Returns:
        int: Exit code; 1 when the output could not be written.
    """
    from data.events import load_events
    from data.sinks import get_sink
    from data.specialties import load_classification_table

    parser = argparse.ArgumentParser(
        description="Determine acute inpatient stays and length of stay"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to configuration file"
    )
    parser.add_argument(
        "--output", type=str, default=None, help="Output file (.csv or .parquet)"
    )
    parser.add_argument(
        "--lag-hours", type=float, default=None, help="Lag threshold in hours"
    )
    parser.add_argument(
        "--workers", type=int, default=None, help="Number of worker processes"
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Disable the progress bar"
    )
    args = parser.parse_args(argv)

    config: Dict[str, Any] = load_config(args.config) if args.config else load_config()
    settings = get_stay_settings(config)
    lag_hours = args.lag_hours if args.lag_hours is not None else settings["lag_hours"]
    workers = args.workers if args.workers is not None else settings["workers"]
    show_progress = settings["show_progress"] and not args.no_progress

    classifier = load_classification_table(
        get_data_path("external", "specialty_table", config)
    )
    events_by_patient = load_events(config)
    output_path = args.output or get_data_path("processed", "stays", config)
    sink = get_sink(output_path)

    stop_event = threading.Event()

    def _request_stop(signum, frame):
        logger.warning(f"Received signal {signum}; draining")
        stop_event.set()

    previous_handlers = {
        signum: signal.signal(signum, _request_stop)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        result = determine_los(
            events_by_patient,
            classifier,
            sink,
            lag_hours=lag_hours,
            workers=workers,
            stop_event=stop_event,
            show_progress=show_progress,
        )
    except SinkWriteError as e:
        logger.error(
            f"No output written. Patients accepted before the failure: "
            f"{sorted(e.accepted_patients)}"
        )
        return 1
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    for patient_id, reason in sorted(result.review.items()):
        logger.warning(f"Manual review: patient {patient_id}: {reason}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
