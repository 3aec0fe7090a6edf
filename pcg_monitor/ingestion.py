"""
Ingestion worker.

Pulls chunks from a :class:`~pcg_monitor.audio_source.SampleSource` and feeds
them to a :class:`~pcg_monitor.pipeline.PipelineState` on a background thread.
The stop flag is checked once per chunk; a chunk that has been read is always
processed to completion, and the pipeline state survives the stop.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from pcg_monitor.audio_source import SampleSource
from pcg_monitor.pipeline import PipelineState

logger = logging.getLogger(__name__)


class IngestionWorker:
    """
    Single-writer loop between a sample source and the pipeline state.

    Parameters
    ----------
    source:
        Unopened (or already open) sample source.  The worker closes it when
        the loop ends.
    state:
        Pipeline receiving the chunks.
    """

    def __init__(self, source: SampleSource, state: PipelineState) -> None:
        self.source = source
        self.state = state

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self.chunks_processed = 0
        self.chunks_skipped = 0
        self.error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Open the source and start the ingestion thread.

        Raises :class:`~pcg_monitor.errors.SourceAcquisitionError` in the
        calling thread if the source cannot be opened.
        """
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Ingestion worker already running.")
        self.source.open()
        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(
            target=self._loop, name="pcg-ingestion", daemon=True,
        )
        self._thread.start()
        logger.info("Ingestion started.")

    def run(self) -> None:
        """Run the loop in the calling thread until end of stream or :meth:`stop`."""
        self.source.open()
        self._running = True
        self._loop()

    def stop(self, timeout: float | None = 2.0) -> None:
        """Request the loop to stop after the current chunk and wait for it."""
        self._stop_event.set()
        self.join(timeout)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Ingestion thread did not stop within %.1f s.", timeout)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                chunk = self.source.read_chunk()
                if chunk is None:
                    logger.info("End of stream.")
                    break
                if len(chunk) == 0:
                    self.chunks_skipped += 1
                    continue
                self.state.ingest(chunk)
                self.chunks_processed += 1
        except Exception as exc:                         # noqa: BLE001
            self.error = exc
            logger.exception("Ingestion loop aborted: %s", exc)
        finally:
            self.source.close()
            self._running = False
            logger.info(
                "Ingestion stopped – chunks=%d skipped=%d",
                self.chunks_processed, self.chunks_skipped,
            )
