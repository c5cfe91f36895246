"""Chunked transcription engine fed by the audio frame topic."""

import time
import logging
import threading
import queue
from typing import List, Optional, NamedTuple

from pubsub import pub

from ..audio.audio_pub import AUDIO_FRAME_TOPIC
from ..errors import TranscriptionServiceError
from ..models.events import AudioEvent
from .base import (
    AbstractTranscriptionBackend,
    AbstractTranscriptionEngine,
    FragmentCallback,
    EndCallback,
    TranscriptionErrorCallback,
)

logger = logging.getLogger(__name__)


class RecognitionRun(NamedTuple):
    """Callbacks for one start/stop cycle of the engine."""
    run_id: int
    on_fragment: FragmentCallback
    on_end: EndCallback
    on_error: TranscriptionErrorCallback


class TranscriptionTask(NamedTuple):
    """A buffer to be transcribed by the worker thread."""
    run: RecognitionRun
    audio_events: List[AudioEvent]
    audio_buffer: bytes
    is_final: bool


class EndOfRun(NamedTuple):
    """Queued after the last task of a run; triggers ``on_end``."""
    run: RecognitionRun


class ChunkedTranscriber(AbstractTranscriptionEngine):
    """Buffers audio frames into fixed-size chunks and transcribes them in order.

    A single worker thread drains the task queue so fragments reach the
    session in the order the audio was captured, and the end-of-run marker
    is only processed after every chunk of that run.
    """

    def __init__(self,
                 backend: AbstractTranscriptionBackend,
                 trigger_chunks: int,
                 topic: str = AUDIO_FRAME_TOPIC,
                 name: str = "chunked"):
        self.name = name
        self.backend = backend
        self.trigger_chunks = max(1, trigger_chunks)
        self.topic = topic

        # Audio buffering for the active run
        self.audio_buffer = bytearray()
        self.audio_events: List[AudioEvent] = []
        self.chunks_in_buffer = 0
        self._active_run: Optional[RecognitionRun] = None
        self._run_counter = 0
        self.chunk_counter = 0
        self.lock = threading.Lock()

        self.task_queue: "queue.Queue" = queue.Queue()
        self.shutdown_event = threading.Event()
        self.worker_thread = threading.Thread(target=self._worker_loop, daemon=True)
        self.worker_thread.name = f"worker_{self.name}"
        self.worker_thread.start()

        pub.subscribe(self.on_audio_chunk, self.topic)
        logger.info(f"{self.name} transcriber subscribed to {self.topic} "
                    f"(trigger={self.trigger_chunks} chunks)")

    @property
    def is_running(self) -> bool:
        with self.lock:
            return self._active_run is not None

    def start(self,
              on_fragment: FragmentCallback,
              on_end: EndCallback,
              on_error: TranscriptionErrorCallback) -> None:
        if self.shutdown_event.is_set():
            raise TranscriptionServiceError("Transcriber has been shut down")

        with self.lock:
            if self._active_run is not None:
                logger.warning(f"{self.name}: start while running, closing previous run")
                self._close_active_run()
            self._run_counter += 1
            self._active_run = RecognitionRun(self._run_counter, on_fragment, on_end, on_error)
            run_id = self._run_counter
        logger.info(f"{self.name}: recognition run {run_id} started")

    def stop(self) -> None:
        with self.lock:
            if self._active_run is None:
                logger.debug(f"{self.name}: stop without active run")
                return
            run_id = self._active_run.run_id
            self._close_active_run()
        logger.info(f"{self.name}: recognition run {run_id} stopping")

    def _close_active_run(self) -> None:
        """Flush the buffer and queue the end marker. Caller holds the lock."""
        run = self._active_run
        self._active_run = None
        if self.chunks_in_buffer > 0:
            self.task_queue.put(self._make_task(run, is_final=True))
        self.task_queue.put(EndOfRun(run))

    def on_audio_chunk(self, event: AudioEvent) -> None:
        """Buffer an audio frame and queue a task once enough frames arrived."""
        with self.lock:
            run = self._active_run
            if run is None:
                return

            self.audio_events.append(event)
            self.audio_buffer.extend(event.audio_data)
            if len(event.audio_data) > 0:
                self.chunks_in_buffer += 1

            if self.chunks_in_buffer >= self.trigger_chunks:
                task = self._make_task(run, is_final=False)
                logger.debug(f"Putting task on queue for {self.name}; "
                             f"buffer_size={len(task.audio_buffer)} bytes; "
                             f"events={len(task.audio_events)}")
                self.task_queue.put(task)

    def _make_task(self, run: RecognitionRun, is_final: bool) -> TranscriptionTask:
        """Copy and clear the audio buffer. Caller holds the lock."""
        task = TranscriptionTask(run=run,
                                 audio_events=self.audio_events.copy(),
                                 audio_buffer=bytes(self.audio_buffer),
                                 is_final=is_final)
        self.audio_events.clear()
        self.audio_buffer.clear()
        self.chunks_in_buffer = 0
        return task

    def _worker_loop(self) -> None:
        thread_name = threading.current_thread().name
        logger.debug(f"Worker thread {thread_name} starting")
        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    logger.debug(f"Worker {thread_name} received sentinel, exiting.")
                    break
                if isinstance(task, EndOfRun):
                    logger.info(f"{self.name}: recognition run {task.run.run_id} ended")
                    task.run.on_end()
                else:
                    self._transcribe_task(task)
            except Exception as e:
                logger.error(f"Unhandled exception in {thread_name}: {e}", exc_info=True)
            finally:
                self.task_queue.task_done()

    def _transcribe_task(self, task: TranscriptionTask) -> None:
        if not task.audio_buffer:
            logger.warning("Skipping transcription for empty audio buffer")
            return

        self.chunk_counter += 1
        first_event = task.audio_events[0]
        last_event = task.audio_events[-1]
        suffix = f"{self.chunk_counter}-final" if task.is_final else str(self.chunk_counter)
        chunk_id = f"{self.name}.{first_event.chunk_id}-{last_event.chunk_id}.{suffix}"

        logger.info(f"Transcribing chunk: {chunk_id}")
        try:
            result = self.backend.transcribe_chunk(chunk_id, task.audio_buffer)
        except Exception as e:
            logger.warning(f"Transcription failed for {chunk_id}: {e}")
            task.run.on_error(TranscriptionServiceError(f"Transcription failed for {chunk_id}: {e}"))
            return

        if result is None or not result.has_speech:
            logger.debug(f"No speech in {chunk_id}")
            return

        logger.info(f"{self.name.upper()}: '{result.text}' ({result.confidence:.1%}) via {result.service}")
        task.run.on_fragment(result.text, True)

    def shutdown(self, timeout: float = 30.0) -> bool:
        """Stop accepting audio, let queued work finish, and stop the worker."""
        logger.info(f"Shutting down {self.name} transcriber...")
        self.shutdown_event.set()
        try:
            pub.unsubscribe(self.on_audio_chunk, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")

        self.stop()

        start_time = time.time()
        while time.time() - start_time < timeout:
            if self.task_queue.unfinished_tasks == 0:
                break
            time.sleep(0.1)
        else:
            logger.warning(f"[{self.name}] Timeout reached while waiting for queue. "
                           f"{self.task_queue.unfinished_tasks} tasks remain.")

        self.task_queue.put(None)
        self.worker_thread.join(2.0)
        if self.worker_thread.is_alive():
            logger.warning(f"Worker thread {self.worker_thread.name} did not terminate cleanly.")
            return False

        try:
            self.backend.cleanup()
        except Exception as e:
            logger.warning(f"Error cleaning up backend: {e}")
        logger.info(f"{self.name} transcriber shutdown complete.")
        return True

    def get_pending_task_count(self) -> int:
        return self.task_queue.qsize()
