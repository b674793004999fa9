from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from queue import Empty, Queue

from grovegen.core.diagnostics import get_logger
from grovegen.core.env import _env_int
from grovegen.generation.chunk import Chunk, ChunkCoord, ChunkGenerator

logger = get_logger(__name__)


@dataclass(frozen=True)
class StreamingParams:
    workers: int = 4
    load_radius: int = 2
    unload_radius: int = 3
    # Upload work per rendered frame stays bounded by this many chunks.
    chunks_per_frame: int = 2
    # A chunk whose generation raised is re-requested at most this many times.
    max_retries: int = 3

    @classmethod
    def from_env(cls) -> StreamingParams:
        return cls(workers=_env_int("GROVEGEN_WORKERS", default=cls.workers, minimum=1))


class ChunkStreamer:
    """Generates chunks on a worker pool and hands finished ones to one consumer.

    The completion queue is the only shared structure; everything a worker
    touches is immutable. Results for chunks unloaded while in flight are
    dropped when they are drained.
    """

    def __init__(self, generator: ChunkGenerator, params: StreamingParams | None = None):
        self.generator = generator
        self.params = params or StreamingParams()
        self._executor = ThreadPoolExecutor(
            max_workers=self.params.workers, thread_name_prefix="grovegen"
        )
        self._completed: Queue[tuple[ChunkCoord, Future[Chunk]]] = Queue()
        self._futures: dict[ChunkCoord, Future[Chunk]] = {}
        self.loaded: dict[ChunkCoord, Chunk] = {}
        self._failures: dict[ChunkCoord, int] = {}
        self._center: ChunkCoord | None = None

    @property
    def chunk_size(self) -> float:
        return self.generator.config.chunk_size

    @property
    def pending(self) -> int:
        return len(self._futures)

    def request(self, coord: ChunkCoord) -> bool:
        if coord in self.loaded or coord in self._futures:
            return False
        if self._failures.get(coord, 0) > self.params.max_retries:
            return False
        future = self._executor.submit(self.generator.generate, coord)
        self._futures[coord] = future
        future.add_done_callback(lambda f, c=coord: self._completed.put((c, f)))
        return True

    def unload(self, coord: ChunkCoord) -> None:
        self.loaded.pop(coord, None)
        self._failures.pop(coord, None)
        future = self._futures.pop(coord, None)
        if future is not None:
            future.cancel()

    def update(self, x: float, z: float) -> list[ChunkCoord]:
        """Request missing chunks around ``(x, z)``.

        Chunks that fell out of range are unloaded when the centre chunk
        changes. Chunks that failed to generate are requested again.
        """

        center = ChunkCoord.from_world_pos(x, z, self.chunk_size)
        p = self.params
        if center != self._center:
            self._center = center
            far = [
                c
                for c in {*self.loaded, *self._futures, *self._failures}
                if abs(c.x - center.x) > p.unload_radius
                or abs(c.z - center.z) > p.unload_radius
            ]
            for coord in far:
                self.unload(coord)
            if far:
                logger.debug("unloaded %d chunks", len(far))

        requested: list[ChunkCoord] = []
        for dz in range(-p.load_radius, p.load_radius + 1):
            for dx in range(-p.load_radius, p.load_radius + 1):
                coord = ChunkCoord(center.x + dx, center.z + dz)
                if self.request(coord):
                    requested.append(coord)
        if requested:
            logger.info(
                "requesting %d chunks around (%d, %d)", len(requested), center.x, center.z
            )
        return requested

    def drain(self, limit: int | None = None) -> list[Chunk]:
        """Move at most ``limit`` finished chunks into ``loaded`` and return them."""

        limit = self.params.chunks_per_frame if limit is None else limit
        applied: list[Chunk] = []
        while len(applied) < limit:
            try:
                coord, future = self._completed.get_nowait()
            except Empty:
                break
            if self._futures.get(coord) is not future:
                # Unloaded (or re-requested) while generating.
                continue
            del self._futures[coord]
            if future.cancelled():
                continue
            try:
                chunk = future.result()
            except Exception:
                self._failures[coord] = self._failures.get(coord, 0) + 1
                logger.exception(
                    "chunk (%d, %d) failed to generate (attempt %d)",
                    coord.x,
                    coord.z,
                    self._failures[coord],
                )
                continue
            self._failures.pop(coord, None)
            self.loaded[coord] = chunk
            applied.append(chunk)
        return applied

    def close(self) -> None:
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> ChunkStreamer:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
