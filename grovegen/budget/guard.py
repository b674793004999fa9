from __future__ import annotations

from dataclasses import dataclass

from grovegen.core.diagnostics import (
    CHUNK_TRUNCATED,
    DEFAULT_SINK,
    Diagnostic,
    DiagnosticsSink,
)
from grovegen.core.errors import CapacityExceeded
from grovegen.mesh.builder import MeshBuffers, MeshEstimate


@dataclass(frozen=True)
class RegionLimits:
    max_vertices: int = 2_000_000
    max_indices: int = 6_000_000
    # 256 MiB, the largest single buffer many GPUs accept.
    max_bytes: int = 256 * 1024 * 1024


class RegionBudgetGuard:
    """Running totals for one chunk; refuses instances once a ceiling would be crossed."""

    def __init__(
        self,
        limits: RegionLimits | None = None,
        sink: DiagnosticsSink | None = None,
        chunk_id: tuple[int, int] | None = None,
    ):
        self.limits = limits or RegionLimits()
        self._sink = sink or DEFAULT_SINK
        self.chunk_id = chunk_id
        self.vertices = 0
        self.indices = 0
        self.nbytes = 0
        self.admitted = 0
        self.skipped = 0
        self.truncated = False

    def _overflow(self, estimate: MeshEstimate) -> CapacityExceeded | None:
        lim = self.limits
        want_v = self.vertices + estimate.vertices
        if want_v > lim.max_vertices:
            return CapacityExceeded("chunk", "vertices", want_v, lim.max_vertices)
        want_i = self.indices + estimate.indices
        if want_i > lim.max_indices:
            return CapacityExceeded("chunk", "indices", want_i, lim.max_indices)
        want_b = self.nbytes + estimate.nbytes
        if want_b > lim.max_bytes:
            return CapacityExceeded("chunk", "bytes", want_b, lim.max_bytes)
        return None

    def admit(self, estimate: MeshEstimate, instance_id: int | None = None) -> bool:
        if self.truncated:
            self.skipped += 1
            return False
        over = self._overflow(estimate)
        if over is None:
            self.admitted += 1
            return True

        self.truncated = True
        self.skipped += 1
        self._sink.emit(
            Diagnostic(
                kind=CHUNK_TRUNCATED,
                reason=over.describe(),
                chunk_id=self.chunk_id,
                instance_id=instance_id,
                requested=over.requested,
                allowed=over.allowed,
            )
        )
        return False

    def admit_many(self, unit: MeshEstimate, count: int, label: str = "grass") -> int:
        """Admit as many identical ``unit`` meshes as fit, up to ``count``.

        Returns how many fit. A shortfall truncates the chunk with one
        diagnostic covering the whole batch; ``skipped`` counts instances only.
        """
        if self.truncated or count <= 0:
            return 0
        lim = self.limits
        fit = count
        for used, cap, per in (
            (self.vertices, lim.max_vertices, unit.vertices),
            (self.indices, lim.max_indices, unit.indices),
            (self.nbytes, lim.max_bytes, unit.nbytes),
        ):
            if per > 0:
                fit = min(fit, max(0, cap - used) // per)
        if fit == count:
            return fit

        over = self._overflow(
            MeshEstimate(vertices=unit.vertices * count, indices=unit.indices * count)
        )
        assert over is not None
        self.truncated = True
        self._sink.emit(
            Diagnostic(
                kind=CHUNK_TRUNCATED,
                reason=f"{label}: {over.describe()}",
                chunk_id=self.chunk_id,
                requested=over.requested,
                allowed=over.allowed,
            )
        )
        return fit

    def record(self, mesh: MeshBuffers) -> None:
        self.vertices += mesh.vertex_count
        self.indices += mesh.index_count
        self.nbytes += mesh.nbytes
