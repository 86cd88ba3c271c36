"""
Watch coordinator: filesystem events -> pipeline actions.

Per pipeline:
- one recursive watcher on the source directory (watchfiles), filtered to the
  pipeline's patterns, not following symbolic links below the source root;
- one worker task consuming a queue of compile requests, so a pipeline never
  runs two compilations at once.

Event mapping:
- add / change of a tracked file -> queue pipeline.run(pipeline.target_for(path))
- unlink of a direct (non-nested) tracked file -> remove its derived artifact

Watchers are owned by an explicit WatchHandle returned by start() and torn
down by stop(). A handle started paused records events from the first moment
but holds its workers until resume(), so an initial build can run alone.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from watchfiles import Change, awatch

from assetbuild.output import OutputDirectoryManager
from assetbuild.pipelines.base import CompileResult, Pipeline, PipelineSpec


logger = logging.getLogger(__name__)

CompiledCallback = Callable[[CompileResult], Awaitable[None]]


class WatchKind(str, Enum):
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"


_KINDS = {
    Change.added: WatchKind.ADD,
    Change.modified: WatchKind.CHANGE,
    Change.deleted: WatchKind.UNLINK,
}


@dataclass(frozen=True)
class WatchEvent:
    """A single filesystem notification. Not retained."""
    kind: WatchKind
    path: Path


def to_events(changes: Iterable[Tuple[Change, str]]) -> List[WatchEvent]:
    """Convert a watchfiles batch into WatchEvents, ordered by path."""
    return sorted(
        (WatchEvent(_KINDS[change], Path(path)) for change, path in changes),
        key=lambda e: (str(e.path), e.kind.value),
    )


def is_followed_link(spec: PipelineSpec, path: Path) -> bool:
    """True if path is reached through a symlinked directory below source_dir."""
    root = spec.source_dir.absolute()
    try:
        relative = Path(path).absolute().relative_to(root)
    except ValueError:
        return False

    current = root
    for part in relative.parts[:-1]:
        current = current / part
        if current.is_symlink():
            return True
    return False


@dataclass
class WatchHandle:
    """Live watchers and workers of one watch session."""

    stop_event: asyncio.Event
    ready: asyncio.Event = field(default_factory=asyncio.Event)
    watchers: List[asyncio.Task] = field(default_factory=list)
    workers: List[asyncio.Task] = field(default_factory=list)
    queues: Dict[str, "asyncio.Queue[Optional[Path]]"] = field(default_factory=dict)

    @property
    def running(self) -> bool:
        return not self.stop_event.is_set() and any(not t.done() for t in self.watchers)

    def resume(self) -> None:
        """Let paused workers start consuming queued compile requests."""
        self.ready.set()

    async def wait(self) -> None:
        """Block until the session is stopped."""
        await self.stop_event.wait()


class WatchCoordinator:
    """Bridges raw filesystem notifications into pipeline invocations."""

    def __init__(
        self,
        output: OutputDirectoryManager,
        on_compiled: Optional[CompiledCallback] = None,
        debounce_ms: int = 1600,
    ):
        """
        Args:
            output: Shared output directory manager (artifact removal)
            on_compiled: Awaited after every watch-triggered compilation
            debounce_ms: watchfiles batching window
        """
        self.output = output
        self.on_compiled = on_compiled
        self.debounce_ms = debounce_ms

    def accepts(self, spec: PipelineSpec, path: Path) -> bool:
        return spec.matches(path) and not is_followed_link(spec, path)

    async def handle_events(
        self,
        pipeline: Pipeline,
        events: Sequence[WatchEvent],
        queue: "asyncio.Queue[Optional[Path]]",
    ) -> List[Optional[Path]]:
        """
        Apply one batch of events to a pipeline.

        Returns:
            The compile targets queued (None means the whole source set)
        """
        spec = pipeline.spec
        queued: List[Optional[Path]] = []
        seen: Set[Optional[Path]] = set()

        for event in events:
            if not self.accepts(spec, event.path):
                continue

            if event.kind == WatchKind.UNLINK:
                if spec.is_direct(event.path):
                    await asyncio.to_thread(
                        self.output.remove_artifact, event.path, spec.artifact_suffix
                    )
                continue

            target = pipeline.target_for(event.path)
            if target in seen:
                continue
            seen.add(target)
            queued.append(target)
            queue.put_nowait(target)
            logger.debug(
                f"{event.kind.value} {event.path.name}: queued {pipeline.name} compile",
                extra={"pipeline": pipeline.name, "event": "compile_queued"},
            )

        return queued

    async def _worker(
        self,
        pipeline: Pipeline,
        queue: "asyncio.Queue[Optional[Path]]",
        ready: asyncio.Event,
    ) -> None:
        await ready.wait()
        while True:
            target = await queue.get()
            try:
                result = await pipeline.run(target)
                if self.on_compiled is not None:
                    await self.on_compiled(result)
            except Exception:
                logger.exception(
                    f"Unhandled error after {pipeline.name} compile",
                    extra={"pipeline": pipeline.name, "event": "worker_error"},
                )
            finally:
                queue.task_done()

    async def _watch(
        self,
        pipeline: Pipeline,
        queue: "asyncio.Queue[Optional[Path]]",
        stop_event: asyncio.Event,
    ) -> None:
        spec = pipeline.spec
        if not spec.source_dir.is_dir():
            logger.warning(
                f"Not watching {pipeline.name}: {spec.source_dir} does not exist",
                extra={"pipeline": pipeline.name, "event": "watch_skipped"},
            )
            return

        logger.info(
            f"Watching {', '.join(spec.source_globs)}",
            extra={"pipeline": pipeline.name, "event": "watch_started"},
        )
        try:
            async for changes in awatch(
                spec.source_dir,
                watch_filter=lambda change, path: self.accepts(spec, Path(path)),
                stop_event=stop_event,
                debounce=self.debounce_ms,
                recursive=True,
            ):
                await self.handle_events(pipeline, to_events(changes), queue)
        except Exception as e:
            logger.exception(
                f"Stopped watching {spec.source_dir}: {e}",
                extra={"pipeline": pipeline.name, "event": "watch_failed"},
            )

    def start(self, pipelines: Iterable[Pipeline], paused: bool = False) -> WatchHandle:
        """
        Start watching. Must be called from a running event loop.

        Args:
            pipelines: Pipelines to watch
            paused: Queue events but hold compilations until handle.resume()

        Returns:
            WatchHandle to pass to stop()
        """
        handle = WatchHandle(stop_event=asyncio.Event())
        if not paused:
            handle.resume()
        for pipeline in pipelines:
            queue: "asyncio.Queue[Optional[Path]]" = asyncio.Queue()
            handle.queues[pipeline.name] = queue
            handle.workers.append(
                asyncio.create_task(
                    self._worker(pipeline, queue, handle.ready), name=f"{pipeline.name}-worker"
                )
            )
            handle.watchers.append(
                asyncio.create_task(
                    self._watch(pipeline, queue, handle.stop_event),
                    name=f"{pipeline.name}-watcher",
                )
            )
        return handle

    async def stop(self, handle: WatchHandle) -> None:
        """Stop all watchers and workers of a session."""
        handle.stop_event.set()
        tasks = handle.watchers + handle.workers
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("Watchers stopped", extra={"event": "watch_stopped"})
