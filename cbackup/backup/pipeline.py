"""Byte-stream pipeline over subprocess and in-process stages.

Stages run back to back, each consuming the previous stage's output:

    run_pipeline([archive, compress, encrypt, meter], sink=out_file)
    run_pipeline([meter, decrypt, decompress, extract], source=in_file)

Failure of any stage fails the whole pipeline with StreamError, and every
stage still running at that point is killed before the error propagates.
"""

import io
import os
import signal
import subprocess
import sys
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import ExitStack, contextmanager
from typing import IO, BinaryIO, Dict, Iterator, List, Optional, Sequence, Tuple

from tqdm import tqdm
from tqdm.utils import CallbackIOWrapper

from ..errors import StreamError
from ..util.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024
STDERR_TAIL = 2048


class StreamStage:
    """A named transform in a pipeline."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class CommandStage(StreamStage):
    """An external program reading stdin and writing stdout."""

    def __init__(self, name: str, argv: Sequence[str], env: Optional[Dict[str, str]] = None):
        super().__init__(name)
        self.argv = list(argv)
        self.env = env or {}

    def spawn(self, stdin, stderr: IO[bytes]) -> subprocess.Popen:
        env = None
        if self.env:
            env = dict(os.environ)
            env.update(self.env)

        try:
            return subprocess.Popen(
                self.argv,
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=stderr,
                env=env,
                bufsize=0,
            )
        except OSError as e:
            raise StreamError(self.name, f"could not start {self.argv[0]}: {e}") from e


class MeterStage(StreamStage):
    """In-process pass-through that reports throughput on stderr."""

    def __init__(
        self,
        name: str = "meter",
        total: Optional[int] = None,
        description: Optional[str] = None,
        enabled: bool = True,
    ):
        super().__init__(name)
        self.total = total
        self.description = description
        self.enabled = enabled

    @contextmanager
    def attach(self, stream: BinaryIO) -> Iterator[BinaryIO]:
        bar = tqdm(
            total=self.total,
            desc=self.description,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            leave=False,
            disable=not self.enabled,
            file=sys.stderr,
        )
        try:
            yield CallbackIOWrapper(bar.update, stream, "read")
        finally:
            bar.close()


def _has_fileno(stream) -> bool:
    try:
        stream.fileno()
        return True
    except (AttributeError, io.UnsupportedOperation, ValueError):
        return False


def _pump(reader: BinaryIO, writer: BinaryIO) -> None:
    try:
        while True:
            chunk = reader.read(CHUNK_SIZE)
            if not chunk:
                break
            writer.write(chunk)
    finally:
        writer.close()


def _stderr_tail(errlog: IO[bytes]) -> str:
    errlog.seek(0, io.SEEK_END)
    size = errlog.tell()
    errlog.seek(max(0, size - STDERR_TAIL))
    return errlog.read().decode(errors="replace").strip()


def _root_cause(failures: List[Tuple[str, int, str]]) -> Tuple[str, int, str]:
    """Pick the stage that failed on its own rather than from a broken pipe."""
    for failure in failures:
        if failure[1] != -signal.SIGPIPE:
            return failure
    return failures[0]


def _terminate(running: List[Tuple[CommandStage, subprocess.Popen, IO[bytes]]]) -> None:
    for stage, proc, _ in running:
        if proc.poll() is None:
            logger.debug(f"Killing pipeline stage {stage.name}")
            proc.kill()
    for _, proc, _ in running:
        proc.wait()


def run_pipeline(
    stages: Sequence[StreamStage],
    source: Optional[BinaryIO] = None,
    sink: Optional[BinaryIO] = None,
) -> None:
    """Run stages back to back from source to sink.

    Args:
        stages: Ordered stages; at least one must be a CommandStage
        source: Input for the first stage, None if it produces its own
        sink: Destination for the last stage's output, None to discard it

    Raises:
        StreamError: If any stage fails or a stream closes early
    """
    if not any(isinstance(stage, CommandStage) for stage in stages):
        raise ValueError("Pipeline needs at least one command stage")

    logger.debug(f"Running pipeline: {' | '.join(stage.name for stage in stages)}")

    running: List[Tuple[CommandStage, subprocess.Popen, IO[bytes]]] = []
    pumps: List[Tuple[str, Future]] = []

    with ExitStack() as stack:
        pool = stack.enter_context(ThreadPoolExecutor(max_workers=len(stages)))

        upstream = source
        upstream_name = "source"
        direct = source is not None and _has_fileno(source)
        from_pipe = False

        try:
            for stage in stages:
                if isinstance(stage, MeterStage):
                    if upstream is not None:
                        upstream = stack.enter_context(stage.attach(upstream))
                        direct = False
                    continue

                errlog = stack.enter_context(tempfile.TemporaryFile())
                if upstream is None:
                    stdin = subprocess.DEVNULL
                elif direct:
                    stdin = upstream
                else:
                    stdin = subprocess.PIPE

                proc = stage.spawn(stdin, errlog)
                running.append((stage, proc, errlog))

                if stdin is subprocess.PIPE:
                    pumps.append((stage.name, pool.submit(_pump, upstream, proc.stdin)))
                elif direct and from_pipe:
                    # Only the child may hold the read end, or SIGPIPE never reaches the writer
                    upstream.close()

                upstream, upstream_name = proc.stdout, stage.name
                direct = from_pipe = True

            while True:
                try:
                    chunk = upstream.read(CHUNK_SIZE)
                except OSError as e:
                    raise StreamError(upstream_name, f"read failed: {e}") from e
                if not chunk:
                    break
                if sink is not None:
                    try:
                        sink.write(chunk)
                    except OSError as e:
                        raise StreamError("sink", f"write failed: {e}") from e

            for _, proc, _ in running:
                proc.wait()

            failures = [
                (stage.name, proc.returncode, _stderr_tail(errlog))
                for stage, proc, errlog in running
                if proc.returncode != 0
            ]
            if failures:
                name, code, stderr = _root_cause(failures)
                detail = f": {stderr}" if stderr else ""
                raise StreamError(name, f"exited with status {code}{detail}")

            for name, future in pumps:
                error = future.exception()
                if error is not None:
                    raise StreamError(name, f"input closed early: {error}")
        except BaseException:
            _terminate(running)
            raise
        finally:
            for _, proc, _ in running:
                if proc.stdout is not None and not proc.stdout.closed:
                    proc.stdout.close()
