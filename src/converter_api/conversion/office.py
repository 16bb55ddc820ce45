"""
Office → PDF rendering through a headless LibreOffice process.

Each call writes the upload to a private job directory, runs
`soffice --convert-to pdf` against it and reads the PDF back. The job
directory (input, output and LibreOffice profile) is removed on every exit
path. A bounded semaphore caps how many soffice processes run at once.
"""

import logging
import shutil
import subprocess
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from .errors import ExternalToolFailure, IOFailure
from .interfaces import ProcessInvoker, ProcessOutcome, RenderJob

logger = logging.getLogger(__name__)

ROUTE_NAME = "office-to-pdf"


def run_process(args: Sequence[str], timeout: float) -> ProcessOutcome:
    """Default ProcessInvoker: run `args`, capture stderr, kill on timeout."""
    try:
        proc = subprocess.Popen(
            list(args),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
        )
    except OSError as e:
        raise ExternalToolFailure(
            f"could not start {args[0]}", route=ROUTE_NAME, original_error=e
        ) from e

    try:
        _, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        _, stderr = proc.communicate()
        raise ExternalToolFailure(
            f"{args[0]} timed out after {timeout:g}s",
            diagnostics=stderr.decode("utf-8", errors="replace"),
            route=ROUTE_NAME,
            original_error=e,
        ) from e

    return ProcessOutcome(
        returncode=proc.returncode,
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class LibreOfficeRenderer:
    """OfficeRenderer backed by the LibreOffice `soffice` executable.

    One instance is shared by the whole process so the admission gate
    bounds concurrent renderings across all requests.
    """

    def __init__(
        self,
        executable: str = "soffice",
        *,
        timeout: float = 120.0,
        max_concurrent: int = 2,
        temp_dir: str | None = None,
        invoker: ProcessInvoker | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._executable = executable
        self._timeout = timeout
        self._temp_dir = temp_dir
        self._invoker: ProcessInvoker = invoker or run_process
        self._gate = threading.BoundedSemaphore(max_concurrent)
        self.max_concurrent = max_concurrent

    @contextmanager
    def render_job(self, source_ext: str) -> Iterator[RenderJob]:
        """Allocate a job directory and guarantee its removal."""
        correlation_id = uuid.uuid4().hex
        try:
            job_dir = Path(tempfile.mkdtemp(prefix=f"office-{correlation_id[:8]}-", dir=self._temp_dir))
        except OSError as e:
            raise IOFailure("could not create render directory", route=ROUTE_NAME, correlation_id=correlation_id, original_error=e) from e

        output_dir = job_dir / "out"
        job = RenderJob(
            input_path=job_dir / f"{correlation_id}.{source_ext}",
            output_dir=output_dir,
            output_path=output_dir / f"{correlation_id}.pdf",
            correlation_id=correlation_id,
            profile_dir=job_dir / "profile",
        )
        try:
            yield job
        finally:
            shutil.rmtree(job_dir, ignore_errors=True)
            if job_dir.exists():
                logger.warning("render directory not removed: %s", job_dir)

    def command(self, job: RenderJob) -> list[str]:
        return [
            self._executable,
            "--headless",
            "--norestore",
            f"-env:UserInstallation={job.profile_dir.as_uri()}",
            "--convert-to",
            "pdf",
            "--outdir",
            str(job.output_dir),
            str(job.input_path),
        ]

    def render_to_pdf(self, data: bytes, source_ext: str) -> bytes:
        with self.render_job(source_ext) as job:
            try:
                job.output_dir.mkdir(parents=True, exist_ok=True)
                job.input_path.write_bytes(data)
            except OSError as e:
                raise IOFailure("could not write render input", route=ROUTE_NAME, correlation_id=job.correlation_id, original_error=e) from e

            logger.debug("job %s waiting for a render slot", job.correlation_id)
            with self._gate:
                started = time.monotonic()
                logger.info("job %s: rendering %s to pdf", job.correlation_id, job.input_path.name)
                try:
                    outcome = self._invoker(self.command(job), self._timeout)
                except ExternalToolFailure as e:
                    e.correlation_id = job.correlation_id
                    raise
                elapsed = time.monotonic() - started

            if outcome.returncode != 0:
                raise ExternalToolFailure(
                    "office rendering failed",
                    exit_code=outcome.returncode,
                    diagnostics=outcome.stderr,
                    route=ROUTE_NAME,
                    correlation_id=job.correlation_id,
                )
            if not job.output_path.exists():
                raise ExternalToolFailure(
                    f"renderer exited 0 but produced no {job.output_path.name}",
                    exit_code=outcome.returncode,
                    diagnostics=outcome.stderr,
                    route=ROUTE_NAME,
                    correlation_id=job.correlation_id,
                )
            try:
                pdf = job.output_path.read_bytes()
            except OSError as e:
                raise IOFailure("could not read render output", route=ROUTE_NAME, correlation_id=job.correlation_id, original_error=e) from e

            logger.info("job %s: rendered %d bytes in %.2fs", job.correlation_id, len(pdf), elapsed)
            return pdf
