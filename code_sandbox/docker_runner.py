import shlex
import time
import logging
from typing import Optional

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from .core.config import Settings
from .demux import StreamDemultiplexer, StreamOutput, TIMEOUT_MESSAGE
from .languages import LanguageProfile
from .schemas import ExecutionResult
from .workspace import Workspace

logger = logging.getLogger(__name__)

IDLE_COMMAND = ['sh', '-c', 'tail -f /dev/null']


def create_client() -> docker.DockerClient:
    return docker.from_env()


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def build_run_command(run_cmd: str, stdin: str, time_limit: int) -> str:
    """Wrap ``run_cmd`` with the wall-clock limit and optional piped stdin.

    ``timeout`` exits with 124 when it had to kill the command; the wrapper
    reports that on stderr.
    """
    inner = run_cmd
    if stdin:
        inner = f"printf '%s' {shlex.quote(stdin)} | {run_cmd}"
    return (
        f"timeout {time_limit} sh -c {shlex.quote(inner)}; "
        f"[ $? -eq 124 ] && echo {shlex.quote(TIMEOUT_MESSAGE)} >&2"
    )


class DockerRunner:
    """Runs one compile/run cycle inside a throwaway container."""

    def __init__(self, client: docker.DockerClient, settings: Settings,
                 demux: Optional[StreamDemultiplexer] = None):
        self.client = client
        self.mount_path = settings.MOUNT_PATH
        self.mem_limit = settings.MEMORY_LIMIT
        self.time_limit = settings.RUN_TIME_LIMIT_S
        self.demux = demux or StreamDemultiplexer(settings.STREAM_TIMEOUT_S, settings.MAX_OUTPUT_BYTES)

    def run(self, ws: Workspace, profile: LanguageProfile, stdin: str = '') -> ExecutionResult:
        try:
            try:
                container = self._create(ws, profile)
            except ImageNotFound:
                logger.info('pulling image %s', profile.image)
                self.client.images.pull(profile.image)
                container = self._create(ws, profile)
        except DockerException as e:
            return self._setup_failure(profile, e)

        try:
            try:
                container.start()
            except DockerException as e:
                return self._setup_failure(profile, e)

            start = time.monotonic()
            try:
                if profile.compiled:
                    out = self._exec(container, profile.compile_command)
                    if out.stderr:
                        return ExecutionResult(succeeded=False, stderr=out.stderr, elapsed_ms=_elapsed_ms(start))

                out = self._exec(container, build_run_command(profile.run_command, stdin, self.time_limit))
                return ExecutionResult(
                    succeeded=not out.stderr and out.stdout is not None,
                    stdout=out.stdout or '',
                    stderr=out.stderr,
                    elapsed_ms=_elapsed_ms(start),
                )
            except DockerException as e:
                logger.error('exec failed in container %s: %s', container.id, e)
                return ExecutionResult(
                    succeeded=False,
                    stderr=f'Execution failed: {e}',
                    elapsed_ms=_elapsed_ms(start),
                    infrastructure_error=True,
                )
        finally:
            self._teardown(container)

    def _create(self, ws: Workspace, profile: LanguageProfile):
        return self.client.containers.create(
            profile.image,
            command=IDLE_COMMAND,
            working_dir=self.mount_path,
            volumes={ws.path: {'bind': self.mount_path, 'mode': 'rw'}},
            network_mode='none',
            mem_limit=self.mem_limit,
            memswap_limit=self.mem_limit,
            auto_remove=True,
        )

    def _setup_failure(self, profile: LanguageProfile, e: Exception) -> ExecutionResult:
        logger.error('failed to provision %s sandbox: %s', profile.language.value, e)
        return ExecutionResult(
            succeeded=False,
            stderr=f'Failed to start sandbox: {e}',
            elapsed_ms=0,
            infrastructure_error=True,
        )

    def _exec(self, container, cmd: str) -> StreamOutput:
        exec_id = self.client.api.exec_create(
            container.id,
            ['sh', '-c', cmd],
            stdout=True,
            stderr=True,
            workdir=self.mount_path,
        )['Id']
        sock = self.client.api.exec_start(exec_id, socket=True)
        try:
            return self.demux.read(sock)
        finally:
            try:
                sock.close()
            except OSError as e:
                logger.debug('closing exec stream failed: %s', e)

    def _teardown(self, container) -> None:
        """Stop and remove ``container``; errors are logged, never raised."""
        try:
            container.stop(timeout=0)
        except NotFound:
            pass
        except Exception as e:
            logger.warning('failed to stop container %s: %s', container.id, e)
        try:
            container.remove(force=True)
        except NotFound:
            pass
        except APIError as e:
            # auto_remove may already be deleting it
            if e.status_code == 409:
                return
            logger.warning('failed to remove container %s: %s', container.id, e)
        except Exception as e:
            logger.warning('failed to remove container %s: %s', container.id, e)
