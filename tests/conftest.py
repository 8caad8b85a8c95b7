import io
import pathlib
import struct
import sys
import threading

ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from docker.errors import APIError, ImageNotFound, NotFound

from code_sandbox.core.config import Settings


def frame(kind: int, payload: bytes) -> bytes:
    return struct.pack('>BxxxL', kind, len(payload)) + payload


class FakeSocket(io.BytesIO):
    pass


class FakeContainer:
    def __init__(self, cid='c0ffee', stop_error=None, remove_error=None, start_error=None):
        self.id = cid
        self.started = 0
        self.stopped = 0
        self.removed = 0
        self.stop_error = stop_error
        self.remove_error = remove_error
        self.start_error = start_error

    def start(self):
        self.started += 1
        if self.start_error:
            raise self.start_error

    def stop(self, timeout=None):
        self.stopped += 1
        if self.stop_error:
            raise self.stop_error

    def remove(self, force=False):
        self.removed += 1
        if self.remove_error:
            raise self.remove_error


class FakeContainers:
    def __init__(self, client):
        self.client = client
        self.created = []
        self.create_kwargs = []

    def create(self, image, **kwargs):
        if self.client.create_error:
            raise self.client.create_error
        if image in self.client.images.missing:
            raise ImageNotFound(f'No such image: {image}')
        container = self.client.container_factory()
        self.created.append(container)
        self.create_kwargs.append(dict(kwargs, image=image))
        return container


class FakeAPI:
    def __init__(self, client):
        self.client = client
        self.commands = []

    def exec_create(self, container_id, cmd, **kwargs):
        self.commands.append(cmd[-1])
        return {'Id': f'exec-{len(self.commands)}'}

    def exec_start(self, exec_id, socket=False):
        if self.client.exec_error:
            raise self.client.exec_error
        response = self.client.responses.pop(0)
        if isinstance(response, bytes):
            return FakeSocket(response)
        return response


class FakeImages:
    def __init__(self):
        self.missing = set()
        self.pulled = []
        self.pull_error = None

    def pull(self, repository, tag=None):
        self.pulled.append(repository)
        if self.pull_error:
            raise self.pull_error
        self.missing.discard(repository)


class HangingStream:
    """Yields ``data`` and then blocks until closed, like an exec that never ends."""

    def __init__(self, data=b''):
        self.buf = io.BytesIO(data)
        self.release = threading.Event()

    def read(self, n):
        chunk = self.buf.read(n)
        if chunk:
            return chunk
        self.release.wait()
        return b''

    def close(self):
        self.release.set()


class FakeDockerClient:
    """Records container lifecycle calls; exec output comes from ``responses``."""

    def __init__(self, responses=None, ping_error=None):
        self.responses = list(responses or [])
        self.ping_error = ping_error
        self.create_error = None
        self.exec_error = None
        self.container_factory = FakeContainer
        self.images = FakeImages()
        self.containers = FakeContainers(self)
        self.api = FakeAPI(self)

    def ping(self):
        if self.ping_error:
            raise self.ping_error
        return True


@pytest.fixture
def settings(tmp_path):
    return Settings(SANDBOX_ROOT=str(tmp_path / 'sandboxes'), STREAM_TIMEOUT_S=1.0)


@pytest.fixture
def not_found():
    return NotFound('gone')


@pytest.fixture
def conflict():
    class _Response:
        status_code = 409
        reason = 'Conflict'
        url = 'http://docker/containers/c0ffee'

    return APIError('removal in progress', response=_Response())
