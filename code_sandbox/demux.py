"""Splits a Docker multiplexed exec stream into stdout and stderr.

Each frame starts with an 8 byte header: the stream type in byte 0
(0 = stdin, 1 = stdout, 2 = stderr), three padding bytes and the payload
length as a big-endian uint32.
"""
import logging
import struct
import threading
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)

HEADER_SIZE = 8
STDOUT = 1
STDERR = 2
TIMEOUT_MESSAGE = 'Execution timeout'


class StreamOutput(NamedTuple):
    stdout: Optional[str]
    stderr: Optional[str]
    timed_out: bool = False


def _read_chunk(stream, n: int) -> bytes:
    if hasattr(stream, 'recv'):
        return stream.recv(n)
    return stream.read(n)


def _read_exactly(stream, n: int) -> bytes:
    data = b''
    while len(data) < n:
        chunk = _read_chunk(stream, n - len(data))
        if not chunk:
            break
        data += chunk
    return data


def _decode(raw: bytearray) -> Optional[str]:
    if not raw:
        return None
    return bytes(raw).decode('utf-8', errors='replace')


class StreamDemultiplexer:
    def __init__(self, timeout: float = 5.0, max_bytes: int = 1024 * 1024):
        self.timeout = timeout
        self.max_bytes = max_bytes

    def read(self, stream) -> StreamOutput:
        """Drain ``stream`` until it ends or the liveness timeout expires."""
        buffers = {STDOUT: bytearray(), STDERR: bytearray()}
        lock = threading.Lock()
        done = threading.Event()

        def pump():
            try:
                while True:
                    header = _read_exactly(stream, HEADER_SIZE)
                    if len(header) < HEADER_SIZE:
                        break
                    kind, length = struct.unpack('>BxxxL', header)
                    payload = _read_exactly(stream, length)
                    with lock:
                        buf = buffers.get(kind)
                        # past the cap the stream is still drained, just not kept
                        if buf is not None and len(buf) < self.max_bytes:
                            buf += payload[:self.max_bytes - len(buf)]
                    if len(payload) < length:
                        break
            except (OSError, ValueError) as e:
                # closed underneath us after a timeout or a container teardown
                logger.debug('exec stream closed: %s', e)
            finally:
                done.set()

        reader = threading.Thread(target=pump, name='exec-stream-reader', daemon=True)
        reader.start()
        finished = done.wait(self.timeout)

        with lock:
            stdout = _decode(buffers[STDOUT])
            stderr = _decode(buffers[STDERR])

        if finished:
            return StreamOutput(stdout, stderr)

        logger.warning('exec stream still open after %ss, returning partial output', self.timeout)
        if stderr is None and stdout is None:
            stderr = TIMEOUT_MESSAGE
        return StreamOutput(stdout, stderr, timed_out=True)
