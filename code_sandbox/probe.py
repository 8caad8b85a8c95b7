import logging

import docker

logger = logging.getLogger(__name__)


class DockerProbe:
    def __init__(self, client: docker.DockerClient):
        self.client = client

    def is_available(self) -> bool:
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.warning('docker daemon unreachable: %s', e)
            return False
