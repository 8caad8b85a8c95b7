import os
import shutil
import uuid
import logging
from contextlib import contextmanager
from dataclasses import dataclass

from .languages import LanguageProfile

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    path: str
    source_path: str


class WorkspaceManager:
    """Creates and removes per-execution staging directories under ``root``."""

    def __init__(self, root: str):
        self.root = root

    def stage(self, code: str, profile: LanguageProfile) -> Workspace:
        workdir = os.path.join(self.root, uuid.uuid4().hex)
        os.makedirs(workdir)
        ws = Workspace(path=workdir, source_path=os.path.join(workdir, profile.source_name))
        try:
            with open(ws.source_path, 'w', encoding='utf-8') as f:
                f.write(code)
        except OSError:
            self.release(ws)
            raise
        logger.debug('staged workspace %s', workdir)
        return ws

    def release(self, ws: Workspace) -> None:
        if not os.path.exists(ws.path):
            return
        try:
            shutil.rmtree(ws.path)
        except OSError as e:
            logger.error('failed to remove workspace %s: %s', ws.path, e)

    @contextmanager
    def staged(self, code: str, profile: LanguageProfile):
        ws = self.stage(code, profile)
        try:
            yield ws
        finally:
            self.release(ws)
