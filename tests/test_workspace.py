import os

import pytest

from code_sandbox.languages import LanguageRegistry
from code_sandbox.workspace import WorkspaceManager


@pytest.fixture
def profile(settings):
    return LanguageRegistry(settings).resolve('python')


def test_stage_writes_source(tmp_path, profile):
    mgr = WorkspaceManager(str(tmp_path))
    ws = mgr.stage("print('hi')", profile)
    assert os.path.dirname(ws.path) == str(tmp_path)
    assert os.path.basename(ws.source_path) == 'main.py'
    with open(ws.source_path, encoding='utf-8') as f:
        assert f.read() == "print('hi')"


def test_stage_creates_unique_directories(tmp_path, profile):
    mgr = WorkspaceManager(str(tmp_path))
    a = mgr.stage('', profile)
    b = mgr.stage('', profile)
    assert a.path != b.path


def test_release_is_idempotent(tmp_path, profile):
    mgr = WorkspaceManager(str(tmp_path))
    ws = mgr.stage('x = 1', profile)
    mgr.release(ws)
    assert not os.path.exists(ws.path)
    mgr.release(ws)


def test_release_logs_instead_of_raising(tmp_path, profile, monkeypatch):
    mgr = WorkspaceManager(str(tmp_path))
    ws = mgr.stage('x = 1', profile)

    def boom(path):
        raise PermissionError('denied')

    monkeypatch.setattr('code_sandbox.workspace.shutil.rmtree', boom)
    mgr.release(ws)


def test_staged_removes_directory_on_error(tmp_path, profile):
    mgr = WorkspaceManager(str(tmp_path))
    with pytest.raises(RuntimeError):
        with mgr.staged('x = 1', profile) as ws:
            assert os.path.isdir(ws.path)
            raise RuntimeError('run blew up')
    assert os.listdir(tmp_path) == []
