import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from docker.errors import DockerException
from fastapi import Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.logging import setup_logging
from .executor import CodeExecutor, summarize
from .schemas import ExecutionRequest, ExecutionResult, TestReport, TestRunRequest

DOCKER_UNAVAILABLE = 'Docker is not available. Please ensure Docker is running.'

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)


@lru_cache
def _executor() -> CodeExecutor:
    return CodeExecutor.from_settings(get_settings())


def get_executor() -> CodeExecutor:
    try:
        return _executor()
    except DockerException as e:
        logger.warning('cannot create docker client: %s', e)
        raise HTTPException(status_code=503, detail=DOCKER_UNAVAILABLE)


async def require_docker(executor: CodeExecutor):
    if not await run_in_threadpool(executor.is_available):
        raise HTTPException(status_code=503, detail=DOCKER_UNAVAILABLE)


@app.post(f'{settings.API_PREFIX}/execute', response_model=ExecutionResult)
async def run_code(req: ExecutionRequest, executor: CodeExecutor = Depends(get_executor)):
    if not req.code or not req.language:
        raise HTTPException(status_code=400, detail='Code and language are required')
    await require_docker(executor)
    return await run_in_threadpool(executor.execute, req.code, req.language, req.input or '')


@app.post(f'{settings.API_PREFIX}/execute/test', response_model=TestReport)
async def test_code(req: TestRunRequest, executor: CodeExecutor = Depends(get_executor)):
    if not req.code or not req.language:
        raise HTTPException(status_code=400, detail='Code, language, and test_cases are required')
    await require_docker(executor)
    outcomes = await run_in_threadpool(executor.test_code, req.code, req.language, req.test_cases)
    return summarize(outcomes)


def get_optional_executor() -> Optional[CodeExecutor]:
    try:
        return _executor()
    except DockerException as e:
        logger.warning('docker health check failed: %s', e)
        return None


@app.get(f'{settings.API_PREFIX}/health')
async def health(executor: Optional[CodeExecutor] = Depends(get_optional_executor)):
    docker_ok = False
    if executor is not None:
        docker_ok = await run_in_threadpool(executor.is_available)
    checks = {
        'docker': docker_ok,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(status_code=200 if docker_ok else 503, content=checks)
