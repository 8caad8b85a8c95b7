import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import docker

from .core.config import Settings
from .docker_runner import DockerRunner, create_client
from .languages import LanguageRegistry
from .probe import DockerProbe
from .schemas import ExecutionResult, TestCase, TestOutcome, TestReport, TestSummary
from .workspace import WorkspaceManager

logger = logging.getLogger(__name__)


class CodeExecutor:
    """Entry point for running submissions: ``execute``, ``test_code``, ``is_available``."""

    def __init__(
        self,
        registry: LanguageRegistry,
        workspaces: WorkspaceManager,
        runner: DockerRunner,
        probe: DockerProbe,
        test_concurrency: int = 1,
    ):
        self.registry = registry
        self.workspaces = workspaces
        self.runner = runner
        self.probe = probe
        self.test_concurrency = max(1, test_concurrency)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[docker.DockerClient] = None) -> 'CodeExecutor':
        client = client or create_client()
        return cls(
            registry=LanguageRegistry(settings),
            workspaces=WorkspaceManager(settings.SANDBOX_ROOT),
            runner=DockerRunner(client, settings),
            probe=DockerProbe(client),
            test_concurrency=settings.TEST_CONCURRENCY,
        )

    def is_available(self) -> bool:
        return self.probe.is_available()

    def execute(self, code: str, language: str, stdin: str = '') -> ExecutionResult:
        profile = self.registry.resolve(language)
        try:
            with self.workspaces.staged(code, profile) as ws:
                return self.runner.run(ws, profile, stdin or '')
        except Exception as e:
            logger.exception('execution of %s submission failed', profile.language.value)
            return ExecutionResult(
                succeeded=False,
                stderr=f'Execution failed: {e}',
                elapsed_ms=0,
                infrastructure_error=True,
            )

    def test_code(self, code: str, language: str, tests: Sequence[TestCase]) -> List[TestOutcome]:
        if self.test_concurrency > 1 and len(tests) > 1:
            workers = min(self.test_concurrency, len(tests))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='test-case') as pool:
                return list(pool.map(lambda t: self._run_case(code, language, t), tests))
        return [self._run_case(code, language, t) for t in tests]

    def _run_case(self, code: str, language: str, test: TestCase) -> TestOutcome:
        result = self.execute(code, language, test.input)
        actual = result.stdout.strip() or None
        expected = test.expected_output.strip()
        return TestOutcome(
            input=test.input,
            expected_output=expected,
            actual_output=actual,
            passed=(actual == expected and result.succeeded),
            error=result.stderr,
            elapsed_ms=result.elapsed_ms,
        )


def summarize(outcomes: List[TestOutcome]) -> TestReport:
    passed = sum(1 for o in outcomes if o.passed)
    total = len(outcomes)
    return TestReport(
        success=passed == total,
        results=outcomes,
        summary=TestSummary(
            passed=passed,
            total=total,
            pass_rate=(passed / total) if total else 0.0,
        ),
    )
