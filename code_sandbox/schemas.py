from pydantic import BaseModel
from typing import List, Optional


class TestCase(BaseModel):
    input: str = ''
    expected_output: str
    hidden: bool = False


class ExecutionRequest(BaseModel):
    code: str
    language: str
    input: Optional[str] = None


class TestRunRequest(BaseModel):
    code: str
    language: str
    test_cases: List[TestCase]


class ExecutionResult(BaseModel):
    succeeded: bool
    stdout: str = ''
    stderr: Optional[str] = None
    elapsed_ms: int = 0
    # provisioning or transport failure rather than a fault in the submitted code
    infrastructure_error: bool = False


class TestOutcome(BaseModel):
    input: str
    expected_output: str
    actual_output: Optional[str] = None
    passed: bool
    error: Optional[str] = None
    elapsed_ms: int = 0


class TestSummary(BaseModel):
    passed: int
    total: int
    pass_rate: float


class TestReport(BaseModel):
    success: bool
    results: List[TestOutcome]
    summary: TestSummary
