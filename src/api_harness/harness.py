"""Runs one API test end to end: resolve, execute, analyse, record."""

import logging

from api_harness.analysis import FailureAnalyzer, needs_analysis
from api_harness.config import DEFAULT_TIMEOUT_MS
from api_harness.errors import AnalysisError
from api_harness.executor import TestExecutor
from api_harness.history import HistoryRecorder
from api_harness.models import (
    AiAnalysis,
    ApiDefinition,
    EndpointDefinition,
    RequestOverride,
    ResolvedRequest,
    TestResult,
)
from api_harness.resolver import resolve

logger = logging.getLogger(__name__)


class ApiTestHarness:
    """Glue between the resolver, the executor and the history recorder.

    Only ``NoUrlResolvable`` escapes ``run``, and it is raised before any
    network call. Everything that goes wrong afterwards is reported in the
    returned ``TestResult``.
    """

    def __init__(
        self,
        executor: TestExecutor | None = None,
        recorder: HistoryRecorder | None = None,
        analyzer: FailureAnalyzer | None = None,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
        analyze_all: bool = False,
    ):
        self.executor = executor or TestExecutor()
        self.recorder = recorder
        self.analyzer = analyzer
        self.timeout_ms = timeout_ms
        self.analyze_all = analyze_all
        self.last_request: ResolvedRequest | None = None
        self.last_analysis: AiAnalysis | None = None

    def run(
        self,
        api: ApiDefinition,
        endpoint: EndpointDefinition | None = None,
        override: RequestOverride | None = None,
    ) -> TestResult:
        request = resolve(api, endpoint, override)
        self.last_request = request

        result = self.executor.execute(request, self.timeout_ms)
        analysis = self._analyze(api, request, result)
        self.last_analysis = analysis

        if self.recorder is not None:
            endpoint_id = endpoint.id if endpoint is not None else None
            try:
                self.recorder.record(api.id, request, result, endpoint_id=endpoint_id, ai_analysis=analysis)
            except OSError as e:
                logger.error("Could not record test history for %r: %s", api.name, e)

        return result

    def _analyze(self, api: ApiDefinition, request: ResolvedRequest, result: TestResult) -> AiAnalysis | None:
        if self.analyzer is None or not needs_analysis(result):
            return None
        if not (api.ai_analysis_enabled or self.analyze_all):
            return None
        try:
            return self.analyzer.analyze(request, result)
        except AnalysisError as e:
            logger.warning("AI analysis skipped for %r: %s", api.name, e)
            return None
