"""
Discovery Engine — Metrics Collection
=====================================
Prometheus metrics for observability.

Usage:
    from discovery_engine.metrics import node_metrics, repair_metrics

    node_metrics.executions_total.labels(role="Analyze", outcome="completed").inc()
    repair_metrics.outcomes_total.labels(outcome="vetoed").inc()
"""

import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram


# =============================================================================
# NODE METRICS
# =============================================================================

class NodeMetrics:
    """Metrics for node executions"""

    def __init__(self):
        self.executions_total = Counter(
            'discovery_node_executions_total',
            'Node executions by role and outcome',
            ['role', 'outcome']  # outcome: completed, failed
        )

        self.duration = Histogram(
            'discovery_node_duration_seconds',
            'Time spent executing a node strategy',
            ['role'],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0]
        )

    @contextmanager
    def track_execution(self, role: str):
        """Context manager timing one strategy execution"""
        start = time.time()
        outcome = "failed"
        try:
            yield
            outcome = "completed"
        finally:
            self.duration.labels(role=role).observe(time.time() - start)
            self.executions_total.labels(role=role, outcome=outcome).inc()


# =============================================================================
# REPAIR METRICS
# =============================================================================

class RepairMetrics:
    """Metrics for the repair subsystem"""

    def __init__(self):
        self.outcomes_total = Counter(
            'discovery_repair_outcomes_total',
            'Repair attempts by outcome',
            ['outcome']  # artifact_repair, code_patch, vetoed, no_proposal, exhausted, patch_failed
        )


# =============================================================================
# RUN METRICS
# =============================================================================

class RunMetrics:
    """Metrics for the discovery loop"""

    def __init__(self):
        self.runs_total = Counter(
            'discovery_runs_total',
            'Finished runs by outcome',
            ['outcome']  # discovered, exhausted, stopped, failed
        )

        self.cycles_total = Counter(
            'discovery_cycles_total',
            'Discovery cycles started'
        )

        self.waves_per_cycle = Histogram(
            'discovery_waves_per_cycle',
            'Dispatch waves needed to drain one experiment',
            buckets=[0, 1, 2, 3, 5, 10, 25]
        )


# =============================================================================
# LLM METRICS
# =============================================================================

class LLMMetrics:
    """Metrics for reasoning-service calls"""

    def __init__(self):
        self.requests_total = Counter(
            'discovery_llm_requests_total',
            'Total reasoning-service calls',
            ['model', 'provider', 'result']  # result: success, error
        )

        self.request_duration = Histogram(
            'discovery_llm_request_duration_seconds',
            'Reasoning-service request duration',
            ['model', 'provider'],
            buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0]
        )

    @contextmanager
    def track_request(self, model: str, provider: str):
        """Context manager to track an LLM request"""
        start = time.time()
        result = "error"
        try:
            yield
            result = "success"
        finally:
            duration = time.time() - start
            self.request_duration.labels(model=model, provider=provider).observe(duration)
            self.requests_total.labels(model=model, provider=provider, result=result).inc()


# =============================================================================
# GLOBAL INSTANCES
# =============================================================================

node_metrics = NodeMetrics()
repair_metrics = RepairMetrics()
run_metrics = RunMetrics()
llm_metrics = LLMMetrics()
