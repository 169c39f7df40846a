"""Metrics collection for the agentic_workflow router."""
from __future__ import annotations

import time
import uuid
from typing import Any, Dict, List


class AgentMetrics:
    def __init__(self) -> None:
        self.correlation_id = str(uuid.uuid4())
        self.start_time = time.time()

        # LLM metrics
        self.llm_calls: int = 0
        self.llm_retries: int = 0
        self.models_tried: List[str] = []
        self.model_used: str | None = None

        # Classifier metrics
        self.classification_latency_ms: int = 0
        self.fallback_used: bool = False
        self.suspicious_input: bool = False
        self.platform: str | None = None
        self.action: str | None = None

        # Dispatch metrics
        self.authorization_required: bool = False
        self.credential_invalidated: bool = False
        self.outcome: str | None = None
        self.dispatch_latency_ms: int = 0

        # End-to-end metrics
        self.total_latency_ms: int = 0

    def record_model_attempt(self, model: str) -> None:
        self.llm_calls += 1
        if model not in self.models_tried:
            self.models_tried.append(model)

    def finalize(self) -> Dict[str, Any]:
        """Finalize metrics and return as dictionary."""
        self.total_latency_ms = int((time.time() - self.start_time) * 1000)
        result = self.__dict__.copy()
        result["models_tried"] = list(self.models_tried)
        return result
