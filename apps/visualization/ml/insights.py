import json
import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

import requests

from apps.visualization.ml.constants import (
    INSIGHT_DEFAULT_ENDPOINT,
    INSIGHT_DEFAULT_MODEL,
    INSIGHT_DEFAULT_TIMEOUT,
)
from apps.visualization.ml.utils import format_insight_prompt

logger = logging.getLogger(__name__)

SESSION_KEY = "insight_config"


class InsightError(Exception):
    pass


@dataclass(frozen=True)
class InsightConfig:
    endpoint: str = INSIGHT_DEFAULT_ENDPOINT
    model: str = INSIGHT_DEFAULT_MODEL
    api_key: Optional[str] = None
    timeout: int = INSIGHT_DEFAULT_TIMEOUT

    def to_session(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_session(cls, session) -> Optional["InsightConfig"]:
        data = session.get(SESSION_KEY)
        if not data:
            return None
        return cls(**data)

    def store(self, session):
        session[SESSION_KEY] = self.to_session()

    @staticmethod
    def clear(session):
        session.pop(SESSION_KEY, None)


class InsightClient:
    """Ask an Ollama-style completion endpoint for a dataset summary."""

    def __init__(self, config: InsightConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def summarize(
        self,
        dataset_name: str,
        columns: List[Dict],
        row_count: int,
        quality_report: Optional[Dict] = None,
    ) -> Dict:
        prompt = format_insight_prompt(dataset_name, columns, row_count, quality_report)

        try:
            response = self.session.post(
                self.config.endpoint,
                json={
                    "model": self.config.model,
                    "prompt": prompt,
                    "stream": False,
                    "format": "json",
                },
                headers=self._headers(),
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.Timeout as e:
            raise InsightError(f"Insight request timed out after {self.config.timeout}s") from e
        except requests.RequestException as e:
            raise InsightError(f"Insight request failed: {e}") from e
        except ValueError as e:
            raise InsightError("Insight endpoint returned invalid JSON") from e

        raw = body.get("response") if isinstance(body, dict) else None
        if not raw:
            raise InsightError("Insight response missing 'response' field")

        try:
            insight = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InsightError("Insight response is not valid JSON") from e

        if not isinstance(insight, dict) or "summary" not in insight:
            raise InsightError("Insight response missing 'summary' field")

        known = {c["name"] for c in columns}
        insight["suggested_charts"] = [
            chart
            for chart in insight.get("suggested_charts") or []
            if isinstance(chart, dict) and chart.get("x_column") in known
        ][:3]
        insight.setdefault("highlights", [])

        logger.info("Insight generated for %s with %s", dataset_name, self.config.model)
        return insight
