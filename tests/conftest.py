"""Pytest configuration and shared fixtures."""

from typing import Any, Dict, List, Optional, Union
from urllib.parse import unquote_plus

import pytest

from gateway_metrics.exceptions import QueryError
from gateway_metrics.models import FunctionStatus, VectorQueryResponse


def vector(*samples: Dict[str, Any]) -> VectorQueryResponse:
    """Build a vector response from (labels, value) dicts: {"labels": {...}, "value": "1.5"}."""
    return VectorQueryResponse.model_validate({
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {"metric": sample["labels"], "value": [1640995200.0, sample["value"]]}
                for sample in samples
            ],
        },
    })


class FakeFetcher:
    """
    Query fetcher returning canned responses keyed by a metric name fragment.

    The first key found in the decoded query selects the response; an
    exception instance as the value is raised instead. Unmatched queries
    return an empty vector.
    """

    def __init__(self, responses: Optional[Dict[str, Union[VectorQueryResponse, Exception]]] = None):
        self.responses = responses or {}
        self.queries: List[str] = []

    async def fetch(self, encoded_query: str) -> VectorQueryResponse:
        query = unquote_plus(encoded_query)
        self.queries.append(query)
        for fragment, response in self.responses.items():
            if fragment in query:
                if isinstance(response, Exception):
                    raise response
                return response
        return VectorQueryResponse.empty()


@pytest.fixture
def sample_function_payload() -> List[Dict[str, Any]]:
    """Provider listing as returned by /system/functions."""
    return [
        {
            "name": "fn1",
            "namespace": "ns1",
            "image": "ghcr.io/example/fn1:0.1.0",
            "replicas": 2,
            "availableReplicas": 2,
            "envProcess": "python index.py",
            "labels": {"team": "payments"},
            "annotations": {"topic": "orders"},
            "constraints": ["node.platform.os == linux"],
            "secrets": ["api-key"],
            "limits": {"memory": "128Mi", "cpu": "200m"},
            "requests": {"memory": "64Mi", "cpu": "100m"},
            "readOnlyRootFilesystem": True,
            "createdAt": "2024-01-01T00:00:00Z",
            "invocationCount": 1234,
        },
        {
            "name": "fn2",
            "namespace": "ns1",
            "image": "ghcr.io/example/fn2:0.2.0",
            "replicas": 1,
            "availableReplicas": 0,
        },
    ]


@pytest.fixture
def sample_functions(sample_function_payload) -> List[FunctionStatus]:
    return [
        FunctionStatus.model_validate(item).with_zeroed_metrics()
        for item in sample_function_payload
    ]


@pytest.fixture
def query_error() -> QueryError:
    return QueryError("connection refused")


@pytest.fixture
def make_vector():
    return vector


@pytest.fixture
def make_fetcher():
    return FakeFetcher
