"""Data models for function records and Prometheus vector query results."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class FunctionResources(BaseModel):
    """Resource requests or limits declared for a function."""
    memory: Optional[str] = None
    cpu: Optional[str] = None


class FunctionUsage(BaseModel):
    """Resource usage attached to a function by the metrics merge."""
    model_config = ConfigDict(populate_by_name=True)

    cpu: float = 0.0
    total_memory_bytes: float = Field(default=0.0, alias="totalMemoryBytes")


class FunctionStatus(BaseModel):
    """
    A deployed function as listed by the provider.

    Everything except the metric fields (invocation_count,
    invocation_avg_time, usage) is owned by the provider and copied through
    untouched. Unknown keys in the provider payload are dropped.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    namespace: str = ""
    image: str = ""
    replicas: int = 0
    available_replicas: int = Field(default=0, alias="availableReplicas")
    env_process: Optional[str] = Field(default=None, alias="envProcess")
    env_vars: Optional[Dict[str, str]] = Field(default=None, alias="envVars")
    constraints: Optional[List[str]] = None
    secrets: Optional[List[str]] = None
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    limits: Optional[FunctionResources] = None
    requests: Optional[FunctionResources] = None
    read_only_root_filesystem: bool = Field(default=False, alias="readOnlyRootFilesystem")
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    invocation_count: float = Field(default=0.0, alias="invocationCount")
    invocation_avg_time: float = Field(default=0.0, alias="invocationAvgTime")
    usage: Optional[FunctionUsage] = None

    @property
    def service_name(self) -> str:
        """Label value used for the exported per-function gauges."""
        if self.namespace:
            return f"{self.name}.{self.namespace}"
        return self.name

    def with_zeroed_metrics(self) -> "FunctionStatus":
        """Return a new record with every metric field reset to zero."""
        return self.model_copy(
            deep=True,
            update={
                "invocation_count": 0.0,
                "invocation_avg_time": 0.0,
                "usage": FunctionUsage(),
            },
        )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class VectorMetric(BaseModel):
    """Label set of a single sample. Labels other than the known three are kept."""
    model_config = ConfigDict(extra="allow")

    function_name: str = ""
    container: str = ""
    namespace: str = ""


class VectorSample(BaseModel):
    """One labelled sample: `value` is (timestamp, string-encoded number) and is required."""
    metric: VectorMetric = Field(default_factory=VectorMetric)
    value: Tuple[Any, Any]


class VectorData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    result_type: str = Field(default="vector", alias="resultType")
    result: List[VectorSample] = Field(default_factory=list)


class VectorQueryResponse(BaseModel):
    """Parsed body of a Prometheus instant query."""
    status: str = ""
    data: VectorData = Field(default_factory=VectorData)

    @classmethod
    def empty(cls) -> "VectorQueryResponse":
        return cls(status="success")
