"""
Merge Prometheus vector results onto function records.

The functions here do no I/O. Each takes the records and one query response,
mutates the matching metric field in place and returns the same list.

Match keys differ per metric family:

* invocation count and average time match the ``function_name`` label
  against ``"{name}.{namespace}"``;
* CPU and memory match the ``container`` label against the name and the
  ``namespace`` label against the namespace.

Several matching samples are summed, except for average time, which is the
arithmetic mean of the matches.
"""

import logging
from typing import Callable, Iterator, List, Optional, Tuple

from .models import FunctionStatus, FunctionUsage, VectorQueryResponse, VectorSample


logger = logging.getLogger(__name__)

Matcher = Callable[[FunctionStatus, VectorSample], bool]


def sample_value(sample: VectorSample) -> Optional[float]:
    """Parse the numeric part of a sample, or None if it is not a number string."""
    raw = sample.value[1]
    if not isinstance(raw, str):
        logger.warning(f"add_metrics: unexpected value type {type(raw).__name__} for metric {sample.metric}")
        return None
    try:
        return float(raw)
    except ValueError as e:
        logger.warning(f"add_metrics: unable to convert value {raw!r} for metric: {e}")
        return None


def match_function_name(function: FunctionStatus, sample: VectorSample) -> bool:
    return sample.metric.function_name == f"{function.name}.{function.namespace}"


def match_container(function: FunctionStatus, sample: VectorSample) -> bool:
    return (
        sample.metric.container == function.name
        and sample.metric.namespace == function.namespace
    )


def _matches(function: FunctionStatus, metrics: Optional[VectorQueryResponse],
             matcher: Matcher) -> Iterator[float]:
    if metrics is None:
        return
    for sample in metrics.data.result:
        if not matcher(function, sample):
            continue
        value = sample_value(sample)
        if value is not None:
            yield value


def _usage(function: FunctionStatus) -> FunctionUsage:
    if function.usage is None:
        function.usage = FunctionUsage()
    return function.usage


def mix_invocations(functions: List[FunctionStatus],
                    metrics: Optional[VectorQueryResponse]) -> List[FunctionStatus]:
    """Add matching invocation totals onto ``invocation_count``."""
    for function in functions:
        for value in _matches(function, metrics, match_function_name):
            function.invocation_count += value
    return functions


def mix_cpu(functions: List[FunctionStatus],
            metrics: Optional[VectorQueryResponse]) -> List[FunctionStatus]:
    """Add matching CPU samples onto ``usage.cpu``."""
    if metrics is not None:
        logger.debug(f"CPU samples: {len(metrics.data.result)}")
    for function in functions:
        for value in _matches(function, metrics, match_container):
            _usage(function).cpu += value
    return functions


def mix_memory(functions: List[FunctionStatus],
               metrics: Optional[VectorQueryResponse]) -> List[FunctionStatus]:
    """Add matching working-set samples onto ``usage.total_memory_bytes``."""
    if metrics is not None:
        logger.debug(f"Memory samples: {len(metrics.data.result)}")
    for function in functions:
        for value in _matches(function, metrics, match_container):
            _usage(function).total_memory_bytes += value
    return functions


def mix_average_time(functions: List[FunctionStatus],
                     metrics: Optional[VectorQueryResponse]) -> List[FunctionStatus]:
    """Set ``invocation_avg_time`` to the mean of the matching samples; untouched when none match."""
    for function in functions:
        total, count = _sum_and_count(_matches(function, metrics, match_function_name))
        if count:
            function.invocation_avg_time = total / count
    return functions


def _sum_and_count(values: Iterator[float]) -> Tuple[float, int]:
    total, count = 0.0, 0
    for value in values:
        total += value
        count += 1
    return total, count
