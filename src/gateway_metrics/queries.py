"""PromQL expressions used by the enrichment handler and the exporter."""

DEFAULT_FUNCTION_NAMESPACE = "openfaas-fn"


def invocation_total_query(namespace: str) -> str:
    # Restricts results to function names carrying the namespace suffix.
    return f'sum(gateway_function_invocation_total{{function_name=~".*.{namespace}"}}) by (function_name)'


def cpu_usage_query(function_namespace: str = DEFAULT_FUNCTION_NAMESPACE) -> str:
    return (
        'sum by(container, namespace) (container_cpu_usage_seconds_total'
        f'{{image!="",namespace="{function_namespace}", container!="POD"}})'
    )


def memory_usage_query(function_namespace: str = DEFAULT_FUNCTION_NAMESPACE) -> str:
    return (
        'sum by(container, namespace) (container_memory_working_set_bytes'
        f'{{image!="",namespace="{function_namespace}", container!="POD"}})'
    )


def average_request_time_query() -> str:
    return (
        'sum by (function_name) '
        '(gateway_function_request_seconds_sum / gateway_function_request_seconds_count)'
    )
