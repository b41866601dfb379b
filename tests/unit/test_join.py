"""Tests for merging vector results onto function records."""

import itertools

import pytest

from gateway_metrics.join import mix_average_time, mix_cpu, mix_invocations, mix_memory
from gateway_metrics.models import FunctionStatus, VectorQueryResponse


def _fn(name: str, namespace: str) -> FunctionStatus:
    return FunctionStatus(name=name, namespace=namespace).with_zeroed_metrics()


def _container(name, namespace, value):
    return {"labels": {"container": name, "namespace": namespace}, "value": value}


def _function_name(key, value):
    return {"labels": {"function_name": key}, "value": value}


@pytest.mark.unit
class TestEmptyResults:
    """Empty or missing results leave every metric at zero."""

    @pytest.mark.parametrize("mix", [mix_invocations, mix_cpu, mix_memory, mix_average_time])
    def test_empty_vector(self, mix, sample_functions):
        mix(sample_functions, VectorQueryResponse.empty())

        for function in sample_functions:
            assert function.invocation_count == 0
            assert function.invocation_avg_time == 0
            assert function.usage.cpu == 0
            assert function.usage.total_memory_bytes == 0

    @pytest.mark.parametrize("mix", [mix_invocations, mix_cpu, mix_memory, mix_average_time])
    def test_none_result_is_a_no_op(self, mix, sample_functions):
        assert mix(sample_functions, None) is sample_functions

    def test_empty_function_list(self, make_vector):
        assert mix_invocations([], make_vector(_function_name("fn1.ns1", "1"))) == []


@pytest.mark.unit
class TestInvocations:

    def test_single_match(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_invocations(functions, make_vector(_function_name("fn1.ns1", "42")))

        assert functions[0].invocation_count == 42

    def test_matches_are_summed(self, make_vector):
        functions = [_fn("fn1", "ns1")]
        samples = [_function_name("fn1.ns1", "10"), _function_name("fn1.ns1", "5.5")]

        mix_invocations(functions, make_vector(*samples))

        assert functions[0].invocation_count == 15.5

    def test_match_is_case_sensitive(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_invocations(functions, make_vector(_function_name("FN1.ns1", "42")))

        assert functions[0].invocation_count == 0

    def test_namespace_is_part_of_key(self, make_vector):
        functions = [_fn("fn1", "ns1"), _fn("fn1", "ns2")]

        mix_invocations(functions, make_vector(_function_name("fn1.ns2", "7")))

        assert functions[0].invocation_count == 0
        assert functions[1].invocation_count == 7

    def test_container_labels_do_not_match(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_invocations(functions, make_vector(_container("fn1", "ns1", "3")))

        assert functions[0].invocation_count == 0

    def test_unparsable_value_is_skipped(self, make_vector):
        functions = [_fn("fn1", "ns1")]
        samples = [_function_name("fn1.ns1", "not-a-number"), _function_name("fn1.ns1", "2")]

        mix_invocations(functions, make_vector(*samples))

        assert functions[0].invocation_count == 2

    def test_non_string_value_is_skipped(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_invocations(functions, make_vector({"labels": {"function_name": "fn1.ns1"}, "value": 5}))

        assert functions[0].invocation_count == 0


@pytest.mark.unit
class TestUsage:

    def test_cpu_matches_container_and_namespace(self, make_vector):
        functions = [_fn("fn1", "ns1"), _fn("fn2", "ns1")]
        samples = [
            _container("fn1", "ns1", "1.5"),
            _container("fn1", "ns1", "0.5"),
            _container("fn1", "other", "100"),
            _container("fn2", "ns1", "0.25"),
        ]

        mix_cpu(functions, make_vector(*samples))

        assert functions[0].usage.cpu == 2.0
        assert functions[1].usage.cpu == 0.25

    def test_memory_sum(self, make_vector):
        functions = [_fn("fn1", "ns1")]
        samples = [_container("fn1", "ns1", "1048576"), _container("fn1", "ns1", "2097152")]

        mix_memory(functions, make_vector(*samples))

        assert functions[0].usage.total_memory_bytes == 3145728
        assert functions[0].usage.cpu == 0

    def test_function_name_label_does_not_match_usage(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_cpu(functions, make_vector(_function_name("fn1.ns1", "9")))

        assert functions[0].usage.cpu == 0

    def test_missing_usage_is_created(self, make_vector):
        functions = [FunctionStatus(name="fn1", namespace="ns1")]
        assert functions[0].usage is None

        mix_memory(functions, make_vector(_container("fn1", "ns1", "64")))

        assert functions[0].usage.total_memory_bytes == 64

    @pytest.mark.parametrize("mix,field", [
        (mix_cpu, "cpu"),
        (mix_memory, "total_memory_bytes"),
    ])
    def test_sum_is_order_independent(self, mix, field, make_vector):
        values = ["0.1", "2", "30.25", "4e2"]
        expected = None

        for order in itertools.permutations(values):
            functions = [_fn("fn1", "ns1")]
            mix(functions, make_vector(*[_container("fn1", "ns1", v) for v in order]))
            result = getattr(functions[0].usage, field)
            if expected is None:
                expected = result
            assert result == pytest.approx(expected)

        assert expected == pytest.approx(432.35)


@pytest.mark.unit
class TestAverageTime:

    def test_mean_of_matches(self, make_vector):
        functions = [_fn("fn1", "ns1")]
        samples = [_function_name("fn1.ns1", "0.2"), _function_name("fn1.ns1", "0.8")]

        mix_average_time(functions, make_vector(*samples))

        assert functions[0].invocation_avg_time == pytest.approx(0.5)

    def test_no_match_stays_zero(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_average_time(functions, make_vector(_function_name("fn9.ns1", "3")))

        assert functions[0].invocation_avg_time == 0

    def test_unparsable_samples_do_not_count(self, make_vector):
        functions = [_fn("fn1", "ns1")]
        samples = [
            _function_name("fn1.ns1", "0.3"),
            _function_name("fn1.ns1", "oops"),
            _function_name("fn1.ns1", "0.9"),
        ]

        mix_average_time(functions, make_vector(*samples))

        assert functions[0].invocation_avg_time == pytest.approx(0.6)

    def test_uses_function_name_not_container(self, make_vector):
        functions = [_fn("fn1", "ns1")]

        mix_average_time(functions, make_vector(_container("fn1", "ns1", "0.4")))

        assert functions[0].invocation_avg_time == 0


@pytest.mark.unit
def test_unmatched_record_keeps_pass_through_fields(sample_functions, make_vector):
    before = sample_functions[1].model_dump()

    mix_invocations(sample_functions, make_vector(_function_name("fn1.ns1", "42")))
    mix_cpu(sample_functions, make_vector(_container("fn1", "ns1", "1")))

    assert sample_functions[1].model_dump() == before
    assert sample_functions[0].invocation_count == 42
