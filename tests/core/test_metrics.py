# tests/core/test_metrics.py

from karpenter_ovhcloud.core.metrics import InMemoryMetricsSink, MetricsSink


def test_noop_sink_accepts_everything():
    sink = MetricsSink()
    sink.record_node_provisioning("b3-8", "gra7-a", "success")
    sink.record_api_retry("ListNodePools")
    sink.set_pools_active(3)
    sink.record_drift_detection("MonthlyBillingChanged")


def test_in_memory_sink_counts_by_labels():
    sink = InMemoryMetricsSink()

    sink.record_node_provisioning("b3-8", "gra7-a", "success")
    sink.record_node_provisioning("b3-8", "gra7-a", "success")
    sink.record_node_provisioning("b3-8", "gra7-b", "timeout")
    sink.record_pool_operation("create", "success")
    sink.record_pricing_cache_hit()
    sink.set_pools_active(2)
    sink.set_pools_active(1)
    sink.record_node_deletion_duration(1.5)

    assert sink.count("node_provisioning_total", "b3-8", "gra7-a", "success") == 2
    assert sink.count("node_provisioning_total", "b3-8", "gra7-b", "timeout") == 1
    assert sink.count("pool_operations_total", "create", "success") == 1
    assert sink.count("pricing_cache_hits_total") == 1
    assert sink.count("pricing_cache_misses_total") == 0
    assert sink.gauges["pools_active"] == 1
    assert sink.durations["node_deletion_duration_seconds"] == [1.5]


def test_sinks_are_isolated():
    first, second = InMemoryMetricsSink(), InMemoryMetricsSink()
    first.record_api_retry("GetNodePool")

    assert second.count("api_retries_total", "GetNodePool") == 0
