"""
集成测试：轮询周期编排

使用内存数据源和记录型上报器，覆盖一个完整周期的指标路径与取值、
空集群、数据源故障、周期间无残留和重入保护。
"""

import threading

import pytest

from aerospike_monitor.orchestrator import CycleInProgressError, CycleOrchestrator, CycleState

from conftest import FakeStatsSource, RecordingEmitter, make_node


class TestCycle:
    """完整周期测试"""

    def test_node_stats_emitted(self, orchestrator, emitter):
        orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/node_stats/node-a/objects"] == 100
        assert metrics["aerospike/node_stats/node-b/cluster_size"] == 2
        # 新版节点额外上报资源使用量
        assert metrics["aerospike/node_stats/node-a/used_bytes_memory"] == 1000
        assert metrics["aerospike/node_stats/node-a/used_bytes_disk"] == 5000
        assert "aerospike/node_stats/node-b/used_bytes_memory" not in metrics

    def test_throughput_emitted(self, orchestrator, emitter):
        orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/throughput/node-a/reads/success"] == 10
        assert metrics["aerospike/throughput/node-b/writes/total"] == 3
        # 缺失的 success 以 0 上报
        assert metrics["aerospike/throughput/node-b/writes/success"] == 0
        assert metrics["aerospike/summary/reads/success"] == 16
        assert metrics["aerospike/summary/reads/total"] == 19
        assert metrics["aerospike/summary/writes/success"] == 4
        assert metrics["aerospike/summary/writes/total"] == 8

    def test_latency_emitted(self, orchestrator, emitter):
        orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/latency/node-a/ns1-query/>1ms/value"] == 5
        assert metrics["aerospike/latency/node-a/ns1-query/>1ms/pct"] == 0.5
        # query 类别：(5 + 3) / 2 个节点
        assert metrics["aerospike/summary/latency/query/>1ms/value"] == pytest.approx(4.0)
        assert metrics["aerospike/summary/latency/ns1-query/>1ms/value"] == pytest.approx(2.5)

    def test_namespace_stats_emitted(self, orchestrator, emitter):
        orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/namespace_stats/node-a/ns1/objects"] == 60
        assert metrics["aerospike/namespace_stats/node-b/ns1/objects"] == 40
        assert "aerospike/namespace_stats/node-a/ns1/stop_writes" not in metrics

    def test_summary_emitted(self, orchestrator, emitter):
        report = orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/summary/cluster_size"] == 2
        assert metrics["aerospike/summary/used_bytes_memory"] == 1000
        assert metrics["aerospike/summary/used_bytes_disk"] == 5000
        assert report.summary.cluster_size == 2
        assert report.error is None
        assert report.node_count == 2
        assert report.metrics_emitted == len(emitter.emitted)

    def test_units_are_empty(self, orchestrator, emitter):
        orchestrator.run_cycle()
        assert {unit for _, unit, _ in emitter.emitted} == {""}

    def test_cluster_size_from_first_node(self, emitter):
        """测试：cluster_size 取自第一个节点，第一个节点缺失时不上报"""
        source = FakeStatsSource({
            "node-a": make_node(cluster_size=None),
            "node-b": make_node(cluster_size="2"),
        })
        orchestrator = CycleOrchestrator(source, emitter)
        report = orchestrator.run_cycle()

        assert "aerospike/summary/cluster_size" not in emitter.metrics
        assert report.summary.cluster_size is None
        assert emitter.metrics["aerospike/summary/used_bytes_memory"] == 0


class TestCycleBoundaries:
    """周期边界测试"""

    def test_empty_cluster_is_noop(self, emitter):
        """测试：节点列表为空时视为空周期"""
        orchestrator = CycleOrchestrator(FakeStatsSource({}), emitter)
        report = orchestrator.run_cycle()

        assert report.error is None
        assert report.node_count == 0
        assert emitter.emitted == []
        assert orchestrator.state == CycleState.IDLE

    def test_source_failure_mid_cycle(self, emitter):
        """测试：第 2 个节点故障，第 1 个节点的指标已上报，周期不崩溃"""
        source = FakeStatsSource({
            "node-1": make_node(objects="1"),
            "node-2": make_node(objects="2"),
            "node-3": make_node(objects="3"),
        }, fail_on="node-2")
        orchestrator = CycleOrchestrator(source, emitter)
        report = orchestrator.run_cycle()

        assert "connection refused" in report.error
        assert emitter.metrics["aerospike/node_stats/node-1/objects"] == 1
        assert not any("node-3" in path for path, _, _ in emitter.emitted)
        assert not any("/summary/" in path for path, _, _ in emitter.emitted)
        assert orchestrator.state == CycleState.IDLE

        # 故障恢复后下一个周期正常
        source.fail_on = None
        report = orchestrator.run_cycle()
        assert report.error is None
        assert emitter.metrics["aerospike/node_stats/node-3/objects"] == 3

    def test_unexpected_error_is_contained(self, emitter):
        """测试：非数据源异常同样在周期边界捕获"""

        class BrokenSource(FakeStatsSource):
            def list_namespaces(self):
                raise KeyError("namespaces")

        orchestrator = CycleOrchestrator(BrokenSource({"node-1": make_node()}), emitter)
        report = orchestrator.run_cycle()

        assert report.error.startswith("KeyError")
        assert orchestrator.state == CycleState.IDLE

    def test_malformed_node_payload_stays_local(self, emitter):
        """测试：单个节点的统计结构异常不影响其它节点和集群摘要"""
        broken = make_node(objects="1", latency=["garbage"])
        broken["throughput"] = ["garbage"]
        broken["statistics"] = "objects=1"
        source = FakeStatsSource({
            "a": broken,
            "b": make_node(objects="7", reads={"success": "3", "total": "4"}),
        })
        orchestrator = CycleOrchestrator(source, emitter)
        report = orchestrator.run_cycle()
        metrics = emitter.metrics

        assert report.error is None
        assert metrics["aerospike/node_stats/b/objects"] == 7
        assert not any(path.startswith("aerospike/node_stats/a/") for path in metrics)
        assert metrics["aerospike/summary/reads/total"] == 4

    def test_unparseable_pct_still_aggregated(self, emitter):
        """测试：百分比无法解析时只跳过 pct，数值照常上报和累加"""
        source = FakeStatsSource({"node-a": make_node(latency={"reads": {">1ms": "2.0;n/s"}})})
        orchestrator = CycleOrchestrator(source, emitter)
        orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/latency/node-a/reads/>1ms/value"] == 2.0
        assert "aerospike/latency/node-a/reads/>1ms/pct" not in metrics
        assert metrics["aerospike/summary/latency/reads/>1ms/value"] == 2.0

    def test_no_leakage_between_cycles(self, emitter):
        """测试：第二个周期不反映第一个周期的值"""
        source = FakeStatsSource({
            "node-a": make_node(
                reads={"success": "100", "total": "100"},
                latency={"reads": {">1ms": "50;1.0"}},
            ),
        })
        orchestrator = CycleOrchestrator(source, emitter)
        first = orchestrator.run_cycle()
        assert first.previous_totals is None

        source.nodes["node-a"] = make_node(
            reads={"success": "1", "total": "2"},
            latency={"reads": {">1ms": "3;0.1"}},
        )
        emitter.emitted.clear()
        report = orchestrator.run_cycle()
        metrics = emitter.metrics

        assert metrics["aerospike/summary/reads/success"] == 1
        assert metrics["aerospike/summary/reads/total"] == 2
        assert metrics["aerospike/summary/latency/reads/>1ms/value"] == 3
        assert report.totals.read_success == 1
        assert report.previous_totals == first.totals
        assert report.previous_totals.read_total == 100
        assert orchestrator.context.previous_totals.read_total == 2

    def test_reentry_rejected(self, emitter):
        """测试：周期进行中再次触发抛出 CycleInProgressError"""
        entered = threading.Event()
        release = threading.Event()

        class SlowSource(FakeStatsSource):
            def list_nodes(self):
                entered.set()
                release.wait(5)
                return super().list_nodes()

        orchestrator = CycleOrchestrator(SlowSource({"node-1": make_node()}), emitter)
        worker = threading.Thread(target=orchestrator.run_cycle)
        worker.start()
        try:
            assert entered.wait(5)
            assert orchestrator.state == CycleState.COLLECTING
            with pytest.raises(CycleInProgressError):
                orchestrator.run_cycle()
        finally:
            release.set()
            worker.join(5)

        assert orchestrator.state == CycleState.IDLE

    def test_context_tracks_history(self, orchestrator):
        orchestrator.run_cycle()
        context = orchestrator.context

        assert context.tps_history["node-a"].reads.success == 10
        assert context.tps_history["node-b"].writes.success is None
        assert context.node_stats["node-b"]["objects"] == 80
        assert context.last_report is not None
