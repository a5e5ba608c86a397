"""Unit tests for port planning."""

from __future__ import annotations

import pytest

from embedded_kafka.ports import AUTO_ASSIGN, bind_ports, plan_ports


class TestPlanPorts:
    @pytest.mark.parametrize("count", [2, 3, 7])
    def test_single_sentinel_expands_to_count(self, count: int):
        plan = plan_ports([0], count)
        assert len(plan) == count
        assert all(p == AUTO_ASSIGN for p in plan)

    def test_single_broker_sentinel_unchanged(self):
        assert plan_ports([0], 1) == (0,)

    def test_explicit_single_port_unchanged(self):
        assert plan_ports([9092], 3) == (9092,)

    def test_explicit_list_unchanged(self):
        assert plan_ports([9092, 9093, 9094], 3) == (9092, 9093, 9094)

    def test_multiple_sentinels_unchanged(self):
        assert plan_ports([0, 0], 2) == (0, 0)

    def test_empty_list_unchanged(self):
        assert plan_ports([], 2) == ()

    def test_does_not_mutate_input(self):
        ports = [0]
        plan_ports(ports, 3)
        assert ports == [0]


class TestBindPorts:
    def test_explicit_ports_pass_through(self):
        assert bind_ports([19092, 19093]) == (19092, 19093)

    def test_sentinel_gets_os_assigned_port(self):
        (port,) = bind_ports([AUTO_ASSIGN], "127.0.0.1")
        assert 0 < port < 65536

    def test_sentinels_get_distinct_ports(self):
        ports = bind_ports([AUTO_ASSIGN] * 5, "127.0.0.1")
        assert len(set(ports)) == 5

    def test_mixed_list_keeps_positions(self):
        ports = bind_ports([19092, AUTO_ASSIGN, 19094], "127.0.0.1")
        assert ports[0] == 19092
        assert ports[2] == 19094
        assert ports[1] not in (AUTO_ASSIGN, 19092, 19094)
