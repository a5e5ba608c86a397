"""Unit tests for EmbeddedKafkaCustomizer."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from embedded_kafka.brokers.base import DEFAULT_BROKERS_PROPERTY
from embedded_kafka.brokers.kraft import KraftBroker
from embedded_kafka.brokers.zookeeper import ZookeeperBroker
from embedded_kafka.config.models import EmbeddedKafkaSpec
from embedded_kafka.context import BROKER_NAME, BrokerContext, ContextCache
from embedded_kafka.customizer import EmbeddedKafkaCustomizer
from embedded_kafka.brokers.docker import DockerError
from embedded_kafka.errors import (
    ConfigurationError,
    EmbeddedKafkaError,
    ProvisioningError,
    RegistrationError,
)
from embedded_kafka.layering import TRANSACTION_STATE_LOG_REPLICATION_FACTOR
from embedded_kafka.resources import ResourceLoader


@pytest.fixture
def runtime() -> MagicMock:
    return MagicMock()


@pytest.fixture(autouse=True)
def admin(monkeypatch: pytest.MonkeyPatch) -> Iterator[tuple[MagicMock, MagicMock]]:
    monkeypatch.delenv(DEFAULT_BROKERS_PROPERTY, raising=False)
    monkeypatch.delenv("TEST_BROKERS", raising=False)
    with (
        patch("embedded_kafka.brokers.base.wait_for_brokers") as mock_wait,
        patch("embedded_kafka.brokers.base.ensure_topics") as mock_ensure,
    ):
        yield mock_wait, mock_ensure


class TestIdentity:
    def test_equal_specs_give_equal_customizers(self):
        a = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(count=2, topics=["a"]))
        b = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(count=2, topics=["a"]))
        assert a == b
        assert hash(a) == hash(b)

    def test_different_specs_give_different_customizers(self):
        a = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(topics=["a", "b"]))
        b = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(topics=["b", "a"]))
        assert a != b

    def test_equal_customizers_share_a_cached_context(self, runtime: MagicMock):
        cache = ContextCache()
        for _ in range(2):
            customizer = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(ports=[19092]))
            cache.get_or_create(
                customizer, lambda ctx, c=customizer: c.customize(ctx, runtime=runtime)
            )
        assert len(cache) == 1
        runtime.run_node.assert_called_once()


class TestCustomize:
    def test_registers_started_kraft_broker(self, runtime: MagicMock):
        context = BrokerContext()
        spec = EmbeddedKafkaSpec(count=2, partitions=3, topics=["orders"])
        broker = EmbeddedKafkaCustomizer(spec).customize(context, runtime=runtime)

        assert isinstance(broker, KraftBroker)
        assert context.get(BROKER_NAME) is broker
        assert runtime.run_node.call_count == 2
        assert broker.properties == {TRANSACTION_STATE_LOG_REPLICATION_FACTOR: "2"}
        assert os.environ[DEFAULT_BROKERS_PROPERTY] == broker.bootstrap_servers

    def test_classic_mode_registers_zookeeper_broker(self, runtime: MagicMock):
        context = BrokerContext()
        spec = EmbeddedKafkaSpec(kraft=False, ports=[19092], zookeeper_port=12181)
        broker = EmbeddedKafkaCustomizer(spec).customize(context, runtime=runtime)
        assert isinstance(broker, ZookeeperBroker)
        assert broker.zk_port == 12181

    def test_topics_resolved(
        self, runtime: MagicMock, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("TOPIC_PREFIX", "ci")
        spec = EmbeddedKafkaSpec(topics=["${TOPIC_PREFIX}.orders", "plain"])
        broker = EmbeddedKafkaCustomizer(spec).customize(
            BrokerContext(), runtime=runtime
        )
        assert broker.topics == ("ci.orders", "plain")

    def test_unresolvable_topic_raises(self, runtime: MagicMock):
        spec = EmbeddedKafkaSpec(topics=["${NO_SUCH_TOPIC_VAR}"])
        with pytest.raises(ConfigurationError, match="NO_SUCH_TOPIC_VAR"):
            EmbeddedKafkaCustomizer(spec).customize(BrokerContext(), runtime=runtime)
        runtime.run_node.assert_not_called()

    def test_port_plan_expanded(self, runtime: MagicMock):
        spec = EmbeddedKafkaSpec(count=3, ports=[0])
        broker = EmbeddedKafkaCustomizer(spec).customize(
            BrokerContext(), runtime=runtime
        )
        assert len(broker.ports) == 3

    def test_port_count_mismatch_raises_configuration_error(self, runtime: MagicMock):
        spec = EmbeddedKafkaSpec(count=2, ports=[9092])
        with pytest.raises(ConfigurationError, match="given for 2 broker") as exc_info:
            EmbeddedKafkaCustomizer(spec).customize(BrokerContext(), runtime=runtime)
        assert isinstance(exc_info.value, EmbeddedKafkaError)
        runtime.create_network.assert_not_called()
        runtime.run_node.assert_not_called()

    def test_properties_layered(self, runtime: MagicMock, tmp_path: Path):
        (tmp_path / "broker.properties").write_text("a=file\nb=file\n")
        spec = EmbeddedKafkaSpec(
            count=5,
            broker_properties=["a=inline"],
            broker_properties_location="broker.properties",
        )
        broker = EmbeddedKafkaCustomizer(spec).customize(
            BrokerContext(), loader=ResourceLoader(tmp_path), runtime=runtime
        )
        assert broker.properties == {
            "a": "inline",
            "b": "file",
            TRANSACTION_STATE_LOG_REPLICATION_FACTOR: "3",
        }

    def test_missing_resource_starts_nothing(self, runtime: MagicMock, tmp_path: Path):
        context = BrokerContext()
        spec = EmbeddedKafkaSpec(broker_properties_location="missing.properties")
        with pytest.raises(ConfigurationError, match="does not exist"):
            EmbeddedKafkaCustomizer(spec).customize(
                context, loader=ResourceLoader(tmp_path), runtime=runtime
            )
        runtime.create_network.assert_not_called()
        runtime.run_node.assert_not_called()
        assert BROKER_NAME not in context

    def test_malformed_inline_property_starts_nothing(self, runtime: MagicMock):
        spec = EmbeddedKafkaSpec(broker_properties=["bad=\\uXYZ1"])
        with pytest.raises(ConfigurationError, match="Failed to load broker property"):
            EmbeddedKafkaCustomizer(spec).customize(BrokerContext(), runtime=runtime)
        runtime.run_node.assert_not_called()

    def test_bootstrap_property_published(self, runtime: MagicMock):
        spec = EmbeddedKafkaSpec(ports=[19092], bootstrap_servers_property="TEST_BROKERS")
        EmbeddedKafkaCustomizer(spec).customize(BrokerContext(), runtime=runtime)
        assert os.environ["TEST_BROKERS"] == "localhost:19092"

    def test_start_failure_raises_provisioning_error(
        self, runtime: MagicMock, admin: tuple[MagicMock, MagicMock]
    ):
        admin[0].side_effect = TimeoutError("not ready")
        context = BrokerContext()
        with pytest.raises(ProvisioningError):
            EmbeddedKafkaCustomizer(EmbeddedKafkaSpec()).customize(
                context, runtime=runtime
            )
        assert BROKER_NAME not in context

    def test_second_registration_in_same_context_rejected(self, runtime: MagicMock):
        context = BrokerContext()
        EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(ports=[19092])).customize(
            context, runtime=runtime
        )
        other = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(count=2, ports=[19093, 19094]))
        with pytest.raises(Exception, match=BROKER_NAME):
            other.customize(context, runtime=runtime)
        # The rejected cluster is torn down again
        assert runtime.remove_network.call_count == 1

    def test_kraft_ignores_coordinator_settings(self, runtime: MagicMock):
        plain = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(ports=[19092]))
        with_zk = EmbeddedKafkaCustomizer(
            EmbeddedKafkaSpec(
                ports=[19092],
                zookeeper_port=2181,
                zk_connection_timeout=60,
                zk_session_timeout=60,
            )
        )
        a = plain.customize(BrokerContext(), runtime=runtime)
        b = with_zk.customize(BrokerContext(), runtime=runtime)
        assert a.properties == b.properties
        node_a = runtime.run_node.call_args_list[0].args[0]
        node_b = runtime.run_node.call_args_list[1].args[0]
        assert not any("ZOOKEEPER" in key for key in node_b.env)
        assert set(node_a.env) == set(node_b.env)

    def test_rejected_registration_survives_stop_failure(self, runtime: MagicMock):
        context = BrokerContext()
        EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(ports=[19092])).customize(
            context, runtime=runtime
        )
        failing = MagicMock()
        failing.remove_network.side_effect = DockerError("network busy")
        other = EmbeddedKafkaCustomizer(EmbeddedKafkaSpec(ports=[19093]))
        with pytest.raises(RegistrationError, match=BROKER_NAME):
            other.customize(context, runtime=failing)
        failing.remove_network.assert_called_once()
