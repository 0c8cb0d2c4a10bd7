"""Tests for the Alibaba Cloud inventory client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from aliyunsdkcore.acs_exception.exceptions import ClientException, ServerException

from prometheus_ali_sd.config import AlicloudConfig
from prometheus_ali_sd.discovery import InventorySource
from prometheus_ali_sd.discovery.alicloud_client import AlicloudClient
from prometheus_ali_sd.discovery.models import Instance, Network
from prometheus_ali_sd.exceptions import SourceError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

DEFAULT_CONFIG = AlicloudConfig(region_id="cn-hangzhou", access_key_id="ak", access_key_secret="sk")


def _raw_instance(instance_id="i-abc123", name="web01", tags=None, vpc_id="vpc-1") -> dict:
    """Build a DescribeInstances entry."""
    raw = {
        "InstanceId": instance_id,
        "InstanceName": name,
        "Status": "Running",
        "VpcAttributes": {"VpcId": vpc_id, "PrivateIpAddress": {"IpAddress": ["10.0.0.1"]}},
    }
    if tags is not None:
        raw["Tags"] = {"Tag": [{"TagKey": k, "TagValue": v} for k, v in tags.items()]}
    return raw


def _instances_body(*instances, total=None) -> bytes:
    return json.dumps({
        "RequestId": "req-1",
        "TotalCount": len(instances) if total is None else total,
        "PageNumber": 1,
        "PageSize": 10,
        "Instances": {"Instance": list(instances)},
    }).encode()


def _make_client(acs: MagicMock) -> AlicloudClient:
    with patch("prometheus_ali_sd.discovery.alicloud_client.AcsClient", return_value=acs) as MockAcs:
        client = AlicloudClient(DEFAULT_CONFIG)
    MockAcs.assert_called_once_with("ak", "sk", "cn-hangzhou", auto_retry=False)
    return client


def _sent_params(acs: MagicMock) -> dict:
    request = acs.do_action_with_exception.call_args[0][0]
    return {k: str(v) for k, v in request.get_query_params().items()}


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestListInstances:
    def test_parses_instances(self):
        acs = MagicMock()
        acs.do_action_with_exception.return_value = _instances_body(
            _raw_instance(tags={"env": "prod", "team": "infra"}),
            total=25,
        )
        instances, total = _make_client(acs).list_instances(1, 10)

        assert total == 25
        assert instances == [
            Instance(instance_id="i-abc123", name="web01", tags={"env": "prod", "team": "infra"}, network_id="vpc-1"),
        ]

    def test_instance_without_tags_or_vpc(self):
        acs = MagicMock()
        raw = _raw_instance()
        raw.pop("VpcAttributes")
        acs.do_action_with_exception.return_value = _instances_body(raw)
        instances, _ = _make_client(acs).list_instances(1, 10)
        assert instances[0].tags == {}
        assert instances[0].network_id == ""

    def test_sends_paging_and_filters(self):
        acs = MagicMock()
        acs.do_action_with_exception.return_value = _instances_body()
        _make_client(acs).list_instances(2, 50, tag_filters={"cluster": "prod"}, name_filter="web01")

        params = _sent_params(acs)
        assert params["PageNumber"] == "2"
        assert params["PageSize"] == "50"
        assert params["InstanceName"] == "web01"
        assert "cluster" in params.values()
        assert "prod" in params.values()

    def test_no_filters_sent_by_default(self):
        acs = MagicMock()
        acs.do_action_with_exception.return_value = _instances_body()
        _make_client(acs).list_instances(1, 10)
        params = _sent_params(acs)
        assert "InstanceName" not in params
        assert not any(k.startswith("Tag.") for k in params)

    def test_server_error_becomes_source_error(self):
        acs = MagicMock()
        acs.do_action_with_exception.side_effect = ServerException(
            "InvalidAccessKeyId.NotFound", "Specified access key is not found.", 404, "req-9",
        )
        with pytest.raises(SourceError) as excinfo:
            _make_client(acs).list_instances(1, 10)
        assert excinfo.value.code == "InvalidAccessKeyId.NotFound"
        assert excinfo.value.request_id == "req-9"
        assert "DescribeInstances" in str(excinfo.value)

    def test_client_error_becomes_source_error(self):
        acs = MagicMock()
        acs.do_action_with_exception.side_effect = ClientException("SDK.HttpError", "connection refused")
        with pytest.raises(SourceError, match="connection refused"):
            _make_client(acs).list_instances(1, 10)

    def test_malformed_body(self):
        acs = MagicMock()
        acs.do_action_with_exception.return_value = b"<html>not json</html>"
        with pytest.raises(SourceError, match="malformed"):
            _make_client(acs).list_instances(1, 10)

    def test_missing_total_count(self):
        acs = MagicMock()
        acs.do_action_with_exception.return_value = json.dumps({"Instances": {"Instance": []}}).encode()
        with pytest.raises(SourceError, match="TotalCount"):
            _make_client(acs).list_instances(1, 10)


class TestListNetworks:
    def test_parses_vpcs(self):
        acs = MagicMock()
        acs.do_action_with_exception.return_value = json.dumps({
            "TotalCount": 2,
            "Vpcs": {"Vpc": [
                {"VpcId": "vpc-1", "VpcName": "core"},
                {"VpcId": "vpc-2", "VpcName": ""},
            ]},
        }).encode()
        networks, total = _make_client(acs).list_networks(1, 10)
        assert total == 2
        assert networks == [Network("vpc-1", "core"), Network("vpc-2", "")]
        params = _sent_params(acs)
        assert params["PageNumber"] == "1"
        assert params["PageSize"] == "10"


class TestProtocol:
    def test_satisfies_inventory_source(self):
        assert isinstance(_make_client(MagicMock()), InventorySource)


class TestCredentials:
    def test_rejected_credentials_become_source_error(self):
        error = ClientException("SDK.InvalidCredential", "Need a ak&secret pair or public_key_id&private_key pair to auth.")
        with patch("prometheus_ali_sd.discovery.alicloud_client.AcsClient", side_effect=error):
            with pytest.raises(SourceError) as excinfo:
                AlicloudClient(AlicloudConfig(region_id="cn-beijing"))
        assert excinfo.value.code == "SDK.InvalidCredential"
        assert "ak&secret" in str(excinfo.value)
