"""Alibaba Cloud SDK client for listing ECS instances and VPCs one page at a time."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from aliyunsdkcore.acs_exception.exceptions import ClientException, ServerException
from aliyunsdkcore.client import AcsClient
from aliyunsdkecs.request.v20140526.DescribeInstancesRequest import DescribeInstancesRequest
from aliyunsdkvpc.request.v20160428.DescribeVpcsRequest import DescribeVpcsRequest

from ..config import AlicloudConfig
from ..exceptions import SourceError
from .models import Instance, Network

logger = logging.getLogger(__name__)


class AlicloudClient:
    """Lists ECS instances and VPCs in one region.

    Authenticates with the access key pair from the config. SDK-level retries
    are disabled.
    """

    def __init__(self, config: AlicloudConfig):
        self._config = config
        try:
            self._client = AcsClient(
                config.access_key_id,
                config.access_key_secret,
                config.region_id,
                auto_retry=False,
            )
        except ClientException as exc:
            raise SourceError(
                f"Cannot create Alibaba Cloud client: {exc.get_error_code()} {exc.get_error_msg()}",
                code=exc.get_error_code(),
            ) from exc

    # ── Instances ────────────────────────────────────────────────────

    def list_instances(
        self,
        page_number: int,
        page_size: int,
        tag_filters: Mapping[str, str] | None = None,
        name_filter: str = "",
    ) -> tuple[list[Instance], int]:
        """Fetch one page of DescribeInstances. Returns (instances, total_count)."""
        request = DescribeInstancesRequest()
        request.set_accept_format("json")
        request.set_PageNumber(page_number)
        request.set_PageSize(page_size)
        if tag_filters:
            request.set_Tags([{"Key": k, "Value": str(v)} for k, v in tag_filters.items()])
        if name_filter:
            request.set_InstanceName(name_filter)

        body = self._do(request, "DescribeInstances")
        raw_instances = body.get("Instances", {}).get("Instance", [])
        instances = [self._parse_instance(raw) for raw in raw_instances]
        return instances, self._total_count(body, "DescribeInstances")

    # ── Networks ─────────────────────────────────────────────────────

    def list_networks(self, page_number: int, page_size: int) -> tuple[list[Network], int]:
        """Fetch one page of DescribeVpcs. Returns (networks, total_count)."""
        request = DescribeVpcsRequest()
        request.set_accept_format("json")
        request.set_PageNumber(page_number)
        request.set_PageSize(page_size)

        body = self._do(request, "DescribeVpcs")
        networks = [
            Network(network_id=raw.get("VpcId", ""), name=raw.get("VpcName", ""))
            for raw in body.get("Vpcs", {}).get("Vpc", [])
        ]
        return networks, self._total_count(body, "DescribeVpcs")

    # ── Shared helpers ───────────────────────────────────────────────

    def _do(self, request: Any, action: str) -> dict[str, Any]:
        """Send a request and decode its JSON body, converting SDK failures to SourceError."""
        try:
            raw = self._client.do_action_with_exception(request)
        except ServerException as exc:
            raise SourceError(
                f"{action} failed: {exc.get_error_code()} {exc.get_error_msg()}",
                code=exc.get_error_code(),
                request_id=exc.get_request_id(),
            ) from exc
        except ClientException as exc:
            raise SourceError(
                f"{action} failed: {exc.get_error_code()} {exc.get_error_msg()}",
                code=exc.get_error_code(),
            ) from exc

        try:
            body = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise SourceError(f"{action} returned a malformed response: {exc}") from exc
        if not isinstance(body, dict):
            raise SourceError(f"{action} returned a malformed response: expected a JSON object")
        return body

    @staticmethod
    def _total_count(body: dict[str, Any], action: str) -> int:
        try:
            return int(body["TotalCount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SourceError(f"{action} response has no usable TotalCount") from exc

    @staticmethod
    def _parse_instance(raw: dict[str, Any]) -> Instance:
        """Parse a raw DescribeInstances entry into an Instance."""
        tags = {
            t["TagKey"]: t.get("TagValue", "")
            for t in (raw.get("Tags") or {}).get("Tag", [])
            if "TagKey" in t
        }
        network_id = (raw.get("VpcAttributes") or {}).get("VpcId", "")
        return Instance(
            instance_id=raw.get("InstanceId", ""),
            name=raw.get("InstanceName", ""),
            tags=tags,
            network_id=network_id,
        )
