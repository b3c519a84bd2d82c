"""AWS resource type descriptors.

Maps each supported resource type to its boto3 listing call, attribute
extraction and deletion call. Clients are created once per service by
build_aws_registry() and bound into the descriptors.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

import boto3

from ..aws.client import create_boto_client
from ..aws.errors import provider_call
from ..errors import NotFoundError, ProviderError
from ..models.resource_record import ResourceRecord
from .registry import ResourceRegistry

logger = logging.getLogger(__name__)

# describe_tags accepts at most 20 load balancers per call
ELB_TAG_BATCH_SIZE = 20

LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped"]
LIVE_NAT_GATEWAY_STATES = ["pending", "available", "failed"]


def tags_to_dict(tags: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, str]:
    """Convert an AWS [{"Key": ..., "Value": ...}] list to a dictionary."""
    return {tag["Key"]: tag.get("Value", "") for tag in tags or [] if "Key" in tag}


def _paginate(client: Any, method: str, result_key: str, **kwargs: Any) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for page in client.get_paginator(method).paginate(**kwargs):
        items.extend(page.get(result_key, []))
    return items


def _batches(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


# Auto Scaling


def list_autoscaling_groups(client: Any) -> List[Dict[str, Any]]:
    with provider_call("autoscaling-group"):
        return _paginate(client, "describe_auto_scaling_groups", "AutoScalingGroups")


def extract_autoscaling_group(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="autoscaling-group",
        id=raw["AutoScalingGroupName"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "launch_configuration_name": raw.get("LaunchConfigurationName"),
            "vpc_zone_identifier": raw.get("VPCZoneIdentifier"),
            "desired_capacity": raw.get("DesiredCapacity"),
            "status": raw.get("Status"),
        },
    )


def _raise_autoscaling_not_found(error: ProviderError) -> None:
    # Auto Scaling reports missing resources as a generic ValidationError
    if error.code == "ValidationError" and "not found" in error.message.lower():
        raise NotFoundError(
            error.message,
            resource_type=error.resource_type,
            resource_id=error.resource_id,
            code=error.code,
        ) from error
    raise error


def delete_autoscaling_group(client: Any, resource_id: str) -> None:
    try:
        with provider_call("autoscaling-group", resource_id):
            client.delete_auto_scaling_group(AutoScalingGroupName=resource_id, ForceDelete=True)
    except ProviderError as e:
        _raise_autoscaling_not_found(e)


def list_launch_configurations(client: Any) -> List[Dict[str, Any]]:
    with provider_call("launch-configuration"):
        return _paginate(client, "describe_launch_configurations", "LaunchConfigurations")


def extract_launch_configuration(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="launch-configuration",
        id=raw["LaunchConfigurationName"],
        raw_attributes={
            "image_id": raw.get("ImageId"),
            "instance_type": raw.get("InstanceType"),
            "key_name": raw.get("KeyName"),
        },
    )


def delete_launch_configuration(client: Any, resource_id: str) -> None:
    try:
        with provider_call("launch-configuration", resource_id):
            client.delete_launch_configuration(LaunchConfigurationName=resource_id)
    except ProviderError as e:
        _raise_autoscaling_not_found(e)


# Elastic Load Balancing


def _describe_tag_batch(
    resource_type: str,
    describe_tags: Callable[[List[str]], Dict[str, Any]],
    id_key: str,
    batch: List[str],
) -> Dict[str, List[Dict[str, str]]]:
    with provider_call(resource_type):
        response = describe_tags(batch)
    return {description[id_key]: description.get("Tags", []) for description in response.get("TagDescriptions", [])}


def _collect_elb_tags(
    resource_type: str,
    ids: List[str],
    describe_tags: Callable[[List[str]], Dict[str, Any]],
    id_key: str,
) -> Tuple[Dict[str, List[Dict[str, str]]], Set[str]]:
    """Fetch tags for load balancers in batches.

    A balancer deleted after it was listed makes its whole describe_tags
    batch fail, so that batch is retried one balancer at a time.

    Returns:
        Tuple of (tags by id, ids of balancers that no longer exist)
    """
    tags_by_id: Dict[str, List[Dict[str, str]]] = {}
    vanished: Set[str] = set()

    for batch in _batches(ids, ELB_TAG_BATCH_SIZE):
        try:
            tags_by_id.update(_describe_tag_batch(resource_type, describe_tags, id_key, batch))
            continue
        except NotFoundError:
            logger.debug(f"A {resource_type} in a tag batch no longer exists, fetching tags one by one")

        for resource_id in batch:
            try:
                tags_by_id.update(_describe_tag_batch(resource_type, describe_tags, id_key, [resource_id]))
            except NotFoundError:
                logger.info(f"Skipping {resource_type} {resource_id}: deleted while listing")
                vanished.add(resource_id)

    return tags_by_id, vanished


def list_classic_load_balancers(client: Any) -> List[Dict[str, Any]]:
    with provider_call("load-balancer"):
        balancers = _paginate(client, "describe_load_balancers", "LoadBalancerDescriptions")

    tags_by_name, vanished = _collect_elb_tags(
        "load-balancer",
        [lb["LoadBalancerName"] for lb in balancers],
        lambda batch: client.describe_tags(LoadBalancerNames=batch),
        "LoadBalancerName",
    )
    return [
        dict(lb, Tags=tags_by_name.get(lb["LoadBalancerName"], []))
        for lb in balancers
        if lb["LoadBalancerName"] not in vanished
    ]


def extract_classic_load_balancer(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="load-balancer",
        id=raw["LoadBalancerName"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "vpc_id": raw.get("VPCId"),
            "dns_name": raw.get("DNSName"),
            "scheme": raw.get("Scheme"),
        },
    )


def delete_classic_load_balancer(client: Any, resource_id: str) -> None:
    with provider_call("load-balancer", resource_id):
        client.delete_load_balancer(LoadBalancerName=resource_id)


def list_v2_load_balancers(client: Any) -> List[Dict[str, Any]]:
    with provider_call("load-balancer-v2"):
        balancers = _paginate(client, "describe_load_balancers", "LoadBalancers")

    tags_by_arn, vanished = _collect_elb_tags(
        "load-balancer-v2",
        [lb["LoadBalancerArn"] for lb in balancers],
        lambda batch: client.describe_tags(ResourceArns=batch),
        "ResourceArn",
    )
    return [
        dict(lb, Tags=tags_by_arn.get(lb["LoadBalancerArn"], []))
        for lb in balancers
        if lb["LoadBalancerArn"] not in vanished
    ]


def extract_v2_load_balancer(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="load-balancer-v2",
        id=raw["LoadBalancerArn"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "name": raw.get("LoadBalancerName"),
            "vpc_id": raw.get("VpcId"),
            "type": raw.get("Type"),
            "scheme": raw.get("Scheme"),
            "state": (raw.get("State") or {}).get("Code"),
        },
    )


def delete_v2_load_balancer(client: Any, resource_id: str) -> None:
    with provider_call("load-balancer-v2", resource_id):
        client.delete_load_balancer(LoadBalancerArn=resource_id)


# EC2


def list_instances(client: Any) -> List[Dict[str, Any]]:
    with provider_call("instance"):
        reservations = _paginate(
            client,
            "describe_instances",
            "Reservations",
            Filters=[{"Name": "instance-state-name", "Values": LIVE_INSTANCE_STATES}],
        )
    return [instance for reservation in reservations for instance in reservation.get("Instances", [])]


def extract_instance(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="instance",
        id=raw["InstanceId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "state": (raw.get("State") or {}).get("Name"),
            "vpc_id": raw.get("VpcId"),
            "subnet_id": raw.get("SubnetId"),
            "instance_type": raw.get("InstanceType"),
            "image_id": raw.get("ImageId"),
            "key_name": raw.get("KeyName"),
        },
    )


def delete_instance(client: Any, resource_id: str) -> None:
    with provider_call("instance", resource_id):
        client.terminate_instances(InstanceIds=[resource_id])


def list_key_pairs(client: Any) -> List[Dict[str, Any]]:
    with provider_call("key-pair"):
        return client.describe_key_pairs().get("KeyPairs", [])


def extract_key_pair(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="key-pair",
        id=raw["KeyName"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "key_pair_id": raw.get("KeyPairId"),
            "key_type": raw.get("KeyType"),
        },
    )


def delete_key_pair(client: Any, resource_id: str) -> None:
    with provider_call("key-pair", resource_id):
        client.delete_key_pair(KeyName=resource_id)


def list_nat_gateways(client: Any) -> List[Dict[str, Any]]:
    with provider_call("nat-gateway"):
        return _paginate(
            client,
            "describe_nat_gateways",
            "NatGateways",
            Filters=[{"Name": "state", "Values": LIVE_NAT_GATEWAY_STATES}],
        )


def extract_nat_gateway(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="nat-gateway",
        id=raw["NatGatewayId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "vpc_id": raw.get("VpcId"),
            "subnet_id": raw.get("SubnetId"),
            "state": raw.get("State"),
        },
    )


def delete_nat_gateway(client: Any, resource_id: str) -> None:
    with provider_call("nat-gateway", resource_id):
        client.delete_nat_gateway(NatGatewayId=resource_id)


def list_volumes(client: Any) -> List[Dict[str, Any]]:
    with provider_call("volume"):
        return _paginate(client, "describe_volumes", "Volumes")


def extract_volume(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="volume",
        id=raw["VolumeId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "state": raw.get("State"),
            "size": raw.get("Size"),
            "volume_type": raw.get("VolumeType"),
            "availability_zone": raw.get("AvailabilityZone"),
        },
    )


def delete_volume(client: Any, resource_id: str) -> None:
    with provider_call("volume", resource_id):
        client.delete_volume(VolumeId=resource_id)


def list_addresses(client: Any) -> List[Dict[str, Any]]:
    with provider_call("eip"):
        addresses = client.describe_addresses().get("Addresses", [])
    # EC2-Classic addresses have no allocation id and cannot be released by id
    return [address for address in addresses if address.get("AllocationId")]


def extract_address(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="eip",
        id=raw["AllocationId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "public_ip": raw.get("PublicIp"),
            "domain": raw.get("Domain"),
            "association_id": raw.get("AssociationId"),
            "instance_id": raw.get("InstanceId"),
            "network_interface_id": raw.get("NetworkInterfaceId"),
        },
    )


def delete_address(client: Any, resource_id: str) -> None:
    with provider_call("eip", resource_id):
        client.release_address(AllocationId=resource_id)


def list_network_interfaces(client: Any) -> List[Dict[str, Any]]:
    with provider_call("network-interface"):
        return _paginate(client, "describe_network_interfaces", "NetworkInterfaces")


def extract_network_interface(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="network-interface",
        id=raw["NetworkInterfaceId"],
        tags=tags_to_dict(raw.get("TagSet")),
        raw_attributes={
            "status": raw.get("Status"),
            "vpc_id": raw.get("VpcId"),
            "subnet_id": raw.get("SubnetId"),
            "interface_type": raw.get("InterfaceType"),
            "description": raw.get("Description"),
        },
    )


def delete_network_interface(client: Any, resource_id: str) -> None:
    with provider_call("network-interface", resource_id):
        client.delete_network_interface(NetworkInterfaceId=resource_id)


def list_internet_gateways(client: Any) -> List[Dict[str, Any]]:
    with provider_call("internet-gateway"):
        return _paginate(client, "describe_internet_gateways", "InternetGateways")


def extract_internet_gateway(raw: Dict[str, Any]) -> ResourceRecord:
    attachments = raw.get("Attachments", [])
    return ResourceRecord(
        type="internet-gateway",
        id=raw["InternetGatewayId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "vpc_id": attachments[0].get("VpcId") if attachments else None,
            "attached": bool(attachments),
        },
    )


def delete_internet_gateway(client: Any, resource_id: str) -> None:
    """Detach the gateway from every VPC, then delete it."""
    with provider_call("internet-gateway", resource_id):
        response = client.describe_internet_gateways(InternetGatewayIds=[resource_id])
        for gateway in response.get("InternetGateways", []):
            for attachment in gateway.get("Attachments", []):
                logger.debug(f"Detaching {resource_id} from {attachment['VpcId']}")
                client.detach_internet_gateway(InternetGatewayId=resource_id, VpcId=attachment["VpcId"])
        client.delete_internet_gateway(InternetGatewayId=resource_id)


def _is_main_route_table(raw: Dict[str, Any]) -> bool:
    return any(association.get("Main") for association in raw.get("Associations", []))


def list_route_tables(client: Any) -> List[Dict[str, Any]]:
    with provider_call("route-table"):
        tables = _paginate(client, "describe_route_tables", "RouteTables")
    # Main route tables go away with their VPC
    return [table for table in tables if not _is_main_route_table(table)]


def extract_route_table(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="route-table",
        id=raw["RouteTableId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "vpc_id": raw.get("VpcId"),
            "association_count": len(raw.get("Associations", [])),
        },
    )


def delete_route_table(client: Any, resource_id: str) -> None:
    """Disassociate the route table from its subnets, then delete it."""
    with provider_call("route-table", resource_id):
        response = client.describe_route_tables(RouteTableIds=[resource_id])
        for table in response.get("RouteTables", []):
            for association in table.get("Associations", []):
                if association.get("Main") or not association.get("RouteTableAssociationId"):
                    continue
                client.disassociate_route_table(AssociationId=association["RouteTableAssociationId"])
        client.delete_route_table(RouteTableId=resource_id)


def list_security_groups(client: Any) -> List[Dict[str, Any]]:
    with provider_call("security-group"):
        groups = _paginate(client, "describe_security_groups", "SecurityGroups")
    # Default groups cannot be deleted
    return [group for group in groups if group.get("GroupName") != "default"]


def extract_security_group(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="security-group",
        id=raw["GroupId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "group_name": raw.get("GroupName"),
            "vpc_id": raw.get("VpcId"),
            "description": raw.get("Description"),
        },
    )


def delete_security_group(client: Any, resource_id: str) -> None:
    with provider_call("security-group", resource_id):
        client.delete_security_group(GroupId=resource_id)


def list_subnets(client: Any) -> List[Dict[str, Any]]:
    with provider_call("subnet"):
        return _paginate(client, "describe_subnets", "Subnets")


def extract_subnet(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="subnet",
        id=raw["SubnetId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "vpc_id": raw.get("VpcId"),
            "cidr_block": raw.get("CidrBlock"),
            "availability_zone": raw.get("AvailabilityZone"),
            "state": raw.get("State"),
            "default_for_az": raw.get("DefaultForAz"),
        },
    )


def delete_subnet(client: Any, resource_id: str) -> None:
    with provider_call("subnet", resource_id):
        client.delete_subnet(SubnetId=resource_id)


def list_vpcs(client: Any) -> List[Dict[str, Any]]:
    with provider_call("vpc"):
        return _paginate(client, "describe_vpcs", "Vpcs")


def extract_vpc(raw: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        type="vpc",
        id=raw["VpcId"],
        tags=tags_to_dict(raw.get("Tags")),
        raw_attributes={
            "cidr_block": raw.get("CidrBlock"),
            "is_default": raw.get("IsDefault"),
            "state": raw.get("State"),
        },
    )


def delete_vpc(client: Any, resource_id: str) -> None:
    with provider_call("vpc", resource_id):
        client.delete_vpc(VpcId=resource_id)


class AWSResourceType(NamedTuple):
    name: str
    service: str
    lister: Callable[[Any], List[Dict[str, Any]]]
    deleter: Callable[[Any, str], None]
    extractor: Callable[[Dict[str, Any]], ResourceRecord]
    dependency_rank: int
    description: str


# Lower ranks are deleted first: things that reference others go before the
# things they reference (instances before subnets, subnets before VPCs).
AWS_RESOURCE_TYPES = [
    AWSResourceType(
        "autoscaling-group", "autoscaling", list_autoscaling_groups, delete_autoscaling_group,
        extract_autoscaling_group, 0, "Auto Scaling groups",
    ),
    AWSResourceType(
        "load-balancer", "elb", list_classic_load_balancers, delete_classic_load_balancer,
        extract_classic_load_balancer, 1, "Classic load balancers",
    ),
    AWSResourceType(
        "load-balancer-v2", "elbv2", list_v2_load_balancers, delete_v2_load_balancer,
        extract_v2_load_balancer, 1, "Application, network and gateway load balancers",
    ),
    AWSResourceType(
        "instance", "ec2", list_instances, delete_instance, extract_instance, 2, "EC2 instances",
    ),
    AWSResourceType(
        "launch-configuration", "autoscaling", list_launch_configurations, delete_launch_configuration,
        extract_launch_configuration, 2, "Auto Scaling launch configurations",
    ),
    AWSResourceType(
        "nat-gateway", "ec2", list_nat_gateways, delete_nat_gateway, extract_nat_gateway, 3, "NAT gateways",
    ),
    AWSResourceType(
        "volume", "ec2", list_volumes, delete_volume, extract_volume, 3, "EBS volumes",
    ),
    AWSResourceType(
        "key-pair", "ec2", list_key_pairs, delete_key_pair, extract_key_pair, 3, "EC2 key pairs",
    ),
    AWSResourceType(
        "eip", "ec2", list_addresses, delete_address, extract_address, 4, "Elastic IP addresses",
    ),
    AWSResourceType(
        "network-interface", "ec2", list_network_interfaces, delete_network_interface,
        extract_network_interface, 4, "Elastic network interfaces",
    ),
    AWSResourceType(
        "internet-gateway", "ec2", list_internet_gateways, delete_internet_gateway,
        extract_internet_gateway, 4, "Internet gateways (detached before deletion)",
    ),
    AWSResourceType(
        "route-table", "ec2", list_route_tables, delete_route_table, extract_route_table, 5,
        "Non-main route tables (disassociated before deletion)",
    ),
    AWSResourceType(
        "security-group", "ec2", list_security_groups, delete_security_group, extract_security_group, 5,
        "Non-default security groups",
    ),
    AWSResourceType(
        "subnet", "ec2", list_subnets, delete_subnet, extract_subnet, 5, "VPC subnets",
    ),
    AWSResourceType(
        "vpc", "ec2", list_vpcs, delete_vpc, extract_vpc, 6, "VPCs",
    ),
]


def build_aws_registry(
    session: Optional[boto3.Session] = None,
    region_name: Optional[str] = None,
    client_factory: Optional[Callable[[str], Any]] = None,
) -> ResourceRegistry:
    """Build a frozen registry of AWS resource types.

    One client per service is created up front and bound into the listers
    and deleters of every type using that service.

    Args:
        session: boto3 session to create clients from (optional)
        region_name: AWS region (optional)
        client_factory: Callable returning a client for a service name,
            overrides session-based client creation (optional)

    Returns:
        Frozen ResourceRegistry
    """
    if client_factory is None:
        client_factory = partial(create_boto_client, region_name=region_name, session=session)

    clients: Dict[str, Any] = {}
    registry = ResourceRegistry()

    for resource_type in AWS_RESOURCE_TYPES:
        if resource_type.service not in clients:
            clients[resource_type.service] = client_factory(resource_type.service)
        client = clients[resource_type.service]

        registry.register(
            resource_type.name,
            lister=partial(resource_type.lister, client),
            deleter=partial(resource_type.deleter, client),
            attribute_extractor=resource_type.extractor,
            dependency_rank=resource_type.dependency_rank,
            description=resource_type.description,
        )

    return registry.freeze()
