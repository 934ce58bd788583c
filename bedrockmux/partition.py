"""
AWS partition and region helpers.

Partitions are isolated AWS environments:
- aws: commercial regions (us-east-1, eu-west-1, ...)
- aws-us-gov: GovCloud (us-gov-west-1, us-gov-east-1)
- aws-cn: China (cn-north-1, cn-northwest-1)
"""

from typing import Literal

AWSPartition = Literal["aws", "aws-cn", "aws-us-gov"]


def get_partition_from_region(region: str) -> AWSPartition:
    """
    Determine the partition a region belongs to.

    Args:
        region (str): Region identifier, e.g. "us-gov-west-1".

    Returns:
        AWSPartition: "aws-us-gov", "aws-cn" or "aws".
    """
    if region.startswith("us-gov-"):
        return "aws-us-gov"
    if region.startswith("cn-"):
        return "aws-cn"
    return "aws"


def get_region_prefix(region: str) -> str:
    """
    Extract the prefix used in regional inference profile ids.

    Examples:
        us-east-1      -> "us"
        eu-west-1      -> "eu"
        us-gov-west-1  -> "us-gov-west"
        cn-northwest-1 -> "cn-northwest"

    Args:
        region (str): Region identifier.

    Returns:
        str: Routing prefix for "<prefix>.<model id>" profile ids.
    """
    parts = region.split("-")
    if region.startswith("us-gov-") and len(parts) >= 3:
        return "-".join(parts[:3])
    if region.startswith("cn-") and len(parts) >= 2:
        return "-".join(parts[:2])
    return parts[0]


def supports_global_inference_profiles(partition: AWSPartition) -> bool:
    """Global ("global.<model id>") profiles only exist in the commercial partition."""
    return partition == "aws"
