"""AWS credential validation."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .client import create_boto_client

logger = logging.getLogger(__name__)


class CredentialValidationError(Exception):
    """Credentials are missing, expired or rejected by STS."""


def validate_credentials(profile_name: Optional[str] = None, region_name: Optional[str] = None) -> Dict[str, str]:
    """Validate AWS credentials with an STS get_caller_identity call.

    Args:
        profile_name: AWS profile name (optional)
        region_name: AWS region (optional)

    Returns:
        Dictionary with account_id, user_id and arn

    Raises:
        CredentialValidationError: If credentials cannot be used
    """
    try:
        sts = create_boto_client("sts", region_name=region_name, profile_name=profile_name)
        identity = sts.get_caller_identity()
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        raise CredentialValidationError(f"AWS rejected credentials: {error_code}") from e
    except BotoCoreError as e:
        raise CredentialValidationError(f"Unable to load AWS credentials: {e}") from e

    logger.debug(f"Authenticated as {identity.get('Arn')}")
    return {
        "account_id": identity["Account"],
        "user_id": identity.get("UserId", ""),
        "arn": identity.get("Arn", ""),
    }
