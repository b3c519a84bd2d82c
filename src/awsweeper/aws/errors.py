"""Translation of botocore exceptions into the sweep error taxonomy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError

from ..errors import DependencyInUseError, NotFoundError, ProviderError, ProviderErrorKind

DEPENDENCY_CODES = {
    "DependencyViolation",
    "ResourceInUse",
    "ResourceInUseFault",
    "ResourceInUseException",
    "VolumeInUse",
    "InvalidIPAddress.InUse",
    "InvalidNetworkInterface.InUse",
    "ScalingActivityInProgress",
}

NOT_FOUND_CODES = {
    "NoSuchEntity",
    "ResourceNotFoundException",
    "LoadBalancerNotFound",
    "AccessPointNotFound",
    "InvalidAllocationID.NotFound",
    "InvalidKeyPair.NotFound",
}

TRANSIENT_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RequestThrottled",
    "ServiceUnavailable",
    "Unavailable",
    "InternalError",
    "InternalFailure",
}

AUTH_CODES = {
    "AuthFailure",
    "UnauthorizedOperation",
    "AccessDenied",
    "AccessDeniedException",
    "ExpiredToken",
    "ExpiredTokenException",
    "InvalidClientTokenId",
    "UnrecognizedClientException",
    "SignatureDoesNotMatch",
}


def classify_code(code: str) -> type:
    """Map an AWS error code to an error class."""
    if code in DEPENDENCY_CODES or code.endswith(".InUse"):
        return DependencyInUseError
    if code in NOT_FOUND_CODES or code.endswith(".NotFound") or code.endswith("NotFound"):
        return NotFoundError
    return ProviderError


def classify_kind(code: str) -> ProviderErrorKind:
    if code in TRANSIENT_CODES:
        return ProviderErrorKind.TRANSIENT
    if code in AUTH_CODES:
        return ProviderErrorKind.AUTH
    return ProviderErrorKind.OTHER


def translate_client_error(
    error: Exception,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
) -> ProviderError:
    """Convert a botocore exception into a ProviderError subclass.

    Args:
        error: Exception raised by a boto3 call
        resource_type: Resource type the call was made for (optional)
        resource_id: Resource identifier (optional)

    Returns:
        NotFoundError, DependencyInUseError or ProviderError
    """
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "Unknown")
        message = error.response.get("Error", {}).get("Message", str(error))
        error_class = classify_code(code)
        return error_class(
            message,
            resource_type=resource_type,
            resource_id=resource_id,
            code=code,
            kind=classify_kind(code),
        )

    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return ProviderError(
            str(error),
            resource_type=resource_type,
            resource_id=resource_id,
            code=type(error).__name__,
            kind=ProviderErrorKind.AUTH,
        )

    if isinstance(error, BotoCoreError):
        return ProviderError(
            str(error),
            resource_type=resource_type,
            resource_id=resource_id,
            code=type(error).__name__,
            kind=ProviderErrorKind.TRANSIENT,
        )

    return ProviderError(str(error), resource_type=resource_type, resource_id=resource_id)


@contextmanager
def provider_call(resource_type: str, resource_id: Optional[str] = None) -> Iterator[None]:
    """Translate botocore exceptions raised inside the block."""
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        raise translate_client_error(e, resource_type=resource_type, resource_id=resource_id) from e
