"""Remote Access policy package exports."""

from .adapter import (
    PolicyReadError,
    PolicyTimeoutError,
    PolicyVerificationError,
    PolicyWriteError,
    RemotePolicyAdapter,
    RemotePolicyError,
)
from .client import (
    AccessApiError,
    AccessCredentials,
    AccessPolicyClient,
    Deadline,
    DeadlineExceeded,
)
from .models import IpRule, OpaqueRule, PolicyDocument, parse_rule

__all__ = [
    "AccessApiError",
    "AccessCredentials",
    "AccessPolicyClient",
    "Deadline",
    "DeadlineExceeded",
    "IpRule",
    "OpaqueRule",
    "PolicyDocument",
    "PolicyReadError",
    "PolicyTimeoutError",
    "PolicyVerificationError",
    "PolicyWriteError",
    "RemotePolicyAdapter",
    "RemotePolicyError",
    "parse_rule",
]
