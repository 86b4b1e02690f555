# ============================================================================
# DNS PROBE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Check - Built-in probe
# PURPOSE: Verify cluster DNS resolves the configured endpoints
# CREATED: 19 OCT 2026
# ============================================================================
"""
DNS Probe

Resolves every configured endpoint with the event loop's resolver.
One error per endpoint that fails; healthy only if all resolve.
"""

import asyncio
import socket
import logging

from core.contracts import CheckCategory
from core.models import CheckResult, DNSParameters
from .registry import ProbeContext, register_probe

logger = logging.getLogger(__name__)


@register_probe(CheckCategory.DNS, description="Resolve cluster DNS endpoints")
async def dns_probe(ctx: ProbeContext) -> CheckResult:
    params: DNSParameters = ctx.parameters
    loop = asyncio.get_running_loop()

    errors = []
    resolved = {}
    for endpoint in params.endpoints:
        try:
            infos = await loop.getaddrinfo(endpoint, None, type=socket.SOCK_STREAM)
        except OSError as e:
            errors.append(f"failed to resolve {endpoint}: {e}")
            continue
        addresses = sorted({info[4][0] for info in infos})
        if not addresses:
            errors.append(f"no addresses returned for {endpoint}")
            continue
        resolved[endpoint] = addresses

    if errors:
        logger.debug(f"DNS probe errors: {errors}")
        return CheckResult.unhealthy(*errors, resolved=resolved)
    return CheckResult.healthy(resolved=resolved)


__all__ = ["dns_probe"]
