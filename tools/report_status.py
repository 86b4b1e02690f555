#!/usr/bin/env python3
# ============================================================================
# EXTERNAL CHECK REPORTING CLIENT
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tool - Result submission for external check processes
# PURPOSE: Post a check result back to the orchestrator
# CREATED: 19 OCT 2026
# ============================================================================
"""
Report an external check result.

External check processes are launched with:

    KH_CHECK_NAME, KH_RUN_UUID, KH_REPORTING_URL, KH_CHECK_RUN_DEADLINE

and call this tool (or its report() function) once per run.

Usage:
    python tools/report_status.py --healthy
    python tools/report_status.py --unhealthy --error "cert expires in 3 days"
    python tools/report_status.py --healthy --detail days_left=42

Exit codes:
    0 - accepted
    1 - rejected (400/403) or unreachable
    2 - missing environment
"""

import argparse
import os
import sys
from typing import Any, Dict, List, Optional

import httpx


class ReportingError(Exception):
    """The environment does not carry what a report needs."""


def build_report(
    healthy: bool,
    errors: Optional[List[str]] = None,
    details: Optional[Dict[str, Any]] = None,
    env: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Build the submission body from the process environment.

    Raises:
        ReportingError: KH_CHECK_NAME or KH_RUN_UUID missing
    """
    env = os.environ if env is None else env
    check_name = env.get("KH_CHECK_NAME")
    run_uuid = env.get("KH_RUN_UUID")
    if not check_name or not run_uuid:
        raise ReportingError("KH_CHECK_NAME and KH_RUN_UUID must be set")

    return {
        "checkName": check_name,
        "uuid": run_uuid,
        "status": "healthy" if healthy else "unhealthy",
        "errors": list(errors or []),
        "details": dict(details or {}),
    }


def report(
    payload: Dict[str, Any],
    url: Optional[str] = None,
    timeout: float = 10.0,
    client: Optional[httpx.Client] = None,
) -> httpx.Response:
    """POST a report. Returns the response without raising on status."""
    url = url or os.environ.get("KH_REPORTING_URL")
    if not url:
        raise ReportingError("KH_REPORTING_URL must be set")

    if client is not None:
        return client.post(url, json=payload, timeout=timeout)
    with httpx.Client(timeout=timeout) as owned:
        return owned.post(url, json=payload)


def _parse_details(pairs: List[str]) -> Dict[str, str]:
    details = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ReportingError(f"detail must be key=value: {pair!r}")
        details[key] = value
    return details


def main():
    parser = argparse.ArgumentParser(
        description="Report an external check result to the orchestrator",
    )
    status = parser.add_mutually_exclusive_group(required=True)
    status.add_argument("--healthy", action="store_true", help="Report healthy")
    status.add_argument("--unhealthy", action="store_true", help="Report unhealthy")
    parser.add_argument(
        "--error", "-e",
        action="append",
        default=[],
        help="Error message (repeatable)",
    )
    parser.add_argument(
        "--detail", "-d",
        action="append",
        default=[],
        help="Detail as key=value (repeatable)",
    )
    parser.add_argument(
        "--url", "-u",
        default=None,
        help="Reporting URL (default: $KH_REPORTING_URL)",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=10.0,
        help="Request timeout in seconds (default: 10)",
    )

    args = parser.parse_args()

    try:
        payload = build_report(
            healthy=args.healthy,
            errors=args.error,
            details=_parse_details(args.detail),
        )
        response = report(payload, url=args.url, timeout=args.timeout)
    except ReportingError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)
    except httpx.HTTPError as e:
        print(f"ERROR: could not reach orchestrator: {e}", file=sys.stderr)
        sys.exit(1)

    if response.status_code != 200:
        print(f"ERROR: report rejected ({response.status_code}): {response.text}", file=sys.stderr)
        sys.exit(1)
    print(f"Reported {payload['status']} for {payload['checkName']}")


if __name__ == "__main__":
    main()
