"""
Mock orchestrator for local development and testing.
In production, these answers come from the robot behind the orchestrator.
"""

import json

import httpx

MOCK_TOKEN = "mock-bearer-token"
MOCK_JOB_ID = 1001

# Renewal dates keyed by policy number (what the robot reads from the CRM)
MOCK_RENEWAL_DATES = {
    "12345": "2025-12-31",
    "54321": "2026-03-15",
    "P7788": "2026-07-01",
}


def _reference_from_filter(request: httpx.Request) -> str:
    # $filter looks like: Reference eq 'A12345'
    raw = request.url.params.get("$filter", "")
    return raw.split("'")[1] if raw.count("'") >= 2 else ""


def build_handler(
    renewal_dates: dict[str, str] | None = None,
    token: str = MOCK_TOKEN,
    job_id: int | str = MOCK_JOB_ID,
):
    """
    Build an httpx request handler that answers the three orchestrator calls.

    Queue lookups return two items per known policy, the renewal date on the
    second one, the way the robot files them. Unknown policies return an
    empty queue.
    """
    dates = MOCK_RENEWAL_DATES if renewal_dates is None else renewal_dates

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if request.method == "POST" and path.endswith("/api/account/authenticate"):
            return httpx.Response(200, json={"result": token, "targetUrl": None, "success": True})

        if request.method == "POST" and path.endswith("StartJobs"):
            body = json.loads(request.content)
            robot_ids = body["startInfo"]["RobotIds"]
            return httpx.Response(
                201,
                json={"value": [{"Id": job_id, "State": "Pending", "RobotId": robot_ids[0]}]},
            )

        if request.method == "GET" and path.endswith("/odata/QueueItems"):
            reference = _reference_from_filter(request)
            date = dates.get(reference[1:]) if reference.startswith("A") else None
            if date is None:
                return httpx.Response(200, json={"value": []})
            return httpx.Response(
                200,
                json={
                    "value": [
                        {"Reference": reference, "SpecificContent": {"in_cust_id": reference[1:]}},
                        {"Reference": reference, "SpecificContent": {"output_api": date}},
                    ]
                },
            )

        return httpx.Response(404, json={"message": f"No mock route for {request.method} {path}"})

    return handler


def build_mock_transport(renewal_dates: dict[str, str] | None = None) -> httpx.MockTransport:
    """Transport that serves canned orchestrator responses."""
    return httpx.MockTransport(build_handler(renewal_dates))
