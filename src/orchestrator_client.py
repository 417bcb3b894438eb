"""
Remote automation client and the renewal lookup pipeline.

The renewal date lives in a back-office system that only a robot can
read. Looking it up takes three calls against the orchestrator:

1. authenticate with the tenant credentials to get a bearer token
2. start the lookup job on a specific robot, passing the policy number
3. read the queue items the robot produced for that policy

The robot needs time to pick the job up and write its output, so the
pipeline waits a fixed 20 seconds after submitting the job and a further
3 seconds after reading the queue. There are no retries.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.circuit_breaker import CircuitBreaker
from src.config import OrchestratorConfig
from src.exceptions import RemoteCallFailure
from src.observability import trace_span

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"
START_STRATEGY = "Specific"
RENEWAL_ITEM_INDEX = 1


# Typed views of the orchestrator payloads. Unknown fields are ignored.


class AuthenticateResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: str | None = None


class CreatedJob(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = Field(default=None, alias="Id")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Orchestrator job ids are integers; keep them as opaque strings.
        return None if value is None else str(value)


class StartJobsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: list[CreatedJob] = Field(default_factory=list)


class QueueItemContent(BaseModel):
    model_config = ConfigDict(extra="allow")

    output_api: str | None = None


class QueueItem(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    specific_content: QueueItemContent | None = Field(default=None, alias="SpecificContent")


class QueueItemsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: list[QueueItem] = Field(default_factory=list)


def queue_reference(policy_number: str) -> str:
    """Reference key the robot files its queue items under."""
    return f"A{policy_number}"


class OrchestratorClient:
    """
    Thin synchronous client for the three orchestrator endpoints.

    Every call opens its own short-lived httpx.Client. Any failure (network
    error, non-2xx status, missing field) is raised as RemoteCallFailure
    tagged with the stage that failed.
    """

    AUTHENTICATE_PATH = "api/account/authenticate"
    START_JOBS_PATH = "odata/Jobs/UiPath.Server.Configuration.OData.StartJobs"
    QUEUE_ITEMS_PATH = "odata/QueueItems"

    def __init__(
        self,
        config: OrchestratorConfig,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: Credentials, job constants, timeout and wait durations
            transport: Optional httpx transport (mock transport in tests/dev)
            sleep: Blocking wait used for the fixed robot pickup delays
        """
        self.config = config
        self.transport = transport
        self.sleep = sleep

    def _client(self, token: str | None = None) -> httpx.Client:
        headers = {"Accept": CONTENT_TYPE}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return httpx.Client(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            headers=headers,
            transport=self.transport,
        )

    def _send(
        self, stage: str, method: str, path: str, token: str | None = None, **kwargs
    ) -> httpx.Response:
        """Issue one request; anything that stops it from completing is a RemoteCallFailure."""
        try:
            with self._client(token) as client:
                return client.request(method, path, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as e:
            raise RemoteCallFailure(stage, f"request failed: {e}") from e

    @staticmethod
    def _parse(stage: str, response: httpx.Response, model: type[BaseModel]):
        if not response.is_success:
            # Error body is read for the log only.
            logger.warning(f"{stage} returned HTTP {response.status_code}: {response.text[:200]}")
            raise RemoteCallFailure(
                stage, f"HTTP {response.status_code}", status_code=response.status_code
            )
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise RemoteCallFailure(stage, f"malformed payload: {e.error_count()} error(s)") from e

    def authenticate(self) -> str:
        """Exchange the tenant credentials for a bearer token."""
        body = {
            "tenancyName": self.config.tenancy_name,
            "usernameOrEmailAddress": self.config.username,
            "password": self.config.password,
        }
        response = self._send("authenticate", "POST", self.AUTHENTICATE_PATH, json=body)

        payload = self._parse("authenticate", response, AuthenticateResponse)
        if not payload.result or not payload.result.strip():
            raise RemoteCallFailure("authenticate", "empty bearer token")
        if not payload.result.isascii():
            # The token goes into an HTTP header verbatim.
            raise RemoteCallFailure("authenticate", "bearer token is not header-safe")
        return payload.result

    def start_job(self, token: str, policy_number: str) -> str:
        """
        Start the lookup job and return the first created job id.

        Blocks for start_job_wait_seconds after submission, before the
        response is examined, to give the robot time to pick the job up.
        """
        body = {
            "startInfo": {
                "ReleaseKey": self.config.release_key,
                "RobotIds": list(self.config.robot_ids),
                "JobsCount": 0,
                "Strategy": START_STRATEGY,
                "InputArguments": json.dumps({"in_cust_id": policy_number}),
            }
        }
        response = self._send("start_job", "POST", self.START_JOBS_PATH, token=token, json=body)

        self.sleep(self.config.start_job_wait_seconds)

        payload = self._parse("start_job", response, StartJobsResponse)
        if not payload.value or not payload.value[0].id:
            raise RemoteCallFailure("start_job", "no job created")
        return payload.value[0].id

    def get_renewal_date(self, token: str, policy_number: str) -> str:
        """
        Read the robot's queue output for a policy.

        The answer is the output_api of the second queue item filed under
        the policy's reference. Blocks for poll_wait_seconds after the call.
        An answer without that item is a not-found, not a service fault.
        """
        reference = queue_reference(policy_number)
        params = {"$filter": f"Reference eq '{reference}'"}
        response = self._send(
            "queue_items", "GET", self.QUEUE_ITEMS_PATH, token=token, params=params
        )

        self.sleep(self.config.poll_wait_seconds)

        payload = self._parse("queue_items", response, QueueItemsResponse)
        if len(payload.value) <= RENEWAL_ITEM_INDEX:
            logger.warning(
                f"Queue lookup for {reference} returned {len(payload.value)} item(s), "
                f"expected at least {RENEWAL_ITEM_INDEX + 1}"
            )
            raise RemoteCallFailure("queue_items", "renewal item missing", not_found=True)

        content = payload.value[RENEWAL_ITEM_INDEX].specific_content
        if content is None or not content.output_api:
            raise RemoteCallFailure("queue_items", "output_api missing", not_found=True)
        return content.output_api


@dataclass
class RemoteJobResult:
    """What one pipeline run produced. Empty strings mean "not obtained"."""

    token: str = ""
    job_id: str = ""
    renewal_date: str = ""
    failed_stage: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.failed_stage is None and bool(self.renewal_date)


class RenewalPipeline:
    """
    Runs authenticate -> start job -> read queue, strictly in order.

    run() never raises: a failing stage stops the run and the result
    carries an empty renewal date. Every run the breaker admits reports
    exactly one outcome back to it. Not-found answers count as healthy.
    """

    def __init__(self, client: OrchestratorClient, circuit_breaker: CircuitBreaker | None = None):
        self.client = client
        self.circuit_breaker = circuit_breaker

    def run(self, policy_number: str) -> RemoteJobResult:
        result = RemoteJobResult()

        if self.circuit_breaker and not self.circuit_breaker.allow_request():
            logger.warning("Orchestrator circuit is open, skipping renewal lookup")
            result.failed_stage = "circuit_open"
            return result

        service_healthy = False
        try:
            with trace_span("orchestrator.authenticate"):
                result.token = self.client.authenticate()

            with trace_span("orchestrator.start_job", policy=policy_number):
                result.job_id = self.client.start_job(result.token, policy_number)
            logger.info(f"Renewal job {result.job_id} started for policy {policy_number}")

            with trace_span("orchestrator.queue_items", reference=queue_reference(policy_number)):
                result.renewal_date = self.client.get_renewal_date(result.token, policy_number)
            service_healthy = True

        except RemoteCallFailure as e:
            if e.not_found:
                logger.info(f"No renewal date on file for policy {policy_number}: {e}")
            else:
                logger.error(f"Renewal lookup failed at stage '{e.stage}': {e}")
            result.failed_stage = e.stage
            result.renewal_date = ""
            service_healthy = e.not_found

        except Exception as e:
            logger.error(f"Unexpected error in renewal lookup: {str(e)}", exc_info=True)
            result.failed_stage = "unexpected"
            result.renewal_date = ""

        finally:
            if self.circuit_breaker:
                if service_healthy:
                    self.circuit_breaker.record_success()
                else:
                    self.circuit_breaker.record_failure()

        return result
