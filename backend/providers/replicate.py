"""Replicate job provider implementation.

Runs LoRA training and image generation through the Replicate predictions
API. Completion is reported to our webhook (filtered to the ``completed``
event) and can also be polled.
"""

import logging
from typing import Any, Optional

import httpx

from .base import ExternalProviderError, JobProvider, ProviderJobStatus, ProviderStatus

logger = logging.getLogger(__name__)

# Replicate API endpoint
REPLICATE_API_BASE = "https://api.replicate.com/v1"

_STATUS_MAP = {
    "starting": ProviderJobStatus.PENDING,
    "processing": ProviderJobStatus.PENDING,
    "succeeded": ProviderJobStatus.SUCCEEDED,
    "failed": ProviderJobStatus.FAILED,
    "canceled": ProviderJobStatus.CANCELED,
}


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def extract_result_ref(output: Any) -> Optional[str]:
    """Pull the artifact URL out of a prediction's output.

    Generation returns a list of image URLs or a single URL, training
    returns an object with the trained ``weights``.
    """
    if isinstance(output, list):
        return str(output[0]) if output else None
    if isinstance(output, str):
        return output
    if isinstance(output, dict):
        weights = output.get("weights") or output.get("version")
        return str(weights) if weights else None
    return None


class ReplicateProvider(JobProvider):
    """Provider backed by Replicate predictions.

    Requests use a fresh ``httpx.AsyncClient`` per call. Tests can pass an
    ``httpx.MockTransport`` through ``transport``.
    """

    name = "replicate"

    def __init__(
        self,
        api_token: str,
        train_version: str,
        generate_version: str,
        api_base: str = REPLICATE_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_token:
            raise ValueError(
                "Replicate API token is required. "
                "Set it via the REPLICATE_API_TOKEN environment variable."
            )
        self._api_token = api_token
        self._train_version = train_version
        self._generate_version = generate_version
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _build_input(self, kind: str, payload: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        if kind == "train":
            return self._train_version, {
                "training_data": payload["zip_url"],
                "trigger_word": payload["trigger_word"],
            }
        if kind == "generate":
            model_input: dict[str, Any] = {"prompt": payload["prompt"]}
            if payload.get("lora_url"):
                model_input["lora_url"] = payload["lora_url"]
                model_input["lora_scale"] = payload.get("lora_scale", 1)
            return self._generate_version, model_input
        raise ValueError(f"Unsupported job kind: {kind}")

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._api_base,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    json=json,
                    headers={
                        "Authorization": f"Bearer {self._api_token}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TransportError as e:
            raise ExternalProviderError(
                f"Replicate request failed: {type(e).__name__}",
                provider=self.name,
                retryable=True,
            ) from e

        if response.status_code >= 400:
            raise ExternalProviderError(
                f"Replicate returned HTTP {response.status_code}: {response.text[:200]}",
                provider=self.name,
                retryable=_is_retryable_status(response.status_code),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalProviderError(
                f"Replicate returned a non-JSON body (HTTP {response.status_code})",
                provider=self.name,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise ExternalProviderError(
                f"Replicate returned {type(data).__name__}, expected an object",
                provider=self.name,
                status_code=response.status_code,
            )
        return data

    async def submit(
        self,
        job_id: str,
        kind: str,
        payload: dict[str, Any],
        webhook_url: Optional[str] = None,
    ) -> str:
        version, model_input = self._build_input(str(kind), payload)
        body: dict[str, Any] = {"version": version, "input": model_input}
        if webhook_url:
            body["webhook"] = webhook_url
            body["webhook_events_filter"] = ["completed"]

        prediction = await self._request("POST", "/predictions", json=body)
        prediction_id = prediction.get("id")
        if not prediction_id:
            raise ExternalProviderError(
                "Replicate response did not include a prediction id",
                provider=self.name,
            )
        logger.info(f"Replicate prediction created: job={job_id} prediction={prediction_id}")
        return prediction_id

    async def fetch_status(self, correlation_id: str) -> ProviderStatus:
        prediction = await self._request("GET", f"/predictions/{correlation_id}")
        try:
            return self._to_status(prediction)
        except ValueError as e:
            raise ExternalProviderError(str(e), provider=self.name) from e

    async def cancel(self, correlation_id: str) -> None:
        await self._request("POST", f"/predictions/{correlation_id}/cancel")

    def parse_webhook(
        self,
        body: dict[str, Any],
        event_id: Optional[str] = None,
    ) -> ProviderStatus:
        if not isinstance(body, dict) or not body.get("id") or not body.get("status"):
            raise ValueError("Webhook body is not a Replicate prediction")
        return self._to_status(body, event_id=event_id)

    def _to_status(
        self,
        prediction: dict[str, Any],
        event_id: Optional[str] = None,
    ) -> ProviderStatus:
        raw_status = prediction.get("status", "")
        status = _STATUS_MAP.get(raw_status)
        if status is None:
            raise ValueError(f"Unknown Replicate status: {raw_status!r}")

        error = prediction.get("error")
        return ProviderStatus(
            correlation_id=prediction["id"],
            status=status,
            result_ref=extract_result_ref(prediction.get("output")),
            error=str(error) if error else None,
            event_id=event_id,
        )
