"""Tests for the Replicate provider, with HTTP served by httpx.MockTransport."""

import json

import httpx
import pytest

from providers.base import ExternalProviderError, ProviderJobStatus
from providers.replicate import ReplicateProvider, extract_result_ref

API = "https://replicate.test/v1"


def make_provider(handler) -> ReplicateProvider:
    return ReplicateProvider(
        api_token="r8_test",
        train_version="train-v",
        generate_version="gen-v",
        api_base=API,
        transport=httpx.MockTransport(handler),
    )


class TestReplicateProvider:
    def test_api_token_required(self):
        with pytest.raises(ValueError, match="REPLICATE_API_TOKEN"):
            ReplicateProvider(api_token="", train_version="t", generate_version="g")

    @pytest.mark.asyncio
    async def test_submit_generate(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pred-1", "status": "starting"})

        provider = make_provider(handler)
        prediction_id = await provider.submit(
            "job-1",
            "generate",
            {"prompt": "a fox", "lora_url": "https://w/lora.safetensors", "lora_scale": 0.8},
            webhook_url="https://api.test/api/webhooks/provider",
        )

        assert prediction_id == "pred-1"
        assert seen["url"] == f"{API}/predictions"
        assert seen["auth"] == "Bearer r8_test"
        assert seen["body"] == {
            "version": "gen-v",
            "input": {"prompt": "a fox", "lora_url": "https://w/lora.safetensors", "lora_scale": 0.8},
            "webhook": "https://api.test/api/webhooks/provider",
            "webhook_events_filter": ["completed"],
        }

    @pytest.mark.asyncio
    async def test_submit_train_without_webhook(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pred-2"})

        await make_provider(handler).submit(
            "job-2", "train", {"zip_url": "https://f/me.zip", "trigger_word": "ohwx"}
        )
        assert seen["body"] == {
            "version": "train-v",
            "input": {"training_data": "https://f/me.zip", "trigger_word": "ohwx"},
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,retryable", [(429, True), (503, True), (422, False), (401, False)])
    async def test_http_errors(self, status_code, retryable):
        provider = make_provider(lambda request: httpx.Response(status_code, text="nope"))
        with pytest.raises(ExternalProviderError) as exc_info:
            await provider.submit("job-1", "generate", {"prompt": "x"})
        assert exc_info.value.retryable is retryable
        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_transport_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalProviderError) as exc_info:
            await make_provider(handler).fetch_status("pred-1")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_missing_prediction_id(self):
        provider = make_provider(lambda request: httpx.Response(201, json={}))
        with pytest.raises(ExternalProviderError):
            await provider.submit("job-1", "generate", {"prompt": "x"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(201, text="<html>gateway</html>"),
        httpx.Response(201, json=["pred-1"]),
    ])
    async def test_unreadable_success_body(self, response):
        """A 2xx that isn't a JSON object is a provider error, not a crash."""
        provider = make_provider(lambda request: response)
        with pytest.raises(ExternalProviderError) as exc_info:
            await provider.submit("job-1", "generate", {"prompt": "x"})
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 201

    @pytest.mark.asyncio
    async def test_fetch_status_non_json(self):
        provider = make_provider(lambda request: httpx.Response(200, text="upstream timeout"))
        with pytest.raises(ExternalProviderError):
            await provider.fetch_status("pred-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw,expected", [
        ("starting", ProviderJobStatus.PENDING),
        ("processing", ProviderJobStatus.PENDING),
        ("succeeded", ProviderJobStatus.SUCCEEDED),
        ("failed", ProviderJobStatus.FAILED),
        ("canceled", ProviderJobStatus.CANCELED),
    ])
    async def test_fetch_status_mapping(self, raw, expected):
        provider = make_provider(
            lambda request: httpx.Response(200, json={"id": "pred-1", "status": raw})
        )
        status = await provider.fetch_status("pred-1")
        assert status.status == expected

    @pytest.mark.asyncio
    async def test_fetch_unknown_status(self):
        provider = make_provider(
            lambda request: httpx.Response(200, json={"id": "pred-1", "status": "exploded"})
        )
        with pytest.raises(ExternalProviderError):
            await provider.fetch_status("pred-1")

    @pytest.mark.asyncio
    async def test_cancel(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={"id": "pred-1", "status": "canceled"})

        await make_provider(handler).cancel("pred-1")
        assert seen == {"method": "POST", "path": "/v1/predictions/pred-1/cancel"}

    def test_parse_webhook(self):
        provider = make_provider(lambda request: httpx.Response(500))
        status = provider.parse_webhook(
            {"id": "pred-1", "status": "succeeded", "output": ["https://out/1.png"]},
            event_id="evt-1",
        )
        assert status.is_terminal
        assert status.result_ref == "https://out/1.png"
        assert status.event_id == "evt-1"

    def test_parse_webhook_rejects_garbage(self):
        provider = make_provider(lambda request: httpx.Response(500))
        with pytest.raises(ValueError):
            provider.parse_webhook({"hello": "world"})


class TestExtractResultRef:
    def test_list(self):
        assert extract_result_ref(["a", "b"]) == "a"
        assert extract_result_ref([]) is None

    def test_string(self):
        assert extract_result_ref("https://out/x.png") == "https://out/x.png"

    def test_training_output(self):
        assert extract_result_ref({"weights": "https://w/lora.tar"}) == "https://w/lora.tar"
        assert extract_result_ref({"version": "owner/model:abc"}) == "owner/model:abc"

    def test_none(self):
        assert extract_result_ref(None) is None
