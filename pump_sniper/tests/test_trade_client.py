import asyncio

import httpx
import pytest

from pump_sniper.config.strategy_config import ExecutionConfig, StrategyConfig
from pump_sniper.core.trade_client import TradeApiClient
from pump_sniper.exceptions import RequestFailure

ENDPOINT = "https://trade.test/api/trade"


class Recorder:
    def __init__(self):
        self.sleeps = []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)


def run_request(settings, responses, retry_limit=5):
    """Send one request through a client whose transport replays `responses`."""
    settings.strategy = StrategyConfig(execution=ExecutionConfig(api_retry_limit=retry_limit, base_api_delay_sec=1.0))
    calls = []
    recorder = Recorder()

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status, kwargs = responses[min(len(calls), len(responses)) - 1]
        return httpx.Response(status, **kwargs)

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        api = TradeApiClient(settings, client=client, sleep=recorder.sleep)
        try:
            return await api.request(ENDPOINT, {"trade_type": "buy"})
        finally:
            await api.close()

    return scenario, calls, recorder


def test_success_on_first_attempt(settings):
    scenario, calls, recorder = run_request(settings, [(200, dict(json={"tx_hash": "abc"}))])

    assert asyncio.run(scenario()) == {"tx_hash": "abc"}
    assert len(calls) == 1
    assert recorder.sleeps == []


def test_exponential_backoff_on_server_errors(settings):
    scenario, calls, recorder = run_request(settings, [
        (500, {}),
        (502, {}),
        (200, dict(json={"tx_hash": "abc"})),
    ])

    assert asyncio.run(scenario())["tx_hash"] == "abc"
    assert len(calls) == 3
    assert recorder.sleeps == [1.0, 2.0]


def test_rate_limit_uses_retry_after_header(settings):
    scenario, calls, recorder = run_request(settings, [
        (429, dict(headers={"Retry-After": "3"})),
        (500, {}),
        (200, dict(json={"tx_hash": "abc"})),
    ])

    asyncio.run(scenario())

    assert recorder.sleeps == [3.0, 6.0]


def test_rate_limit_without_header_uses_current_backoff(settings):
    scenario, calls, recorder = run_request(settings, [
        (500, {}),
        (429, {}),
        (200, dict(json={"tx_hash": "abc"})),
    ])

    asyncio.run(scenario())

    assert recorder.sleeps == [1.0, 2.0]


def test_exhausted_budget_raises_request_failure(settings):
    scenario, calls, recorder = run_request(settings, [(500, {})], retry_limit=3)

    with pytest.raises(RequestFailure) as excinfo:
        asyncio.run(scenario())

    assert len(calls) == 3
    assert recorder.sleeps == [1.0, 2.0]
    assert excinfo.value.attempts == 3
    assert excinfo.value.status == 500


def test_invalid_json_body_is_retried(settings):
    scenario, calls, recorder = run_request(settings, [
        (200, dict(content=b"not json")),
        (200, dict(json={"tx_hash": "abc"})),
    ])

    assert asyncio.run(scenario())["tx_hash"] == "abc"
    assert recorder.sleeps == [1.0]
