"""
Payment-aware fetch tests.

Scenarios:
    - success on first attempt: passthrough, nothing signed
    - 402 then 200: one permit, one retry with the payment header
    - 402 twice: second rejection returned, never a third attempt
    - signing failure: original rejection returned
    - static mode: header up front, no retry
"""

import asyncio
import functools
import json

import httpx
import pytest
from unittest.mock import AsyncMock

from x402_permit.adapters.evm.signatures import PermitSigner
from x402_permit.clients.http_client import (
    UNPATCHED_SEND,
    Http402Client,
    PaymentFetch,
    RetryAttempt,
    parse_settlement_amount,
)
from x402_permit.clients.permit_cache import PermitCache
from x402_permit.clients.router_config import RouterConfigResolver
from x402_permit.engine.exceptions import BlockchainInteractionError

from test_mocks import (
    API_URL,
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_PERMIT_CAP,
    ROUTER_CONFIG_JSON,
    ROUTER_URL,
    CountingSigner,
    FakeClock,
    PaidApiStub,
    create_cached_permit,
    create_payment_fetch,
    create_router_config,
    settlement_header,
)

PERMIT_KEY = create_router_config().permit_key


def chat_request() -> httpx.Request:
    return httpx.Request("POST", API_URL, json={"model": "gpt-4o-mini", "messages": []})


class TestSignedPermitFlow:

    @pytest.mark.asyncio
    async def test_success_passthrough(self):
        stub = PaidApiStub()
        fetch, client, signer = create_payment_fetch(stub)

        async def free(request):
            return httpx.Response(200, json={"free": True}, request=request)

        response = await fetch.send_with(free, chat_request())

        assert response.status_code == 200
        assert signer.call_count == 0
        assert stub.config_requests == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_payment_required_retried_once(self):
        stub = PaidApiStub()
        fetch, client, signer = create_payment_fetch(stub)

        response = await fetch(chat_request())

        assert response.status_code == 200
        assert signer.call_count == 1
        assert signer.calls[0]["permit_cap"] == MOCK_PERMIT_CAP
        assert signer.calls[0]["private_key"] == MOCK_OWNER_PRIVATE_KEY
        assert stub.payment_headers == [None, "sig-1"]
        assert stub.api_requests[1].content == stub.api_requests[0].content
        assert stub.api_requests[1].method == "POST"
        assert fetch.permit_cache.peek(PERMIT_KEY).payment_sig == "sig-1"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unauthorized_also_triggers_payment(self):
        stub = PaidApiStub(rejection_status=401)
        fetch, client, signer = create_payment_fetch(stub)

        response = await fetch(chat_request())

        assert response.status_code == 200
        assert signer.call_count == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        fetch, client, signer = create_payment_fetch(PaidApiStub())
        calls = []

        async def failing(request):
            calls.append(request)
            return httpx.Response(500, request=request)

        response = await fetch.send_with(failing, chat_request())

        assert response.status_code == 500
        assert len(calls) == 1
        assert signer.call_count == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_router_payment_header_used(self):
        config = {**ROUTER_CONFIG_JSON, "paymentHeader": "X-PAYMENT"}
        stub = PaidApiStub(config=config, payment_header="X-PAYMENT")
        fetch, client, signer = create_payment_fetch(stub)

        response = await fetch(chat_request())

        assert response.status_code == 200
        assert stub.api_requests[1].headers["X-PAYMENT"] == "sig-1"
        assert "PAYMENT-SIGNATURE" not in stub.api_requests[1].headers
        await client.aclose()

    @pytest.mark.asyncio
    async def test_caller_request_not_modified(self):
        stub = PaidApiStub()
        fetch, client, signer = create_payment_fetch(stub)
        request = chat_request()

        await fetch(request)

        assert "PAYMENT-SIGNATURE" not in request.headers
        await client.aclose()

    @pytest.mark.asyncio
    async def test_permit_reused_across_requests(self):
        stub = PaidApiStub()
        fetch, client, signer = create_payment_fetch(stub)

        for _ in range(3):
            response = await fetch(chat_request())
            assert response.status_code == 200

        assert signer.call_count == 1
        assert stub.payment_headers == [None, "sig-1"] * 3
        assert len(stub.config_requests) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_concurrent_rejections_share_one_permit(self):
        stub = PaidApiStub()
        fetch, client, signer = create_payment_fetch(stub)

        responses = await asyncio.gather(*(fetch(chat_request()) for _ in range(5)))

        assert [response.status_code for response in responses] == [200] * 5
        assert signer.call_count == 1
        assert sorted(h for h in stub.payment_headers if h) == ["sig-1"] * 5
        await client.aclose()


class TestRejectedRetry:

    @pytest.mark.asyncio
    async def test_second_rejection_returned(self):
        stub = PaidApiStub(accept_payment=False)
        fetch, client, signer = create_payment_fetch(stub)

        response = await fetch(chat_request())

        assert response.status_code == 402
        assert len(stub.api_requests) == 2
        assert stub.payment_headers == [None, "sig-1"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rejected_permit_dropped(self):
        stub = PaidApiStub(accept_payment=False)
        fetch, client, signer = create_payment_fetch(stub)

        await fetch(chat_request())
        assert fetch.permit_cache.peek(PERMIT_KEY) is None

        await fetch(chat_request())
        assert signer.call_count == 2
        assert len(stub.config_requests) == 2
        await client.aclose()


class TestPermitUnavailable:

    @pytest.mark.asyncio
    async def test_signing_failure_returns_original_rejection(self):
        stub = PaidApiStub()
        signer = CountingSigner(error=BlockchainInteractionError("rpc down"))
        fetch, client, _ = create_payment_fetch(stub, signer=signer)

        response = await fetch(chat_request())

        assert response.status_code == 402
        assert response.json() == {"error": "payment required"}
        assert len(stub.api_requests) == 1
        assert fetch.permit_cache.peek(PERMIT_KEY) is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_fallback_config_returns_original_rejection(self):
        stub = PaidApiStub(config_status=500)
        signer = PermitSigner(clock=FakeClock())
        signer.read_nonce = AsyncMock(return_value=0)
        fetch, client, _ = create_payment_fetch(stub, signer=signer)

        response = await fetch(chat_request())

        assert response.status_code == 402
        assert len(stub.api_requests) == 1
        signer.read_nonce.assert_not_awaited()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unusable_private_key_returns_original_rejection(self):
        stub = PaidApiStub()
        client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
        clock = FakeClock()
        signer = PermitSigner(clock=clock)
        signer.read_nonce = AsyncMock(return_value=0)
        fetch = PaymentFetch(
            functools.partial(UNPATCHED_SEND, client),
            resolver=RouterConfigResolver(functools.partial(UNPATCHED_SEND, client), ROUTER_URL, clock=clock),
            permit_cache=PermitCache(clock=clock),
            signer=signer,
            private_key="0x" + "0" * 64,
        )

        response = await fetch(chat_request())

        assert response.status_code == 402
        assert len(stub.api_requests) == 1
        signer.read_nonce.assert_not_awaited()
        await client.aclose()


class TestInterruptedRetry:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        httpx.ReadTimeout("timed out"),
        asyncio.CancelledError(),
    ])
    async def test_retry_failure_propagates_without_spend(self, error):
        stub = PaidApiStub(settle_amount=250)
        fetch, client, signer = create_payment_fetch(stub)
        sends = []

        async def flaky(request, **kwargs):
            sends.append(request)
            if len(sends) == 2:
                raise error
            return await UNPATCHED_SEND(client, request, **kwargs)

        with pytest.raises(type(error)):
            await fetch.send_with(flaky, chat_request())

        assert len(sends) == 2
        assert fetch.permit_cache.get_spent(PERMIT_KEY) == 0
        assert fetch.permit_cache.peek(PERMIT_KEY).payment_sig == "sig-1"

        response = await fetch(chat_request())
        assert response.status_code == 200
        assert signer.call_count == 1
        assert fetch.permit_cache.get_spent(PERMIT_KEY) == 250
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cancelled_while_signing(self):
        stub = PaidApiStub()
        signing = asyncio.Event()

        class StalledSigner(CountingSigner):
            async def sign(self, **kwargs):
                signing.set()
                await asyncio.Event().wait()

        fetch, client, _ = create_payment_fetch(stub, signer=StalledSigner())

        task = asyncio.create_task(fetch(chat_request()))
        await signing.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert fetch.permit_cache.peek(PERMIT_KEY) is None
        assert not fetch.permit_cache._locks[PERMIT_KEY].locked()
        assert len(stub.api_requests) == 1
        await client.aclose()


class TestSpendAccounting:

    @pytest.mark.asyncio
    async def test_settlement_recorded(self):
        stub = PaidApiStub(settle_amount=250)
        fetch, client, signer = create_payment_fetch(stub)

        await fetch(chat_request())
        await fetch(chat_request())

        assert fetch.permit_cache.get_spent(PERMIT_KEY) == 500
        await client.aclose()

    @pytest.mark.asyncio
    async def test_exhausted_permit_replaced(self):
        stub = PaidApiStub(settle_amount=600)
        fetch, client, signer = create_payment_fetch(stub)

        for _ in range(3):
            await fetch(chat_request())

        assert signer.call_count == 2
        assert [h for h in stub.payment_headers if h] == ["sig-1", "sig-1", "sig-2"]
        assert fetch.permit_cache.get_spent(PERMIT_KEY) == 600
        await client.aclose()


class TestStaticMode:

    @pytest.mark.asyncio
    async def test_header_attached_up_front(self):
        stub = PaidApiStub()
        client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
        fetch = PaymentFetch(client.send, payment_signature="static-sig")

        response = await fetch(chat_request())

        assert fetch.static_mode
        assert response.status_code == 200
        assert stub.payment_headers == ["static-sig"]
        assert stub.config_requests == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rejection_not_retried(self):
        stub = PaidApiStub(accept_payment=False)
        client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
        fetch = PaymentFetch(client.send, payment_signature="static-sig", payment_header="X-PAYMENT")

        response = await fetch(chat_request())

        assert response.status_code == 402
        assert len(stub.api_requests) == 1
        assert stub.api_requests[0].headers["X-PAYMENT"] == "static-sig"
        await client.aclose()

    def test_signed_mode_requires_signer(self):
        with pytest.raises(ValueError):
            PaymentFetch(AsyncMock())


class TestHttp402Client:

    @pytest.mark.asyncio
    async def test_client_requests_pay(self):
        stub = PaidApiStub()
        fetch, base_client, signer = create_payment_fetch(stub)

        async with Http402Client(fetch, transport=httpx.MockTransport(stub)) as client:
            response = await client.post(API_URL, json={"model": "gpt-4o-mini"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert stub.payment_headers == [None, "sig-1"]
        await base_client.aclose()

    @pytest.mark.asyncio
    async def test_client_streaming_response(self):
        stub = PaidApiStub()
        fetch, base_client, signer = create_payment_fetch(stub)

        async with Http402Client(fetch, transport=httpx.MockTransport(stub)) as client:
            async with client.stream("POST", API_URL, json={"stream": True}) as response:
                body = await response.aread()

        assert response.status_code == 200
        assert json.loads(body) == {"ok": True}
        assert signer.call_count == 1
        await base_client.aclose()


class TestHelpers:

    def test_retry_attempt_defaults(self):
        attempt = RetryAttempt(request=chat_request())
        assert attempt.attempts == 0
        assert attempt.permit is None
        assert attempt.permit_key is None

    def test_retry_attempt_holds_permit(self):
        permit = create_cached_permit()
        attempt = RetryAttempt(request=chat_request(), attempts=2, permit=permit)
        assert attempt.permit is permit

    @pytest.mark.parametrize("headers, expected", [
        ({"PAYMENT-RESPONSE": settlement_header(42)}, 42),
        ({"X-PAYMENT-RESPONSE": settlement_header("1500")}, 1500),
        ({"PAYMENT-RESPONSE": settlement_header(-1)}, None),
        ({"PAYMENT-RESPONSE": settlement_header(True)}, None),
        ({"PAYMENT-RESPONSE": settlement_header(1.5)}, None),
        ({"PAYMENT-RESPONSE": settlement_header("\u00b2")}, None),
        ({"PAYMENT-RESPONSE": settlement_header("\u0661\u0662")}, None),
        ({"PAYMENT-RESPONSE": "!!not base64 json!!"}, None),
        ({}, None),
    ])
    def test_parse_settlement_amount(self, headers, expected):
        response = httpx.Response(200, headers=headers)
        assert parse_settlement_amount(response) == expected
