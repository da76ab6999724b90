import unittest

import httpx

from contracts.view_state import ViewStatus
from core.message_loader import MessageLoader


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestMessageLoader(unittest.IsolatedAsyncioTestCase):
    async def test_starts_loading(self):
        loader = MessageLoader("http://lb")
        self.assertEqual(loader.state.status, ViewStatus.LOADING)
        self.assertFalse(loader.state.settled)

    async def test_success(self):
        async with client_for(
            lambda request: httpx.Response(200, json={"message": "Hello from backend"})
        ) as client:
            state = await MessageLoader("http://lb", client=client).load()
        self.assertEqual(state.status, ViewStatus.SUCCESS)
        self.assertEqual(state.message, "Hello from backend")
        self.assertIsNone(state.error)

    async def test_requests_message_path(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"message": "hi"})

        async with client_for(handler) as client:
            await MessageLoader("http://lb/", client=client).load()
        self.assertEqual(seen, ["http://lb/api/message"])

    async def test_unreachable_backend(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            state = await MessageLoader("http://lb", client=client).load()
        self.assertEqual(state.status, ViewStatus.ERROR)
        self.assertIn("Failed to fetch from backend", state.error)
        self.assertIsNone(state.message)

    async def test_timeout_settles_as_error(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        async with client_for(handler) as client:
            state = await MessageLoader("http://lb", client=client, timeout=0.1).load()
        self.assertEqual(state.status, ViewStatus.ERROR)
        self.assertIn("timed out", state.error)

    async def test_error_status(self):
        async with client_for(lambda request: httpx.Response(503, text="unavailable")) as client:
            state = await MessageLoader("http://lb", client=client).load()
        self.assertEqual(state.status, ViewStatus.ERROR)
        self.assertIn("503", state.error)

    async def test_unparseable_body(self):
        for response in (
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"msg": "wrong field"}),
            httpx.Response(200, json=["list"]),
        ):
            with self.subTest(body=response.content):
                async with client_for(lambda request, r=response: r) as client:
                    state = await MessageLoader("http://lb", client=client).load()
                self.assertEqual(state.status, ViewStatus.ERROR)
                self.assertEqual(state.error, "Unexpected response from backend")

    async def test_single_request_no_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            loader = MessageLoader("http://lb", client=client)
            first = await loader.load()
            second = await loader.load()
        self.assertEqual(len(calls), 1)
        self.assertIs(first, second)

    async def test_terminal_after_success(self):
        responses = iter(
            [
                httpx.Response(200, json={"message": "first"}),
                httpx.Response(200, json={"message": "second"}),
            ]
        )
        async with client_for(lambda request: next(responses)) as client:
            loader = MessageLoader("http://lb", client=client)
            await loader.load()
            state = await loader.load()
        self.assertEqual(state.message, "first")


if __name__ == "__main__":
    unittest.main()
