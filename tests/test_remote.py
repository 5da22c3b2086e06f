import json
import unittest

import httpx

from Page_Annotator.pages import parse_page_url
from Page_Annotator.remote import AnnotationSink, TypeMapResolver, make_client
from yolo_blocks.errors import RemoteWriteFailure
from yolo_blocks.types import FinalAnnotation

PAGE_URL = "https://escriptorium.example.org/document/12/part/34/edit/"


def _annotation(typology=1):
    return FinalAnnotation(box=((0.0, 0.0), (10.0, 0.0), (10.0, 5.0), (0.0, 5.0)), typology=typology)


class TestTypeMapResolver(unittest.IsolatedAsyncioTestCase):
    async def test_maps_labels_to_pk_and_skips_failures(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            body = json.loads(request.content)
            if body["name"] == "marginalia":
                return httpx.Response(400, json={"name": ["already exists"]})
            return httpx.Response(201, json={"pk": 100 + len(requests), "name": body["name"]})

        page = parse_page_url(PAGE_URL)
        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            type_map = await TypeMapResolver(client, page).resolve(["text", "marginalia", "title"])

        self.assertEqual(type_map, {"text": 101, "title": 103})
        self.assertEqual(str(requests[0].url), "https://escriptorium.example.org/api/types/block/")
        self.assertEqual(requests[0].headers["Authorization"], "Token secret")

    async def test_transport_error_leaves_label_unmapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            type_map = await TypeMapResolver(client, parse_page_url(PAGE_URL)).resolve(["text"])
        self.assertEqual(type_map, {})

    async def test_non_json_or_list_body_leaves_label_unmapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            name = json.loads(request.content)["name"]
            if name == "b":
                return httpx.Response(200, text="<html>proxy</html>")
            if name == "c":
                return httpx.Response(201, json=[{"pk": 3}])
            return httpx.Response(201, json={"pk": 1})

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            type_map = await TypeMapResolver(client, parse_page_url(PAGE_URL)).resolve(["a", "b", "c", "d"])
        self.assertEqual(type_map, {"a": 1, "d": 1})

    async def test_update_valid_block_types(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            await TypeMapResolver(client, parse_page_url(PAGE_URL)).update_valid_block_types({"a": 1, "b": 2})

        self.assertEqual(seen["method"], "PATCH")
        self.assertEqual(seen["url"], "https://escriptorium.example.org/api/documents/12/")
        self.assertEqual(seen["body"], {"valid_block_types": [{"pk": 1}, {"pk": 2}]})

    async def test_update_valid_block_types_failure(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(403, json={"detail": "nope"}))
        async with make_client("secret", transport=transport) as client:
            with self.assertRaises(RemoteWriteFailure) as ctx:
                await TypeMapResolver(client, parse_page_url(PAGE_URL)).update_valid_block_types({"a": 1})
        self.assertEqual(ctx.exception.status_code, 403)


    async def test_update_valid_block_types_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(RemoteWriteFailure) as ctx:
                await TypeMapResolver(client, parse_page_url(PAGE_URL)).update_valid_block_types({"a": 1})
        self.assertIsInstance(ctx.exception.__cause__, httpx.ConnectError)
        self.assertIsNone(ctx.exception.status_code)


class TestAnnotationSink(unittest.IsolatedAsyncioTestCase):
    async def test_creates_each_block_in_order(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(str(request.url), "https://escriptorium.example.org/api/documents/12/parts/34/blocks/")
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"pk": len(bodies)})

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            created = await AnnotationSink(client).create_blocks(
                parse_page_url(PAGE_URL), [_annotation(1), _annotation(2)]
            )

        self.assertEqual(created, 2)
        self.assertEqual([b["typology"] for b in bodies], [1, 2])
        self.assertEqual(bodies[0]["document_part"], "34")
        self.assertEqual(bodies[0]["box"], [[0.0, 0.0], [10.0, 0.0], [10.0, 5.0], [0.0, 5.0]])

    async def test_stops_at_first_failure(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 2:
                return httpx.Response(500)
            return httpx.Response(201, json={})

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(RemoteWriteFailure) as ctx:
                await AnnotationSink(client).create_blocks(
                    parse_page_url(PAGE_URL), [_annotation(), _annotation(), _annotation()]
                )

        self.assertEqual(len(calls), 2)
        self.assertEqual(ctx.exception.status_code, 500)


    async def test_created_block_with_non_json_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, text="created")

        async with make_client("secret", transport=httpx.MockTransport(handler)) as client:
            body = await AnnotationSink(client).create_block(parse_page_url(PAGE_URL), _annotation())
        self.assertIsNone(body)

class TestMakeClient(unittest.TestCase):
    def test_token_required(self) -> None:
        with self.assertRaises(ValueError):
            make_client("")


if __name__ == "__main__":
    unittest.main()
