"""
Component Tests for LobClient

HTTP behaviour against an httpx mock transport.
"""

import base64
import json

import httpx
import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import ServiceConfig
from microservices.proof_service.clients.lob_client import LobClient
from microservices.proof_service.protocols import MailProviderError
from tests.contracts.proof.data_contract import ProofTestDataFactory

SENDER = {"name": "Proof Co", "address_line1": "1 Sender Way", "address_city": "Portland",
          "address_state": "OR", "address_zip": "97201"}


class Recorder:
    """Mock transport handler that remembers requests"""

    def __init__(self, status_code=200, body=None):
        self.requests = []
        self.status_code = status_code
        self.body = body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, str):
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(self.status_code, json=self.body)


def make_client(handler) -> LobClient:
    config = ServiceConfig(lob_api_url="https://api.lob.test/v1/", sender_address=SENDER)
    return LobClient(config, transport=httpx.MockTransport(handler))


class TestCreatePostcard:
    """POST /postcards"""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Basic auth, form fields and metadata"""
        recorder = Recorder(body=ProofTestDataFactory.make_postcard_response("psc_abc"))
        client = make_client(recorder)
        to_address = ProofTestDataFactory.make_address_dict(company="Proof 1A2B3C")

        await client.create_postcard("test_key", to_address, "tmpl_front", "tmpl_back", {"proof_public_id": "1A2B3C"})

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.lob.test/v1/postcards"
        expected_auth = "Basic " + base64.b64encode(b"test_key:").decode()
        assert request.headers["authorization"] == expected_auth

        payload = json.loads(request.content)
        assert payload["to"] == to_address
        assert payload["from"] == SENDER
        assert payload["front"] == "tmpl_front"
        assert payload["back"] == "tmpl_back"
        assert payload["size"] == "6x9"
        assert payload["mail_type"] == "usps_first_class"
        assert payload["metadata"] == {"proof_public_id": "1A2B3C"}

    @pytest.mark.asyncio
    async def test_largest_thumbnails_picked(self):
        """Large rendition preferred for each side"""
        client = make_client(Recorder(body=ProofTestDataFactory.make_postcard_response("psc_abc")))

        result = await client.create_postcard("k", {}, "f", "b")

        assert result.id == "psc_abc"
        assert result.url == "https://lob-assets.example.com/psc_abc.pdf"
        assert result.front_thumbnail_url.endswith("psc_abc_thumb_large_1.png")
        assert result.back_thumbnail_url.endswith("psc_abc_thumb_large_2.png")

    @pytest.mark.asyncio
    async def test_falls_back_to_smaller_rendition(self):
        """Medium used when large is missing"""
        body = ProofTestDataFactory.make_postcard_response("psc_abc")
        body["thumbnails"][0].pop("large")
        client = make_client(Recorder(body=body))

        result = await client.create_postcard("k", {}, "f", "b")

        assert result.front_thumbnail_url.endswith("_thumb_medium_1.png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1])
    async def test_missing_thumbnails_are_null(self, count):
        """Absent thumbnails come back as None"""
        body = ProofTestDataFactory.make_postcard_response("psc_abc", thumbnails=count)
        client = make_client(Recorder(body=body))

        result = await client.create_postcard("k", {}, "f", "b")

        assert result.back_thumbnail_url is None
        assert (result.front_thumbnail_url is None) == (count == 0)

    @pytest.mark.asyncio
    async def test_no_metadata_key_when_empty(self):
        """Empty metadata is not sent"""
        recorder = Recorder(body=ProofTestDataFactory.make_postcard_response())
        client = make_client(recorder)

        await client.create_postcard("k", {}, "f", "b")

        assert "metadata" not in json.loads(recorder.requests[0].content)

    @pytest.mark.asyncio
    async def test_error_carries_body(self):
        """Provider error keeps status and parsed body"""
        body = {"error": {"message": "address_zip is invalid", "status_code": 422}}
        client = make_client(Recorder(status_code=422, body=body))

        with pytest.raises(MailProviderError) as exc_info:
            await client.create_postcard("k", {}, "f", "b")

        assert exc_info.value.status_code == 422
        assert exc_info.value.body == body

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        """Plain text error body is kept as text"""
        client = make_client(Recorder(status_code=502, body="Bad Gateway"))

        with pytest.raises(MailProviderError) as exc_info:
            await client.create_postcard("k", {}, "f", "b")

        assert exc_info.value.body == "Bad Gateway"


class TestGetPostcard:
    """GET /postcards/{id}"""

    @pytest.mark.asyncio
    async def test_fetch(self):
        """Postcard fetched by resource id"""
        recorder = Recorder(body=ProofTestDataFactory.make_postcard_response("psc_xyz"))
        client = make_client(recorder)

        postcard = await client.get_postcard("k", "psc_xyz")

        assert recorder.requests[0].method == "GET"
        assert recorder.requests[0].url.path == "/v1/postcards/psc_xyz"
        assert postcard["mail_type"] == "usps_first_class"

    @pytest.mark.asyncio
    async def test_not_found(self):
        """404 raises a provider error"""
        client = make_client(Recorder(status_code=404, body={"error": {"message": "not found"}}))

        with pytest.raises(MailProviderError):
            await client.get_postcard("k", "psc_missing")

    def test_thumbnails_from(self):
        """Thumbnail picking on a raw response"""
        thumbs = LobClient.thumbnails_from(ProofTestDataFactory.make_postcard_response("psc_1"))

        assert thumbs["front_thumbnail_url"].endswith("_large_1.png")
        assert thumbs["back_thumbnail_url"].endswith("_large_2.png")
        assert LobClient.thumbnails_from({}) == {"front_thumbnail_url": None, "back_thumbnail_url": None}
