"""Module test for the HTTP runtime store against a WireMock server."""

import pytest
from pydantic import SecretStr
from wiremock.client import (
    HttpMethods,
    Mapping,
    MappingRequest,
    MappingResponse,
    Mappings,
    Requests,
)
from wiremock.testing.testcontainer import WireMockContainer

from forking_test_runner.models.runtime import RuntimeLog
from forking_test_runner.stores.http import HttpRuntimeStore, HttpStoreConfig

pytestmark = pytest.mark.module

RECORD_PATH = "/runtime/org/repo/42"


async def test_amend_against_wiremock(
    wiremock_server: WireMockContainer, wiremock_url: str
) -> None:
    """Amending fetches the stored record and uploads the merged one."""
    Mappings.delete_all_mappings()
    Requests.reset_request_journal()

    Mappings.create_mapping(
        Mapping(
            request=MappingRequest(
                method=HttpMethods.GET,
                url_path=RECORD_PATH,
                headers={"Authorization": {"equalTo": "Bearer test-token"}},
            ),
            response=MappingResponse(
                status=200,
                headers={"Content-Type": "text/plain"},
                body="tests/test_a.py:1.0\ntests/test_b.py:2.0\n",
            ),
        )
    )
    Mappings.create_mapping(
        Mapping(
            request=MappingRequest(method=HttpMethods.PUT, url_path=RECORD_PATH),
            response=MappingResponse(status=204),
        )
    )

    config = HttpStoreConfig(
        base_url=f"{wiremock_url}/runtime", token=SecretStr("test-token")
    )
    async with HttpRuntimeStore.from_config(config) as store:
        handle = await store.amend(
            "org/repo/42", RuntimeLog(durations={"tests/test_b.py": 3.5})
        )

    assert handle == f"{wiremock_url}{RECORD_PATH}"
    uploads = [
        request
        for request in Requests.get_all_received_requests().requests
        if request.request.method == "PUT"
    ]
    assert len(uploads) == 1
    assert uploads[0].request.body == "tests/test_a.py:1.0\ntests/test_b.py:3.5\n"


async def test_fetch_missing_record(
    wiremock_server: WireMockContainer, wiremock_url: str
) -> None:
    """A key the server does not know yields no record."""
    Mappings.delete_all_mappings()

    config = HttpStoreConfig(base_url=f"{wiremock_url}/runtime")
    async with HttpRuntimeStore.from_config(config) as store:
        assert await store.fetch("org/repo/unknown") is None
