import json

import httpx
import pytest
import respx

from config import RemoteServiceConfig
from extraction.analyzer import (
    REQUESTED_ENTITY_TYPES,
    RemoteTextAnalyzer,
    normalize_entity_type,
)

ANALYSIS_URL = "http://analysis.test"


def _config(timeout_sec: float = 5.0) -> RemoteServiceConfig:
    return RemoteServiceConfig(
        endpoint=ANALYSIS_URL,
        api_key="analysis-secret",
        timeout_sec=timeout_sec,
    )


def test_normalize_entity_type_maps_known_and_passes_unknown_through() -> None:
    assert normalize_entity_type("GPE") == "place"
    assert normalize_entity_type("LOC") == "place"
    assert normalize_entity_type("ORG") == "organization"
    assert normalize_entity_type("WORK_OF_ART") == "media"
    assert normalize_entity_type("WIDGET") == "widget"


@pytest.mark.asyncio
async def test_extract_entities_sends_envelope_and_normalizes_payload() -> None:
    payload = {
        "status": "ok",
        "data": {
            "entities": [
                {"type": "PERSON", "text": "Ada Lovelace", "confidence": 0.97, "start": 0, "end": 12},
                {"type": "GPE", "value": "London"},
                {"type": "WIDGET", "text": "Sprocket", "confidence": 0.4},
                {"type": "ORG"},
                "not-an-entity",
            ]
        },
    }
    with respx.mock(base_url=ANALYSIS_URL) as respx_mock:
        route = respx_mock.post("/entity.extract").mock(
            return_value=httpx.Response(200, json=payload)
        )

        entities = await RemoteTextAnalyzer(_config()).extract_entities(
            "Ada Lovelace lived in London"
        )

        request = route.calls.last.request
        body = json.loads(request.content)

    assert request.headers["Authorization"] == "analysis-secret"
    assert request.headers["X-Service-Name"] == "conversation-service"
    assert request.headers["X-Request-ID"] == body["requestId"]
    assert body["requestId"].startswith("ctx_")
    assert body["action"] == "entity.extract"
    assert body["payload"]["text"] == "Ada Lovelace lived in London"
    assert body["payload"]["entityTypes"] == REQUESTED_ENTITY_TYPES
    assert body["payload"]["options"] == {"includeConfidence": True}

    assert [(e.type, e.value) for e in entities] == [
        ("person", "Ada Lovelace"),
        ("place", "London"),
        ("widget", "Sprocket"),
    ]
    assert entities[0].confidence == 0.97
    assert (entities[0].start_pos, entities[0].end_pos) == (0, 12)
    assert entities[1].confidence == 0.8


@pytest.mark.asyncio
async def test_timeout_degrades_to_empty_without_raising() -> None:
    with respx.mock(base_url=ANALYSIS_URL) as respx_mock:
        respx_mock.post("/entity.extract").mock(side_effect=httpx.ReadTimeout)

        analysis = await RemoteTextAnalyzer(_config(timeout_sec=0.5)).analyze("hello")

    assert analysis.entities == []
    assert analysis.degraded is True
    assert analysis.reason == "entity_request_timeout"


@pytest.mark.asyncio
async def test_server_error_degrades_to_empty() -> None:
    with respx.mock(base_url=ANALYSIS_URL) as respx_mock:
        respx_mock.post("/entity.extract").mock(
            return_value=httpx.Response(503, json={"error": "unavailable"})
        )

        analysis = await RemoteTextAnalyzer(_config()).analyze("hello")

    assert analysis.entities == []
    assert analysis.reason == "entity_request_failed"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"status": "error", "data": {"entities": []}},
        {"status": "ok", "data": {}},
        {"status": "ok", "data": {"entities": "PERSON"}},
        ["PERSON"],
    ],
)
async def test_unexpected_shapes_count_as_no_entities(payload) -> None:
    with respx.mock(base_url=ANALYSIS_URL) as respx_mock:
        respx_mock.post("/entity.extract").mock(
            return_value=httpx.Response(200, json=payload)
        )

        analysis = await RemoteTextAnalyzer(_config()).analyze("hello")

    assert analysis.entities == []
    assert analysis.degraded is True
    assert analysis.reason == "entity_response_invalid"


@pytest.mark.asyncio
async def test_non_json_body_degrades_to_empty() -> None:
    with respx.mock(base_url=ANALYSIS_URL) as respx_mock:
        respx_mock.post("/entity.extract").mock(
            return_value=httpx.Response(200, text="<html>oops</html>")
        )

        entities = await RemoteTextAnalyzer(_config()).extract_entities("hello")

    assert entities == []


@pytest.mark.asyncio
async def test_out_of_range_confidence_falls_back_to_default() -> None:
    huge = "1" + "0" * 400
    body = (
        '{"status": "ok", "data": {"entities": ['
        f'{{"type": "PERSON", "text": "Ada", "confidence": {huge}}},'
        '{"type": "PERSON", "text": "Bea", "confidence": NaN},'
        '{"type": "PERSON", "text": "Cy", "confidence": Infinity},'
        '{"type": "PERSON", "text": "Di", "confidence": 1.5},'
        '{"type": "PERSON", "text": "Ed", "confidence": -0.2},'
        '{"type": "PERSON", "text": "Flo", "confidence": 1}'
        "]}}"
    )
    with respx.mock(base_url=ANALYSIS_URL) as respx_mock:
        respx_mock.post("/entity.extract").mock(
            return_value=httpx.Response(
                200, content=body.encode(), headers={"Content-Type": "application/json"}
            )
        )

        analysis = await RemoteTextAnalyzer(_config()).analyze("Ada Bea Cy Di Ed Flo")

    assert analysis.degraded is False
    assert [(e.value, e.confidence) for e in analysis.entities] == [
        ("Ada", 0.8),
        ("Bea", 0.8),
        ("Cy", 0.8),
        ("Di", 0.8),
        ("Ed", 0.8),
        ("Flo", 1.0),
    ]
