import httpx
import pytest
from fastapi.testclient import TestClient

from soap_workbench import __version__
from soap_workbench.app import (
    EMPTY_RESULT_MESSAGE,
    LOCAL_SOURCE_MESSAGE,
    MISSING_SOURCE_MESSAGE,
    PARSER_CONFIG,
    app,
    get_history_store,
    get_invoker,
    get_parser,
)
from soap_workbench.history import SearchHistoryStore
from soap_workbench.invoker import MISSING_INPUT_MESSAGE, SoapInvoker
from soap_workbench.monitoring import PerformanceMonitor
from soap_workbench.wsdl_parser import WsdlParser

from conftest import FakeFetcher, build_wsdl, service_body

WSDL_URI = "http://example.com/demo.wsdl"
MANIFEST_URI = "http://example.com/manifest.xml"
ENDPOINT = "http://example.com/service"

DEMO_WSDL = build_wsdl(
    schema='<xs:element name="Ping" type="xs:string"/><xs:element name="Echo" type="xs:string"/>',
    body=service_body(("Zeta", "Ping", "urn:zeta"), ("Alpha", "Echo", "urn:alpha"))
    + """
  <wsdl:binding name="DemoBinding12" type="tns:DemoPort">
    <wsdl:operation name="Zeta"><soap12:operation soapAction="urn:zeta"/></wsdl:operation>
  </wsdl:binding>""",
)


def echo_endpoint(request):
    return httpx.Response(200, text=f"<echo>{request.headers.get('soapaction', '')}</echo>")


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def create_client(tmp_path, documents=None):
    parser = WsdlParser(fetcher=FakeFetcher(documents or {}), monitor=PerformanceMonitor())
    store = SearchHistoryStore(tmp_path / "history.json")
    invoker = SoapInvoker(client=httpx.AsyncClient(transport=httpx.MockTransport(echo_endpoint)))
    app.dependency_overrides[get_parser] = lambda: parser
    app.dependency_overrides[get_history_store] = lambda: store
    app.dependency_overrides[get_invoker] = lambda: invoker
    return TestClient(app)


def test_health_endpoint(tmp_path):
    client = create_client(tmp_path)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__}
    assert response.headers["X-API-Version"] == __version__
    assert "X-Response-Time" in response.headers


def test_describe_returns_sorted_unique_operations(tmp_path):
    client = create_client(tmp_path, {WSDL_URI: DEMO_WSDL})
    response = client.post("/describe", json={"primary_source": f"  {WSDL_URI} "})
    assert response.status_code == 200
    body = response.json()
    assert [op["name"] for op in body["operations"]] == ["Alpha", "Zeta"]
    assert body["sources"] == [WSDL_URI]
    assert body["empty"] is False
    assert body["message"] == "Discovered 2 operation(s)."
    assert body["parsed_at"] is not None
    zeta = body["operations"][1]
    assert zeta["soap_action"] == "urn:zeta"
    assert zeta["parameters"][0]["sample_xml"] == "<tns:Ping>SampleText</tns:Ping>"


def test_describe_saves_history(tmp_path):
    client = create_client(tmp_path, {WSDL_URI: DEMO_WSDL})
    client.post("/describe", json={"primary_source": WSDL_URI, "follow_imports": False})
    client.post("/describe", json={"primary_source": WSDL_URI})
    client.post("/describe", json={"primary_source": f" {WSDL_URI}"})

    history = client.get("/history").json()
    assert len(history) == 2
    assert [entry["follow_imports"] for entry in history] == [True, False]

    entry = client.get(f"/history/{history[0]['id']}")
    assert entry.status_code == 200
    assert entry.json()["display_name"] == history[0]["primary_source"]


def test_describe_without_sources_is_rejected(tmp_path):
    client = create_client(tmp_path)
    response = client.post("/describe", json={"primary_source": "  ", "additional_sources": [""]})
    assert response.status_code == 400
    assert response.json()["detail"] == MISSING_SOURCE_MESSAGE


def test_describe_rejects_local_files(tmp_path):
    secret = tmp_path / "secret.xml"
    secret.write_text('<ExecutableManifest><Function name="leak"/></ExecutableManifest>')
    client = create_client(tmp_path, {WSDL_URI: DEMO_WSDL})

    for payload in (
        {"primary_source": secret.as_uri()},
        {"primary_source": WSDL_URI, "additional_sources": ["file:///etc/hostname"]},
    ):
        response = client.post("/describe", json=payload)
        assert response.status_code == 400
        assert response.json()["detail"] == LOCAL_SOURCE_MESSAGE

    assert client.get("/history").json() == []


def test_api_parser_cannot_read_local_files():
    assert PARSER_CONFIG.allow_file_sources is False
    assert PARSER_CONFIG.create_fetcher().allow_file_sources is False


def test_describe_empty_result(tmp_path):
    client = create_client(tmp_path, {MANIFEST_URI: "<Catalog><Item/></Catalog>"})
    response = client.post("/describe", json={"additional_sources": [MANIFEST_URI]})
    assert response.status_code == 200
    body = response.json()
    assert body["empty"] is True
    assert body["operations"] == []
    assert body["message"] == EMPTY_RESULT_MESSAGE
    assert client.get("/history").json() == []


def test_describe_fetch_failure_is_bad_gateway(tmp_path):
    client = create_client(tmp_path)
    response = client.post("/describe", json={"primary_source": WSDL_URI})
    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Failed to parse descriptors"
    assert body["source"] == WSDL_URI


def test_history_entry_not_found(tmp_path):
    client = create_client(tmp_path)
    response = client.get("/history/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "Not Found"
    assert "does-not-exist" in body["detail"]


def test_invoke_forwards_payload(tmp_path):
    client = create_client(tmp_path)
    response = client.post(
        "/invoke",
        json={"endpoint_url": ENDPOINT, "soap_action": "urn:zeta", "payload": "<x/>"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status_code"] == 200
    assert body["body"] == "<echo>urn:zeta</echo>"
    assert body["error"] is None


def test_invoke_without_payload_is_rejected(tmp_path):
    client = create_client(tmp_path)
    response = client.post("/invoke", json={"endpoint_url": ENDPOINT})
    assert response.status_code == 400
    assert response.json()["error"] == MISSING_INPUT_MESSAGE


def test_performance_metrics(tmp_path):
    client = create_client(tmp_path)
    client.get("/health")
    data = client.get("/metrics/performance").json()
    assert "parser" in data
    assert data["api"]["total_requests"] >= 1

    reset = client.post("/metrics/reset")
    assert reset.status_code == 200
    assert "reset" in reset.json()["message"]
