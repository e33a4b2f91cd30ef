import pytest


@pytest.fixture()
def process_docs(client, register):
    headers = register("lead@example.com", "Operations")

    def create(slug, payload):
        resp = client.post(f"/api/{slug}", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["id"]

    process = create("business-processes", {"process_name": "Purchasing"})
    docs = {
        "manual": create("business-documents", {"document_name": "Quality Manual", "document_type": "Manual"}),
        "procedure": create("business-documents", {"document_name": "Purchasing procedure", "document_type": "Procedure"}),
        "form": create("business-documents", {"document_name": "Supplier form"}),
    }
    return headers, process, docs


def _url(process_id):
    return f"/api/business-processes/{process_id}/documents"


def test_link_list_and_unlink(client, process_docs):
    headers, process, docs = process_docs

    resp = client.post(_url(process), json={"document_ids": [docs["manual"], docs["procedure"]]}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["linked_count"] == 2

    again = client.post(_url(process), json={"document_ids": [docs["manual"], docs["form"]]}, headers=headers)
    assert again.json()["linked_count"] == 1

    linked = client.get(_url(process), headers=headers).json()["data"]
    assert {d["business_document_id"] for d in linked} == set(docs.values())
    assert all(d["document"]["business_area"] == "Operations" for d in linked)

    assert client.delete(f"{_url(process)}?documentId={docs['form']}", headers=headers).status_code == 200
    missing = client.delete(f"{_url(process)}?documentId={docs['form']}", headers=headers)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Document link not found"}
    assert len(client.get(_url(process), headers=headers).json()["data"]) == 2


def test_soft_deleted_documents_drop_out_of_links(client, process_docs):
    headers, process, docs = process_docs
    client.post(_url(process), json={"document_ids": [docs["manual"]]}, headers=headers)
    client.delete(f"/api/business-documents/{docs['manual']}", headers=headers)

    assert client.get(_url(process), headers=headers).json()["data"] == []
    resp = client.post(_url(process), json={"document_ids": [docs["manual"]]}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.parametrize("body", [{}, {"document_ids": []}, {"document_ids": "1"}, {"document_ids": [1.5]}])
def test_link_requires_document_ids(client, process_docs, body):
    headers, process, _ = process_docs
    assert client.post(_url(process), json=body, headers=headers).status_code == 400


def test_unlink_requires_valid_document_id(client, process_docs):
    headers, process, _ = process_docs
    assert client.delete(_url(process), headers=headers).json() == {"error": "Document ID is required"}
    assert client.delete(f"{_url(process)}?documentId=abc", headers=headers).status_code == 400


def test_links_respect_scope(client, process_docs, register):
    headers, process, docs = process_docs
    fin = register("fin@example.com", "Finance")
    fin_doc = client.post("/api/business-documents", json={"document_name": "Ledger"}, headers=fin).json()["id"]

    # a process of another area is invisible
    resp = client.get(_url(process), headers=fin)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Business process not found"}
    assert client.post(_url(process), json={"document_ids": [docs["manual"]]}, headers=fin).status_code == 404

    # and so is a document of another area
    resp = client.post(_url(process), json={"document_ids": [docs["manual"], fin_doc]}, headers=headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "One or more documents not found or access denied"}
    assert client.get(_url(process), headers=headers).json()["data"] == []

    assert client.get(_url(process)).status_code == 401


def test_available_documents_filters(client, process_docs, register):
    headers, process, docs = process_docs
    register("fin@example.com", "Finance")
    client.post(_url(process), json={"document_ids": [docs["manual"]]}, headers=headers)

    resp = client.get("/api/business-documents/available", headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total_count"] == 3
    assert [d["document_name"] for d in data["documents"]] == ["Purchasing procedure", "Quality Manual", "Supplier form"]
    assert set(data["grouped_documents"]) == {"Manual", "Procedure", "Other"}

    def names(query):
        body = client.get(f"/api/business-documents/available?{query}", headers=headers).json()
        return [d["document_name"] for d in body["data"]["documents"]]

    assert names("search=purchas") == ["Purchasing procedure"]
    assert names("documentType=Manual") == ["Quality Manual"]
    assert names(f"excludeProcessId={process}") == ["Purchasing procedure", "Supplier form"]
    assert names("businessArea=Operations") == ["Purchasing procedure", "Quality Manual", "Supplier form"]

    assert client.get("/api/business-documents/available?businessArea=Finance", headers=headers).status_code == 403
