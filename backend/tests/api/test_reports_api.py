"""HTTP flows for report submission, lookup, deletion and messaging."""

import pytest

FORM = {"crimeType": "Burglary", "location": "5th Ave", "description": "Window forced open"}


async def _submit(api_client, *, data=None, files=None, headers=None):
	return await api_client.post("/api/reports", data=data or FORM, files=files, headers=headers or {})


@pytest.mark.asyncio
async def test_submit_and_lookup_lowercase(api_client):
	files = [
		("files", ("first photo.jpg", b"one", "image/jpeg")),
		("files", ("../second.png", b"two", "image/png")),
	]
	resp = await _submit(api_client, files=files)
	assert resp.status_code == 201, resp.text
	reference = resp.json()["referenceNumber"]

	lookup = await api_client.get(f"/api/reports/{reference.lower()}")
	assert lookup.status_code == 200
	body = lookup.json()
	assert body["referenceNumber"] == reference
	assert body["crimeType"] == "Burglary"
	assert body["isAnonymous"] is False
	assert body["userId"] is None
	assert [item["originalName"] for item in body["files"]] == ["first photo.jpg", "second.png"]
	assert body["messages"] == []


@pytest.mark.asyncio
async def test_submit_missing_description_is_rejected(api_client, blob_storage):
	data = dict(FORM, description="  ")
	resp = await _submit(api_client, data=data, files=[("files", ("a.txt", b"x", "text/plain"))])
	assert resp.status_code == 400
	body = resp.json()
	assert body["detail"] == "validation_error"
	assert body["errors"] == [{"field": "description", "message": "Description is required"}]
	assert body["request_id"]
	assert blob_storage.put_calls == 0


@pytest.mark.asyncio
async def test_submit_six_files_rejected_before_upload(api_client, blob_storage):
	files = [("files", (f"{i}.txt", b"x", "text/plain")) for i in range(6)]
	resp = await _submit(api_client, files=files)
	assert resp.status_code == 400
	assert resp.json()["detail"] == "too_many_files"
	assert blob_storage.put_calls == 0


@pytest.mark.asyncio
async def test_storage_failure_returns_500_and_persists_nothing(api_client, blob_storage, auth_headers):
	blob_storage.fail_on = {"broken"}
	files = [
		("files", ("ok.txt", b"x", "text/plain")),
		("files", ("broken.txt", b"y", "text/plain")),
	]
	resp = await _submit(api_client, files=files, headers=auth_headers("u1"))
	assert resp.status_code == 500
	assert resp.json()["detail"] == "storage_failure"
	assert blob_storage.objects == {}
	mine = await api_client.get("/api/reports/user", headers=auth_headers("u1"))
	assert mine.json() == []


@pytest.mark.asyncio
async def test_anonymous_flag_overrides_valid_token(api_client, auth_headers):
	headers = auth_headers("user-1")
	resp = await _submit(api_client, data=dict(FORM, isAnonymous="true"), headers=headers)
	assert resp.status_code == 201
	reference = resp.json()["referenceNumber"]
	body = (await api_client.get(f"/api/reports/{reference}")).json()
	assert body["userId"] is None
	assert body["isAnonymous"] is True
	mine = await api_client.get("/api/reports/user", headers=headers)
	assert mine.status_code == 200
	assert mine.json() == []


@pytest.mark.asyncio
async def test_invalid_token_on_submit_is_treated_as_anonymous(api_client):
	resp = await _submit(api_client, headers={"Authorization": "Bearer not-a-token"})
	assert resp.status_code == 201
	reference = resp.json()["referenceNumber"]
	assert (await api_client.get(f"/api/reports/{reference}")).json()["userId"] is None


@pytest.mark.asyncio
async def test_owned_reports_listed_for_owner(api_client, auth_headers):
	headers = auth_headers("user-1")
	resp = await _submit(api_client, headers=headers)
	reference = resp.json()["referenceNumber"]
	mine = await api_client.get("/api/reports/user", headers=headers)
	assert [item["referenceNumber"] for item in mine.json()] == [reference]
	assert mine.json()[0]["userId"] == "user-1"


@pytest.mark.asyncio
async def test_strict_endpoints_reject_missing_or_bad_tokens(api_client):
	missing = await api_client.get("/api/reports/user")
	assert missing.status_code == 401
	assert missing.json()["detail"] == "authentication_required"
	bad = await api_client.get("/api/reports/user", headers={"Authorization": "Bearer junk"})
	assert bad.status_code == 401
	assert bad.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_list_all_requires_officer_claim(api_client, auth_headers):
	await _submit(api_client)
	plain = await api_client.get("/api/reports", headers=auth_headers("user-1"))
	assert plain.status_code == 403
	assert plain.json()["detail"] == "insufficient_role"
	officer = await api_client.get("/api/reports", headers=auth_headers("cop-1", roles=["officer"]))
	assert officer.status_code == 200
	assert len(officer.json()) == 1


@pytest.mark.asyncio
async def test_delete_rules(api_client, auth_headers):
	owner = auth_headers("user-1")
	reference = (await _submit(api_client, headers=owner)).json()["referenceNumber"]
	report_id = (await api_client.get(f"/api/reports/{reference}")).json()["id"]

	other = await api_client.delete(f"/api/reports/{report_id}", headers=auth_headers("user-2"))
	assert other.status_code == 403
	assert other.json()["detail"] == "forbidden"
	assert (await api_client.get(f"/api/reports/{reference}")).status_code == 200

	unknown = await api_client.delete("/api/reports/does-not-exist", headers=owner)
	assert unknown.status_code == 404
	assert unknown.json()["detail"] == "report_not_found"

	ok = await api_client.delete(f"/api/reports/{report_id}", headers=owner)
	assert ok.status_code == 200
	assert ok.json()["deleted"] is True
	assert (await api_client.get(f"/api/reports/{reference}")).status_code == 404


@pytest.mark.asyncio
async def test_officer_deletes_anonymous_report(api_client, auth_headers):
	reference = (await _submit(api_client)).json()["referenceNumber"]
	report_id = (await api_client.get(f"/api/reports/{reference}")).json()["id"]
	denied = await api_client.delete(f"/api/reports/{report_id}", headers=auth_headers("user-1"))
	assert denied.status_code == 403
	ok = await api_client.delete(f"/api/reports/{report_id}", headers=auth_headers("cop-1", roles="officer"))
	assert ok.status_code == 200


@pytest.mark.asyncio
async def test_messages_append_in_order(api_client):
	reference = (await _submit(api_client)).json()["referenceNumber"]
	first = await api_client.post(
		f"/api/reports/{reference.lower()}/messages",
		json={"message": "Any update?", "sender": "citizen"},
	)
	assert first.status_code == 201
	assert first.json()["text"] == "Any update?"
	assert first.json()["sender"] == "citizen"
	second = await api_client.post(f"/api/reports/{reference}/messages", json={"message": "Officer assigned", "sender": "officer"})
	assert second.status_code == 201

	body = (await api_client.get(f"/api/reports/{reference}")).json()
	assert [item["text"] for item in body["messages"]] == ["Any update?", "Officer assigned"]


@pytest.mark.asyncio
async def test_message_errors(api_client, install_report_service):
	missing = await api_client.post("/api/reports/UNKNOWN/messages", json={"message": "hi"})
	assert missing.status_code == 404
	assert missing.json()["detail"] == "report_not_found"

	reference = (await _submit(api_client)).json()["referenceNumber"]
	empty = await api_client.post(f"/api/reports/{reference}/messages", json={"message": ""})
	assert empty.status_code == 400
	assert empty.json()["detail"] == "validation_error"

	install_report_service.message_limit = 1
	assert (await api_client.post(f"/api/reports/{reference}/messages", json={"message": "a"})).status_code == 201
	limited = await api_client.post(f"/api/reports/{reference}/messages", json={"message": "b"})
	assert limited.status_code == 429
	assert limited.json()["detail"] == "rate_limited"


@pytest.mark.asyncio
async def test_responses_carry_request_id(api_client):
	resp = await api_client.get("/api/reports/UNKNOWN", headers={"X-Request-Id": "req-123"})
	assert resp.status_code == 404
	assert resp.headers["X-Request-Id"] == "req-123"
	assert resp.json()["request_id"] == "req-123"
	assert resp.json()["message"] == "Case not found"
