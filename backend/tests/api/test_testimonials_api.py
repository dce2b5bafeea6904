import pytest


@pytest.mark.asyncio
async def test_testimonial_moderation_flow(api_client, auth_headers):
	created = await api_client.post("/api/testimonials", json={"text": "Felt heard", "rating": 5})
	assert created.status_code == 201
	body = created.json()
	assert body["author"] == "Anonymous"
	assert body["approved"] is False
	assert "createdAt" in body

	assert (await api_client.get("/api/testimonials")).json() == []

	unauthenticated = await api_client.patch(f"/api/testimonials/{body['id']}/approve")
	assert unauthenticated.status_code == 401

	plain = await api_client.patch(f"/api/testimonials/{body['id']}/approve", headers=auth_headers("user-1"))
	assert plain.status_code == 403

	officer = auth_headers("cop-1", roles=["admin"])
	approved = await api_client.patch(f"/api/testimonials/{body['id']}/approve", headers=officer)
	assert approved.status_code == 200
	assert approved.json()["approved"] is True

	listed = (await api_client.get("/api/testimonials")).json()
	assert [item["id"] for item in listed] == [body["id"]]


@pytest.mark.asyncio
async def test_testimonial_validation(api_client, auth_headers):
	resp = await api_client.post("/api/testimonials", json={"text": "Great", "rating": 6})
	assert resp.status_code == 400
	assert resp.json()["detail"] == "validation_error"
	assert resp.json()["errors"][0]["field"] == "rating"

	missing = await api_client.patch("/api/testimonials/nope/approve", headers=auth_headers("cop-1", roles=["officer"]))
	assert missing.status_code == 404
	assert missing.json()["detail"] == "testimonial_not_found"
