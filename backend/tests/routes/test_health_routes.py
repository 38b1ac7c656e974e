def test_health_reports_database_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["sweeper_running"] is False


def test_metrics_exposition(client, massage):
    client.get("/api/v1/bookings/available-slots", params={"service_id": massage.id})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in response.text


def test_unknown_route_is_problem_json(client):
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    assert response.json()["title"] == "Not Found"
