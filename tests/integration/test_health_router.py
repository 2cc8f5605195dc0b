def test_health_root(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"ok": True}


def test_health_supabase_checks_tables(client, monkeypatch):
    monkeypatch.setattr("huntkitchen.health.service.SUPABASE_URL", "")
    res = client.get("/health/supabase")
    assert res.status_code == 200
    body = res.json()
    assert set(body["tables"]) == {"products", "carts", "orders"}
    assert body["connect_ok"] is True


def test_health_supabase_reports_failures(client, monkeypatch):
    def _boom():
        raise RuntimeError("supabase down")

    monkeypatch.setattr("huntkitchen.health.service.SUPABASE_URL", "")
    monkeypatch.setattr("huntkitchen.infra.supabase_client.get_supabase", _boom)
    body = client.get("/health/supabase").json()
    assert body["connect_ok"] is False
    assert body["error"] == "supabase down"
