def test_health_endpoints(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "store": "local", "listing": "document"}
    r2 = client.get("/health.txt")
    assert r2.status_code == 200
    assert r2.text.strip() == "OK"


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"


def test_unknown_route_uses_error_shape(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_errors_are_logged_to_db(client, db_session):
    from portfolio.models import AppErrorLog

    client.get("/images", headers={"X-Request-ID": "err-1"})
    row = db_session.query(AppErrorLog).filter(AppErrorLog.RequestID == "err-1").first()
    assert row is not None
    assert row.StatusCode == 400
    assert row.Path == "/images"


def test_static_mount_serves_images_but_not_listings(client):
    import os

    from portfolio.core.settings import settings

    root = settings.LOCAL_STORAGE_ROOT
    os.makedirs(os.path.join(root, "portfolio", "nature"), exist_ok=True)
    os.makedirs(os.path.join(root, "listings"), exist_ok=True)
    with open(os.path.join(root, "portfolio", "nature", "served.jpg"), "wb") as fh:
        fh.write(b"jpeg")
    with open(os.path.join(root, "listings", "nature.json"), "w", encoding="utf-8") as fh:
        fh.write("{}")

    assert client.get("/static/portfolio/nature/served.jpg").content == b"jpeg"
    assert client.get("/static/listings/nature.json").status_code == 404
