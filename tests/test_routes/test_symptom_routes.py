import pytest

from asclepius.db import get_db
from asclepius.deps import get_symptom_service
from asclepius.main import app
from asclepius.services.symptoms import SymptomLogService


@pytest.fixture(autouse=True)
def stepped_clock(blobs, clock):
    # one minute between writes keeps ordering deterministic
    app.dependency_overrides[get_symptom_service] = lambda: SymptomLogService(get_db(), blobs, now=clock)
    yield
    app.dependency_overrides.pop(get_symptom_service, None)


def test_symptom_log_flow(client, athlete):
    h = athlete["headers"]
    res = client.post("/symptoms", headers=h, data={"symptom_description": "knee pain", "pain_level": "7"})
    assert res.status_code == 201
    first = res.json()
    assert first["symptom_description"] == "knee pain"
    assert first["pain_level"] == 7

    res = client.post(
        "/symptoms",
        headers=h,
        data={"symptom_description": "swelling", "pain_level": "4"},
        files={"media": ("ankle.jpg", b"\xff\xd8jpeg", "image/jpeg")},
    )
    second = res.json()
    assert second["media_type"] == "image"
    assert second["media_url"].startswith("https://")

    res = client.get(f"/symptoms/{athlete['uid']}", headers=h)
    assert [l["id"] for l in res.json()] == [second["id"], first["id"]]

    # editing bumps the entry to the top
    res = client.put(f"/symptoms/{first['id']}", headers=h, data={"symptom_description": "knee pain, better", "pain_level": "3"})
    assert res.status_code == 200
    res = client.get(f"/symptoms/{athlete['uid']}", headers=h)
    assert res.json()[0]["id"] == first["id"]

    res = client.put(f"/symptoms/{second['id']}/media", headers=h, files={"media": ("clip.mov", b"mov", "video/quicktime")})
    assert res.status_code == 200
    assert res.json()["media_type"] == "video"

    res = client.delete(f"/symptoms/{second['id']}", headers=h)
    assert res.status_code == 200
    res = client.get(f"/symptoms/{athlete['uid']}", headers=h)
    assert len(res.json()) == 1


def test_symptom_validation_and_missing(client, athlete):
    h = athlete["headers"]
    res = client.post("/symptoms", headers=h, data={"symptom_description": "knee", "pain_level": "a lot"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Pain level must be a number."

    res = client.delete("/symptoms/nope", headers=h)
    assert res.status_code == 404


def test_physio_reads_athlete_log(client, athlete, physio):
    client.post("/symptoms", headers=athlete["headers"], data={"symptom_description": "knee", "pain_level": "2"})

    res = client.get(f"/symptoms/{athlete['uid']}", headers=physio["headers"])
    assert res.status_code == 200
    assert len(res.json()) == 1

    res = client.post("/symptoms", headers=physio["headers"], data={"symptom_description": "x", "pain_level": "1"})
    assert res.status_code == 403
