def _create(client, physio, athlete, **overrides):
    data = {"title": "Wall squats", "timer_minutes": "1", "due_date": "2020-01-01"}
    data.update(overrides)
    return client.post(
        f"/exercises/{athlete['uid']}",
        headers=physio["headers"],
        data=data,
        files={"media": ("squat.mp4", b"fake-video", "video/mp4")},
    )


def test_exercise_flow(client, physio, athlete):
    uid = athlete["uid"]
    res = _create(client, physio, athlete)
    assert res.status_code == 201
    exercise = res.json()
    assert exercise["media_type"] == "video"

    res = client.get(f"/exercises/{uid}", headers=athlete["headers"])
    assert res.status_code == 200
    item = res.json()["upcoming"]["2020-01-01"][0]
    assert item["title"] == "Wall squats"
    assert item["timer_minutes"] == 1
    assert item["media_url"].startswith("https://")
    assert item["expired"] is True

    # feedback before the timer ran
    base = f"/exercises/{uid}/{exercise['id']}"
    res = client.post(f"{base}/submit", headers=athlete["headers"], data={"feedback": "fine", "pain_level": "3"})
    assert res.status_code == 409
    assert res.json()["error"] == "PreconditionError"

    res = client.get(f"{base}/countdown", headers=athlete["headers"])
    assert res.json() == {"started": False, "remaining_seconds": 60, "display": "1:00", "time_up": False}

    res = client.post(f"{base}/start", headers=athlete["headers"])
    assert res.status_code == 200
    state = res.json()
    assert state["started"] is True
    assert 0 < state["remaining_seconds"] <= 60

    res = client.post(f"{base}/submit", headers=athlete["headers"], data={"feedback": "", "pain_level": "4"})
    assert res.status_code == 200
    done = res.json()
    assert done["status"] == "completed"
    assert done["feedback"] == "No feedback provided"
    assert done["pain_level"] == 4
    assert done["expired"] is None

    res = client.put(f"{base}/feedback", headers=athlete["headers"], data={"feedback": "easier now", "rating": "9"})
    assert res.status_code == 200
    assert res.json()["rating"] == 9
    assert res.json()["status"] == "completed"

    res = client.get(f"/exercises/{uid}/progress", headers=physio["headers"], params={"view": "completed"})
    assert [e["id"] for e in res.json()] == [exercise["id"]]
    res = client.get(f"/exercises/{uid}/progress", headers=physio["headers"], params={"view": "uncompleted"})
    assert res.json() == []


def test_create_validation(client, physio, athlete):
    res = client.post(
        f"/exercises/{athlete['uid']}",
        headers=physio["headers"],
        data={"title": "Squats", "timer_minutes": "5", "due_date": "2026-03-10"},
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Please fill out all fields and select a patient."

    res = _create(client, physio, athlete, timer_minutes="soon")
    assert res.status_code == 400


def test_only_physios_create(client, athlete):
    res = _create(client, athlete, athlete)
    assert res.status_code == 403


def test_other_athlete_cannot_start(client, physio, athlete):
    exercise = _create(client, physio, athlete).json()
    res = client.post(f"/exercises/{athlete['uid']}/{exercise['id']}/start", headers=physio["headers"])
    assert res.status_code == 403


def test_unknown_exercise(client, athlete):
    res = client.post(f"/exercises/{athlete['uid']}/missing/start", headers=athlete["headers"])
    assert res.status_code == 404
