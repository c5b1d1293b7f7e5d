import pytest

from asclepius.context import SessionContext
from asclepius.errors import NotFoundError, PermissionDeniedError, TransportError, ValidationError
from asclepius.services.symptoms import SymptomLogService
from asclepius.storage.files import MediaUpload


def _photo(name="knee.jpg"):
    return MediaUpload(data=b"\xff\xd8jpeg", filename=name, content_type="image/jpeg")


def _service(mock_db, blobs, clock):
    return SymptomLogService(mock_db, blobs, now=clock)


@pytest.mark.asyncio
async def test_create_and_list_scenario(mock_db, blobs, clock, athlete_ctx):
    svc = _service(mock_db, blobs, clock)
    await svc.create(athlete_ctx, "athlete-1", "knee pain", 7)

    logs = await svc.list(athlete_ctx, "athlete-1")
    assert len(logs) == 1
    entry = logs[0]
    assert entry.symptom_description == "knee pain"
    assert entry.pain_level == 7
    assert entry.media_url is None
    assert clock.start <= entry.timestamp <= clock.current


@pytest.mark.asyncio
async def test_update_moves_entry_to_front(mock_db, blobs, clock, athlete_ctx):
    svc = _service(mock_db, blobs, clock)
    first = await svc.create(athlete_ctx, "athlete-1", "ankle", "3")
    await svc.create(athlete_ctx, "athlete-1", "hip", "2")
    assert [l.id for l in await svc.list(athlete_ctx, "athlete-1")][-1] == first.id

    updated = await svc.update(athlete_ctx, "athlete-1", first.id, "ankle swelling", "5")
    assert updated.timestamp > first.timestamp

    logs = await svc.list(athlete_ctx, "athlete-1")
    assert logs[0].id == first.id
    assert logs[0].symptom_description == "ankle swelling"
    assert logs[0].pain_level == 5


@pytest.mark.asyncio
async def test_validation(mock_db, blobs, clock, athlete_ctx):
    svc = _service(mock_db, blobs, clock)
    with pytest.raises(ValidationError):
        await svc.create(athlete_ctx, "athlete-1", "", "4")
    with pytest.raises(ValidationError):
        await svc.create(athlete_ctx, "athlete-1", "knee", "")
    with pytest.raises(ValidationError, match="number"):
        await svc.create(athlete_ctx, "athlete-1", "knee", "bad")
    assert await mock_db.symptom_logs.count_documents({}) == 0


@pytest.mark.asyncio
async def test_media_upload_replace_and_delete(mock_db, blobs, clock, athlete_ctx):
    svc = _service(mock_db, blobs, clock)
    log = await svc.create(athlete_ctx, "athlete-1", "bruise", 2, _photo())
    old_path = (await mock_db.symptom_logs.find_one({"_id": log.id}))["media_path"]
    assert old_path.startswith("symptoms/athlete-1/")
    assert log.media_type == "image"

    replaced = await svc.replace_media(athlete_ctx, "athlete-1", log.id, _photo("clip.mov"))
    new_path = (await mock_db.symptom_logs.find_one({"_id": log.id}))["media_path"]
    assert new_path != old_path
    assert old_path not in blobs.objects
    assert new_path in blobs.objects
    assert replaced.media_url.endswith(new_path)

    await svc.delete(athlete_ctx, "athlete-1", log.id)
    assert new_path not in blobs.objects
    assert await mock_db.symptom_logs.count_documents({}) == 0


@pytest.mark.asyncio
async def test_stale_blob_cleanup_failure_is_not_fatal(mock_db, blobs, clock, athlete_ctx):
    svc = _service(mock_db, blobs, clock)
    log = await svc.create(athlete_ctx, "athlete-1", "bruise", 2, _photo())
    blobs.fail_deletes = True

    replaced = await svc.replace_media(athlete_ctx, "athlete-1", log.id, _photo("again.jpg"))
    assert replaced.media_url != log.media_url

    await svc.delete(athlete_ctx, "athlete-1", log.id)
    assert await mock_db.symptom_logs.count_documents({}) == 0


@pytest.mark.asyncio
async def test_delete_falls_back_to_url_for_legacy_records(mock_db, blobs, clock, athlete_ctx):
    blobs.objects["symptoms/athlete-1/1"] = (b"x", "image/jpeg")
    await mock_db.symptom_logs.insert_one({
        "_id": "legacy",
        "athlete_id": "athlete-1",
        "symptom_description": "old",
        "pain_level": 1,
        "media_url": "https://blobs.test/test-media/symptoms/athlete-1/1?sig=abc",
        "timestamp": clock(),
    })
    svc = _service(mock_db, blobs, clock)
    await svc.delete(athlete_ctx, "athlete-1", "legacy")
    assert blobs.objects == {}


@pytest.mark.asyncio
async def test_upload_failure_creates_no_log(mock_db, blobs, clock, athlete_ctx):
    blobs.fail_uploads = True
    svc = _service(mock_db, blobs, clock)
    with pytest.raises(TransportError):
        await svc.create(athlete_ctx, "athlete-1", "knee", 3, _photo())
    assert await mock_db.symptom_logs.count_documents({}) == 0


@pytest.mark.asyncio
async def test_unknown_log_and_ownership(mock_db, blobs, clock, athlete_ctx, physio_ctx):
    svc = _service(mock_db, blobs, clock)
    with pytest.raises(NotFoundError):
        await svc.update(athlete_ctx, "athlete-1", "nope", "x", "1")
    with pytest.raises(NotFoundError):
        await svc.replace_media(athlete_ctx, "athlete-1", "nope", _photo())
    with pytest.raises(NotFoundError):
        await svc.delete(athlete_ctx, "athlete-1", "nope")

    await svc.create(athlete_ctx, "athlete-1", "knee", 3)
    # physios may read, not write
    assert len(await svc.list(physio_ctx, "athlete-1")) == 1
    with pytest.raises(PermissionDeniedError):
        await svc.create(physio_ctx, "athlete-1", "knee", 3)

    other = SessionContext(uid="athlete-2", role="athlete")
    with pytest.raises(PermissionDeniedError):
        await svc.list(other, "athlete-1")


@pytest.mark.asyncio
async def test_media_urls_are_signed_again_on_read(mock_db, blobs, clock, athlete_ctx, physio_ctx):
    svc = _service(mock_db, blobs, clock)
    blobs.signature = 1
    created = await svc.create(athlete_ctx, "athlete-1", "bruise", "4", media=_photo())
    assert created.media_url.endswith("?sig=1")

    blobs.signature = 2
    [listed] = await svc.list(physio_ctx, "athlete-1")
    assert listed.media_url.endswith("?sig=2")

    blobs.signature = 3
    updated = await svc.update(athlete_ctx, "athlete-1", created.id, "bruise fading", "2")
    assert updated.media_url.endswith("?sig=3")

    stored = await mock_db.symptom_logs.find_one({"_id": created.id})
    assert blobs.key_for(updated.media_url) == stored["media_path"]
