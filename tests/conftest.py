# tests/conftest.py
# In-memory stand-ins for Redis and S3 plus guitar fixtures shared by unit and API tests

import asyncio
import io
import json

import pytest
from PIL import Image
from redis.exceptions import WatchError

from guitarshare.config import Settings
from guitarshare.constants import GUITAR_KEY
from guitarshare.middleware.error_handler import StorageError
from guitarshare.repositories.guitar_repository import GuitarRepository
from guitarshare.repositories.share_repository import ShareRepository
from guitarshare.services.analytics import ViewAnalyticsRecorder
from guitarshare.services.image_pipeline import ImagePipeline
from guitarshare.services.share_service import ShareService
from guitarshare.storage.blob_store import key_from_url


class FakePipeline:
    """Queues commands and runs them in order on execute().

    After watch() commands run immediately until multi(), as in redis-py.
    execute() raises WatchError when a watched key was written meanwhile.
    """

    def __init__(self, redis):
        self._redis = redis
        self._ops = []
        self._watched = {}
        self._immediate = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self._watched = {}
        return False

    def __getattr__(self, name):
        target = getattr(self._redis, name)
        if self._immediate:
            return target

        def queue(*args, **kwargs):
            self._ops.append((target, args, kwargs))
            return self

        return queue

    async def watch(self, *keys):
        self._watched = {key: self._redis.versions.get(key, 0) for key in keys}
        self._immediate = True

    def multi(self):
        self._immediate = False

    async def execute(self):
        ops, self._ops = self._ops, []
        watched, self._watched = self._watched, {}
        if any(self._redis.versions.get(key, 0) != version for key, version in watched.items()):
            raise WatchError("Watched variable changed.")
        return [await fn(*args, **kwargs) for fn, args, kwargs in ops]


class FakeRedis:
    """The subset of redis.asyncio.Redis the repositories use (decode_responses=True)."""

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.versions: dict[str, int] = {}

    def _touch(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    async def get(self, key):
        return self.strings.get(key)

    async def set(self, key, value):
        self._touch(key)
        self.strings[key] = value
        return True

    async def hset(self, key, mapping=None):
        self._touch(key)
        self.hashes.setdefault(key, {}).update(mapping or {})
        return len(mapping or {})

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def sadd(self, key, *members):
        self._touch(key)
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def srem(self, key, *members):
        self._touch(key)
        self.sets.get(key, set()).difference_update(members)
        return len(members)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def exists(self, key):
        return int(key in self.strings or key in self.hashes or key in self.sets)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            self._touch(key)
            for store in (self.strings, self.hashes, self.sets):
                if store.pop(key, None) is not None:
                    removed += 1
        return removed

    async def ping(self):
        return True

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class FakeBlobStore:
    """Dict-backed blob store with switchable failures."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.uploads: list[tuple[str, str, str]] = []
        self.deleted: list[str] = []
        self.fail_downloads: set[str] = set()
        self.download_delay = 0.0
        self.fail_delete = False

    def public_url(self, key):
        return f"https://cdn.test/{key}"

    async def download(self, key):
        if self.download_delay:
            await asyncio.sleep(self.download_delay)
        if key in self.fail_downloads or key not in self.objects:
            raise StorageError("Failed to read blob", details={"key": key})
        return self.objects[key]

    async def upload(self, key, data, content_type, cache_control):
        self.objects[key] = data
        self.uploads.append((key, content_type, cache_control))

    async def delete_many(self, keys):
        if self.fail_delete:
            raise StorageError("Failed to delete blobs")
        for key in keys:
            self.deleted.append(key)
            self.objects.pop(key, None)


def make_jpeg(size=(1600, 1200), color=(120, 90, 60)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def make_guitar(owner_id="owner-1", guitar_id="guitar-1", image_ids=("a", "b", "c")) -> dict:
    return {
        "id": guitar_id,
        "userId": owner_id,
        "brand": "Fender",
        "model": "Stratocaster",
        "year": 1965,
        "color": "Sunburst",
        "type": "Electric",
        "finish": "Nitrocellulose",
        "notes": "Bought at an estate sale",
        "conditionShape": "Excellent",
        "conditionMarkers": [{"x": 0.2, "y": 0.4, "note": "Ding"}],
        "provenance": {"previousOwners": ["J. Doe"]},
        "documents": [{"id": "d1", "url": "https://cdn.test/documents/receipt.pdf"}],
        "privateInfo": {"purchasePrice": 4200, "purchaseDate": "2019-05-01", "serialNumber": "L12345"},
        "images": [
            {"id": image_id, "url": f"https://cdn.test/images/{owner_id}/{guitar_id}/{image_id}.jpg"}
            for image_id in image_ids
        ],
    }


@pytest.fixture
def settings():
    return Settings(_env_file=None, IMAGE_PROCESS_TIMEOUT=5.0, WATERMARK_PATH=None)


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def seed_guitar(redis_client, blob_store):
    """Store a guitar record and its original image blobs."""

    def _seed(guitar):
        key = GUITAR_KEY.format(owner_id=guitar["userId"], guitar_id=guitar["id"])
        redis_client.strings[key] = json.dumps(guitar)
        for image in guitar["images"]:
            blob_store.objects.setdefault(key_from_url(image["url"]), make_jpeg())
        return guitar

    return _seed


@pytest.fixture
def share_repo(redis_client):
    return ShareRepository(redis_client)


@pytest.fixture
def service(redis_client, blob_store, share_repo, settings):
    return ShareService(
        shares=share_repo,
        guitars=GuitarRepository(redis_client),
        blobs=blob_store,
        pipeline=ImagePipeline(blob_store, settings),
        recorder=ViewAnalyticsRecorder(share_repo, settings),
        settings=settings,
    )


@pytest.fixture
def guitar_factory():
    return make_guitar


@pytest.fixture
def jpeg_factory():
    return make_jpeg
