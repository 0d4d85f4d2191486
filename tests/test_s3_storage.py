import io

import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from portfolio.core.errors import ConflictError, NotFoundError, StoreError
from portfolio.services.s3_storage import S3StorageService


@pytest.fixture
def s3():
    store = S3StorageService(
        region="us-east-1",
        bucket="photos",
        access_key="test",
        secret_key="test",
        root="site",
    )
    with Stubber(store.client) as stubber:
        yield store, stubber
        stubber.assert_no_pending_responses()


def test_requires_bucket():
    with pytest.raises(ValueError):
        S3StorageService(region="auto", bucket="")


def test_put_sends_conditions(s3):
    store, stubber = s3
    stubber.add_response(
        "put_object",
        {"ETag": '"v2"'},
        {
            "Bucket": "photos",
            "Key": "site/listings/nature.json",
            "Body": b"{}",
            "ContentType": "application/json",
            "IfMatch": '"v1"',
        },
    )
    obj = store.put(b"{}", "listings/nature.json", content_type="application/json", if_match='"v1"')
    assert obj.key == "listings/nature.json"
    assert obj.etag == '"v2"'


def test_create_only_put(s3):
    store, stubber = s3
    stubber.add_response(
        "put_object",
        {"ETag": '"v1"'},
        {
            "Bucket": "photos",
            "Key": "site/listings/nature.json",
            "Body": b"{}",
            "ContentType": "application/json",
            "IfNoneMatch": "*",
        },
    )
    store.put(b"{}", "listings/nature.json", content_type="application/json", if_none_match=True)


def test_precondition_failure_is_conflict(s3):
    store, stubber = s3
    stubber.add_client_error("put_object", service_error_code="PreconditionFailed", http_status_code=412)
    with pytest.raises(ConflictError):
        store.put(b"{}", "listings/nature.json", if_match='"stale"')


def test_other_errors_are_store_errors(s3):
    store, stubber = s3
    stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StoreError):
        store.put(b"x", "portfolio/nature/a.jpg")


def test_get_returns_body_and_etag(s3):
    store, stubber = s3
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(b"abc"), 3), "ETag": '"e1"'},
        {"Bucket": "photos", "Key": "site/portfolio/nature/a.jpg"},
    )
    blob = store.get("portfolio/nature/a.jpg")
    assert blob.data == b"abc"
    assert blob.version == '"e1"'


def test_get_missing(s3):
    store, stubber = s3
    stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
    with pytest.raises(NotFoundError):
        store.get("portfolio/nature/missing.jpg")


def test_delete_checks_existence_first(s3):
    store, stubber = s3
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)
    with pytest.raises(NotFoundError):
        store.delete("portfolio/nature/missing.jpg")


def test_delete_existing(s3):
    store, stubber = s3
    key = {"Bucket": "photos", "Key": "site/portfolio/nature/a.jpg"}
    stubber.add_response("head_object", {}, key)
    stubber.add_response("delete_object", {}, key)
    store.delete("portfolio/nature/a.jpg")


def test_list_pages_and_strips_root(s3):
    store, stubber = s3
    stubber.add_response(
        "list_objects_v2",
        {
            "Contents": [
                {"Key": "site/portfolio/nature/b.jpg", "Size": 2, "ETag": '"b"'},
                {"Key": "site/portfolio/nature/a.jpg", "Size": 1, "ETag": '"a"'},
            ],
            "IsTruncated": False,
        },
        {"Bucket": "photos", "Prefix": "site/portfolio/nature/"},
    )
    objs = store.list("portfolio/nature")
    assert [(o.key, o.size) for o in objs] == [
        ("portfolio/nature/a.jpg", 1),
        ("portfolio/nature/b.jpg", 2),
    ]
