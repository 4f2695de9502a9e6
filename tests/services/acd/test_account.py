from __future__ import annotations

from datetime import timezone

import pytest

from clouddrive.services.acd.models import DriveNotFound, DriveRetryableError

METADATA_URL = "https://drive.amazonaws.com/drive/v1/"


def test_get_info(make_client) -> None:
    client, session = make_client([{"termsOfUse": "1.0.0", "status": "ACTIVE"}])

    info = client.account.get_info()

    assert info.terms_of_use == "1.0.0"
    assert info.status == "ACTIVE"
    assert session.api_calls == [("GET", f"{METADATA_URL}account/info")]


def test_get_quota(make_client) -> None:
    client, session = make_client(
        [{"quota": 5368709120, "lastCalculated": "2014-08-13T23:01:47.479Z", "available": 4069088896}]
    )

    quota = client.account.get_quota()

    assert quota.quota == 5368709120
    assert quota.available == 4069088896
    assert quota.last_calculated is not None
    assert quota.last_calculated.tzinfo == timezone.utc
    assert session.api_calls == [("GET", f"{METADATA_URL}account/quota")]


def test_get_usage(make_client) -> None:
    client, session = make_client(
        [
            {
                "lastCalculated": "2014-08-13T23:17:41.365Z",
                "photo": {"total": {"bytes": 9477988, "count": 25}, "billable": {"bytes": 9477988, "count": 25}},
            }
        ]
    )

    usage = client.account.get_usage()

    assert usage.photo.total.count == 25
    assert usage.doc.total.count is None
    assert session.api_calls == [("GET", f"{METADATA_URL}account/usage")]


def test_get_endpoint(make_client) -> None:
    client, _ = make_client(
        [
            {
                "customerExists": True,
                "contentUrl": "https://content-na.drive.amazonaws.com/cdproxy/",
                "metadataUrl": "https://cdws.us-east-1.amazonaws.com/drive/v1/",
            }
        ]
    )

    endpoint = client.account.get_endpoint()

    assert endpoint.customer_exists is True
    assert endpoint.metadata_url == "https://cdws.us-east-1.amazonaws.com/drive/v1/"


def test_account_errors_propagate(make_client) -> None:
    client, _ = make_client([(404, {"message": "no account"}), (500, {"message": "boom"})])

    with pytest.raises(DriveNotFound):
        client.account.get_info()
    with pytest.raises(DriveRetryableError):
        client.account.get_quota()
