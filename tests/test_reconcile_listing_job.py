import pytest

from portfolio.jobs.reconcile_listing_job import reconcile_category
from portfolio.models.incident import DELETED_STILL_LISTED, STORED_NOT_LISTED
from portfolio.services.image_schema import GalleryImage
from portfolio.services.incident_log import list_incidents, record_incident
from portfolio.services.listing_sync import LiveListing


@pytest.fixture
def drifted(gallery, jpeg_factory):
    """One listed image, one orphan binary, one stale entry."""
    kept = gallery.upload(jpeg_factory(20, 10), "kept.jpg", "image/jpeg", "nature")
    gallery.store.put(jpeg_factory(30, 20), "portfolio/nature/orphan.jpg")
    stale = "/static/portfolio/nature/stale.jpg"
    gallery.listing.add("nature", GalleryImage(src=stale))
    return kept.file_path, "/static/portfolio/nature/orphan.jpg", stale


def test_dry_run_reports_without_changes(gallery, drifted):
    kept, orphan, stale = drifted
    before = gallery.listing.read("nature")
    report = reconcile_category(gallery, "nature", dry_run=True)
    assert report.stale_removed == [stale]
    assert report.orphans == ["portfolio/nature/orphan.jpg"]
    assert gallery.listing.read("nature") == before


def test_stale_entries_dropped_orphans_reported(gallery, drifted):
    kept, orphan, stale = drifted
    report = reconcile_category(gallery, "nature")
    assert [i.src for i in gallery.listing.read("nature")] == [kept]
    assert report.adopted == [] and report.deleted == []
    assert gallery.store.exists("portfolio/nature/orphan.jpg")


def test_adopt_orphans(gallery, drifted):
    kept, orphan, stale = drifted
    report = reconcile_category(gallery, "nature", orphans="adopt")
    assert report.adopted == [orphan]
    images = gallery.listing.read("nature")
    assert images[0] == GalleryImage(src=orphan, width=30, height=20)
    assert [i.src for i in images] == [orphan, kept]


def test_delete_orphans(gallery, drifted):
    kept, orphan, stale = drifted
    report = reconcile_category(gallery, "nature", orphans="delete")
    assert report.deleted == [orphan]
    assert not gallery.store.exists("portfolio/nature/orphan.jpg")


def test_incidents_resolved(gallery, drifted, db_session):
    kept, orphan, stale = drifted
    record_incident(db_session, STORED_NOT_LISTED, "nature", orphan)
    record_incident(db_session, DELETED_STILL_LISTED, "nature", stale)
    record_incident(db_session, STORED_NOT_LISTED, "travel", orphan)

    report = reconcile_category(gallery, "nature", orphans="adopt", db=db_session)
    assert report.incidents_resolved == 2
    open_rows = list_incidents(db_session, resolved=False)
    assert [r.Category for r in open_rows] == ["travel"]


def test_unknown_policy(gallery):
    with pytest.raises(ValueError):
        reconcile_category(gallery, "nature", orphans="ignore")


def test_live_listing_has_nothing_to_reconcile(gallery):
    gallery.listing = LiveListing(gallery.store)
    report = reconcile_category(gallery, "nature", orphans="delete")
    assert report.as_dict()["orphans"] == []
