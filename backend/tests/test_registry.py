"""
Tests for services/registry.py — creator and video registration.
"""

import sys
import os
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models.schemas import VideoStats
from services.errors import LedgerConflict, ProviderUnavailable, RecordNotFound, VideoNotFound
from services.registry import create_creator, register_video, set_scan_enabled

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


def provider_returning(stats=None, error=None):
    client = MagicMock()
    if error is not None:
        client.fetch_one.side_effect = error
    else:
        client.fetch_one.return_value = stats
    return client


class TestRegisterVideo:
    def test_baseline_is_current_views(self, store):
        create_creator(store, "alice", "Alice")
        client = provider_returning(VideoStats(
            video_id="vid1", view_count=1_000_000, title="Launch", channel_id="UC1",
        ))

        video = register_video(store, client, "vid1", "alice", "admin1", now=NOW)

        client.fetch_one.assert_called_once_with("vid1")
        assert video.last_known_external_views == 1_000_000
        assert video.accrued_tracked_views == 0
        assert video.title == "Launch"
        assert video.scan_enabled is True
        assert video.added_by == "admin1"

        entry = store.list_audit_logs(target_id="vid1")[0]
        assert entry.action == "video_added"
        assert entry.after["baseline_views"] == 1_000_000

    def test_premium_share_override(self, store):
        create_creator(store, "alice")
        client = provider_returning(VideoStats(video_id="vid1", view_count=5))
        video = register_video(store, client, "vid1", "alice", "admin1", premium_share_percent=Decimal("12"))
        assert video.premium_share_percent == Decimal("12")

    def test_non_public_video_registered_disabled(self, store):
        create_creator(store, "alice")
        client = provider_returning(VideoStats(video_id="vid1", view_count=5, is_public=False))
        video = register_video(store, client, "vid1", "alice", "admin1")
        assert video.scan_enabled is False

    def test_unknown_creator(self, store):
        client = provider_returning(VideoStats(video_id="vid1", view_count=5))
        with pytest.raises(RecordNotFound):
            register_video(store, client, "vid1", "nobody", "admin1")
        client.fetch_one.assert_not_called()

    def test_duplicate_video(self, store):
        create_creator(store, "alice")
        client = provider_returning(VideoStats(video_id="vid1", view_count=5))
        register_video(store, client, "vid1", "alice", "admin1")
        with pytest.raises(LedgerConflict):
            register_video(store, client, "vid1", "alice", "admin1")
        assert store.count_audit_logs() == 1

    @pytest.mark.parametrize("error", [VideoNotFound("vid1"), ProviderUnavailable("provider returned 503")])
    def test_provider_failure_tracks_nothing(self, store, error):
        create_creator(store, "alice")
        with pytest.raises(type(error)):
            register_video(store, provider_returning(error=error), "vid1", "alice", "admin1")
        assert store.get_video("vid1") is None
        assert store.count_audit_logs() == 0


class TestScanToggle:
    def test_disable_then_enable(self, store):
        create_creator(store, "alice")
        register_video(store, provider_returning(VideoStats(video_id="vid1", view_count=5)),
                       "vid1", "alice", "admin1")

        assert set_scan_enabled(store, "vid1", False, "reviewer").scan_enabled is False
        assert set_scan_enabled(store, "vid1", True, "reviewer").scan_enabled is True

        actions = [e.action for e in store.list_audit_logs(target_id="vid1")]
        assert actions == ["video_scan_enabled", "video_scan_disabled", "video_added"]


class TestCreateCreator:
    def test_duplicate(self, store):
        create_creator(store, "alice")
        with pytest.raises(LedgerConflict):
            create_creator(store, "alice")
