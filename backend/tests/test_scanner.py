"""
Tests for services/scanner.py — ScanEngine.run_batch.

The provider is a small in-memory fake (FakeVideoClient) so each test sets
exact view counts; one end-to-end test drives the real YouTubeClient over an
httpx.MockTransport.

Test categories:
  1. REFERENCE EXAMPLE (1,000,000 → 1,150,000 views credits exactly $3.15)
  2. MONOTONICITY + NO NEGATIVE DELTAS
  3. PARTIAL-BATCH ISOLATION (not found / provider errors)
  4. SELECTION (disabled videos, batch size)
  5. RATES (per-video override, missing config aborts with no side effects)
  6. OVERLAPPING SCANS (baseline moved → recompute, never double credit)
  7. SCAN LOG
"""

import sys
import os
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models.schemas import FetchResult, TrackedVideo, VideoStats
from services.errors import InvalidConfiguration, ProviderUnavailable
from services.scanner import ScanEngine
from services.youtube import YouTubeClient

NOW = datetime(2024, 3, 15, 6, 0, tzinfo=timezone.utc)


# ===========================================================================
# Helpers
# ===========================================================================

class FakeVideoClient:
    """
    In-memory provider.

    views:  {video_id: current view count}; ids absent here are "not found"
    broken: ids whose chunk failed with ProviderUnavailable
    """

    def __init__(self, views=None, broken=None):
        self.views = dict(views or {})
        self.broken = set(broken or [])
        self.requested = []

    def fetch_many(self, video_ids):
        self.requested.append(list(video_ids))
        result = FetchResult()
        for video_id in video_ids:
            if video_id in self.broken:
                result.errors[video_id] = ProviderUnavailable("provider returned 503 after 3 attempts")
            elif video_id in self.views:
                result.stats[video_id] = VideoStats(video_id=video_id, view_count=self.views[video_id])
            else:
                result.missing.append(video_id)
        return result


def track(store, video_id, creator_id="alice", views=1_000_000, **kwargs):
    if store.get_creator(creator_id) is None:
        store.create_creator(creator_id)
    store.add_video(TrackedVideo(
        video_id=video_id,
        creator_id=creator_id,
        last_known_external_views=views,
        created_at=NOW,
        **kwargs,
    ))


def run(store, client, batch_size=100):
    return ScanEngine(store, client, max_workers=4, clock=lambda: NOW).run_batch(batch_size)


# ===========================================================================
# 1. REFERENCE EXAMPLE
# ===========================================================================

class TestReferenceExample:
    def test_delta_premium_and_earnings(self, seeded_store):
        track(seeded_store, "vid1", views=1_000_000)

        result = run(seeded_store, FakeVideoClient({"vid1": 1_150_000}))

        item = result.items[0]
        assert item.status == "success"
        assert item.view_delta == 150_000
        assert item.premium_delta == 10_500
        assert item.earnings_delta == Decimal("3.15")

        creator = seeded_store.get_creator("alice")
        assert creator.locked_balance == Decimal("3.15")
        assert creator.lifetime_earnings == Decimal("3.15")
        assert creator.available_balance == Decimal("0.00")

        video = seeded_store.get_video("vid1")
        assert video.last_known_external_views == 1_150_000
        assert video.accrued_tracked_views == 150_000
        assert video.accrued_premium_views == 10_500
        assert video.current_period_earnings == Decimal("3.15")
        assert video.lifetime_earnings == Decimal("3.15")
        assert video.last_scanned_at == NOW

    def test_through_real_client(self, seeded_store):
        track(seeded_store, "vid1", views=1_000_000)

        def handler(request):
            return httpx.Response(200, json={"items": [{
                "id": "vid1",
                "statistics": {"viewCount": "1150000"},
                "status": {"privacyStatus": "public"},
            }]})

        client = YouTubeClient(
            api_key="k", base_url="https://yt.test/v3", transport=httpx.MockTransport(handler),
        )
        with patch("services.youtube.time.sleep"):
            result = run(seeded_store, client)

        assert result.succeeded == 1
        assert seeded_store.get_creator("alice").locked_balance == Decimal("3.15")


# ===========================================================================
# 2. MONOTONICITY + NO NEGATIVE DELTAS
# ===========================================================================

class TestMonotonicity:
    def test_accrued_views_sum_of_non_negative_deltas(self, seeded_store):
        track(seeded_store, "vid1", views=1000)
        client = FakeVideoClient()
        previous_accrued = 0

        for count in [1500, 1400, 2000, 2000, 2600]:
            client.views["vid1"] = count
            run(seeded_store, client)
            accrued = seeded_store.get_video("vid1").accrued_tracked_views
            assert accrued >= previous_accrued
            previous_accrued = accrued

        # 500 + 0 + 600 + 0 + 600
        assert previous_accrued == 1700

    def test_view_drop_credits_nothing_but_moves_baseline(self, seeded_store):
        track(seeded_store, "vid1", views=1000)

        result = run(seeded_store, FakeVideoClient({"vid1": 900}))

        item = result.items[0]
        assert item.status == "no_change"
        assert item.ok
        assert item.view_delta == 0
        assert item.earnings_delta == Decimal("0.00")
        video = seeded_store.get_video("vid1")
        assert video.last_known_external_views == 900
        assert video.accrued_tracked_views == 0
        assert seeded_store.get_creator("alice").locked_balance == Decimal("0.00")

    def test_rescan_without_new_views_is_idempotent(self, seeded_store):
        track(seeded_store, "vid1", views=1_000_000)
        client = FakeVideoClient({"vid1": 1_150_000})
        run(seeded_store, client)
        run(seeded_store, client)
        assert seeded_store.get_creator("alice").locked_balance == Decimal("3.15")


# ===========================================================================
# 3. PARTIAL-BATCH ISOLATION
# ===========================================================================

class TestPartialBatch:
    def test_one_not_found_among_many(self, seeded_store):
        for vid in ["a", "b", "c", "gone"]:
            track(seeded_store, vid, views=1_000_000)
        client = FakeVideoClient({"a": 1_150_000, "b": 1_150_000, "c": 1_150_000})

        result = run(seeded_store, client)

        assert result.total_selected == 4
        assert result.succeeded == 3
        assert result.failed == 1
        assert result.total_earnings == Decimal("9.45")
        assert seeded_store.get_creator("alice").locked_balance == Decimal("9.45")

        failed = [i for i in result.items if not i.ok]
        assert [i.video_id for i in failed] == ["gone"]
        assert failed[0].error_kind == "VideoNotFound"
        assert failed[0].error_message == "video not found on provider"

    def test_not_found_is_recorded_not_disabled(self, seeded_store):
        track(seeded_store, "gone")
        run(seeded_store, FakeVideoClient({}))

        video = seeded_store.get_video("gone")
        assert video.scan_enabled is True
        assert video.scan_error_count == 1
        assert video.last_scan_error == "video not found on provider"
        assert video.last_scanned_at == NOW
        assert video.last_known_external_views == 1_000_000

    def test_provider_unavailable_left_for_next_run(self, seeded_store):
        track(seeded_store, "flaky")
        track(seeded_store, "ok")

        result = run(seeded_store, FakeVideoClient({"ok": 1_150_000}, broken={"flaky"}))

        assert result.succeeded == 1
        assert result.failed == 1
        failed = [i for i in result.items if not i.ok][0]
        assert failed.error_kind == "ProviderUnavailable"

        video = seeded_store.get_video("flaky")
        assert video.scan_error_count == 1
        assert video.last_scanned_at is None
        # Never-scanned videos go first on the next run
        assert seeded_store.select_scannable_videos(1)[0].video_id == "flaky"

    def test_successful_scan_clears_error_count(self, seeded_store):
        track(seeded_store, "flaky")
        run(seeded_store, FakeVideoClient({}, broken={"flaky"}))
        run(seeded_store, FakeVideoClient({"flaky": 1_000_100}))
        assert seeded_store.get_video("flaky").scan_error_count == 0


# ===========================================================================
# 4. SELECTION
# ===========================================================================

class TestSelection:
    def test_disabled_videos_not_fetched(self, seeded_store):
        track(seeded_store, "on")
        track(seeded_store, "off", scan_enabled=False)
        client = FakeVideoClient({"on": 1_000_000, "off": 2_000_000})

        result = run(seeded_store, client)

        assert client.requested == [["on"]]
        assert result.total_selected == 1
        assert seeded_store.get_video("off").last_known_external_views == 1_000_000

    def test_batch_size(self, seeded_store):
        for i in range(5):
            track(seeded_store, f"v{i}")
        client = FakeVideoClient({f"v{i}": 1_000_000 for i in range(5)})

        result = run(seeded_store, client, batch_size=2)

        assert result.total_selected == 2
        assert client.requested == [["v0", "v1"]]

    def test_empty_batch(self, seeded_store):
        client = FakeVideoClient()
        result = run(seeded_store, client)
        assert result.total_selected == 0
        assert result.items == []
        assert client.requested == []
        assert len(seeded_store.list_scan_logs()) == 1


# ===========================================================================
# 5. RATES
# ===========================================================================

class TestRates:
    def test_per_video_premium_share(self, seeded_store):
        track(seeded_store, "vid1", views=0, premium_share_percent=Decimal("10"))
        result = run(seeded_store, FakeVideoClient({"vid1": 100_000}))
        # 10% of 100,000 = 10,000 premium → $3.00
        assert result.items[0].premium_delta == 10_000
        assert result.items[0].earnings_delta == Decimal("3.00")

    def test_missing_rate_config_aborts_before_any_work(self, store):
        track(store, "vid1")
        client = FakeVideoClient({"vid1": 1_150_000})

        with pytest.raises(InvalidConfiguration):
            run(store, client)

        assert client.requested == []
        assert store.get_video("vid1").last_known_external_views == 1_000_000
        assert store.list_scan_logs() == []

    def test_malformed_rate_config(self, store):
        store.write_settings("app_settings", {"payout_rate_per_1000": "-1"})
        with pytest.raises(InvalidConfiguration):
            run(store, FakeVideoClient())


# ===========================================================================
# 6. OVERLAPPING SCANS
# ===========================================================================

class TestOverlappingScans:
    def test_baseline_moved_mid_scan_is_not_double_credited(self, seeded_store):
        track(seeded_store, "vid1", views=1000)

        class OverlappingClient(FakeVideoClient):
            def fetch_many(self, video_ids):
                # Another batch lands 1000 → 1500 while this one is in flight
                seeded_store.apply_scan("vid1", 1000, 1500, 500, 35, Decimal("0.01"), NOW)
                return super().fetch_many(video_ids)

        result = run(seeded_store, OverlappingClient({"vid1": 2000}))

        item = result.items[0]
        assert item.ok
        assert item.old_views == 1500
        assert item.view_delta == 500
        video = seeded_store.get_video("vid1")
        assert video.accrued_tracked_views == 1000
        assert video.last_known_external_views == 2000

    def test_older_observation_never_lowers_baseline(self, seeded_store):
        track(seeded_store, "vid1", views=1_000_000)

        class OverlappingClient(FakeVideoClient):
            def fetch_many(self, video_ids):
                # A newer batch lands 1,000,000 → 1,150,000 first
                seeded_store.apply_scan(
                    "vid1", 1_000_000, 1_150_000, 150_000, 10_500, Decimal("3.15"), NOW,
                )
                seeded_store.credit_scan_earnings("alice", Decimal("3.15"))
                return super().fetch_many(video_ids)

        result = run(seeded_store, OverlappingClient({"vid1": 1_100_000}))

        item = result.items[0]
        assert item.status == "no_change"
        assert item.earnings_delta == Decimal("0.00")
        assert seeded_store.get_video("vid1").last_known_external_views == 1_150_000

        # A later scan at the same count credits nothing further
        run(seeded_store, FakeVideoClient({"vid1": 1_150_000}))

        video = seeded_store.get_video("vid1")
        assert video.accrued_tracked_views == 150_000
        assert seeded_store.get_creator("alice").locked_balance == Decimal("3.15")


# ===========================================================================
# 7. SCAN LOG
# ===========================================================================

class TestScanLog:
    def test_one_entry_per_batch(self, seeded_store):
        track(seeded_store, "a")
        track(seeded_store, "gone")

        run(seeded_store, FakeVideoClient({"a": 1_150_000}))

        logs = seeded_store.list_scan_logs()
        assert len(logs) == 1
        log = logs[0]
        assert log.total_selected == 2
        assert log.succeeded == 1
        assert log.failed == 1
        assert log.total_earnings == Decimal("3.15")
        assert len(log.lines) == 2
        assert any(line.startswith("a: +150,000 views") for line in log.lines)
        assert any("gone: failed [VideoNotFound]" in line for line in log.lines)
