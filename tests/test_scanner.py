"""Tests for the concurrent scanner."""

import asyncio

import pytest

from cleanmac.models import ScanCategory, ScanTarget
from cleanmac.scanner import (
    ProgressKind,
    ScanService,
    run_with_concurrency,
    sum_by_category,
)

from conftest import MB_KB, FakeAppDetection, FakeDiskUsage

THRESHOLD = 1024 * 1024  # 1 MiB

APP_SUPPORT = ScanTarget(path="/lib/AS", category=ScanCategory.APP_SUPPORT)
CACHES = ScanTarget(path="/lib/Caches", category=ScanCategory.CACHES)
PREFERENCES = ScanTarget(path="/lib/Prefs", category=ScanCategory.PREFERENCES)


def make_service(fake_fs, fake_du, **kwargs):
    kwargs.setdefault("size_threshold", THRESHOLD)
    return ScanService(fake_fs, fake_du, **kwargs)


def by_path(report):
    return {item.path: item for item in report.items}


class TestRunWithConcurrency:
    @pytest.mark.asyncio
    async def test_runs_each_task_once_in_order(self):
        calls = []

        def make_task(n):
            async def task():
                await asyncio.sleep(0)
                calls.append(n)
                return n * 10

            return task

        results = await run_with_concurrency([make_task(n) for n in range(20)], 4)
        assert results == [n * 10 for n in range(20)]
        assert sorted(calls) == list(range(20))

    @pytest.mark.asyncio
    async def test_bounds_tasks_in_flight(self):
        in_flight = 0
        peak = 0

        async def task():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1

        await run_with_concurrency([task] * 12, 3)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_no_tasks(self):
        assert await run_with_concurrency([], 5) == []

    @pytest.mark.asyncio
    async def test_zero_concurrency_still_runs(self):
        async def task():
            return "done"

        assert await run_with_concurrency([task, task], 0) == ["done", "done"]


class TestScanService:
    @pytest.mark.asyncio
    async def test_records_large_entries_and_prunes_small_ones(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/Notion/Cache/blob", 5 * MB_KB)
        fake_fs.add_file("/lib/AS/tiny/file", 10)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        report = await service.scan([APP_SUPPORT])

        items = by_path(report)
        assert set(items) == {"/lib/AS/Notion", "/lib/AS/Notion/Cache"}
        # Pruned entries are never descended into
        assert "/lib/AS/tiny" in fake_du.calls
        assert "/lib/AS/tiny/file" not in fake_du.calls
        # Leaf cache directories are not descended into either
        assert "/lib/AS/Notion/Cache/blob" not in fake_du.calls

    @pytest.mark.asyncio
    async def test_entry_at_threshold_is_recorded(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/exact", MB_KB)
        fake_fs.add_file("/lib/Caches/below", MB_KB - 1)
        events = []

        service = make_service(fake_fs, fake_du, on_progress=events.append)
        report = await service.scan([CACHES])

        assert set(by_path(report)) == {"/lib/Caches/exact"}
        assert by_path(report)["/lib/Caches/exact"].size_bytes == THRESHOLD
        pruned = [e for e in events if e.kind == ProgressKind.ENTRY_PRUNED]
        assert [(e.path, e.size_bytes) for e in pruned] == [("/lib/Caches/below", THRESHOLD - 1024)]

    @pytest.mark.asyncio
    async def test_item_fields(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/Notion/Cache/blob", 5 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        report = await service.scan([APP_SUPPORT])

        notion = by_path(report)["/lib/AS/Notion"]
        assert notion.size_kb == 5 * MB_KB
        assert notion.size_bytes == 5 * MB_KB * 1024
        assert notion.safe_to_delete is False
        assert notion.app_installed is True
        assert notion.matched_app_name == "Notion"
        assert notion.parent_target_path == "/lib/AS"

        cache = by_path(report)["/lib/AS/Notion/Cache"]
        assert cache.safe_to_delete is True
        assert cache.app_installed is False
        assert cache.matched_app_name is None

    @pytest.mark.asyncio
    async def test_size_bytes_matches_size_kb(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a/blob", 3 * MB_KB + 7)
        fake_fs.add_file("/lib/Caches/b", 2 * MB_KB)

        report = await make_service(fake_fs, fake_du).scan([CACHES])

        assert report.items
        assert all(item.size_bytes == item.size_kb * 1024 for item in report.items)

    @pytest.mark.asyncio
    async def test_totals_cover_every_category(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 3 * MB_KB)
        fake_fs.add_file("/lib/Caches/b", 2 * MB_KB)

        report = await make_service(fake_fs, fake_du).scan([CACHES])

        assert set(report.totals_by_category) == set(ScanCategory)
        assert report.totals_by_category[ScanCategory.CACHES] == 5 * MB_KB * 1024
        assert report.totals_by_category[ScanCategory.APP_SUPPORT] == 0
        assert report.totals_by_category == sum_by_category(report.items)

    @pytest.mark.asyncio
    async def test_concurrency_does_not_change_results(self, fake_fs, make_apps):
        for n in range(6):
            fake_fs.add_file(f"/lib/AS/App{n}/Cache/blob", (n + 2) * MB_KB)
            fake_fs.add_file(f"/lib/AS/App{n}/Data/store", MB_KB)
            fake_fs.add_file(f"/lib/AS/App{n}/small", 1)

        reports = []
        for concurrency in (1, 8):
            service = make_service(
                fake_fs, FakeDiskUsage(fake_fs), app_detection=make_apps(("App1", None))
            )
            reports.append(await service.scan([APP_SUPPORT], concurrency=concurrency))

        first, second = ({(i.path, i.size_bytes, i.safe_to_delete) for i in r.items} for r in reports)
        assert first == second
        assert reports[0].totals_by_category == reports[1].totals_by_category

    @pytest.mark.asyncio
    async def test_concurrency_limits_measurements_in_flight(self, fake_fs, fake_du):
        for n in range(10):
            fake_fs.add_file(f"/lib/Prefs/com.app{n}.plist", 2 * MB_KB)

        await make_service(fake_fs, fake_du).scan([PREFERENCES], concurrency=3)

        assert len(fake_du.calls) == 10
        assert 1 < fake_du.max_in_flight <= 3

    @pytest.mark.asyncio
    async def test_failing_entry_is_skipped(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        fake_fs.add_file("/lib/Caches/b", 2 * MB_KB)
        fake_fs.add_file("/lib/Caches/c", 2 * MB_KB)
        fake_du.denied.add("/lib/Caches/b")

        report = await make_service(fake_fs, fake_du).scan([CACHES])

        assert set(by_path(report)) == {"/lib/Caches/a", "/lib/Caches/c"}
        assert [s.path for s in report.skipped] == ["/lib/Caches/b"]
        assert "Full Disk Access" in report.skipped[0].reason

    @pytest.mark.asyncio
    async def test_stat_failure_is_skipped(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        fake_fs.add_file("/lib/Caches/gone", 2 * MB_KB)
        fake_fs.broken.add("/lib/Caches/gone")

        report = await make_service(fake_fs, fake_du).scan([CACHES])

        assert set(by_path(report)) == {"/lib/Caches/a"}
        assert report.skipped[0].path == "/lib/Caches/gone"
        assert "No such file" in report.skipped[0].reason

    @pytest.mark.asyncio
    async def test_missing_target_is_left_out(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        missing = ScanTarget(path="/nope", category=ScanCategory.CACHES)

        report = await make_service(fake_fs, fake_du).scan([CACHES, missing])

        assert [t.path for t in report.targets] == ["/lib/Caches"]
        assert report.skipped == []

    @pytest.mark.asyncio
    async def test_unlistable_target_is_skipped(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        fake_fs.unlistable.add("/lib/Caches")

        report = await make_service(fake_fs, fake_du).scan([CACHES])

        assert report.items == []
        assert [s.path for s in report.skipped] == ["/lib/Caches"]
        assert report.targets == []

    @pytest.mark.asyncio
    async def test_unlistable_target_does_not_affect_others(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        fake_fs.add_file("/lib/Prefs/b", 2 * MB_KB)
        fake_fs.unlistable.add("/lib/Caches")

        report = await make_service(fake_fs, fake_du).scan([CACHES, PREFERENCES])

        assert [t.path for t in report.targets] == ["/lib/Prefs"]
        assert [i.path for i in report.items] == ["/lib/Prefs/b"]
        assert [s.path for s in report.skipped] == ["/lib/Caches"]

    @pytest.mark.asyncio
    async def test_orphaned_folder_becomes_deletable(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/OldTool/blob.dat", 2 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        items = by_path(await service.scan([APP_SUPPORT]))

        folder = items["/lib/AS/OldTool"]
        assert folder.app_installed is False
        assert folder.is_orphaned
        assert folder.safe_to_delete is True
        # Nested entries are looked up by their own name
        nested = items["/lib/AS/OldTool/blob.dat"]
        assert nested.app_installed is False
        assert nested.safe_to_delete is True

    @pytest.mark.asyncio
    async def test_orphaned_user_data_stays_unsafe(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/OldTool/User Data/profile", 2 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        items = by_path(await service.scan([APP_SUPPORT]))

        user_data = items["/lib/AS/OldTool/User Data"]
        assert user_data.app_installed is False
        assert user_data.safe_to_delete is False

    @pytest.mark.asyncio
    async def test_installed_app_folder_stays_unsafe(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/Notion/state.json", 2 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        items = by_path(await service.scan([APP_SUPPORT]))

        notion = items["/lib/AS/Notion"]
        assert notion.app_installed is True
        assert notion.safe_to_delete is False

    @pytest.mark.asyncio
    async def test_unmatched_entry_inside_installed_app_folder(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/Notion/Partitions/blob", 2 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        items = by_path(await service.scan([APP_SUPPORT]))

        partitions = items["/lib/AS/Notion/Partitions"]
        assert partitions.app_installed is False
        assert partitions.matched_app_name is None
        assert partitions.safe_to_delete is True

    @pytest.mark.asyncio
    async def test_nested_entry_matched_by_own_name(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/Tools/Notion/blob", 2 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", "notion.id")))
        items = by_path(await service.scan([APP_SUPPORT]))

        assert items["/lib/AS/Tools"].app_installed is False
        nested = items["/lib/AS/Tools/Notion"]
        assert nested.app_installed is True
        assert nested.matched_app_name == "Notion"
        assert nested.safe_to_delete is False

    @pytest.mark.asyncio
    async def test_without_app_detection(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/AS/OldTool/blob.dat", 2 * MB_KB)

        items = by_path(await make_service(fake_fs, fake_du).scan([APP_SUPPORT]))

        folder = items["/lib/AS/OldTool"]
        assert folder.app_installed is None
        assert folder.safe_to_delete is False

    @pytest.mark.asyncio
    async def test_app_detection_failure_is_tolerated(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/AS/OldTool/blob.dat", 2 * MB_KB)
        detection = FakeAppDetection([], error=RuntimeError("boom"))

        report = await make_service(fake_fs, fake_du, app_detection=detection).scan([APP_SUPPORT])

        assert report.items
        assert all(item.app_installed is None for item in report.items)

    @pytest.mark.asyncio
    async def test_apps_loaded_once_per_scan(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/AS/OldTool/blob.dat", 2 * MB_KB)
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        detection = make_apps(("Notion", None))

        await make_service(fake_fs, fake_du, app_detection=detection).scan([APP_SUPPORT, CACHES])

        assert detection.calls == 1

    @pytest.mark.asyncio
    async def test_app_status_only_for_app_support(self, fake_fs, fake_du, make_apps):
        fake_fs.add_file("/lib/Caches/OldTool/blob.dat", 2 * MB_KB)

        service = make_service(fake_fs, fake_du, app_detection=make_apps(("Notion", None)))
        items = by_path(await service.scan([CACHES]))

        assert items["/lib/Caches/OldTool"].app_installed is None

    @pytest.mark.asyncio
    async def test_recursion_stops_at_max_depth(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a/b/c/d/blob", 2 * MB_KB)

        items = by_path(await make_service(fake_fs, fake_du).scan([CACHES]))

        assert set(items) == {"/lib/Caches/a", "/lib/Caches/a/b", "/lib/Caches/a/b/c"}

    @pytest.mark.asyncio
    async def test_app_support_goes_one_level_deeper(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/AS/a/b/c/d/e/blob", 2 * MB_KB)

        items = by_path(await make_service(fake_fs, fake_du).scan([APP_SUPPORT]))

        assert "/lib/AS/a/b/c/d" in items
        assert "/lib/AS/a/b/c/d/e" not in items

    @pytest.mark.asyncio
    async def test_non_recursive_category(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Prefs/com.foo/settings.plist", 2 * MB_KB)

        items = by_path(await make_service(fake_fs, fake_du).scan([PREFERENCES]))

        assert set(items) == {"/lib/Prefs/com.foo"}
        assert items["/lib/Prefs/com.foo"].safe_to_delete is False

    @pytest.mark.asyncio
    async def test_progress_events(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/big", 2 * MB_KB)
        fake_fs.add_file("/lib/Caches/small", 1)
        events = []

        service = make_service(fake_fs, fake_du, on_progress=events.append)
        report = await service.scan([CACHES])

        kinds = [e.kind for e in events]
        assert kinds[0] == ProgressKind.TARGET_STARTED
        assert kinds[-1] == ProgressKind.TARGET_FINISHED
        assert ProgressKind.ENTRY_ADDED in kinds
        assert ProgressKind.ENTRY_PRUNED in kinds
        assert events[0].entries == 2
        assert events[-1].entries == len(report.items)
        assert events[-1].size_bytes == report.total_bytes

    @pytest.mark.asyncio
    async def test_skipped_entries_emit_events(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        fake_du.denied.add("/lib/Caches/a")
        events = []

        await make_service(fake_fs, fake_du, on_progress=events.append).scan([CACHES])

        skipped = [e for e in events if e.kind == ProgressKind.ENTRY_SKIPPED]
        assert [e.path for e in skipped] == ["/lib/Caches/a"]
        assert skipped[0].reason

    @pytest.mark.asyncio
    async def test_targets_are_reported_in_order(self, fake_fs, fake_du):
        fake_fs.add_file("/lib/Caches/a", 2 * MB_KB)
        fake_fs.add_file("/lib/Prefs/b", 2 * MB_KB)

        report = await make_service(fake_fs, fake_du).scan([PREFERENCES, CACHES])

        assert [t.path for t in report.targets] == ["/lib/Prefs", "/lib/Caches"]
        assert [i.path for i in report.items] == ["/lib/Prefs/b", "/lib/Caches/a"]
