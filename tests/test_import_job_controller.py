"""
tests/test_import_job_controller.py

End-to-end runs of the import state machine against the in-memory store.
"""

from __future__ import annotations

import pytest
from conftest import CAFE_ID, FakeBusinessStore, business_rows, make_table

from app.domain.business_import import ImportPhase, ImportSnapshot, ParsedTable
from app.domain.import_errors import (
    ImportJobStateError,
    ImportNotConfirmedError,
    ReferenceFetchError,
    StructuralValidationError,
    TableParseError,
)
from app.services.import_job_controller import ImportJobController


@pytest.fixture()
def controller(store: FakeBusinessStore, fake_sleep) -> ImportJobController:
    return ImportJobController(store, sleep=fake_sleep)


class TestSuccessfulRuns:
    def test_valid_table_completes_with_all_rows_processed(
        self,
        controller: ImportJobController,
        store: FakeBusinessStore,
    ) -> None:
        final = controller.run(make_table(business_rows(75)))

        assert final.phase is ImportPhase.COMPLETED
        assert final.total == 75
        assert final.processed == final.total
        assert final.success + final.failed == final.processed
        assert len(store.inserted) == 75

    def test_row_failures_complete_with_errors(self, store: FakeBusinessStore, fake_sleep) -> None:
        store.fail_slugs = {"business-2"}
        controller = ImportJobController(store, sleep=fake_sleep)

        final = controller.run(make_table(business_rows(3)))

        assert final.phase is ImportPhase.COMPLETED_WITH_ERRORS
        assert (final.success, final.failed) == (2, 1)
        assert final.errors[0].row == 3

    def test_counters_add_up_when_bulk_insert_echoes_nothing(self, fake_sleep) -> None:
        class EmptyEchoStore(FakeBusinessStore):
            def bulk_insert(self, records):  # type: ignore[override]
                super().bulk_insert(records)
                return 0

        controller = ImportJobController(EmptyEchoStore(), sleep=fake_sleep)

        final = controller.run(make_table(business_rows(3)))

        assert final.phase is ImportPhase.COMPLETED
        assert (final.processed, final.success, final.failed) == (3, 3, 0)

    def test_inserted_records_carry_resolved_references_and_pending_status(
        self,
        controller: ImportJobController,
        store: FakeBusinessStore,
    ) -> None:
        rows = [
            {"name": "Luna", "address": "1", "category_slug": "cafe"},
            {"name": "Sol", "address": "2", "category_slug": "Cafe"},
            {"name": "Mar", "address": "3", "category_slug": "unknown-xyz"},
        ]

        controller.run(make_table(rows))

        assert [record.category_id for record in store.inserted] == [CAFE_ID, CAFE_ID, None]
        assert {record.status for record in store.inserted} == {"pending"}

    def test_snapshots_are_monotonic_and_versioned(
        self,
        store: FakeBusinessStore,
        fake_sleep,
    ) -> None:
        store.fail_slugs = {"business-4", "business-9"}
        controller = ImportJobController(store, batch_size=3, sleep=fake_sleep)
        seen: list[ImportSnapshot] = []
        controller.subscribe(seen.append)

        controller.run(make_table(business_rows(10)))

        versions = [snapshot.version for snapshot in seen]
        assert versions == list(range(versions[0], versions[0] + len(seen)))
        for earlier, later in zip(seen, seen[1:]):
            assert later.processed >= earlier.processed
            assert later.success >= earlier.success
            assert later.failed >= earlier.failed
        assert [snapshot.phase for snapshot in seen][:3] == [
            ImportPhase.VALIDATING,
            ImportPhase.RESOLVING,
            ImportPhase.IMPORTING,
        ]
        assert seen[-1].phase is ImportPhase.COMPLETED_WITH_ERRORS

    def test_import_csv_parses_raw_bytes(self, controller: ImportJobController, store: FakeBusinessStore) -> None:
        final = controller.import_csv(b"name,address\nLuna,1 Main St\n\nSol,2 High St\n")

        assert final.phase is ImportPhase.COMPLETED
        assert store.inserted_slugs == ["luna", "sol"]


class TestAborts:
    def test_empty_table_aborts_before_any_fetch_or_insert(
        self,
        controller: ImportJobController,
        store: FakeBusinessStore,
    ) -> None:
        with pytest.raises(StructuralValidationError) as excinfo:
            controller.run(ParsedTable(headers=("name",), rows=()))

        assert str(excinfo.value) == "CSV file is empty"
        assert controller.snapshot().phase is ImportPhase.ABORTED
        assert store.fetch_calls == []
        assert store.bulk_calls == []

    def test_missing_name_column_aborts_naming_it(
        self,
        controller: ImportJobController,
        store: FakeBusinessStore,
    ) -> None:
        with pytest.raises(StructuralValidationError) as excinfo:
            controller.run(make_table([{"title": "Luna"}]))

        assert "Missing required columns: name" in str(excinfo.value)
        assert store.fetch_calls == []

    def test_blank_name_aborts_whole_job_with_no_partial_import(
        self,
        controller: ImportJobController,
        store: FakeBusinessStore,
    ) -> None:
        rows = business_rows(5)
        rows[3]["name"] = "  "

        with pytest.raises(StructuralValidationError):
            controller.run(make_table(rows))

        snapshot = controller.snapshot()
        assert snapshot.phase is ImportPhase.ABORTED
        assert snapshot.problems[0].rows == (5,)
        assert snapshot.message == "Rows with missing names: 5"
        assert store.inserted == []

    def test_reference_fetch_failure_aborts_before_writes(self, fake_sleep) -> None:
        store = FakeBusinessStore(fail_fetch=True)
        controller = ImportJobController(store, sleep=fake_sleep)

        with pytest.raises(ReferenceFetchError):
            controller.run(make_table(business_rows(3)))

        snapshot = controller.snapshot()
        assert snapshot.phase is ImportPhase.ABORTED
        assert snapshot.processed == 0
        assert store.bulk_calls == []

    def test_unparseable_file_aborts_with_single_message(
        self,
        controller: ImportJobController,
        store: FakeBusinessStore,
    ) -> None:
        with pytest.raises(TableParseError):
            controller.import_csv(b"name\n\xffLuna\n")

        snapshot = controller.snapshot()
        assert snapshot.phase is ImportPhase.ABORTED
        assert snapshot.message == "CSV must be UTF-8 encoded."
        assert snapshot.errors == ()
        assert store.fetch_calls == []


class TestConfirmationGate:
    def test_declining_a_large_import_leaves_job_idle_with_no_writes(
        self,
        store: FakeBusinessStore,
        fake_sleep,
    ) -> None:
        controller = ImportJobController(store, confirm_threshold=100, sleep=fake_sleep)
        asked: list[int] = []

        def _decline(total: int) -> bool:
            asked.append(total)
            return False

        with pytest.raises(ImportNotConfirmedError) as excinfo:
            controller.run(make_table(business_rows(120)), confirm=_decline)

        snapshot = controller.snapshot()
        assert asked == [120]
        assert (excinfo.value.total, excinfo.value.threshold) == (120, 100)
        assert snapshot.phase is ImportPhase.IDLE
        assert snapshot.total == 0
        assert store.fetch_calls == []
        assert store.bulk_calls == []

    def test_missing_confirmation_counts_as_declined(self, store: FakeBusinessStore, fake_sleep) -> None:
        controller = ImportJobController(store, confirm_threshold=100, sleep=fake_sleep)

        with pytest.raises(ImportNotConfirmedError):
            controller.run(make_table(business_rows(101)))

        assert controller.snapshot().phase is ImportPhase.IDLE

    def test_confirmed_large_import_runs_in_paced_batches(
        self,
        store: FakeBusinessStore,
        fake_sleep,
        sleep_calls: list[float],
    ) -> None:
        controller = ImportJobController(store, confirm_threshold=100, sleep=fake_sleep)

        final = controller.run(make_table(business_rows(120)), confirm=lambda total: True)

        assert final.phase is ImportPhase.COMPLETED
        assert final.success == 120
        assert len(store.bulk_calls) == 3
        assert sleep_calls == [0.1, 0.1]

    def test_threshold_itself_needs_no_confirmation(self, store: FakeBusinessStore, fake_sleep) -> None:
        controller = ImportJobController(store, confirm_threshold=100, sleep=fake_sleep)

        def _never(total: int) -> bool:
            raise AssertionError("confirmation should not be requested")

        final = controller.run(make_table(business_rows(100)), confirm=_never)

        assert final.success == 100

    def test_declined_job_can_start_again(self, store: FakeBusinessStore, fake_sleep) -> None:
        controller = ImportJobController(store, confirm_threshold=2, sleep=fake_sleep)
        table = make_table(business_rows(3))

        with pytest.raises(ImportNotConfirmedError):
            controller.run(table, confirm=lambda total: False)
        final = controller.run(table, confirm=lambda total: True)

        assert final.phase is ImportPhase.COMPLETED


class TestDetachAndRerun:
    def test_detach_while_running_hides_but_does_not_stop(
        self,
        store: FakeBusinessStore,
        fake_sleep,
    ) -> None:
        controller = ImportJobController(store, batch_size=2, sleep=fake_sleep)
        detached_at: list[ImportSnapshot] = []

        def _close_dialog(snapshot: ImportSnapshot) -> None:
            if snapshot.phase is ImportPhase.IMPORTING and snapshot.processed == 2 and not snapshot.detached:
                detached_at.append(controller.detach())

        controller.subscribe(_close_dialog)

        final = controller.run(make_table(business_rows(6)))

        assert detached_at[0].detached is True
        assert detached_at[0].phase is ImportPhase.IMPORTING
        assert final.phase is ImportPhase.COMPLETED
        assert final.processed == 6
        assert final.detached is True
        assert len(store.inserted) == 6

    def test_detach_after_completion_returns_summary_then_resets(
        self,
        controller: ImportJobController,
    ) -> None:
        final = controller.run(make_table(business_rows(3)))

        summary = controller.detach()

        assert summary == final
        after = controller.snapshot()
        assert after.phase is ImportPhase.IDLE
        assert (after.total, after.success, after.errors) == (0, 0, ())

    def test_detach_when_idle_is_a_no_op(self, controller: ImportJobController) -> None:
        before = controller.snapshot()

        assert controller.detach() == before
        assert controller.snapshot() == before

    def test_starting_again_before_dismissing_is_rejected(self, controller: ImportJobController) -> None:
        controller.run(make_table(business_rows(1)))

        with pytest.raises(ImportJobStateError):
            controller.run(make_table(business_rows(1)))

    def test_rerun_inserts_new_records_again(self, fake_sleep) -> None:
        store = FakeBusinessStore(enforce_unique=False)
        controller = ImportJobController(store, sleep=fake_sleep)
        table = make_table(business_rows(4))

        controller.run(table)
        controller.detach()
        second = controller.run(table)

        assert second.success == 4
        assert len(store.inserted) == 8

    def test_rerun_after_partial_failure_only_changes_failed_rows_outcome(
        self,
        store: FakeBusinessStore,
        fake_sleep,
    ) -> None:
        store.fail_slugs = {"business-2"}
        controller = ImportJobController(store, sleep=fake_sleep)
        table = make_table(business_rows(3))

        first = controller.run(table)
        controller.detach()
        store.fail_slugs = set()
        second = controller.run(table)

        assert (first.success, first.failed) == (2, 1)
        assert (second.success, second.failed) == (1, 2)
        assert sorted(store.inserted_slugs) == ["business-1", "business-2", "business-3"]
