"""Tests for the background recompute tasks, run eagerly in-process."""

import pytest

from curtain.services.recompute import set_coordinator
from curtain.tasks.recompute_exclusions import (
    recompute_all_exclusions_job,
    recompute_user_exclusions_job,
)
from tests.factories import create_rule, exclusion_rows


@pytest.fixture
def global_coordinator(coordinator):
    set_coordinator(coordinator)
    yield coordinator
    set_coordinator(None)


class TestRecomputeUserJob:
    def test_success(self, db_session, global_coordinator, user_id):
        create_rule(db_session, user_id, "tag", "INCLUDE", ["T1"])

        result = recompute_user_exclusions_job.apply(args=[user_id]).get()

        assert result["status"] == "success"
        assert result["result"]["total"] == 4
        assert len(exclusion_rows(db_session, user_id)) == 4

    def test_unknown_user_reports_failure(self, global_coordinator):
        result = recompute_user_exclusions_job.apply(
            args=[9999], kwargs={"request_id": "req-1"}
        ).get()

        assert result == {
            "status": "failed",
            "error_code": "E_USER_NOT_FOUND",
            "error": "User not found",
        }


class TestRecomputeAllJob:
    def test_counts(self, global_coordinator, user_id, admin_id):
        result = recompute_all_exclusions_job.apply().get()

        assert result == {"success": 2, "failed": 0, "errors": []}
