"""
Unit tests for AchievementEvaluationService (batch orchestration)

Covers routing of results to awards or progress, idempotent re-evaluation,
partial-failure semantics and the all-users sweep.
"""
import psycopg
import pytest
from datetime import timedelta

from volunteer_achievements.exceptions import ConnectionError, EvaluationError, QueryError


def _fail_on(service, failing_achievement_id=None, failing_user_id=None):
    """Make rule evaluation raise for one achievement or one user; returns the evaluated (user, achievement) log"""
    original = service.rules.evaluate
    evaluated = []

    async def flaky(user_id, achievement):
        evaluated.append((user_id, achievement.id))
        if achievement.id == failing_achievement_id or user_id == failing_user_id:
            raise RuntimeError("activity query timed out")
        return await original(user_id, achievement)

    service.rules.evaluate = flaky
    return evaluated


# ============================================================================
# Routing
# ============================================================================

@pytest.mark.asyncio
async def test_earned_achievement_is_awarded(service, store, notifier, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 10}))
    store.add_hours(test_user_id, 12, today)

    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 1
    assert result.updated == 0
    awards = store.awards()
    assert len(awards) == 1
    assert awards[0].metadata["total_hours"] == 12
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_milestone_progress_recorded(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 50}, is_milestone=True))
    store.add_hours(test_user_id, 20, today)

    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 0
    assert result.updated == 1
    progress = await service.get_progress(test_user_id)
    assert len(progress) == 1
    assert progress[0].current_value == 20
    assert progress[0].target_value == 50
    assert progress[0].percentage == 40


@pytest.mark.asyncio
async def test_non_milestone_records_no_progress(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 50}))
    store.add_hours(test_user_id, 20, today)

    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 0
    assert result.updated == 0
    assert await service.get_progress(test_user_id) == []


@pytest.mark.asyncio
async def test_certification_milestone_records_no_progress(service, store, make_achievement, test_user_id):
    store.add_achievement(make_achievement(
        1, "certification", {"requiredCertifications": ["First Aid", "CPR"]}, is_milestone=True
    ))
    store.add_certification(test_user_id, "First Aid")

    result = await service.evaluate_for_user(test_user_id)

    assert result.updated == 0
    assert await service.get_progress(test_user_id) == []


@pytest.mark.asyncio
async def test_zero_target_milestone_does_not_crash(service, store, make_achievement, test_user_id):
    store.add_achievement(make_achievement(1, "custom", is_milestone=True))
    store.add_achievement(make_achievement(2, "events", {"threshold": 0, "organizationId": 77}, is_milestone=True))

    result = await service.evaluate_for_user(test_user_id)

    # events with threshold 0 is earned with zero attendance
    assert result.awarded == 1
    assert result.updated == 0


@pytest.mark.asyncio
async def test_disabled_achievements_skipped(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}, is_enabled=False))
    store.add_hours(test_user_id, 5, today)

    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 0
    assert store.awards() == []


@pytest.mark.asyncio
async def test_single_achievement_filter(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}))
    store.add_achievement(make_achievement(2, "hours", {"threshold": 2}))
    store.add_hours(test_user_id, 5, today)

    result = await service.evaluate_for_user(test_user_id, achievement_id=2)

    assert result.awarded == 1
    assert [award.achievement_id for award in store.awards()] == [2]


# ============================================================================
# Idempotence
# ============================================================================

@pytest.mark.asyncio
async def test_re_evaluation_is_idempotent(service, store, notifier, auditor, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 10}))
    store.add_achievement(make_achievement(2, "events", {"threshold": 1}))
    store.add_hours(test_user_id, 12, today)
    store.add_attendance(test_user_id, today)

    first = await service.evaluate_for_user(test_user_id)
    second = await service.evaluate_for_user(test_user_id)

    assert first.awarded == 2
    assert second.awarded == 0
    assert second.updated == 0
    assert len(store.awards()) == 2
    assert len(notifier.sent) == 2
    assert len(auditor.entries) == 2


@pytest.mark.asyncio
async def test_awarded_achievements_are_not_re_evaluated(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 10}))
    store.add_hours(test_user_id, 12, today)
    await service.evaluate_for_user(test_user_id)

    evaluated = _fail_on(service)
    await service.evaluate_for_user(test_user_id)

    assert evaluated == []


@pytest.mark.asyncio
async def test_progress_row_kept_after_award(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 50}, is_milestone=True))
    store.add_hours(test_user_id, 20, today)
    await service.evaluate_for_user(test_user_id)

    store.add_hours(test_user_id, 30, today - timedelta(days=1))
    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 1
    progress = await service.get_progress(test_user_id, 1)
    assert progress[0].percentage == 40


@pytest.mark.asyncio
async def test_revoke_then_re_evaluate_awards_again(
    service, store, notifier, make_achievement, test_user_id, admin_user_id, today
):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 10}))
    store.add_hours(test_user_id, 12, today)
    await service.evaluate_for_user(test_user_id)
    award = store.awards()[0]

    await service.revoke(award.id, admin_user_id, "Duplicate hours entry")
    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 1
    assert len(store.awards()) == 1
    assert store.awards()[0].id != award.id
    assert len(notifier.sent) == 2


@pytest.mark.asyncio
async def test_grant_then_evaluate_does_not_duplicate(
    service, store, make_achievement, test_user_id, admin_user_id, today
):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 10}))
    await service.grant(test_user_id, 1, admin_user_id, "Founding volunteer")
    store.add_hours(test_user_id, 12, today)

    result = await service.evaluate_for_user(test_user_id)

    assert result.awarded == 0
    assert len(store.awards()) == 1
    assert store.awards()[0].granted_by == admin_user_id


# ============================================================================
# Failure Semantics
# ============================================================================

@pytest.mark.asyncio
async def test_failure_aborts_rest_of_batch(service, store, make_achievement, test_user_id, today):
    """A is committed, B fails, C is never attempted"""
    for achievement_id in (1, 2, 3):
        store.add_achievement(make_achievement(achievement_id, "hours", {"threshold": 1}))
    store.add_hours(test_user_id, 5, today)
    evaluated = _fail_on(service, failing_achievement_id=2)

    with pytest.raises(EvaluationError) as exc_info:
        await service.evaluate_for_user(test_user_id)

    assert evaluated == [(test_user_id, 1), (test_user_id, 2)]
    assert [award.achievement_id for award in store.awards()] == [1]
    assert exc_info.value.awarded == 1
    assert exc_info.value.updated == 0
    assert exc_info.value.user_id == test_user_id
    assert exc_info.value.achievement_id == 2
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_failure_reports_progress_count(service, store, make_achievement, test_user_id, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 100}, is_milestone=True))
    store.add_achievement(make_achievement(2, "hours", {"threshold": 100}))
    store.add_hours(test_user_id, 5, today)
    _fail_on(service, failing_achievement_id=2)

    with pytest.raises(EvaluationError) as exc_info:
        await service.evaluate_for_user(test_user_id)

    assert exc_info.value.awarded == 0
    assert exc_info.value.updated == 1
    assert len(await service.get_progress(test_user_id)) == 1


@pytest.mark.asyncio
async def test_store_error_keeps_its_type(service, store, make_achievement, test_user_id):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}))

    async def broken(*args, **kwargs):
        raise QueryError("Database query failed: relation does not exist", query="SELECT 1")

    store.sum_approved_hours = broken

    with pytest.raises(QueryError) as exc_info:
        await service.evaluate_for_user(test_user_id)

    assert exc_info.value.awarded == 0


@pytest.mark.asyncio
async def test_notification_failure_fails_evaluation(store, auditor, make_achievement, test_user_id, today):
    from unittest.mock import AsyncMock

    from volunteer_achievements.engine import AchievementEvaluationService

    notifier = AsyncMock()
    notifier.notify = AsyncMock(side_effect=RuntimeError("notification service down"))
    service = AchievementEvaluationService(store=store, notifier=notifier, auditor=auditor)
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}))
    store.add_hours(test_user_id, 5, today)

    with pytest.raises(EvaluationError) as exc_info:
        await service.evaluate_for_user(test_user_id)

    assert exc_info.value.awarded == 0
    assert exc_info.value.achievement_id == 1


# ============================================================================
# All-Users Sweep
# ============================================================================

@pytest.mark.asyncio
async def test_evaluate_all_users(service, store, make_achievement, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 10}))
    store.add_achievement(make_achievement(2, "hours", {"threshold": 100}, is_milestone=True))
    for user_id in (201, 202, 203):
        store.add_hours(user_id, 5 * (user_id - 200), today)
    store.add_user(204)

    summary = await service.evaluate_all_users(batch_size=2)

    assert summary.users == 4
    assert summary.awarded == 2       # users 202 and 203 reach 10 hours
    assert summary.updated == 4
    assert summary.failed == 0


@pytest.mark.asyncio
async def test_evaluate_all_users_isolates_failures(service, store, make_achievement, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}))
    for user_id in (201, 202, 203):
        store.add_hours(user_id, 5, today)
    _fail_on(service, failing_user_id=202)

    summary = await service.evaluate_all_users()

    assert summary.users == 3
    assert summary.failed == 1
    assert summary.awarded == 2
    assert sorted(award.user_id for award in store.awards()) == [201, 203]


@pytest.mark.asyncio
async def test_evaluate_all_users_single_achievement(service, store, make_achievement, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}))
    store.add_achievement(make_achievement(2, "events", {"threshold": 1}))
    store.add_hours(201, 5, today)
    store.add_attendance(201, today)

    summary = await service.evaluate_all_users(achievement_id=2)

    assert summary.awarded == 1
    assert [award.achievement_id for award in store.awards()] == [2]


@pytest.mark.asyncio
async def test_evaluate_all_users_no_users(service):
    summary = await service.evaluate_all_users()

    assert summary.users == 0
    assert summary.failed == 0


@pytest.mark.asyncio
async def test_evaluate_all_users_count_failure_is_wrapped(service, store):
    async def broken():
        raise psycopg.OperationalError("connection refused")

    store.count_users = broken

    with pytest.raises(ConnectionError) as exc_info:
        await service.evaluate_all_users()

    assert exc_info.value.operation == "evaluate_all_users"
    assert isinstance(exc_info.value.__cause__, psycopg.OperationalError)


@pytest.mark.asyncio
async def test_evaluate_all_users_paging_failure_is_wrapped(service, store, make_achievement, today):
    store.add_achievement(make_achievement(1, "hours", {"threshold": 1}))
    for user_id in (201, 202, 203):
        store.add_hours(user_id, 5, today)
    original = store.list_user_ids

    async def fail_second_page(offset=0, limit=50):
        if offset > 0:
            raise RuntimeError("cursor closed")
        return await original(offset, limit)

    store.list_user_ids = fail_second_page

    with pytest.raises(EvaluationError) as exc_info:
        await service.evaluate_all_users(batch_size=2)

    assert exc_info.value.operation == "evaluate_all_users"
    assert exc_info.value.context == {"offset": 2, "users_processed": 2}
    assert sorted(award.user_id for award in store.awards()) == [201, 202]
