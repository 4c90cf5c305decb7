import asyncio

import pytest

from app.core.optimistic import OptimisticController, Outcome
from app.core.toasts import ToastSink
from app.errors import OptimisticRollbackError, RemoteError
from app.gateway.filters import eq
from app.views.communities_view import CommunitiesView
from tests.helpers import create_community, create_user


class Counter:
    def __init__(self, value):
        self.value = value


def counter_run(controller, counter, mutate, key="join"):
    return controller.run(
        key,
        snapshot=lambda: counter.value,
        apply=lambda: setattr(counter, "value", counter.value + 1),
        mutate=mutate,
        restore=lambda saved: setattr(counter, "value", saved),
        error_message="Could not join",
    )


@pytest.mark.asyncio
async def test_success_keeps_applied_state_and_reconciles():
    toasts = ToastSink()
    controller = OptimisticController(toasts)
    counter = Counter(5)
    seen = []

    async def mutate():
        assert counter.value == 6
        return {"id": "row"}

    result = await controller.run(
        "join",
        snapshot=lambda: counter.value,
        apply=lambda: setattr(counter, "value", 6),
        mutate=mutate,
        restore=lambda saved: setattr(counter, "value", saved),
        reconcile=seen.append,
    )

    assert result.ok and result.value == {"id": "row"}
    assert counter.value == 6
    assert seen == [{"id": "row"}]
    assert toasts.history == []


@pytest.mark.asyncio
async def test_failure_restores_snapshot_and_toasts():
    toasts = ToastSink()
    controller = OptimisticController(toasts)
    counter = Counter(5)

    async def mutate():
        raise RemoteError("boom", code="500")

    result = await counter_run(controller, counter, mutate)

    assert result.outcome == Outcome.FAILED
    assert counter.value == 5
    assert isinstance(result.error, OptimisticRollbackError)
    assert result.error.cause.code == "500"
    assert toasts.last.kind == "error"
    assert toasts.last.message == "Could not join"


@pytest.mark.asyncio
async def test_second_click_while_in_flight_is_ignored():
    controller = OptimisticController()
    counter = Counter(5)
    release = asyncio.Event()

    async def slow():
        await release.wait()
        return True

    first = asyncio.create_task(counter_run(controller, counter, slow))
    await asyncio.sleep(0)
    assert controller.is_pending("join")

    second = await counter_run(controller, counter, slow)
    assert second.outcome == Outcome.SKIPPED
    assert counter.value == 6

    release.set()
    assert (await first).ok
    assert counter.value == 6
    assert not controller.is_pending("join")


@pytest.mark.asyncio
async def test_unexpected_errors_still_release_the_key():
    controller = OptimisticController()
    counter = Counter(0)

    async def broken():
        raise ValueError("bug")

    with pytest.raises(ValueError):
        await counter_run(controller, counter, broken)
    assert not controller.is_pending("join")


# --------------------------------------------------
# Join / leave through the communities view
# --------------------------------------------------
@pytest.mark.asyncio
async def test_join_moves_member_count_by_one(gateway):
    owner = await create_user(gateway, "owner")
    joiner = await create_user(gateway, "joiner")
    community = await create_community(gateway, owner)

    view = CommunitiesView(gateway, joiner)
    await view.load()
    card = view.cards[0]
    assert (card.is_member, card.community.member_count) == (False, 1)

    result = await view.join(community["id"])

    assert result.ok
    assert (card.is_member, card.community.member_count) == (True, 2)
    stored = await gateway.select_one("communities", where=[eq("id", community["id"])])
    assert stored["member_count"] == 2

    await view.leave(community["id"])
    assert (card.is_member, card.community.member_count) == (False, 1)


@pytest.mark.asyncio
async def test_failed_join_restores_exact_count(flaky):
    owner = await create_user(flaky.inner, "owner")
    joiner = await create_user(flaky.inner, "joiner")
    community = await create_community(flaky.inner, owner)
    await flaky.inner.update("communities", {"member_count": 5}, where=[eq("id", community["id"])])

    view = CommunitiesView(flaky, joiner)
    await view.load()
    card = view.cards[0]
    counts = []
    view.add_listener(lambda: counts.append(card.community.member_count))

    flaky.fail("insert", "community_members")
    result = await view.join(community["id"])

    assert result.outcome == Outcome.FAILED
    assert counts == [6, 5]
    assert (card.is_member, card.community.member_count) == (False, 5)
    assert view.toasts.last.message == "Could not join the community"


@pytest.mark.asyncio
async def test_double_join_applies_delta_once(gateway):
    owner = await create_user(gateway, "owner")
    joiner = await create_user(gateway, "joiner")
    community = await create_community(gateway, owner)

    view = CommunitiesView(gateway, joiner)
    await view.load()

    results = await asyncio.gather(view.join(community["id"]), view.join(community["id"]))

    assert sorted(r.outcome.value for r in results) == ["ok", "skipped"]
    assert view.cards[0].community.member_count == 2
