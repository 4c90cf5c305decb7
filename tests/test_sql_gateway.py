import asyncio
import threading

import pytest
import sqlalchemy as sa

from app.gateway.base import ChangeType, GatewayError
from app.gateway.filters import eq
from app.models.hobby import HOBBY_CATALOG
from tests.helpers import create_community, create_user


@pytest.mark.asyncio
async def test_statements_run_off_the_event_loop_thread(gateway):
    threads = []
    sa.event.listen(
        gateway.engine,
        "before_cursor_execute",
        lambda *args: threads.append(threading.get_ident()),
    )

    await gateway.select("hobbies")
    await gateway.insert("hobbies", {"name": "Climbing"})

    assert threads
    assert threading.get_ident() not in threads


@pytest.mark.asyncio
async def test_concurrent_writes_share_one_sqlite_connection(gateway):
    await asyncio.gather(*(
        gateway.insert("hobbies", {"name": f"Extra {i}"}) for i in range(10)
    ))
    assert await gateway.count("hobbies") == len(HOBBY_CATALOG) + 10


@pytest.mark.asyncio
async def test_constraint_violation_maps_to_gateway_code(gateway):
    with pytest.raises(GatewayError) as exc:
        await gateway.insert("hobbies", {"name": HOBBY_CATALOG[0]})
    assert exc.value.code == "23505"

    # The failed transaction leaves the session usable
    assert await gateway.count("hobbies") == len(HOBBY_CATALOG)


@pytest.mark.asyncio
async def test_mutations_publish_after_commit(gateway):
    me = await create_user(gateway, "me")
    community = await create_community(gateway, me)
    events = []
    channel = gateway.channel("watch")
    channel.on("*", "community_members", events.append)
    await channel.subscribe()

    await gateway.delete("community_members", where=[eq("community_id", community["id"])])
    await asyncio.sleep(0)

    assert [e.type for e in events] == [ChangeType.DELETE]
    row = await gateway.select_one("communities", where=[eq("id", community["id"])])
    assert row["member_count"] == 0
    await channel.close()
