import pytest

from app.cases import InMemoryCaseStore
from app.models import CaseCreate, CaseUpdate, ChatMessageCreate


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _payload(title: str) -> CaseCreate:
    return CaseCreate(
        title=title,
        image_url="data:image/jpeg;base64,/9j/",
        explanation=f"{title} explanation",
        category="Stones",
    )


@pytest.mark.anyio
async def test_cases_are_numbered_and_listed_newest_first():
    store = InMemoryCaseStore()
    for title in ("First", "Second", "Third"):
        await store.create_case(_payload(title))

    cases = await store.list_cases()

    assert [(c.case_number, c.title) for c in cases] == [(3, "Third"), (2, "Second"), (1, "First")]
    assert (await store.get_case_by_number(2)).title == "Second"


@pytest.mark.anyio
async def test_delete_renumbers_later_cases_and_drops_messages():
    store = InMemoryCaseStore()
    first = await store.create_case(_payload("First"))
    second = await store.create_case(_payload("Second"))
    third = await store.create_case(_payload("Third"))
    await store.create_message(second.id, ChatMessageCreate(role="user", content="Why?"))

    removed = await store.delete_case(second.id)

    assert removed.id == second.id
    assert await store.get_case(second.id) is None
    assert await store.list_messages(second.id) == []
    assert (await store.get_case(first.id)).case_number == 1
    assert (await store.get_case(third.id)).case_number == 2

    fourth = await store.create_case(_payload("Fourth"))
    assert fourth.case_number == 3


@pytest.mark.anyio
async def test_delete_missing_case_returns_none():
    assert await InMemoryCaseStore().delete_case("missing") is None


@pytest.mark.anyio
async def test_update_applies_only_provided_fields():
    store = InMemoryCaseStore()
    case = await store.create_case(_payload("Draft"))

    updated = await store.update_case(case.id, CaseUpdate(title="Staghorn Calculus Left Kidney"))

    assert updated.title == "Staghorn Calculus Left Kidney"
    assert updated.explanation == "Draft explanation"
    assert updated.case_number == case.case_number
    assert await store.update_case("missing", CaseUpdate(title="x")) is None


@pytest.mark.anyio
async def test_messages_keep_insertion_order():
    store = InMemoryCaseStore()
    case = await store.create_case(_payload("Case"))
    await store.create_message(case.id, ChatMessageCreate(role="user", content="Q"))
    await store.create_message(case.id, ChatMessageCreate(role="assistant", content="A"))

    messages = await store.list_messages(case.id)

    assert [(m.role, m.content) for m in messages] == [("user", "Q"), ("assistant", "A")]
    assert all(m.case_id == case.id for m in messages)

    await store.delete_messages(case.id)
    assert await store.list_messages(case.id) == []
