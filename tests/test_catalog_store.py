import pytest

from catalog_svc.errors import CatalogNotFoundError, InvalidInputError, NameConflictError
from catalog_svc.ids import new_id


async def test_create_trims_name_and_assigns_id(catalogs, alice):
    catalog = await catalogs.create(alice, "  Birds of 2024 ", "Spring walks")

    assert catalog.name == "Birds of 2024"
    assert catalog.owner == alice
    assert len(catalog.id) == 32
    assert (await catalogs.get(catalog.id)).name == "Birds of 2024"


async def test_duplicate_name_for_same_owner_conflicts(catalogs, alice, bob):
    await catalogs.create(alice, "Birds")

    with pytest.raises(NameConflictError):
        await catalogs.create(alice, " Birds ")

    # Another owner may reuse the name
    other = await catalogs.create(bob, "Birds")
    assert other.owner == bob


@pytest.mark.parametrize("name", ["", "   ", "x" * 101, None])
async def test_invalid_names_rejected(catalogs, alice, name):
    with pytest.raises(InvalidInputError):
        await catalogs.create(alice, name)


async def test_description_length_bounded(catalogs, alice):
    with pytest.raises(InvalidInputError):
        await catalogs.create(alice, "Birds", "d" * 501)


async def test_rename_collision_leaves_record_unchanged(catalogs, alice):
    birds = await catalogs.create(alice, "Birds")
    await catalogs.create(alice, "Plants")

    with pytest.raises(NameConflictError):
        await catalogs.update(birds.id, alice, {"name": "Plants"})

    unchanged = await catalogs.get(birds.id)
    assert unchanged.name == "Birds"
    assert unchanged.updated_at == birds.updated_at

    # The old name is still reserved, the new one still taken by Plants
    with pytest.raises(NameConflictError):
        await catalogs.create(alice, "Birds")


async def test_rename_frees_old_name(catalogs, alice):
    birds = await catalogs.create(alice, "Birds")
    await catalogs.update(birds.id, alice, {"name": "Raptors"})

    again = await catalogs.create(alice, "Birds")
    assert again.id != birds.id


async def test_update_is_owner_scoped(catalogs, alice, bob):
    birds = await catalogs.create(alice, "Birds")

    with pytest.raises(CatalogNotFoundError):
        await catalogs.update(birds.id, bob, {"name": "Mine"})
    with pytest.raises(CatalogNotFoundError):
        await catalogs.update(new_id(), alice, {"name": "Ghost"})


async def test_update_rejects_empty_and_unknown_fields(catalogs, alice):
    birds = await catalogs.create(alice, "Birds")

    with pytest.raises(InvalidInputError):
        await catalogs.update(birds.id, alice, {})
    with pytest.raises(InvalidInputError):
        await catalogs.update(birds.id, alice, {"owner": "someone"})


async def test_update_clears_description(catalogs, alice):
    birds = await catalogs.create(alice, "Birds", "old")
    updated = await catalogs.update(birds.id, alice, {"description": None})
    assert updated.description is None
    assert updated.updated_at >= birds.updated_at


async def test_list_by_owner_most_recently_updated_first(catalogs, alice, bob):
    first = await catalogs.create(alice, "First")
    second = await catalogs.create(alice, "Second")
    await catalogs.create(bob, "Not mine")

    assert [c.id for c in await catalogs.list_by_owner(alice)] == [second.id, first.id]

    await catalogs.update(first.id, alice, {"description": "touched"})
    assert [c.id for c in await catalogs.list_by_owner(alice)] == [first.id, second.id]


async def test_delete_is_owner_scoped_and_idempotent(catalogs, alice, bob):
    birds = await catalogs.create(alice, "Birds")

    assert await catalogs.delete(birds.id, bob) is False
    assert await catalogs.delete(birds.id, alice) is True
    assert await catalogs.delete(birds.id, alice) is False
    assert await catalogs.get(birds.id) is None


async def test_get_malformed_id_returns_none(catalogs):
    assert await catalogs.get("not-an-id") is None


async def test_returned_records_are_copies(catalogs, alice):
    birds = await catalogs.create(alice, "Birds")
    birds.name = "Mutated"
    assert (await catalogs.get(birds.id)).name == "Birds"


async def test_delete_all_owned_by(catalogs, alice, bob):
    a1 = await catalogs.create(alice, "One")
    a2 = await catalogs.create(alice, "Two")
    b1 = await catalogs.create(bob, "One")

    removed = await catalogs.delete_all_owned_by(alice)

    assert set(removed) == {a1.id, a2.id}
    assert await catalogs.list_by_owner(alice) == []
    assert await catalogs.get(b1.id) is not None
