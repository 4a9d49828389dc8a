"""Tests for folder endpoints."""
from httpx import AsyncClient


async def test_create_folder(client: AsyncClient) -> None:
    response = await client.post("/folders/", json={"name": "Reading", "color": "blue"})

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Reading"
    assert data["color"] == "blue"
    assert data["parent_id"] is None


async def test_create_folder_blank_name(client: AsyncClient) -> None:
    response = await client.post("/folders/", json={"name": "   "})
    assert response.status_code == 422


async def test_create_folder_unknown_parent(client: AsyncClient) -> None:
    response = await client.post("/folders/", json={"name": "Child", "parent_id": 9999})
    assert response.status_code == 404


async def test_get_folder_tree(client: AsyncClient) -> None:
    work = (await client.post("/folders/", json={"name": "Work"})).json()
    await client.post("/folders/", json={"name": "Reports", "parent_id": work["id"]})
    await client.post("/folders/", json={"name": "Archive"})

    response = await client.get("/folders/")

    assert response.status_code == 200
    tree = response.json()
    assert [node["name"] for node in tree] == ["Archive", "Work"]
    assert [node["name"] for node in tree[1]["subfolders"]] == ["Reports"]
    assert tree[1]["bookmark_count"] == 0


async def test_move_folder_into_descendant_rejected(client: AsyncClient) -> None:
    parent = (await client.post("/folders/", json={"name": "Parent"})).json()
    child = (await client.post(
        "/folders/", json={"name": "Child", "parent_id": parent["id"]},
    )).json()

    response = await client.patch(f"/folders/{parent['id']}", json={"parent_id": child["id"]})

    assert response.status_code == 422


async def test_move_folder_to_root(client: AsyncClient) -> None:
    parent = (await client.post("/folders/", json={"name": "Parent"})).json()
    child = (await client.post(
        "/folders/", json={"name": "Child", "parent_id": parent["id"]},
    )).json()

    response = await client.patch(f"/folders/{child['id']}", json={"parent_id": None})

    assert response.status_code == 200
    assert response.json()["parent_id"] is None


async def test_update_folder_null_name_keeps_name(client: AsyncClient) -> None:
    folder = (await client.post("/folders/", json={"name": "Reading"})).json()

    response = await client.patch(f"/folders/{folder['id']}", json={"name": None, "color": "red"})

    assert response.status_code == 200
    assert response.json()["name"] == "Reading"
    assert response.json()["color"] == "red"


async def test_update_folder_blank_name(client: AsyncClient) -> None:
    folder = (await client.post("/folders/", json={"name": "Reading"})).json()

    response = await client.patch(f"/folders/{folder['id']}", json={"name": "   "})

    assert response.status_code == 422


async def test_update_folder_not_found(client: AsyncClient) -> None:
    response = await client.patch("/folders/9999", json={"name": "x"})
    assert response.status_code == 404


async def test_delete_folder(client: AsyncClient) -> None:
    folder = (await client.post("/folders/", json={"name": "Temp"})).json()

    response = await client.delete(f"/folders/{folder['id']}")

    assert response.status_code == 204
    assert (await client.get("/folders/")).json() == []
    assert (await client.delete(f"/folders/{folder['id']}")).status_code == 404
