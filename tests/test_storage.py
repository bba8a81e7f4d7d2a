import json
import uuid

import pytest

from ch3fs.storage import Recipe, StorageError, Store


@pytest.fixture
def store(tmp_path):
    with Store(tmp_path / "recipes.db") as s:
        yield s


def make_recipe(seen=None):
    return Recipe(uuid.uuid4(), "recipe1", "some description", seen or ["node-a"])


def test_recipe_json_round_trip():
    recipe = make_recipe(["a", "b"])
    assert Recipe.from_json(recipe.to_json()) == recipe


def test_recipe_json_field_names():
    rid = uuid.uuid4()
    raw = json.loads(Recipe(rid, "f", "c", ["a"]).to_json())
    assert raw == {"RecipeId": str(rid), "Filename": "f", "Content": "c", "Seen": ["a"]}


def test_recipe_from_json_accepts_null_seen():
    rid = uuid.uuid4()
    data = json.dumps({"RecipeId": str(rid), "Filename": "f", "Content": "c", "Seen": None})
    assert Recipe.from_json(data).seen == []


def test_recipe_from_bad_json():
    with pytest.raises(StorageError):
        Recipe.from_json("{not json")


def test_get_before_any_store_raises(store):
    with pytest.raises(StorageError, match="bucket"):
        store.get_recipe(uuid.uuid4())


def test_exists_before_any_store_raises(store):
    with pytest.raises(StorageError, match="bucket"):
        store.recipe_exists(uuid.uuid4())


def test_store_and_get(store):
    recipe = make_recipe()
    store.store_recipe(recipe)
    assert store.get_recipe(recipe.recipe_id) == recipe
    assert store.recipe_exists(recipe.recipe_id) is True


def test_missing_recipe(store):
    store.store_recipe(make_recipe())
    missing = uuid.uuid4()
    assert store.get_recipe(missing) is None
    assert store.recipe_exists(missing) is False


def test_store_overwrites(store):
    recipe = make_recipe()
    store.store_recipe(recipe)
    recipe.content = "changed"
    store.store_recipe(recipe)
    assert store.get_recipe(recipe.recipe_id).content == "changed"


def test_update_recipe(store):
    recipe = make_recipe(["a"])
    store.store_recipe(recipe)
    updated = Recipe(recipe.recipe_id, recipe.filename, recipe.content, ["a", "b", "c"])
    store.update_recipe(updated)
    assert store.get_recipe(recipe.recipe_id).seen == ["a", "b", "c"]


def test_update_missing_recipe_raises(store):
    store.store_recipe(make_recipe())
    with pytest.raises(StorageError):
        store.update_recipe(make_recipe())


def test_data_persists_across_reopen(tmp_path):
    path = tmp_path / "db.sqlite"
    recipe = make_recipe()
    with Store(path) as first:
        first.store_recipe(recipe)
    with Store(path) as second:
        assert second.get_recipe(recipe.recipe_id) == recipe


def test_closed_store_raises(tmp_path):
    store = Store(tmp_path / "closed.db")
    store.close()
    with pytest.raises(StorageError):
        store.store_recipe(make_recipe())