# ch3fs

ch3fs is a small peer-to-peer store for cooking recipes. Every node keeps
its recipes in a local SQLite file and answers service calls from other
nodes. When a node receives a recipe that is new to the cluster, it sends
copies to two more members, so each recipe ends up on three nodes.

The package uses only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running a node

```
ch3fs
```

The node resolves the service name (`ch3f` by default) to a list of
addresses and adds them to its member list. If the lookup returns no
addresses it tries again after a wait that grows each time and includes
random jitter. If the lookup itself fails, the command logs the error and
exits with status 1. Once it has joined, it opens its database and serves
service calls until interrupted. The current member list is logged at
regular intervals.

Options:

| Option | Default | Meaning |
| --- | --- | --- |
| `--name` | the host name | name of this node |
| `--addr` | the address the name resolves to, else `127.0.0.1` | address this node listens on |
| `--db` | `ch3fs.db` | path of the SQLite database file |
| `--grpc-port` | `8080` | port for service calls |
| `--memberlist-port` | `7946` | port recorded for members in the member list |
| `--service` | `ch3f` | name looked up to find peers |
| `--member-log-interval` | `20` | seconds between member-list log lines |
| `--test-dummy` | off | every 5 s, send a test message to a random other member |
| `--test-upload` | off | every 5 s, upload a sample recipe to a random other member |

## Wire format

Service calls are HTTP `POST` requests with JSON bodies to
`/ch3fs.FileSystem/<Method>`, where the method is `DummyTest`,
`UploadRecipe`, `UpdateRecipe` or `DownloadRecipe`. Recipe content is
base64-encoded in upload requests. Errors come back with a non-200 status and
an `{"error": ...}` body. The client raises `RpcError` for them and for
connection failures. Calls time out after 5 seconds by default.

## Using the library

- `ch3fs.storage`: `Recipe` (id, filename, content, seen list, with
  `to_json` / `from_json`) and `Store`. `Store` keeps recipes keyed by their
  UUID in an SQLite file, created with mode 0600. It can be used as a context
  manager. `store_recipe` inserts or replaces. `update_recipe` overwrites a
  recipe that is already stored. `get_recipe` returns the recipe or `None`.
  `recipe_exists` returns a bool. Each of them raises `StorageError` on
  failure. `get_recipe` and `recipe_exists` also raise it before any recipe
  has been stored.
- `ch3fs.membership`: `Node`, the thread-safe `Memberlist` (`members`, `add`,
  `remove`, `join`), `discover_and_join_peers` and `fetch_system_members`.
  The last one returns every member except the one named after this host. It
  raises `MembershipError` when the list is empty.
- `ch3fs.client`: the message types `DummyTestRequest`, `DummyTestResponse`,
  `RecipeUploadRequest` and `UploadResponse`, and the calls
  `send_dummy_request`, `send_recipe_upload_request` (returns `None` when the
  server did not store the recipe) and `send_update_recipe`.
  `construct_recipe_upload_request` builds a sample request with a fresh id.
- `ch3fs.server`: `FileServer` and `filter_peers`. `upload_recipe` raises
  `UploadError` in any of these cases:
  - the filename is empty;
  - the id is not a UUID;
  - the seen list already names three nodes;
  - the id is already stored.

  Otherwise it stores the recipe with this node added to the sorted seen
  list. If this node is the first to see the recipe, it starts
  `broadcast_upload` in the background. `broadcast_upload` sends the recipe to
  two randomly chosen other peers at the same time. When both succeed, it
  records them in the local seen list. When only one succeeds, it picks a
  replacement for the other and tells the successful node the final seen
  list. It gives up after 30 seconds by default. `update_recipe` replaces the
  seen list of a stored recipe. `download_recipe` returns a stored recipe or
  `None`.
- `ch3fs.peer`: `Peer` serves a `FileServer` over HTTP. `start` serves in a
  background thread and returns the bound address. `serve_forever` serves in
  the calling thread. `stop` shuts the server down. The module also has
  `list_contains`.
- `ch3fs.retry`: `backoff_with_jitter` doubles the backoff up to a cap of
  15000 ms and returns a random value below that.
- `ch3fs.app`: `main`, which is the command above, and `pick_target`,
  `dummy_loop` and `upload_loop`.

```python
import uuid
from ch3fs.storage import Recipe, Store

with Store("recipes.db") as store:
    recipe = Recipe(uuid.uuid4(), "pancakes", "Mix, then fry.", ["node-a"])
    store.store_recipe(recipe)
    assert store.recipe_exists(recipe.recipe_id)
```

## What it does not do

Membership is not a gossip protocol. `Memberlist.join` records each address
it is given as a member without contacting it. Members are never probed, so
failed nodes are not detected or removed automatically. The list changes only
through `add`, `remove` and `join`.

No service call lists or searches recipes. A recipe can be fetched only by
its id.