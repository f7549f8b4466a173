from craftrest.sanitize import sanitize_response


def test_nested_structures():
    data = {
        "name": "alice",
        "password": "secret",
        "posts": [{"title": "first", "password": "x", "author": {"name": "alice", "password": "y"}}],
    }
    result = sanitize_response(data, ["password"])
    assert result is data
    assert data == {"name": "alice", "posts": [{"title": "first", "author": {"name": "alice"}}]}


def test_list_of_records():
    data = [{"id": 1, "token": "a"}, {"id": 2, "token": "b"}, "plain", 3]
    assert sanitize_response(data, {"token"}) == [{"id": 1}, {"id": 2}, "plain", 3]


def test_tuples_are_traversed():
    record = {"id": 1, "token": "a"}
    data = {"items": (record,)}
    sanitize_response(data, ["token"])
    assert record == {"id": 1}


def test_none_and_scalars():
    assert sanitize_response(None, ["password"]) is None
    assert sanitize_response("text", ["password"]) == "text"


def test_empty_blocklist_leaves_data_alone():
    data = {"password": "secret"}
    assert sanitize_response(data, []) == {"password": "secret"}
    assert sanitize_response(data, None) == {"password": "secret"}


def test_cycles():
    parent = {"name": "parent", "secret": 1}
    child = {"name": "child", "secret": 2, "parent": parent}
    parent["children"] = [child]
    sanitize_response(parent, ["secret"])
    assert "secret" not in parent
    assert "secret" not in child
