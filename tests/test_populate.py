from craftrest.populate import resolve_populate


def test_csv_string():
    assert resolve_populate("author, comments.user") == ["author", "comments.user"]


def test_duplicates_keep_first_occurrence():
    assert resolve_populate("comments,author,comments") == ["comments", "author"]
    assert resolve_populate(["b", "a", "b", " a "]) == ["b", "a"]


def test_bracket_syntax():
    assert resolve_populate("[author,comments]") == ["author", "comments"]


def test_default_only_without_request():
    assert resolve_populate(None, ["profile", "posts", "profile"]) == ["profile", "posts"]
    assert resolve_populate("", ["profile"]) == ["profile"]
    assert resolve_populate("author", ["profile"]) == ["author"]


def test_invalid_input():
    assert resolve_populate(None) == []
    assert resolve_populate(12) == []
    assert resolve_populate([1, None, ""]) == []
    assert resolve_populate({"author": True}, ["profile"]) == ["profile"]
