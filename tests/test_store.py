import pytest

from docstore.store import (
    Store,
    StoreError,
    create_collection,
    delete_collection,
    transaction,
)


@pytest.fixture
def store(tmp_path):
    db = Store(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def seeded(store):
    store.insert_one('{"collection":"test", "action":"insertOne","data":{"name":"adam", "age": 23}}')
    store.insert_many(
        '{"collection":"insertTest", "action":"insertMany","data":'
        '[{"name":"adam1", "age": 21},{"name":"adam2", "age": 22},{"name":"adam3", "age": 23}]}'
    )
    return store


@pytest.fixture
def users(store):
    for body in ('{"name":"a", "age":10}', '{"name":"a", "age":20}', '{"name":"b", "age":5}'):
        store.handle_query('{"collection":"users", "action":"insert", "data":' + body + "}")
    return store


def test_insert_one_stores_document(seeded):
    assert seeded.find_by_id('{"collection":"test","_id":1}') == '{"_id":1, "name":"adam", "age": 23}'


def test_insert_one_reply(store):
    reply = store.insert_one('{"collection":"c","data":{"x":1}}')
    assert reply == '{"ak":"insert 1 success"}'


def test_find_one(seeded):
    res = seeded.find_one('{"collection":"test", "action":"findOne","match":{"name":"adam"}}')
    assert res == '{"_id":1, "name":"adam", "age": 23}'


def test_find_one_nothing(seeded):
    res = seeded.find_one('{"collection":"test","match":{"name":"zed"}}')
    assert res == '{"status":"nothing match"}'


@pytest.mark.parametrize(
    "query, expected",
    [
        ('{"collection":"test","_id":1}', '{"_id":1, "name":"adam", "age": 23}'),
        ('{"collection":"test","_id":"nonexistent"}', ""),
        ('{"collection":"test","_id":123}', ""),
    ],
)
def test_find_by_id(seeded, query, expected):
    assert seeded.find_by_id(query) == expected


def test_find_by_id_unknown_collection(seeded):
    with pytest.raises(StoreError) as info:
        seeded.find_by_id('{"collection":"unknown","_id":1}')
    assert str(info.value) == '{"error": "collection unknown not exist"}'
    reply = seeded.handle_query('{"collection":"unknown","action":"findById","_id":1}')
    assert reply == '{"error": "collection unknown not exist"}'


def test_insert_many(seeded):
    expected = [
        '{"_id":1,"name":"adam1", "age": 21}',
        '{"_id":2,"name":"adam2", "age": 22}',
        '{"_id":3,"name":"adam3", "age": 23}',
    ]
    for doc_id, exp in enumerate(expected, start=1):
        got = seeded.find_by_id('{"collection":"insertTest","_id":%d}' % doc_id)
        assert got == exp


@pytest.mark.parametrize(
    "query, expected",
    [
        (
            '{"collection":"insertTest", "action":"findMany"}',
            '[{"_id":1,"name":"adam1", "age": 21},{"_id":2,"name":"adam2", "age": 22},'
            '{"_id":3,"name":"adam3", "age": 23}]',
        ),
        ('{"collection":"insertTest", "action":"findMany", "limit": 1}', '[{"_id":1,"name":"adam1", "age": 21}]'),
        (
            '{"collection":"insertTest", "action":"findMany", "limit": 1, "skip", 2}',
            '[{"_id":3,"name":"adam3", "age": 23}]',
        ),
        ('{"collection":"insertTest", "action":"findMany", "skip", 3}', "[]"),
    ],
)
def test_find_many(seeded, query, expected):
    assert seeded.find_many(query) == expected


def test_update_one(seeded):
    ak = seeded.update_one(
        '{"collection":"test", "action":"updateOne", "data":{"age":26}}, "match":{"name":"adam"}'
    )
    assert ak == '{"update:": "done"}'
    assert seeded.find_by_id('{"collection":"test","_id":1}') == '{"_id":1,"name":"adam","age":26}'


def test_update_one_requires_data(seeded):
    with pytest.raises(StoreError, match="no data to update"):
        seeded.update_one('{"collection":"test"}')


def test_close_keeps_data(tmp_path):
    path = tmp_path / "keep.db"
    with Store(path) as db:
        db.insert_one('{"collection":"c","data":{"x":1}}')
        db.insert_one('{"collection":"c","data":{"x":2}}')
    with Store(path) as db:
        assert db.insert_one('{"collection":"c","data":{"x":3}}') == '{"ak":"insert 3 success"}'
        assert db.find_by_id('{"collection":"c","_id":1}') == '{"_id":1, "x":1}'


def test_insert_one_errors(store):
    assert store.handle_query('{"action":"insert","data":{"a":1}}') == '{"error":"forgot collection"}'
    with pytest.raises(StoreError, match="forgot data"):
        store.insert_one('{"collection":"c"}')


def test_insert_many_without_collection(store):
    reply = store.handle_query('{"action":"insertMany","data":[{"a":1}]}')
    assert reply == "bucket name required"
    assert store.collections() == []


def test_unknown_action(store):
    assert store.handle_query('{"action":"bogus"}') == '{"error": "unknown \'bogus\' action"}'


def test_collections(store):
    store.insert_one('{"collection":"users","data":{"a":1}}')
    store.insert_one('{"collection":"logs","data":{"a":1}}')
    assert store.collections() == ["logs", "users"]
    assert store.handle_query('{"action":"getCollections"}') == '{"collections": ["logs", "users"]}'


def test_find_many_sorted(users):
    got = users.find_many('{"collection":"users","sort":{"age":-1}}')
    assert got == (
        '[{"_id":2, "name":"a", "age":20},{"_id":1, "name":"a", "age":10},'
        '{"_id":3, "name":"b", "age":5}]'
    )


def test_find_many_removes_fields(users):
    got = users.find_many('{"collection":"users","match":{"name":"b"},"fields":{"age":0}}')
    assert got == '[{"_id":3, "name":"b"}]'


def test_find_many_unknown_collection(store):
    assert store.handle_query('{"collection":"nope","action":"findMany"}') == "collection nope is not exists"


def test_find_one_bad_operator(users):
    reply = users.handle_query('{"collection":"users","action":"findOne","match":{"name":{"$zz":"x"}}}')
    assert reply == '{"error": "unknown \'$zz\' operation"}'


def test_update_many(users):
    assert users.update_many('{"collection":"users","match":{"name":"a"},"data":{"age":1}}') == "many items updated"
    got = users.find_many('{"collection":"users","match":{"name":"a"}}')
    assert got == '[{"_id":1,"name":"a","age":1},{"_id":2,"name":"a","age":1}]'


def test_update_by_id(seeded):
    assert seeded.update_by_id('{"collection":"test","_id":1,"data":{"age":30}}') == "1 updated"
    assert seeded.find_by_id('{"collection":"test","_id":1}') == '{"_id":1,"name":"adam","age":30}'


def test_update_by_id_requires_id(seeded):
    assert seeded.handle_query('{"collection":"test","action":"updateById"}') == '{"error": "forget _id"}'


def test_delete_one(users):
    assert users.delete_one('{"collection":"users","match":{"name":"b"}}') == '{"result":"_id:3 deleted"}'
    assert users.find_by_id('{"collection":"users","_id":3}') == ""
    assert users.find_by_id('{"collection":"users","_id":1}') == '{"_id":1, "name":"a", "age":10}'


def test_delete_many(users):
    assert users.delete_many('{"collection":"users","match":{"name":"a"}}') == " many items has removed"
    assert users.find_many('{"collection":"users"}') == '[{"_id":3, "name":"b", "age":5}]'


def test_delete_by_id(users):
    assert users.delete_by_id('{"collection":"users","_id":2}') == '{"aknowlge": "row 2 deleted"}'
    assert users.find_by_id('{"collection":"users","_id":2}') == ""
    assert users.handle_query('{"collection":"users","action":"deleteById"}') == '{"error": "_id is required"}'
    assert users.handle_query('{"collection":"x","action":"deleteById","_id":1}') == '{"error": "internal error"}'


def test_aggregate(users):
    reply = users.handle_query(
        '{"collection":"users","action":"aggregate","group":{"_id":"name","total":{"$sum":"age"}}}'
    )
    assert reply == '[{"_id":"a","total":30},{"_id":"b","total":5}]'


def test_aggregate_requires_group_id(users):
    reply = users.handle_query('{"collection":"users","action":"aggregate","group":{"total":{"$sum":"age"}}}')
    assert reply == '{"code":0, "status":"a group specification must include an _id"}'


def test_count(users):
    assert users.handle_query('{"collection":"users","action":"count","match":{"age":{"$gt":8}}}') == "2"


def test_unsupported_actions(store):
    with pytest.raises(StoreError, match="2 actions"):
        transaction('{"transaction":[{"a":1},{"b":2}]}')
    with pytest.raises(StoreError, match="users"):
        create_collection('{"collection":"users"}')
    with pytest.raises(StoreError, match="users"):
        delete_collection('{"collection":"users"}')
    assert store.handle_query('{"action":"sum"}') == '{"error": "\'sum\' is not supported"}'


def test_put_uses_last_id(store):
    store.put("c", '{"raw":true}')
    assert store.find_by_id('{"collection":"c","_id":0}') == '{"raw":true}'


def test_run_sync(store):
    assert store.run_sync(10) is True
    store.no_sync = False
    assert store.run_sync(10) is False