import pytest
import requests

from dataquery.datasources.graphql import GraphQL
from dataquery.datasources.response import CacheableResponse, CachedResponse
from dataquery.datasources.rest import RestApi
from dataquery.exceptions import (
    CacheError,
    DuplicateProviderError,
    DuplicateQueryError,
    HttpError,
    IncompatibleProviderError,
    MapperError,
    MissingNameError,
    NoProviderError,
    TaggingUnsupportedError,
    TransportError,
    UnknownProviderError,
    UnknownQueryError,
    UnknownQueryKindError,
)
from dataquery.query.build import BuildStrategy
from dataquery.query.graphql import GraphQLQuery
from dataquery.query.manager import QueryManager
from dataquery.query.query import Query
from dataquery.query.stack import EntryState

from conftest import BASE_URL, make_response

POSTS_URL = f"{BASE_URL}/posts"
POSTS_PAYLOAD = {"data": {"items": [{"id": 1}, {"id": 2}]}}


@pytest.fixture
def manager(settings, transport):
    m = QueryManager(settings=settings)
    m.add_data_provider("api", RestApi(BASE_URL, settings=settings, transport=transport))
    return m


def test_add_registers_query_without_running_it(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.add(Query("posts", uri="posts"))
    manager.add(Query("pages", uri="pages"))

    assert manager.has_query("posts")
    assert manager.has_query("pages")
    assert manager.get_query_stack().names() == ["posts", "pages"]
    assert session.calls == []
    assert manager.is_hit("posts") is None


def test_duplicate_query_name_keeps_first(manager):
    first = Query("posts", uri="posts")
    manager.add(first)
    with pytest.raises(DuplicateQueryError):
        manager.add(Query("posts", uri="other"))
    assert manager.get_query("posts").query is first
    assert len(manager.get_query_stack()) == 1


@pytest.mark.parametrize("name", [None, ""])
def test_query_without_name_is_rejected(manager, name):
    with pytest.raises(MissingNameError):
        manager.add(Query(name, uri="posts"))


def test_unknown_query_has_no_side_effects(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.add(Query("posts", uri="posts"))

    for access in (manager.get_response, manager.get_item, manager.get_collection):
        with pytest.raises(UnknownQueryError):
            access("missing")
    assert session.calls == []
    assert manager.get_query("posts").state is EntryState.PENDING


def test_query_runs_only_once(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.add(Query("posts", uri="posts", root_property_path="data.items"))

    assert manager.get_item("posts") == [{"id": 1}, {"id": 2}]
    assert manager.get_query("posts").has_run
    manager.get_item("posts")
    manager.get_response("posts")
    manager.get_collection("posts")
    assert session.count(POSTS_URL) == 1


def test_clear_response_reruns_only_that_query(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    session.route(f"{BASE_URL}/pages", {"pages": []})
    manager.add(Query("posts", uri="posts"))
    manager.add(Query("pages", uri="pages"))
    manager.get_response("posts")

    manager.clear_response("posts")
    assert not manager.get_query("posts").has_run
    assert manager.get_query_stack().names() == ["posts", "pages"]

    manager.get_item("pages")
    assert session.count(POSTS_URL) == 2
    assert session.count(f"{BASE_URL}/pages") == 1


def test_clear_response_unknown_query(manager):
    with pytest.raises(UnknownQueryError):
        manager.clear_response("missing")


def test_get_collection_with_root_path(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.add(Query("posts", uri="posts", root_property_path="data.items"))

    collection = manager.get_collection("posts")
    assert len(collection) == 2
    assert [item["id"] for item in collection] == [1, 2]
    assert collection.pagination.total_results == 2
    assert manager.is_hit("posts") is False


def test_root_path_override_does_not_change_query(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    query = Query("posts", uri="posts", root_property_path="data.items")
    manager.add(query)

    assert manager.get_item("posts", "data.items.0") == {"id": 1}
    assert query.get_root_property_path() == "data.items"
    assert manager.get_item("posts") == [{"id": 1}, {"id": 2}]


def test_pagination_from_headers(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD, headers={"X-Total-Count": "42", "X-Per-Page": "2", "X-Page": "3"})
    manager.add(Query(
        "posts",
        uri="posts",
        root_property_path="data.items",
        pagination_from_headers=True,
        total_results="x-total-count",
        results_per_page="X-Per-Page",
        current_page="X-Page",
    ))

    pagination = manager.get_collection("posts").pagination
    assert pagination.total_results == 42
    assert pagination.current_page == 3
    assert pagination.total_pages == 21
    assert pagination.from_result == 5


def test_pagination_from_body(manager, session):
    payload = {"meta": {"total": 7, "page": 2, "per_page": 5}, "results": [{"id": 6}, {"id": 7}]}
    session.route(POSTS_URL, payload)
    manager.add(Query(
        "posts",
        uri="posts",
        root_property_path="results",
        total_results="meta.total",
        results_per_page="meta.per_page",
        current_page="meta.page",
    ))

    collection = manager.get_collection("posts")
    assert collection.pagination.total_results == 7
    assert collection.pagination.is_last_page
    assert collection.pagination.to_result == 7


def test_invalid_pagination_header_raises_mapper_error(manager, session):
    session.route(POSTS_URL, POSTS_PAYLOAD, headers={"X-Total-Count": "abc"})
    manager.add(Query(
        "posts",
        uri="posts",
        root_property_path="data.items",
        pagination_from_headers=True,
        total_results="X-Total-Count",
    ))

    with pytest.raises(MapperError):
        manager.get_collection("posts")


# ---- Providers ----

def test_add_without_provider_fails(settings):
    with pytest.raises(NoProviderError):
        QueryManager(settings=settings).add(Query("posts", uri="posts"))


def test_add_with_unknown_provider_fails(manager):
    with pytest.raises(UnknownProviderError):
        manager.add(Query("posts", uri="posts"), "missing")


def test_duplicate_provider_fails(manager, settings):
    with pytest.raises(DuplicateProviderError):
        manager.add_data_provider("api", RestApi(BASE_URL, settings=settings))


def test_last_added_provider_is_default(manager, settings, transport):
    manager.add_data_provider("gql", GraphQL(f"{BASE_URL}/graphql", settings=settings, transport=transport))
    manager.add(GraphQLQuery("posts", document="{ posts { id } }"))
    manager.add(Query("pages", uri="pages"), "api")

    assert manager.get_query("posts").provider_name == "gql"
    assert manager.get_query("pages").provider_name == "api"


def test_graphql_query_needs_graphql_provider(manager):
    with pytest.raises(IncompatibleProviderError):
        manager.add(GraphQLQuery("posts", document="{ posts { id } }"))
    assert not manager.has_query("posts")


def test_set_transport_propagates_to_providers(settings, transport):
    provider = RestApi(BASE_URL, settings=settings)
    m = QueryManager(settings=settings)
    m.add_data_provider("api", provider)
    m.set_transport(transport)
    assert provider.get_transport() is transport

    later = RestApi(BASE_URL, settings=settings)
    m.add_data_provider("later", later)
    assert later.get_transport() is transport


# ---- Errors while running ----

def test_sub_request_error_is_captured(manager, session):
    session.route(f"{BASE_URL}/optional", requests.ConnectionError("connection refused"))
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.add(Query("optional", uri="optional", sub_request=True))
    manager.add(Query("posts", uri="posts", root_property_path="data.items"))

    assert manager.get_item("posts") == [{"id": 1}, {"id": 2}]

    entry = manager.get_query("optional")
    assert entry.state is EntryState.FAILED
    assert entry.has_run
    assert isinstance(entry.response.error, TransportError)
    assert manager.get_item("optional") is None
    assert len(manager.get_collection("optional")) == 0


def test_primary_error_propagates_and_leaves_later_queries_pending(manager, session):
    session.route(f"{BASE_URL}/first", {"ok": True})
    session.route(f"{BASE_URL}/broken", {"error": "boom"}, status=500)
    session.route(f"{BASE_URL}/last", {"ok": True})
    manager.add(Query("first", uri="first"))
    manager.add(Query("broken", uri="broken"))
    manager.add(Query("last", uri="last"))

    with pytest.raises(HttpError) as exc_info:
        manager.get_item("first")
    assert exc_info.value.status_code == 500

    assert manager.get_query("first").has_run
    assert manager.get_query("broken").state is EntryState.FATAL
    assert manager.get_query("last").has_run is False

    # Retry after the API recovers: broken is sent again, last is not
    session.route(f"{BASE_URL}/broken", {"ok": "again"})
    assert manager.get_item("last") == {"ok": True}
    assert manager.get_item("broken") == {"ok": "again"}
    assert session.count(f"{BASE_URL}/first") == 1
    assert session.count(f"{BASE_URL}/broken") == 2
    assert session.count(f"{BASE_URL}/last") == 1


# ---- Cache ----

def test_cache_config_applied_to_providers(settings, transport, cache):
    m = QueryManager(settings=settings)
    m.set_cache(cache, default_lifetime=120)
    provider = RestApi(BASE_URL, settings=settings, transport=transport)
    m.add_data_provider("api", provider)

    assert provider.get_cache() is cache
    assert provider.is_cache_enabled()
    assert provider.cache_lifetime == 120

    m.disable_cache()
    assert not provider.is_cache_enabled()
    assert not m.is_cache_enabled()

    m.enable_cache(60)
    assert provider.is_cache_enabled()
    assert provider.cache_lifetime == 60


def test_enable_cache_without_cache_fails(manager):
    with pytest.raises(CacheError):
        manager.enable_cache()


def test_cache_hit_across_managers(settings, transport, session, cache):
    session.route(POSTS_URL, POSTS_PAYLOAD)

    def make_manager():
        m = QueryManager(settings=settings)
        m.add_data_provider("api", RestApi(BASE_URL, settings=settings, transport=transport))
        m.set_cache(cache)
        m.add(Query("posts", uri="posts", root_property_path="data.items"))
        return m

    first = make_manager()
    assert len(first.get_collection("posts")) == 2
    assert first.is_hit("posts") is False
    assert not first.get_response("posts").is_cacheable()

    second = make_manager()
    assert len(second.get_collection("posts")) == 2
    assert second.is_hit("posts") is True
    assert session.count(POSTS_URL) == 1


def test_set_cache_tags_with_taggable_cache(manager, cache):
    manager.set_cache(cache)
    manager.set_cache_tags(["blog"])
    assert manager.get_cache_tags() == ["blog"]
    assert manager.get_data_provider("api").cache_tags == ["blog"]

    manager.set_cache_tags()
    assert manager.get_data_provider("api").cache_tags == []


def test_set_cache_tags_without_tag_support(manager, plain_cache):
    manager.set_cache(plain_cache)
    with pytest.raises(TaggingUnsupportedError):
        manager.set_cache_tags(["blog"])
    assert manager.get_cache_tags() == []


def test_set_cache_tags_without_cache(manager):
    with pytest.raises(TaggingUnsupportedError):
        manager.set_cache_tags(["blog"])


def test_invalidate_cache_tags(settings, transport, session, cache):
    session.route(POSTS_URL, POSTS_PAYLOAD)

    def make_manager():
        m = QueryManager(settings=settings)
        m.add_data_provider("api", RestApi(BASE_URL, settings=settings, transport=transport))
        m.set_cache(cache)
        m.set_cache_tags(["blog"])
        m.add(Query("posts", uri="posts"))
        return m

    make_manager().get_response("posts")
    assert make_manager().invalidate_cache_tags(["blog"]) == 1

    again = make_manager()
    again.get_response("posts")
    assert again.is_hit("posts") is False
    assert session.count(POSTS_URL) == 2


def test_invalidate_cache_tags_needs_taggable_cache(manager, plain_cache):
    manager.set_cache(plain_cache)
    with pytest.raises(TaggingUnsupportedError):
        manager.invalidate_cache_tags(["blog"])


def test_cache_tags_set_after_add_apply_to_write(manager, session, cache):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.set_cache(cache)
    manager.add(Query("posts", uri="posts"))
    manager.set_cache_tags(["blog"])

    manager.get_response("posts")
    assert manager.invalidate_cache_tags(["blog"]) == 1


def test_disable_cache_after_add_skips_cache_write(manager, settings, transport, session, cache):
    session.route(POSTS_URL, POSTS_PAYLOAD)
    manager.set_cache(cache)
    manager.add(Query("posts", uri="posts"))
    manager.disable_cache()

    response = manager.get_response("posts")
    assert not response.is_cacheable()

    again = QueryManager(settings=settings)
    again.add_data_provider("api", RestApi(BASE_URL, settings=settings, transport=transport))
    again.set_cache(cache)
    again.add(Query("posts", uri="posts"))
    assert again.is_hit("posts") is None
    again.get_response("posts")
    assert again.is_hit("posts") is False
    assert session.count(POSTS_URL) == 2


# ---- Build strategies ----

class StaticQuery(Query):
    kind = "static"


class BuildStaticQuery(BuildStrategy):
    def prepare_request(self, query):
        return CacheableResponse(CachedResponse(200, {}, b'{"static": true}'), hit=False)


def test_custom_build_strategy(settings):
    manager = QueryManager(settings=settings, strategies={"static": BuildStaticQuery})
    manager.add_data_provider("api", RestApi(BASE_URL, settings=settings))
    manager.add(StaticQuery("static"))

    assert isinstance(manager.get_query("static").strategy, BuildStaticQuery)
    assert manager.get_item("static") == {"static": True}


def test_add_query_of_unregistered_kind_fails(manager):
    with pytest.raises(UnknownQueryKindError):
        manager.add(StaticQuery("static"))
    assert not manager.has_query("static")


def test_graphql_query_through_manager(settings, transport, session):
    gql_url = f"{BASE_URL}/graphql"

    def respond(method, url, **kwargs):
        assert method == "POST"
        assert kwargs["json"]["variables"] == {"limit": 2}
        return make_response({"data": {"posts": [{"id": "a"}, {"id": "b"}]}}, url=url)

    session.route(gql_url, respond)
    m = QueryManager(settings=settings)
    m.add_data_provider("gql", GraphQL(gql_url, settings=settings, transport=transport))
    m.add(GraphQLQuery("posts", document="query($limit: Int) { posts(limit: $limit) { id } }",
                       variables={"limit": 2}, root_property_path="data.posts"))

    assert [p["id"] for p in m.get_collection("posts")] == ["a", "b"]
