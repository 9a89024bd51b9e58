import pytest

from host import (
    ContentTypeSchema,
    Host,
    HostError,
    TaxonomySchema,
    UnknownContentTypeError,
    UnknownTaxonomyError,
    slugify,
)


def test_slugify():
    assert slugify("Science Fiction") == "science-fiction"
    assert slugify("  Sci-Fi & Fantasy!! ") == "sci-fi-fantasy"
    assert slugify("!!!") == ""


def test_unregistered_content_type_is_rejected(db_file):
    host = Host(db_file)
    with pytest.raises(UnknownContentTypeError):
        host.content.create_item("books", title="Dune")


def test_taxonomy_requires_registered_content_type(db_file):
    host = Host(db_file)
    with pytest.raises(UnknownContentTypeError):
        host.register_taxonomy(TaxonomySchema(name="book_genres", object_types=("books",)))


def test_unregistered_taxonomy_lookup_fails(db_file):
    host = Host(db_file)
    host.register_content_type(ContentTypeSchema(name="books"))
    item_id = host.content.create_item("books", title="Dune")

    with pytest.raises(UnknownTaxonomyError):
        host.taxonomy.get_term_names(item_id, "book_genres")


def test_set_item_terms_replaces_and_appends(host):
    item_id = host.content.create_item("books", title="Dune", status="publish")

    host.taxonomy.set_item_terms(item_id, "book_genres", ["Sci-Fi", "Classic"])
    assert host.taxonomy.get_term_names(item_id, "book_genres") == ["Classic", "Sci-Fi"]

    host.taxonomy.set_item_terms(item_id, "book_genres", ["Adventure"], append=True)
    assert host.taxonomy.get_term_names(item_id, "book_genres") == ["Adventure", "Classic", "Sci-Fi"]

    host.taxonomy.set_item_terms(item_id, "book_genres", ["Drama"])
    assert host.taxonomy.get_term_names(item_id, "book_genres") == ["Drama"]


def test_terms_are_shared_by_slug(host):
    first = host.content.create_item("books", title="Dune", status="publish")
    second = host.content.create_item("books", title="Hyperion", status="publish")

    ids_first = host.taxonomy.set_item_terms(first, "book_genres", ["Science Fiction"])
    ids_second = host.taxonomy.set_item_terms(second, "book_genres", ["science fiction"])

    assert ids_first == ids_second
    assert host.taxonomy.get_term_names(second, "book_genres") == ["Science Fiction"]


def test_delete_item_removes_term_links(host):
    item_id = host.content.create_item("books", title="Dune", status="publish")
    host.taxonomy.set_item_terms(item_id, "book_genres", ["Sci-Fi"])

    assert host.content.delete_item(item_id) is True
    assert host.content.get_item(item_id) is None
    assert host.taxonomy.get_term_names(item_id, "book_genres") == []


def test_list_items_filters_type_and_status(host):
    host.register_content_type(ContentTypeSchema(name="pages"))
    published = host.content.create_item("books", title="Dune", status="publish")
    host.content.create_item("books", title="Draft", status="draft")
    host.content.create_item("pages", title="About", status="publish")

    assert [item.id for item in host.content.list_items("books", status="publish")] == [published]
    assert len(host.content.list_items("books")) == 2


def test_update_item_only_touches_matching_type(host):
    host.register_content_type(ContentTypeSchema(name="pages"))
    page_id = host.content.create_item("pages", title="About")

    assert host.content.update_item(page_id, "books", title="Hijacked") is False
    assert host.content.get_item(page_id).title == "About"


def test_user_logins_are_unique_and_passwords_hashed(host):
    first = host.users.create_user("Jane Doe", "secret", display_name="Jane Doe")
    second = host.users.create_user("Jane Doe", "secret", display_name="Jane Doe")

    assert host.users.get_user(first).user_login == "jane-doe"
    assert host.users.get_user(second).user_login == "jane-doe-2"
    with host.connection() as conn:
        stored = conn.execute("SELECT user_pass FROM users WHERE id = ?", (first,)).fetchone()[0]
    assert stored.startswith("pbkdf2_sha256$")
    assert "secret" not in stored


def test_search_escapes_wildcards(host):
    host.users.create_user("Jane Doe", "pw", display_name="Jane Doe")

    assert host.users.search("%") == []
    assert host.users.search("_ane") == []
    assert [u.display_name for u in host.users.search("ane d")] == ["Jane Doe"]


def test_get_user_meta_defaults_to_empty(host):
    user_id = host.users.create_user("Jane Doe", "pw", first_name="Jane", last_name="Doe")

    assert host.users.get_user_meta(user_id, "first_name") == "Jane"
    assert host.users.get_user_meta(user_id, "user_pass") == ""
    assert host.users.get_user_meta(9999, "first_name") == ""


def test_sqlite_errors_become_host_errors(host):
    with pytest.raises(HostError):
        with host.connection() as conn:
            conn.execute("SELECT * FROM no_such_table")
