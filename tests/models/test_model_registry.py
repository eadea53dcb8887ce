import pytest

from cadenceorm.errors import ConfigurationError
from cadenceorm.models import ModelRegistry, ModelTable, RegisteredModel
from cadenceorm.query import TableRef


class StubModel:
    def __init__(self, name, references=()):
        self.name = name
        self.table_ref = TableRef(name.lower())
        self.references = tuple(references)
        self.calls = []

    async def destroy(self, **options):
        self.calls.append(("destroy", options))

    async def truncate(self, **options):
        self.calls.append(("truncate", options))


def names(models):
    return [model.name for model in models]


def test_registration_order_and_lookup():
    registry = ModelRegistry()
    user = registry.register(StubModel("User"))
    registry.register(StubModel("Post", ["User"]))

    assert names(registry.models) == ["User", "Post"]
    assert registry.get("User") is user
    assert "Post" in registry and "Tag" not in registry
    assert len(registry) == 2
    with pytest.raises(KeyError):
        registry.get("Tag")


def test_duplicate_names_are_rejected():
    registry = ModelRegistry()
    registry.register(StubModel("User"))
    with pytest.raises(ConfigurationError):
        registry.register(StubModel("User"))


def test_topological_order_puts_dependents_first():
    registry = ModelRegistry()
    for model in (
        StubModel("User"),
        StubModel("Tag"),
        StubModel("Post", ["User"]),
        StubModel("PostTag", ["Post", "Tag"]),
        StubModel("Comment", ["Post", "User"]),
    ):
        registry.register(model)

    ordered = names(registry.get_models_topo_sorted_by_foreign_key())
    assert ordered == ["PostTag", "Tag", "Comment", "Post", "User"]
    for model in registry.models:
        for target in model.references:
            assert ordered.index(model.name) < ordered.index(target)


def test_self_and_unknown_references_are_ignored():
    registry = ModelRegistry()
    registry.register(StubModel("Category", ["Category", "Missing"]))
    registry.register(StubModel("Product", ["Category"]))
    assert names(registry.get_models_topo_sorted_by_foreign_key()) == ["Product", "Category"]


def test_cycle_returns_none():
    registry = ModelRegistry()
    registry.register(StubModel("A", ["B"]))
    registry.register(StubModel("B", ["C"]))
    registry.register(StubModel("C", ["A"]))
    registry.register(StubModel("D"))
    assert registry.get_models_topo_sorted_by_foreign_key() is None


def test_stub_models_satisfy_the_protocol():
    assert isinstance(StubModel("User"), RegisteredModel)


def test_model_table_resolves_its_table(postgres_db):
    model = ModelTable(postgres_db, "BlogPost")
    assert model.table_ref == TableRef("blog_post", "public")
    other = ModelTable(postgres_db, "Event", table="analytics.events", references=["BlogPost"])
    assert other.table_ref == TableRef("events", "analytics")
    assert other.references == ("BlogPost",)


@pytest.mark.asyncio
async def test_custom_models_take_part_in_bulk_operations(postgres_db):
    user = StubModel("User")
    post = StubModel("Post", ["User"])
    postgres_db.add_models(user, post)

    await postgres_db.destroy_all(where={"id": 1})
    await postgres_db.truncate(cascade=True)

    assert user.calls == [("destroy", {"where": {"id": 1}}), ("truncate", {"cascade": True})]
    assert post.calls == user.calls
