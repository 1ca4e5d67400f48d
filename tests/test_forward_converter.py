from pathlib import Path

from jsonapi_bridge.converter.forward import ConversionOptions, to_typespec
from jsonapi_bridge.converter.models import PropertyKind
from jsonapi_bridge.parser.base import (
    Attribute,
    Cardinality,
    Relationship,
    ResourceDefinition,
    ResourceSchema,
    SemanticType,
)
from jsonapi_bridge.parser.schema import load_schema

FIXTURES = Path(__file__).parent / "fixtures"


def _articles() -> ResourceDefinition:
    return ResourceDefinition(
        name="ArticleSerializer",
        resource_type="articles",
        attributes=[
            Attribute(name="title", semantic_type=SemanticType.STRING),
            Attribute(name="published_at", semantic_type=SemanticType.DATE, nullable=True),
            Attribute(name="status", enum_values=["draft", "published"]),
        ],
        relationships=[
            Relationship(name="author", cardinality=Cardinality.SINGULAR, target_resource="authors"),
        ],
    )


def _props(model):
    return {p.name: p for p in model.properties}


class TestModelMapping:
    def test_articles_scenario(self):
        result = to_typespec(ResourceSchema(resources=[_articles()]), ConversionOptions(generate_operations=True))
        assert result.errors == []
        assert result.warnings == []

        (model,) = result.model.models
        assert model.name == "Articles"
        assert len(model.properties) == 4

        operations = result.model.operations
        assert len(operations) == 5
        assert {op.path for op in operations} == {"/articles", "/articles/{id}"}
        by_name = {op.name: op for op in operations}
        assert by_name["listArticles"].status_codes == {200}
        assert by_name["getArticles"].status_codes == {200, 404}
        assert by_name["createArticles"].status_codes == {201, 400}
        assert by_name["updateArticles"].status_codes == {200, 404}
        assert by_name["deleteArticles"].status_codes == {204, 404}

    def test_property_types(self):
        result = to_typespec(_articles())
        props = _props(result.model.models[0])
        assert props["title"].type == "string"
        assert props["title"].optional is False
        assert props["published_at"].type == "utcDateTime | null"
        assert props["published_at"].optional is True
        assert props["status"].type == '"draft" | "published"'
        assert props["author"].type == "Authors"

    def test_property_kinds(self):
        props = _props(to_typespec(_articles()).model.models[0])
        assert props["title"].kind == PropertyKind.ATTRIBUTE
        assert props["author"].kind == PropertyKind.RELATIONSHIP

    def test_semantic_type_table(self):
        resource = ResourceDefinition(
            name="A",
            resource_type="widgets",
            attributes=[
                Attribute(name="count", semantic_type=SemanticType.INTEGER),
                Attribute(name="active", semantic_type=SemanticType.BOOLEAN),
                Attribute(name="tags", semantic_type=SemanticType.ARRAY),
                Attribute(name="meta", semantic_type=SemanticType.OBJECT),
            ],
        )
        props = _props(to_typespec(resource).model.models[0])
        assert props["count"].type == "float64"
        assert props["active"].type == "boolean"
        assert props["tags"].type == "unknown[]"
        assert props["meta"].type == "Record<unknown>"

    def test_enum_ignores_semantic_type(self):
        resource = ResourceDefinition(
            name="A",
            resource_type="widgets",
            attributes=[Attribute(name="size", semantic_type=SemanticType.INTEGER, enum_values=["s", "m"], nullable=True)],
        )
        prop = to_typespec(resource).model.models[0].properties[0]
        assert prop.type == '"s" | "m" | null'

    def test_enum_literals_escaped(self):
        resource = ResourceDefinition(
            name="A",
            resource_type="widgets",
            attributes=[Attribute(name="label", enum_values=["a|b", 'say "hi"', "back\\slash"])],
        )
        prop = to_typespec(resource).model.models[0].properties[0]
        assert prop.type == '"a|b" | "say \\"hi\\"" | "back\\\\slash"'

    def test_relationship_types(self):
        resource = ResourceDefinition(
            name="A",
            resource_type="posts",
            relationships=[
                Relationship(name="tags", cardinality=Cardinality.PLURAL, target_resource="tag"),
                Relationship(name="editor", cardinality=Cardinality.SINGULAR, target_resource="users", nullable=True),
                Relationship(name="category", cardinality=Cardinality.SINGULAR, target_resource="product_categories"),
            ],
        )
        props = _props(to_typespec(resource).model.models[0])
        assert props["tags"].type == "Tags[]"
        assert props["editor"].type == "Users | null"
        assert props["editor"].optional is True
        assert props["category"].type == "ProductCategories"

    def test_model_names_pluralized(self):
        schema = ResourceSchema(resources=[
            ResourceDefinition(name="A", resource_type="category"),
            ResourceDefinition(name="B", resource_type="box"),
            ResourceDefinition(name="C", resource_type="entry"),
            ResourceDefinition(name="D", resource_type="post"),
        ])
        names = [m.name for m in to_typespec(schema).model.models]
        assert names == ["Categories", "Boxes", "Entries", "Posts"]

    def test_missing_resource_type_uses_class_name(self):
        model = to_typespec(ResourceDefinition(name="UserProfileSerializer")).model.models[0]
        assert model.name == "UserProfiles"

    def test_discriminator_on_every_model(self):
        schema, _ = load_schema(FIXTURES / "blog-schema.yml")
        for model in to_typespec(schema).model.models:
            assert [(d.name, d.arguments) for d in model.decorators] == [("discriminator", ["type"])]

    def test_descriptions_carried(self):
        schema, _ = load_schema(FIXTURES / "blog-schema.yml")
        model = to_typespec(schema).model.models[0]
        assert model.description == "Blog article resource"
        assert _props(model)["title"].description == "The article title"


class TestOptions:
    def test_defaults(self):
        result = to_typespec(_articles())
        definition = result.model
        assert definition.namespaces[0].name == "JsonApi"
        assert definition.imports == ["@typespec/rest", "@typespec/openapi3"]
        assert definition.title == "JSON API Schema"
        assert definition.version == "1.0.0"
        assert definition.operations == []

    def test_schema_metadata_used(self):
        schema, _ = load_schema(FIXTURES / "blog-schema.yml")
        definition = to_typespec(schema).model
        assert definition.title == "Blog API"
        assert definition.description == "A simple blog API with articles and authors"

    def test_options_override(self):
        options = ConversionOptions(namespace="Blog", title="Custom", version="9.9.9")
        definition = to_typespec(_articles(), options).model
        assert definition.namespaces[0].name == "Blog"
        assert definition.title == "Custom"
        assert definition.version == "9.9.9"

    def test_exclude_relationships(self):
        model = to_typespec(_articles(), ConversionOptions(include_relationships=False)).model.models[0]
        assert [p.name for p in model.properties] == ["title", "published_at", "status"]

    def test_operation_details(self):
        definition = to_typespec(_articles(), ConversionOptions(generate_operations=True)).model
        by_name = {op.name: op for op in definition.operations}
        get = by_name["getArticles"]
        assert get.method == "get"
        assert get.parameters[0].name == "id"
        assert get.parameters[0].location == "path"
        assert by_name["createArticles"].request_body.type == "Articles"
        assert by_name["updateArticles"].method == "patch"
        assert by_name["listArticles"].responses[0].type == "Articles[]"
        assert by_name["deleteArticles"].responses[0].description == "Resource deleted successfully"


class TestCardinalityPreservation:
    def test_property_count_matches_ir(self):
        schema, _ = load_schema(FIXTURES / "blog-schema.yml")
        result = to_typespec(schema)
        for resource, model in zip(schema.resources, result.model.models):
            assert len(model.properties) == len(resource.attributes) + len(resource.relationships)


class TestFailureContainment:
    def test_bad_attribute_becomes_warning(self):
        data = {
            "serializers": [
                {
                    "name": "ArticleSerializer",
                    "resource": {
                        "type": "articles",
                        "attributes": [
                            {"name": "title", "type": "string"},
                            {"name": "price", "type": "money"},
                        ],
                    },
                },
                {"name": "TagSerializer", "resource": {"type": "tags", "attributes": [{"name": "label"}]}},
            ]
        }
        result = to_typespec(data)
        assert result.errors == []
        assert len(result.warnings) == 1
        assert "price" in result.warnings[0]
        articles, tags = result.model.models
        assert [p.name for p in articles.properties] == ["title"]
        assert [p.name for p in tags.properties] == ["label"]

    def test_malformed_schema_is_an_error(self):
        result = to_typespec({"serializers": "nope"})
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Conversion failed:")
        assert result.model.namespaces == []

    def test_never_raises(self):
        result = to_typespec(42)
        assert result.errors
        assert result.model.models == []

    def test_inputs_not_mutated(self):
        resource = _articles()
        before = resource.model_dump()
        to_typespec(resource, ConversionOptions(generate_operations=True))
        assert resource.model_dump() == before
