from pathlib import Path

import pytest

from jsonapi_bridge.errors import MissingDeclaration, NotFound
from jsonapi_bridge.parser.base import Cardinality, SemanticType
from jsonapi_bridge.parser.ruby import (
    LineScanExtractor,
    extract,
    extract_file,
    get_extractor,
    infer_semantic_type,
    parse_cache_options,
)
from jsonapi_bridge.parser.ruby_tree import SyntaxTreeExtractor

FIXTURES = Path(__file__).parent / "fixtures"

STRATEGIES = ["tree", "scan"]

ARTICLE = """\
class ArticleSerializer
  include JSONAPI::Serializer

  set_type :articles
  set_id :slug

  attributes :title, :body, :published_at

  attribute :word_count do |article|
    article.body.split.size
  end

  attribute :reading_time, &:estimated_reading_time

  belongs_to :author, record_type: :users
  has_many :comments
  has_one :cover, record_type: :images
end
"""


def _attr(resource, name):
    return next(a for a in resource.attributes if a.name == name)


def _rel(resource, name):
    return next(r for r in resource.relationships if r.name == name)


class TestInferSemanticType:
    def test_id_suffix(self):
        assert infer_semantic_type("id") == SemanticType.INTEGER
        assert infer_semantic_type("author_id") == SemanticType.INTEGER

    def test_timestamp_suffix(self):
        assert infer_semantic_type("published_at") == SemanticType.DATE
        assert infer_semantic_type("birth_date") == SemanticType.DATE
        assert infer_semantic_type("created_at_utc") == SemanticType.DATE

    def test_boolean_names(self):
        assert infer_semantic_type("is_active") == SemanticType.BOOLEAN
        assert infer_semantic_type("has_avatar") == SemanticType.BOOLEAN
        assert infer_semantic_type("archived_flag") == SemanticType.BOOLEAN

    def test_count_suffix(self):
        assert infer_semantic_type("follower_count") == SemanticType.INTEGER
        assert infer_semantic_type("page_size") == SemanticType.INTEGER

    def test_block_hints(self):
        assert infer_semantic_type("words", "article.body.split.length") == SemanticType.INTEGER
        assert infer_semantic_type("shown", "user.name.present?") == SemanticType.BOOLEAN
        assert infer_semantic_type("since", "user.created_at.strftime('%Y')") == SemanticType.DATE

    def test_name_wins_over_block(self):
        assert infer_semantic_type("is_long", "body.length > 100") == SemanticType.BOOLEAN

    def test_default_string(self):
        assert infer_semantic_type("title") == SemanticType.STRING
        assert infer_semantic_type("title", "article.title.upcase") == SemanticType.STRING


class TestParseCacheOptions:
    def test_parse(self):
        options = parse_cache_options("store: Rails.cache, namespace: 'jsonapi', expires_in: 1.hour")
        assert options == {
            "enabled": True,
            "store": "Rails.cache",
            "namespace": "jsonapi",
            "expires_in": "1.hour",
        }

    def test_nested_commas_stay_together(self):
        options = parse_cache_options("race_condition_ttl: foo(1, 2)")
        assert options["race_condition_ttl"] == "foo(1, 2)"


class TestGetExtractor:
    def test_strategies(self):
        assert isinstance(get_extractor("scan"), LineScanExtractor)
        assert isinstance(get_extractor("tree"), SyntaxTreeExtractor)
        assert isinstance(get_extractor(), SyntaxTreeExtractor)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown extraction strategy"):
            get_extractor("regex")


class TestDirectives:
    """Rules both extraction strategies agree on."""

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_type_and_id(self, strategy):
        resource = extract(ARTICLE, strategy=strategy)
        assert resource.name == "ArticleSerializer"
        assert resource.resource_type == "articles"
        assert resource.id_field == "slug"
        assert resource.namespace is None

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_attribute_list_defaults_to_string(self, strategy):
        resource = extract(ARTICLE, strategy=strategy)
        published = _attr(resource, "published_at")
        assert published.semantic_type == SemanticType.STRING
        assert published.nullable is False

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_block_attribute(self, strategy):
        word_count = _attr(extract(ARTICLE, strategy=strategy), "word_count")
        assert word_count.nullable is True
        assert word_count.semantic_type == SemanticType.INTEGER

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_method_reference_attribute(self, strategy):
        reading_time = _attr(extract(ARTICLE, strategy=strategy), "reading_time")
        assert reading_time.custom_accessor == "estimated_reading_time"
        assert reading_time.nullable is False
        assert reading_time.semantic_type == SemanticType.STRING

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_relationships(self, strategy):
        resource = extract(ARTICLE, strategy=strategy)
        assert [r.name for r in resource.relationships] == ["author", "comments", "cover"]
        assert _rel(resource, "author").target_resource == "users"
        assert _rel(resource, "author").cardinality == Cardinality.SINGULAR
        assert _rel(resource, "comments").target_resource == "comments"
        assert _rel(resource, "comments").cardinality == Cardinality.PLURAL
        assert _rel(resource, "cover").cardinality == Cardinality.SINGULAR

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_only_first_relationship_name_captured(self, strategy):
        text = "class TagSerializer\n  has_many :posts, :pages\nend\n"
        resource = extract(text, strategy=strategy)
        assert [r.name for r in resource.relationships] == ["posts"]

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_one_line_brace_block(self, strategy):
        text = "class TagSerializer\n  attribute(:slug_size) { |tag| tag.slug.size }\n  attributes :name\nend\n"
        resource = extract(text, strategy=strategy)
        assert [a.name for a in resource.attributes] == ["slug_size", "name"]
        assert _attr(resource, "slug_size").nullable is True

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_redeclared_attribute_keeps_last(self, strategy):
        text = "class TagSerializer\n  attributes :name\n  attribute :name do |tag|\n    tag.name.upcase\n  end\nend\n"
        resource = extract(text, strategy=strategy)
        assert len(resource.attributes) == 1
        assert resource.attributes[0].nullable is True

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_namespace_from_modules(self, strategy):
        text = "module Api\n  module V1\n    class TagSerializer\n      set_type :tags\n    end\n  end\nend\n"
        resource = extract(text, strategy=strategy)
        assert resource.namespace == "Api.V1"
        assert resource.name == "TagSerializer"

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_qualified_class_name(self, strategy):
        resource = extract("class Api::V2::TagSerializer\nend\n", strategy=strategy)
        assert resource.name == "TagSerializer"
        assert resource.namespace == "Api.V2"

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_empty_class_body(self, strategy):
        resource = extract("class EmptySerializer\nend\n", strategy=strategy)
        assert resource.attributes == ()
        assert resource.relationships == ()
        assert resource.resource_type is None

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_missing_class_raises(self, strategy):
        with pytest.raises(MissingDeclaration):
            extract("# nothing here\nputs 'hi'\n", fallback_name="notes", strategy=strategy)

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_missing_class_lenient(self, strategy):
        resource = extract("puts 'hi'\n", fallback_name="order_notes", strategy=strategy, strict=False)
        assert resource.name == "OrderNotesSerializer"
        assert resource.attributes == ()

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_fixture_article(self, strategy):
        resource = extract_file(FIXTURES / "article_serializer.rb", strategy=strategy)
        assert resource.resource_type == "articles"
        assert resource.id_field == "article_id"
        assert [a.name for a in resource.attributes] == [
            "title", "content", "published_at", "status", "reading_time",
        ]
        assert len(resource.relationships) == 3
        assert resource.cache_options == {
            "enabled": True,
            "store": "Rails.cache",
            "namespace": "jsonapi-serializer",
            "expires_in": "1.hour",
        }

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_fixture_ecommerce_product(self, strategy):
        resource = extract_file(FIXTURES / "ecommerce_product_serializer.rb", strategy=strategy)
        assert resource.resource_type == "products"
        assert resource.id_field == "sku"
        assert len(resource.attributes) == 13
        assert len(resource.relationships) == 9
        assert _attr(resource, "is_available").semantic_type == SemanticType.BOOLEAN
        assert _attr(resource, "formatted_created_date").semantic_type == SemanticType.DATE
        assert _attr(resource, "seo_title").custom_accessor == "generate_seo_title"
        assert _rel(resource, "brand").target_resource == "brand"
        assert _rel(resource, "featured_image").target_resource == "product_images"
        assert resource.cache_options["expires_in"] == "2.hours"


class TestLineScanExtractor:
    def test_minimal_fixture(self):
        resource = extract_file(FIXTURES / "minimal_serializer.rb", strategy="scan")
        assert resource.resource_type == "minimal_items"
        assert [a.name for a in resource.attributes] == ["name", "value"]

    def test_keyword_block_in_accessor_ends_class_early(self):
        resource = extract_file(FIXTURES / "user_profile_serializer.rb", strategy="scan")
        assert resource.namespace == "Api.V3"
        assert len(resource.attributes) == 25
        assert resource.attributes[-1].name == "account_status"
        assert resource.relationships == ()
        assert resource.cache_options is None

    def test_block_text_drives_inference(self):
        resource = extract_file(FIXTURES / "user_profile_serializer.rb", strategy="scan")
        assert _attr(resource, "display_name").semantic_type == SemanticType.BOOLEAN
        assert _attr(resource, "profile_completion_percentage").semantic_type == SemanticType.INTEGER
        assert _attr(resource, "member_since").semantic_type == SemanticType.DATE

    def test_interpolation_braces_balance(self):
        text = 'class TagSerializer\n  attribute :label do |t|\n    "#{t.name}"\n  end\n  attributes :name\nend\n'
        resource = LineScanExtractor().extract(text)
        assert [a.name for a in resource.attributes] == ["label", "name"]


class TestExtractFile:
    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFound, match="File not found"):
            extract_file(tmp_path / "ghost_serializer.rb")

    def test_fallback_name_from_stem(self):
        with pytest.raises(MissingDeclaration, match="string_helpers"):
            extract_file(FIXTURES / "string_helpers.rb")
