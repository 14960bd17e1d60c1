from __future__ import annotations

from app.crawling.templates import (
    DEFAULT_TEMPLATE_ID,
    TEMPLATE_CATEGORIES,
    WEBSITE_TEMPLATES,
    create_custom_template,
    get_template_by_id,
    get_templates_by_category,
    suggest_template_for_url,
)


class TestTemplateCatalog:
    def test_template_ids_are_unique(self) -> None:
        ids = [template.id for template in WEBSITE_TEMPLATES]
        assert len(ids) == len(set(ids))

    def test_every_template_has_a_known_category_and_sane_limits(self) -> None:
        for template in WEBSITE_TEMPLATES:
            assert template.category in TEMPLATE_CATEGORIES
            assert template.crawl.max_depth >= 0
            assert template.crawl.max_pages >= 1
            assert template.crawl.delay_ms >= 0

    def test_lookup_by_id(self) -> None:
        template = get_template_by_id("documentation-deep")
        assert template is not None
        assert template.category == "documentation"
        assert get_template_by_id("does-not-exist") is None

    def test_lookup_by_category(self) -> None:
        docs = get_templates_by_category("documentation")
        assert [template.id for template in docs] == ["documentation-deep"]
        assert get_templates_by_category("nope") == []


class TestTemplateSuggestion:
    def test_docs_host_suggests_documentation_template(self) -> None:
        assert suggest_template_for_url("https://docs.python.org/3/").id == "documentation-deep"

    def test_docs_path_suggests_documentation_template(self) -> None:
        assert suggest_template_for_url("https://example.com/docs/intro").id == "documentation-deep"

    def test_wiki_and_shop_and_news(self) -> None:
        assert suggest_template_for_url("https://en.wikipedia.org/wiki/Python").id == "wiki-knowledge"
        assert suggest_template_for_url("https://shop.example.com/").id == "ecommerce-catalog"
        assert suggest_template_for_url("https://example.com/blog/hello").id == "news-blog-aggressive"

    def test_unmatched_url_falls_back_to_corporate(self) -> None:
        assert suggest_template_for_url("https://acme.example/").id == DEFAULT_TEMPLATE_ID

    def test_garbage_url_falls_back_to_corporate(self) -> None:
        assert suggest_template_for_url("http://[::1").id == DEFAULT_TEMPLATE_ID


class TestCustomTemplate:
    def test_custom_template_carries_limits_and_patterns(self) -> None:
        template = create_custom_template("Mine", 1, 5, include_patterns=["/kb/"], exclude_patterns=["/old/"])

        assert template.id.startswith("custom-")
        assert template.category == "custom"
        assert template.crawl.max_depth == 1
        assert template.crawl.max_pages == 5
        assert template.crawl.include_patterns == ("/kb/",)
        assert template.url_patterns.exclude == ("/old/",)
