"""
Unit tests for duplicate detection and cleanup recommendations.

Run: pytest tests/unit/test_duplicate_service.py -v
"""

from services.duplicate_service import identify_duplicates, recommend_cleanup

from tests.factories import ProductFactory


class TestIdentifyDuplicates:
    """Tests for identify_duplicates()"""

    def test_groups_by_normalized_name(self):
        """Should group names equal after lowercasing and trimming."""
        # Arrange
        catalog = ProductFactory.create_models([
            ProductFactory.create(name="Laptop1"),
            ProductFactory.create(name="  laptop1 "),
            ProductFactory.create(name="Desk"),
        ])

        # Act
        groups = identify_duplicates(catalog)

        # Assert
        assert list(groups) == ["laptop1"]
        assert [p.id for p in groups["laptop1"]] == [catalog[0].id, catalog[1].id]

    def test_unique_names_have_no_groups(self):
        catalog = ProductFactory.create_models(ProductFactory.create_batch(3))

        assert identify_duplicates(catalog) == {}

    def test_idempotent(self):
        catalog = ProductFactory.create_models([
            ProductFactory.create(name="Chair"),
            ProductFactory.create(name="Chair"),
        ])

        assert identify_duplicates(catalog) == identify_duplicates(catalog)


class TestRecommendCleanup:
    """Tests for recommend_cleanup()"""

    def test_keeps_most_expensive(self):
        # Arrange
        cheap = ProductFactory.create(name="Laptop1", price=900)
        pricey = ProductFactory.create(name="Laptop1", price=1200)
        groups = identify_duplicates(ProductFactory.create_models([cheap, pricey]))

        # Act
        analysis = recommend_cleanup(groups)

        # Assert
        rec = analysis.recommendations[0]
        assert rec.keep.id == pricey["id"]
        assert [p.id for p in rec.delete] == [cheap["id"]]
        assert rec.duplicate_count == 2

    def test_price_tie_keeps_smallest_id(self):
        rows = [
            ProductFactory.create(id="b", name="Chair", price=50),
            ProductFactory.create(id="a", name="Chair", price=50),
            ProductFactory.create(id="c", name="Chair", price=50),
        ]
        groups = identify_duplicates(ProductFactory.create_models(rows))

        rec = recommend_cleanup(groups).recommendations[0]

        assert rec.keep.id == "a"
        assert [p.id for p in rec.delete] == ["b", "c"]

    def test_summary_and_ids_to_delete(self):
        rows = [
            ProductFactory.create(id="1", name="Chair", price=10),
            ProductFactory.create(id="2", name="Chair", price=20),
            ProductFactory.create(id="3", name="Desk", price=30),
            ProductFactory.create(id="4", name="desk", price=30),
            ProductFactory.create(id="5", name="Desk", price=5),
        ]
        groups = identify_duplicates(ProductFactory.create_models(rows))

        analysis = recommend_cleanup(groups)

        assert analysis.summary.duplicate_groups == 2
        assert analysis.summary.total_products == 5
        assert analysis.summary.recommended_to_delete == 3
        assert analysis.ids_to_delete == ["1", "4", "5"]

    def test_response_uses_camel_case(self):
        groups = identify_duplicates(ProductFactory.create_models([
            ProductFactory.create(name="Chair"),
            ProductFactory.create(name="Chair"),
        ]))

        payload = recommend_cleanup(groups).to_response()

        assert payload["summary"]["duplicateGroups"] == 1
        assert payload["recommendations"][0]["productName"] == "chair"
        assert payload["recommendations"][0]["duplicateCount"] == 2
