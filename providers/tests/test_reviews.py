from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, TestCase

from catalog.models import Product, Review
from providers.services.reviews import (
    filter_reviews,
    has_cjk,
    pick_mixed_ratings,
    sync_reviews_for_all,
    sync_reviews_for_product,
)


def row(i, score, comment="Lovely fit"):
    return {"commentId": f"C{i}", "score": score, "comment": comment, "commentUser": f"buyer{i}"}


class ReviewFilterTests(SimpleTestCase):
    def test_has_cjk(self):
        self.assertTrue(has_cjk("很好"))
        self.assertTrue(has_cjk("とても良い"))
        self.assertFalse(has_cjk("Great quality"))

    def test_filter_drops_low_empty_and_cjk(self):
        rows = [row(1, 5), row(2, 2), row(3, 4, comment="  "), row(4, 4, comment="质量很好"), row(5, "3")]
        kept = filter_reviews(rows)
        self.assertEqual([r["commentId"] for r in kept], ["C1", "C5"])
        self.assertEqual(kept[1]["score"], 3)

    def test_mix_prefers_spread_then_tops_up(self):
        reviews = filter_reviews([row(i, 5) for i in range(8)] + [row(10 + i, 3) for i in range(5)])
        picked = pick_mixed_ratings(reviews)
        self.assertEqual(len(picked), 10)
        scores = [r["score"] for r in picked]
        self.assertEqual(scores[:7], [5, 5, 5, 5, 3, 3, 3])
        self.assertEqual(scores.count(5), 7)


class SyncReviewsTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            external_id="P1",
            name="Dress",
            retail_price=Decimal("25.99"),
        )

    def test_upserts_and_reports_average(self):
        client = mock.Mock()
        client.get_reviews.return_value = {"list": [row(1, 5), row(2, 4), row(3, 1)]}

        first = sync_reviews_for_product(client, self.product)
        second = sync_reviews_for_product(client, self.product)

        client.get_reviews.assert_called_with("P1", page_num=1, page_size=50)
        self.assertEqual(first["synced"], 2)
        self.assertEqual(second["review_count"], 2)
        self.assertEqual(second["average_rating"], 4.5)
        self.assertEqual(Review.objects.filter(product=self.product).count(), 2)

    def test_all_products(self):
        client = mock.Mock()
        client.get_reviews.return_value = {"list": []}
        self.assertEqual(sync_reviews_for_all(client), {"synced": 1, "errors": 0})
