"""
Unit tests for interaction records and loaders
"""

import json

import pandas as pd
import pytest

from embedrec.data.interactions import (
    Interaction,
    coerce_interactions,
    frame_to_interactions,
    load_interactions,
)


class TestInteraction:
    def test_missing_rating_is_implicit_positive(self):
        assert Interaction(user="u", entity="e").target == 1.0
        assert Interaction(user="u", entity="e", rating=3.5).target == 3.5

    def test_rejects_bad_ids(self):
        with pytest.raises(TypeError):
            Interaction(user=None, entity="e")

    def test_rejects_nan_rating(self):
        with pytest.raises(ValueError):
            Interaction(user="u", entity="e", rating=float("nan"))

    def test_coerce_mappings(self):
        interactions = coerce_interactions(
            [{"user": "u", "entity": 3, "rating": 4}, {"user": "v", "entity": "x"}]
        )

        assert interactions == [Interaction("u", 3, 4.0), Interaction("v", "x", None)]

    def test_coerce_rejects_other_records(self):
        with pytest.raises(TypeError):
            coerce_interactions([("u", "e")])


class TestLoaders:
    def test_frame_column_variants(self):
        df = pd.DataFrame({"user_id": [1, 2], "item_id": ["a", "b"], "rating": [5.0, None]})

        interactions = frame_to_interactions(df)

        assert interactions == [Interaction(1, "a", 5.0), Interaction(2, "b", None)]
        assert type(interactions[0].user) is int

    def test_exact_column_wins_over_variants(self):
        df = pd.DataFrame({"user": ["u"], "user_name": ["Ann"], "entity": ["e"], "item_id": ["x"]})
        assert frame_to_interactions(df) == [Interaction("u", "e")]

    def test_amazon_reviews_use_parent_asin(self):
        df = pd.DataFrame({"user_id": ["u"], "asin": ["B01-red"], "parent_asin": ["B01"], "rating": [4.0]})
        assert frame_to_interactions(df) == [Interaction("u", "B01", 4.0)]

    def test_ambiguous_columns_rejected(self):
        df = pd.DataFrame({"user_id": ["u"], "item_id": ["a"], "movie_id": ["b"]})
        with pytest.raises(ValueError, match="Ambiguous entity"):
            frame_to_interactions(df)

    def test_frame_without_rating(self):
        df = pd.DataFrame({"user": ["u"], "entity": ["e"]})
        assert frame_to_interactions(df)[0].target == 1.0

    def test_frame_missing_columns(self):
        with pytest.raises(ValueError):
            frame_to_interactions(pd.DataFrame({"user": ["u"]}))

    def test_load_jsonl(self, tmp_path):
        path = tmp_path / "ratings.jsonl"
        rows = [{"user": "u1", "entity": "e1", "rating": 4.0}, {"user": "u2", "entity": "e1", "rating": 2.0}]
        path.write_text("\n".join(json.dumps(r) for r in rows) + "\n", encoding="utf-8")

        assert load_interactions(str(path)) == [Interaction("u1", "e1", 4.0), Interaction("u2", "e1", 2.0)]

    def test_load_csv(self, tmp_path):
        path = tmp_path / "ratings.csv"
        pd.DataFrame({"user_id": ["a", "b"], "movie_id": [10, 11]}).to_csv(path, index=False)

        assert load_interactions(str(path)) == [Interaction("a", 10), Interaction("b", 11)]

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "ratings.parquet"
        path.write_bytes(b"")
        with pytest.raises(ValueError):
            load_interactions(str(path))
