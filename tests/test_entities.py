from __future__ import annotations

import unittest

from market_pulse.engine.entities import EntityExtractor, normalize_entity
from market_pulse.knowledge.vocabulary import build_vocabulary, default_vocabulary


class EntityExtractorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.extractor = EntityExtractor()

    def test_surface_forms_share_canonical_key(self) -> None:
        for text in ("Will Trump run?", "Will Donald Trump run?", "Will Donald J. Trump run?"):
            with self.subTest(text=text):
                self.assertEqual(self.extractor.normalized_keys(text), ["trump"])

    def test_alias_pairs_share_key(self) -> None:
        for a, b in (("Kamala Harris", "Kamala"), ("FOMC", "Federal Reserve"), ("Pyongyang", "North Korea"), ("Hamas", "Gaza")):
            with self.subTest(pair=(a, b)):
                self.assertEqual(self.extractor.normalized_keys(a), self.extractor.normalized_keys(b))

    def test_duplicates_keep_first_surface_form(self) -> None:
        entities = self.extractor.extract("Trump says Donald Trump will win")
        self.assertEqual(len(entities), 1)
        self.assertEqual(entities[0].value, "Trump")
        self.assertEqual(entities[0].category, "people")

    def test_demonyms_map_to_country(self) -> None:
        self.assertEqual(self.extractor.normalized_keys("Russian forces enter Ukraine"), ["ukraine", "russia"])
        self.assertEqual(self.extractor.normalized_keys("Will Beijing respond?"), ["china"])

    def test_keys_follow_category_order(self) -> None:
        keys = self.extractor.normalized_keys("New tariffs on China announced by Trump")
        self.assertEqual(keys, ["trump", "china", "tariff"])

    def test_aliases_for_orgs_and_topics(self) -> None:
        keys = self.extractor.normalized_keys("Will the FOMC announce a rate cut before BTC hits 100k?")
        self.assertEqual(keys, ["fed", "interest rate", "bitcoin"])

    def test_no_entities(self) -> None:
        self.assertEqual(self.extractor.extract(""), [])
        self.assertEqual(self.extractor.extract("Will it rain tomorrow?"), [])

    def test_word_boundaries(self) -> None:
        # "rain" must not produce the "ai" topic.
        self.assertNotIn("ai", self.extractor.normalized_keys("Heavy rain in Mexico"))

    def test_injected_vocabulary(self) -> None:
        vocab = build_vocabulary(
            entity_patterns=[("people", [r"\b(alice|alice\s+smith)\b"])],
            aliases={"Alice": "asmith"},
            context_keywords=[],
            context_adjacency={},
        )
        extractor = EntityExtractor(vocab)
        self.assertEqual(extractor.normalized_keys("ALICE and Trump"), ["asmith"])

    def test_normalize_entity(self) -> None:
        aliases = default_vocabulary().aliases
        self.assertEqual(normalize_entity("  Kamala ", aliases), "harris")
        self.assertEqual(normalize_entity("Tesla", aliases), "tesla")


if __name__ == "__main__":
    unittest.main()
