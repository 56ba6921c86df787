import re

from extraction.lexical import DEFAULT_FACT_RULES, FactRule, LexicalFactMatcher


def test_favorite_color_yields_single_fact() -> None:
    facts = LexicalFactMatcher().match("my favorite color is blue")

    assert len(facts) == 1
    assert facts[0].key == "favorite_color"
    assert facts[0].value == "blue"
    assert facts[0].confidence == 0.9


def test_favorite_value_stops_at_punctuation_and_key_is_lowercased() -> None:
    facts = LexicalFactMatcher().match("Honestly, My fav Food is green curry, always.")

    assert [(f.key, f.value) for f in facts] == [("favorite_food", "green curry")]


def test_rules_are_independent_and_keep_table_order() -> None:
    facts = LexicalFactMatcher().match("My name is Ada. My favorite language is python.")

    assert [f.key for f in facts] == ["favorite_language", "user_name"]
    assert facts[1].value == "Ada"
    assert facts[1].confidence == 0.95


def test_each_rule_contributes_at_most_one_fact() -> None:
    facts = LexicalFactMatcher().match(
        "my favorite color is red. my favorite color is green."
    )

    assert len(facts) == 1
    assert facts[0].value == "red"


def test_no_match_and_empty_text_return_empty_list() -> None:
    matcher = LexicalFactMatcher()

    assert matcher.match("the weather is nice today") == []
    assert matcher.match("") == []


def test_custom_rules_are_additive() -> None:
    pet_rule = FactRule(
        pattern=re.compile(r"my (dog|cat) is called (\w+)", re.IGNORECASE),
        key_template=r"pet_\1_name",
        value_template=r"\2",
        confidence=0.92,
    )
    matcher = LexicalFactMatcher(rules=[*DEFAULT_FACT_RULES, pet_rule])

    facts = matcher.match("My name is Sam and my dog is called Rex")

    assert [(f.key, f.value, f.confidence) for f in facts] == [
        ("user_name", "Sam", 0.95),
        ("pet_dog_name", "Rex", 0.92),
    ]
