from extraction.inference import InferredFactDeriver
from extraction.models import EntityCandidate


def test_likes_template_uses_matching_entity_type() -> None:
    entities = [EntityCandidate(type="food", value="Sushi", confidence=0.9)]

    facts = InferredFactDeriver().derive("I love sushi from Tokyo.", entities)

    assert len(facts) == 1
    assert facts[0].key == "likes_food"
    assert facts[0].value == "Sushi"
    assert facts[0].confidence == 0.85


def test_no_matching_entity_means_no_fact() -> None:
    entities = [EntityCandidate(type="person", value="Alice")]

    assert InferredFactDeriver().derive("I enjoy hiking.", entities) == []
    assert InferredFactDeriver().derive("I enjoy hiking.", []) == []


def test_first_matching_entity_wins() -> None:
    entities = [
        EntityCandidate(type="product", value="jazz records"),
        EntityCandidate(type="media", value="jazz"),
    ]

    facts = InferredFactDeriver().derive("I prefer jazz records, mostly.", entities)

    assert [(f.key, f.value) for f in facts] == [("likes_product", "jazz records")]


def test_home_location_requires_place_entity() -> None:
    person_only = [EntityCandidate(type="person", value="Paris")]
    with_place = [
        EntityCandidate(type="person", value="Paris"),
        EntityCandidate(type="place", value="Paris"),
    ]
    deriver = InferredFactDeriver()

    assert deriver.derive("I'm from Paris.", person_only) == []

    facts = deriver.derive("I am from paris, originally", with_place)
    assert [(f.key, f.value, f.confidence) for f in facts] == [("home_location", "Paris", 0.9)]


def test_both_templates_can_fire_on_one_message() -> None:
    entities = [
        EntityCandidate(type="place", value="Lisbon"),
        EntityCandidate(type="food", value="pastries"),
    ]

    facts = InferredFactDeriver().derive("I'm from Lisbon. I like pastries.", entities)

    assert [f.key for f in facts] == ["likes_food", "home_location"]
