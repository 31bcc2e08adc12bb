from chatorder.models.ai_config import AIConfig
from chatorder.models.intent_event import IntentEvent
from chatorder.models.intent_override_rule import IntentOverrideRule
from chatorder.services.intent_router import has_time_expression, match_static_rules, route
from tests.fixtures_data import CUSTOMER_PHONE, TENANT_ID


def _add_rule(db, pattern, intent, match_type="exact"):
    rule = IntentOverrideRule(
        tenant_id=TENANT_ID,
        pattern=pattern,
        match_type=match_type,
        intent=intent,
        confidence=0.75,
        active=True,
        created_by="test",
        hits=0,
    )
    db.add(rule)
    db.commit()
    return rule


def test_static_rules_cover_informational_lanes():
    assert match_static_rules("are you open now").lane == "opening_hours"
    assert match_static_rules("send menu").lane == "menu"
    assert match_static_rules("do you deliver at 11 pm").lane == "delivery_time_specific"
    assert match_static_rules("can you deliver now").lane == "delivery_now"
    assert match_static_rules("where is your shop").lane == "store_location"
    assert match_static_rules("how much").lane == "pricing_generic"


def test_trailing_question_mark_counts_for_human_help():
    assert match_static_rules("is biryani spicy", "is biryani spicy?").lane == "human_help"
    assert match_static_rules("is biryani spicy") is None


def test_time_expressions():
    assert has_time_expression("deliver at 11:30 pm")
    assert has_time_expression("can you come at 12 tonight")
    assert has_time_expression("midnight delivery")
    assert not has_time_expression("deliver today")


def test_override_beats_static_rules(db):
    rule = _add_rule(db, "menu", "contact")

    decision = route(db, TENANT_ID, CUSTOMER_PHONE, "Menu?", "menu")

    assert decision.lane == "contact"
    assert decision.source == "override"
    db.refresh(rule)
    assert rule.hits == 1


def test_contains_and_regex_overrides(db):
    _add_rule(db, "biryani time", "opening_hours", match_type="contains")
    _add_rule(db, r"^kadai\s+\w+$", "store_location", match_type="regex")

    assert route(db, TENANT_ID, CUSTOMER_PHONE, "when is biryani time", "when is biryani time").lane == "opening_hours"
    assert route(db, TENANT_ID, CUSTOMER_PHONE, "kadai enga", "kadai enga").lane == "store_location"


def test_fallback_is_human_help_and_every_decision_is_logged(db):
    decision = route(db, TENANT_ID, CUSTOMER_PHONE, "2 chicken biryani", "2 chicken biryani", "idle")

    assert decision.lane == "human_help"
    assert decision.source == "fallback"
    assert not decision.is_informational

    events = db.query(IntentEvent).all()
    assert len(events) == 1
    assert events[0].decided_intent == "human_help"
    assert events[0].state == "idle"


def test_enabled_mock_classifier_routes_orders(db):
    db.add(AIConfig(tenant_id=TENANT_ID, provider="mock", enabled=True))
    db.commit()

    decision = route(db, TENANT_ID, CUSTOMER_PHONE, "i want 2 biryani", "i want 2 biryani")

    assert decision.lane == "order"
    assert decision.source == "ai"
