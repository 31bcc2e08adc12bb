from chatorder.services.meta_intent import detect_meta_intent, is_pure_greeting
from chatorder.services.text_normalize import normalize_customer_text, normalize_phone


def test_pure_greetings():
    assert is_pure_greeting("hi")
    assert is_pure_greeting("Hello bro!")
    assert is_pure_greeting("good morning sir")
    assert not is_pure_greeting("hi, 2 biryani")
    assert not is_pure_greeting("hi can i get a coke please")
    assert not is_pure_greeting("")


def test_control_phrases_beat_greeting():
    assert detect_meta_intent("hi, reset") == "reset"
    assert detect_meta_intent("hello go back") == "back"
    assert detect_meta_intent("hi") == "greeting"


def test_meta_intent_keywords():
    assert detect_meta_intent("how to order?") == "help"
    assert detect_meta_intent("show menu") == "menu"
    assert detect_meta_intent("I want to talk to human") == "agent"
    assert detect_meta_intent("2 chicken biryani") is None
    assert detect_meta_intent("   ") is None


def test_customer_text_normalization():
    assert normalize_customer_text("2 Chkn Briyani bro") == "2 chicken biryani"
    assert normalize_customer_text("Coke  pls") == "coke"
    assert normalize_customer_text(None) == ""


def test_phone_normalization_keeps_digits():
    assert normalize_phone("+91 98765-43210") == "919876543210"


def test_control_words_match_whole_words_only():
    assert detect_meta_intent("what is your cancellation policy?") is None
    assert detect_meta_intent("feedback") is None
    assert detect_meta_intent("is there a menucard") is None
    assert detect_meta_intent("please cancel") == "reset"
    assert detect_meta_intent("take me back") == "back"
