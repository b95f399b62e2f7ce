import pytest

from phonoscribe.phonetics import IpaDictionary, clean_word, spanish_to_ipa, transcribe_to_ipa


@pytest.mark.parametrize("word, expected", [
    ("llama", "ʝama"),
    ("chico", "tʃiko"),
    ("perro", "pero"),
    ("pero", "peɾo"),
    ("queso", "keso"),
    ("quince", "kinse"),
    ("gente", "xente"),
    ("gato", "ɡato"),
    ("hola", "ola"),
    ("niño", "niɲo"),
    ("zapato", "sapato"),
    ("vaca", "baka"),
    ("canción", "kansion"),
])
def test_spanish_rules(word, expected):
    assert spanish_to_ipa(word) == expected


def test_clean_word_strips_non_letters():
    assert clean_word("Hello,") == "hello"
    assert clean_word("don't") == "dont"


def test_dictionary_last_duplicate_wins():
    dictionary = IpaDictionary.from_lines([
        "hello həˈloʊ extra fields",
        "",
        "HELLO hɛˈloʊ",
    ])
    assert len(dictionary) == 1
    assert dictionary.lookup("hello") == "hɛˈloʊ"


def test_dictionary_variant_fallback():
    dictionary = IpaDictionary.from_lines(["world(1) wɝld"])
    assert dictionary.lookup("World!") == "wɝld"


def test_dictionary_unknown_word_returns_cleaned_word():
    assert IpaDictionary().lookup("Xylo-phone") == "xylophone"


def test_dictionary_is_read_only():
    dictionary = IpaDictionary.from_lines(["cat kæt"])
    with pytest.raises(TypeError):
        dictionary.entries["dog"] = "dɔɡ"


def test_dictionary_from_file(tmp_path):
    path = tmp_path / "en_US.txt"
    path.write_text("cat kæt\ndog dɔɡ\n", encoding="utf-8")
    dictionary = IpaDictionary.from_file(path)
    assert "dog" in dictionary
    assert dictionary.lookup("dog") == "dɔɡ"


def test_transcribe_to_ipa_english():
    dictionary = IpaDictionary.from_lines(["the ðə", "cat kæt"])
    assert transcribe_to_ipa("The cat sat", dictionary=dictionary) == "ðə kæt sat"


def test_transcribe_to_ipa_spanish():
    assert transcribe_to_ipa("La Llama", language="es") == "la ʝama"


def test_transcribe_to_ipa_empty():
    assert transcribe_to_ipa("") == ""
    assert transcribe_to_ipa("", language="es") == ""
